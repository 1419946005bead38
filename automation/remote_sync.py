"""Push generated symbol sheets to Google Sheets."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol

import gspread
from google.oauth2.service_account import Credentials

from ivy_portfolio.config_manager import Account, AccountType
from reports.grid import SheetGrid, WorkbookGrid, cell_ref, sheet_ref

LOGGER = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Sheet 1 is the dashboard and sheet 2 is reserved for charts.
RESERVED_SHEETS = 2

PLAIN_SHEET_NAME = re.compile(r"[A-Za-z0-9_]+")


class RemoteSyncError(RuntimeError):
    """Raised when a remote spreadsheet could not be updated."""


class RemoteSyncTarget(Protocol):
    def push_sheet_values(self, workbook: WorkbookGrid, identifier: str) -> int:
        """Push data sheets of ``workbook`` to the remote document ``identifier``."""


def data_sheets(workbook: WorkbookGrid) -> List[SheetGrid]:
    return list(workbook)[RESERVED_SHEETS:]


def sync_range(sheet: SheetGrid) -> Optional[str]:
    """Return ``"{sheetName}!A1:{lastColumn}{lastRow}"`` or ``None`` for an empty sheet.

    Names other than plain letters, digits and underscores are quoted.
    """
    if not sheet.cells:
        return None
    name = sheet.name if PLAIN_SHEET_NAME.fullmatch(sheet.name) else sheet_ref(sheet.name)
    return f"{name}!A1:{cell_ref(sheet.last_row, sheet.last_column)}"


def _default_client_factory(credentials_path: Path) -> gspread.Client:
    creds = Credentials.from_service_account_file(str(credentials_path), scopes=SCOPES)
    return gspread.authorize(creds)


class GoogleSheetsSync:
    """Writes literal sheet values into an existing Google spreadsheet."""

    def __init__(
        self,
        credentials_path: Path,
        client_factory: Callable[[Path], gspread.Client] = _default_client_factory,
    ) -> None:
        self.credentials_path = Path(credentials_path)
        self.client_factory = client_factory
        self._client: Optional[gspread.Client] = None

    @property
    def client(self) -> gspread.Client:
        if self._client is None:
            self._client = self.client_factory(self.credentials_path)
        return self._client

    def push_sheet_values(self, workbook: WorkbookGrid, identifier: str) -> int:
        if not identifier:
            return 0

        try:
            spreadsheet = self.client.open_by_key(identifier)
            pushed = 0
            for sheet in data_sheets(workbook):
                target = sync_range(sheet)
                if target is None:
                    continue
                spreadsheet.values_update(
                    target,
                    params={"valueInputOption": "USER_ENTERED"},
                    body={"values": sheet.value_grid()},
                )
                LOGGER.debug("Updated %s in %s", target, identifier)
                pushed += 1
        except Exception as exc:  # gspread and google-auth raise a variety of errors
            raise RemoteSyncError(f"Failed to update remote spreadsheet {identifier}: {exc}") from exc
        return pushed


def build_sync_targets(accounts: Iterable[Account], base_dir: Path) -> Dict[str, RemoteSyncTarget]:
    """Create a sync backend per configured account that has usable credentials."""

    targets: Dict[str, RemoteSyncTarget] = {}
    for account in accounts:
        if not account.credentials:
            continue
        if account.type is not AccountType.GOOGLE:
            LOGGER.warning("Account %s: remote sync for %s accounts is not supported", account.name, account.type.value)
            continue

        path = Path(base_dir) / account.credentials
        if not path.exists():
            path = Path(account.credentials)
            if not path.exists():
                LOGGER.warning("Account %s: credentials file %s not found", account.name, account.credentials)
                continue

        targets[account.name] = GoogleSheetsSync(path)
    return targets


__all__ = [
    "GoogleSheetsSync",
    "RemoteSyncError",
    "RemoteSyncTarget",
    "build_sync_targets",
    "data_sheets",
    "sync_range",
]
