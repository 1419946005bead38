"""Portfolio configuration loading for the Ivy Portfolio report generator."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from indicators.moving_average import MovingAverageAlgorithm, MovingAverageSpec, PeriodType

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / "IvyPortfolio" / "portfolio.json"


class ConfigError(Exception):
    """Raised when configuration files are missing or invalid."""


class AccountType(str, Enum):
    GOOGLE = "google"
    OFFICE365 = "office365"


@dataclass
class Account:
    name: str
    type: AccountType = AccountType.GOOGLE
    credentials: Optional[str] = None


@dataclass
class RemoteDocument:
    account: str
    identifier: str


@dataclass
class Document:
    file_name: str
    symbols: List[str]
    moving_averages: List[MovingAverageSpec] = field(default_factory=list)
    remote_documents: List[RemoteDocument] = field(default_factory=list)

    @property
    def is_generatable(self) -> bool:
        return bool(self.file_name) and bool(self.symbols)

    @property
    def duplicate_symbols(self) -> List[str]:
        seen: set[str] = set()
        duplicates: List[str] = []
        for symbol in self.symbols:
            key = symbol.upper()
            if key in seen and symbol not in duplicates:
                duplicates.append(symbol)
            seen.add(key)
        return duplicates


@dataclass
class Portfolio:
    accounts: List[Account] = field(default_factory=list)
    documents: List[Document] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigManager:
    """Loads and validates a portfolio JSON file plus environment overrides."""

    def __init__(
        self,
        path: Path | str = DEFAULT_CONFIG_PATH,
        env_prefix: str = "IVY_",
    ) -> None:
        self.path = Path(path)
        self.env_prefix = env_prefix
        self._cached_config: Optional[Portfolio] = None

    @property
    def base_dir(self) -> Path:
        return self.path.parent

    def load(self, force_reload: bool = False) -> Portfolio:
        """Load configuration from the portfolio file and environment."""
        if self._cached_config is not None and not force_reload:
            return self._cached_config

        data = self._load_file()
        data = self._apply_env_overrides(data)

        config = self._build_config(data)
        self._validate_config(config)

        self._cached_config = config
        return config

    def clear_cache(self) -> None:
        """Clear the cached configuration instance."""
        self._cached_config = None

    # ------------------------------------------------------------------
    # Loading helpers
    # ------------------------------------------------------------------
    def _load_file(self) -> Dict[str, Any]:
        if not self.path.exists():
            raise ConfigError(f"Portfolio configuration file not found: {self.path}")

        with self.path.open("r", encoding="utf-8") as handle:
            try:
                data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"Unable to parse portfolio configuration: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError("Portfolio configuration must be a JSON object")
        return data

    def _apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = json.loads(json.dumps(data))
        prefix_len = len(self.env_prefix)
        for key, value in os.environ.items():
            if not key.startswith(self.env_prefix):
                continue
            path_parts = key[prefix_len:].lower().split("__")
            parsed_value = self._parse_env_value(value)
            self._set_nested_value(result, path_parts, parsed_value)
        return result

    # ------------------------------------------------------------------
    # Build dataclasses
    # ------------------------------------------------------------------
    def _build_config(self, data: Dict[str, Any]) -> Portfolio:
        try:
            accounts = [self._build_account(item) for item in data.get("accounts") or []]
            documents = [self._build_document(item) for item in data.get("documents") or []]
        except KeyError as exc:
            raise ConfigError(f"Missing required configuration field: {exc}") from exc
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid configuration field: {exc}") from exc

        return Portfolio(accounts=accounts, documents=documents)

    @staticmethod
    def _build_account(data: Dict[str, Any]) -> Account:
        raw_type = str(data.get("type") or AccountType.GOOGLE.value).strip().lower()
        try:
            account_type = AccountType(raw_type)
        except ValueError as exc:
            raise ConfigError(f"Unknown account type '{data.get('type')}' for account {data.get('name')}") from exc
        return Account(name=data["name"], type=account_type, credentials=data.get("credentials"))

    def _build_document(self, data: Dict[str, Any]) -> Document:
        symbols = [str(symbol).strip() for symbol in data.get("symbols") or [] if str(symbol).strip()]
        moving_averages = [parse_moving_average(item) for item in data.get("moving-averages") or []]
        remotes = [
            RemoteDocument(account=item["account"], identifier=item["identifier"])
            for item in data.get("remote-documents") or []
        ]
        return Document(
            file_name=str(data.get("filename") or ""),
            symbols=symbols,
            moving_averages=moving_averages,
            remote_documents=remotes,
        )

    # ------------------------------------------------------------------
    # Validation & utilities
    # ------------------------------------------------------------------
    def _validate_config(self, config: Portfolio) -> None:
        names = [account.name for account in config.accounts]
        if len(names) != len(set(names)):
            raise ConfigError("Account names must be unique")

        for document in config.documents:
            if document.duplicate_symbols:
                LOGGER.warning(
                    "Document %s lists %s more than once; it will fail to generate",
                    document.file_name,
                    ", ".join(document.duplicate_symbols),
                )
            for remote in document.remote_documents:
                if remote.account not in names:
                    LOGGER.warning(
                        "Document %s references unknown account %s",
                        document.file_name,
                        remote.account,
                    )

    @staticmethod
    def _parse_env_value(value: str) -> Any:
        value = value.strip()
        if not value:
            return value
        lowered = value.lower()
        if lowered in {"true", "false"}:
            return lowered == "true"
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    @staticmethod
    def _set_nested_value(target: Dict[str, Any], path_parts: list[str], value: Any) -> None:
        current = target
        for part in path_parts[:-1]:
            if part not in current or not isinstance(current[part], dict):
                current[part] = {}
            current = current[part]
        current[path_parts[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """Return the currently cached configuration as a dictionary."""
        config = self.load()
        return config.as_dict()


def _lookup_enum(enum_type, value: Any, default):
    if value is None:
        return default
    lowered = str(value).strip().lower()
    for member in enum_type:
        if member.value.lower() == lowered or member.name.lower() == lowered:
            return member
    return default


def parse_moving_average(data: Dict[str, Any]) -> MovingAverageSpec:
    """Build a :class:`MovingAverageSpec` from a ``moving-averages`` entry; unknown enums fall back to Simple/Day."""
    try:
        period = int(data["period"])
    except KeyError as exc:
        raise ConfigError("Moving average entry is missing 'period'") from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Moving average period must be an integer: {data.get('period')!r}") from exc
    if period <= 0:
        raise ConfigError(f"Moving average period must be positive: {period}")

    return MovingAverageSpec(
        period=period,
        period_type=_lookup_enum(PeriodType, data.get("period-type"), PeriodType.DAY),
        algorithm=_lookup_enum(MovingAverageAlgorithm, data.get("algorithm"), MovingAverageAlgorithm.SIMPLE),
        title=data.get("title") or None,
    )


__all__ = [
    "Account",
    "AccountType",
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "Document",
    "Portfolio",
    "RemoteDocument",
    "parse_moving_average",
]
