"""Orchestrates report generation for every configured document."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from automation.remote_sync import RemoteSyncTarget
from data_providers.base import EmptyPriceDataError, FinancialDataClient, StockSeries
from indicators.moving_average import MovingAverageSpec
from ivy_portfolio.config_manager import Document
from reports.date_range import DateRange, plan_date_range
from reports.grid import WorkbookGrid, validate_sheet_name
from reports.layout import DataColumnMap, plan_dashboard, plan_legend
from reports.signals import apply_conditional_formatting, evaluate_signal, render_legend, render_row, render_table
from reports.symbol_sheet import SymbolSheetSummary, render_symbol_sheet
from reports.xlsx import write_workbook

LOGGER = logging.getLogger(__name__)

DASHBOARD_SHEET = "Dashboard"
CHARTS_SHEET = "Charts"
DASHBOARD_COLUMN_WIDTH = 18


class DocumentState(str, Enum):
    IDLE = "idle"
    RANGE_PLANNED = "range_planned"
    PER_SYMBOL_PROCESSING = "per_symbol_processing"
    DASHBOARD_ASSEMBLED = "dashboard_assembled"
    SERIALIZED = "serialized"
    REMOTE_SYNCED = "remote_synced"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


class GenerationCancelled(RuntimeError):
    """Raised at an I/O boundary once cancellation has been requested."""


class InvalidDocumentError(ValueError):
    """Raised before any download when a document cannot produce a workbook."""


@dataclass
class SyncFailure:
    account: str
    identifier: str
    error: str


@dataclass
class DocumentOutcome:
    file_name: str
    state: DocumentState = DocumentState.IDLE
    date_range: Optional[DateRange] = None
    output_path: Optional[Path] = None
    symbols_processed: int = 0
    error: Optional[str] = None
    synced: List[str] = field(default_factory=list)
    sync_failures: List[SyncFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is DocumentState.DONE

    def advance(self, state: DocumentState) -> None:
        LOGGER.debug("%s: %s -> %s", self.file_name or "<unnamed>", self.state.value, state.value)
        self.state = state


@dataclass
class RunReport:
    documents: List[DocumentOutcome] = field(default_factory=list)
    cancelled: bool = False

    @property
    def failed(self) -> List[DocumentOutcome]:
        return [outcome for outcome in self.documents if outcome.state is DocumentState.FAILED]

    @property
    def succeeded(self) -> List[DocumentOutcome]:
        return [outcome for outcome in self.documents if outcome.succeeded]

    def summary_lines(self) -> List[str]:
        lines = []
        for outcome in self.documents:
            line = f"{outcome.file_name or '<unnamed>'}: {outcome.state.value}"
            if outcome.output_path is not None:
                line += f" -> {outcome.output_path}"
            if outcome.error:
                line += f" ({outcome.error})"
            if outcome.sync_failures:
                line += f" [{len(outcome.sync_failures)} remote sync failure(s)]"
            lines.append(line)
        if self.cancelled:
            lines.append("Run cancelled")
        return lines


@dataclass
class SymbolData:
    symbol: str
    description: str
    series: StockSeries


class ReportGenerator:
    """Builds, writes and optionally syncs one workbook per document.

    Documents run one after another. A failure while fetching or rendering
    any symbol abandons that document only; the error is kept on its
    :class:`DocumentOutcome` and the batch moves on.
    """

    def __init__(
        self,
        client: FinancialDataClient,
        output_dir: Optional[Path] = None,
        sync_targets: Optional[Mapping[str, RemoteSyncTarget]] = None,
        max_workers: int = 1,
        cancel_event: Optional[threading.Event] = None,
        today: Optional[date] = None,
        writer: Callable[[WorkbookGrid, Path], Path] = write_workbook,
    ) -> None:
        self.client = client
        self.output_dir = Path(output_dir) if output_dir is not None else None
        self.sync_targets = dict(sync_targets or {})
        self.max_workers = max(1, max_workers)
        self.cancel_event = cancel_event
        self.today = today
        self.writer = writer

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self, documents: Iterable[Document]) -> RunReport:
        report = RunReport()
        for document in documents:
            outcome = DocumentOutcome(file_name=document.file_name)
            report.documents.append(outcome)

            if not document.is_generatable:
                LOGGER.info("Skipping document %r: no file name or symbols", document.file_name)
                outcome.advance(DocumentState.SKIPPED)
                continue

            try:
                self.generate_document(document, outcome)
            except GenerationCancelled:
                LOGGER.warning("Generation of %s cancelled", document.file_name)
                outcome.error = "cancelled"
                outcome.advance(DocumentState.FAILED)
                report.cancelled = True
                break
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.exception("Failed to generate %s: %s", document.file_name, exc)
                outcome.error = f"{type(exc).__name__}: {exc}"
                outcome.advance(DocumentState.FAILED)
        return report

    def generate_document(self, document: Document, outcome: Optional[DocumentOutcome] = None) -> WorkbookGrid:
        outcome = outcome or DocumentOutcome(file_name=document.file_name)

        date_range = plan_date_range(document.moving_averages, today=self.today)
        outcome.date_range = date_range
        outcome.advance(DocumentState.RANGE_PLANNED)
        LOGGER.info(
            "Generating '%s' based on data from %s to %s",
            document.file_name,
            date_range.start,
            date_range.end,
        )

        workbook = self.build_workbook(document, date_range, outcome)

        output_path = self._output_path(document.file_name)
        outcome.output_path = self.writer(workbook, output_path)
        outcome.advance(DocumentState.SERIALIZED)

        self._sync_remote_documents(document, workbook, outcome)
        outcome.advance(DocumentState.DONE)
        return workbook

    def build_workbook(
        self,
        document: Document,
        date_range: DateRange,
        outcome: Optional[DocumentOutcome] = None,
    ) -> WorkbookGrid:
        """Fetch every symbol and assemble the dashboard and data sheets in memory."""

        outcome = outcome or DocumentOutcome(file_name=document.file_name)
        self._validate_document(document)
        symbols = list(document.symbols)
        moving_averages = list(document.moving_averages)
        columns = DataColumnMap.for_moving_averages(moving_averages)
        regions = plan_dashboard(len(symbols), moving_averages)

        workbook = WorkbookGrid()
        dashboard = workbook.add_sheet(DASHBOARD_SHEET, default_column_width=DASHBOARD_COLUMN_WIDTH)
        workbook.add_sheet(CHARTS_SHEET)

        for region, spec in zip(regions, moving_averages):
            render_table(dashboard, region, spec.display_title)

        outcome.advance(DocumentState.PER_SYMBOL_PROCESSING)
        descriptions: Dict[str, str] = {}
        with closing(self._iter_symbol_data(symbols, date_range)) as fetched:
            for offset, data in enumerate(fetched):
                descriptions[data.symbol] = data.description
                sheet = workbook.add_sheet(data.symbol)
                summary = render_symbol_sheet(sheet, data.series, columns, moving_averages)

                for index, region in enumerate(regions):
                    render_row(
                        dashboard,
                        region,
                        offset,
                        data.symbol,
                        columns.moving_average(index),
                        columns.adjusted_close,
                    )
                outcome.symbols_processed += 1
                self._log_signals(summary, moving_averages)

        apply_conditional_formatting(dashboard, regions)
        render_legend(dashboard, plan_legend(len(symbols), regions), symbols, descriptions)
        outcome.advance(DocumentState.DASHBOARD_ASSEMBLED)
        return workbook

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise GenerationCancelled("Cancellation requested")

    @staticmethod
    def _validate_document(document: Document) -> None:
        if document.duplicate_symbols:
            raise InvalidDocumentError(
                f"Duplicate symbols in document {document.file_name}: {', '.join(document.duplicate_symbols)}"
            )
        reserved = {DASHBOARD_SHEET.lower(), CHARTS_SHEET.lower()}
        for symbol in document.symbols:
            if symbol.lower() in reserved:
                raise InvalidDocumentError(f"Symbol {symbol!r} collides with a reserved sheet name")
            try:
                validate_sheet_name(symbol)
            except ValueError as exc:
                raise InvalidDocumentError(f"Symbol {symbol!r} cannot be used as a sheet name: {exc}") from exc

    def _output_path(self, file_name: str) -> Path:
        path = Path(file_name).expanduser()
        if not path.is_absolute() and self.output_dir is not None:
            path = self.output_dir / path
        return path

    def _describe(self, symbol: str) -> str:
        try:
            description = self.client.get_description(symbol)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.warning("No description for %s: %s", symbol, exc)
            return ""
        if not description:
            LOGGER.debug("Empty description for %s", symbol)
        return description or ""

    def _fetch(self, symbol: str, date_range: DateRange) -> SymbolData:
        description = self._describe(symbol)
        series = self.client.get_price_history(symbol, date_range.start, date_range.end)
        if series.empty:
            raise EmptyPriceDataError(f"No complete price rows for {symbol}")
        LOGGER.info("Fetched %d rows for %s", len(series), symbol)
        return SymbolData(symbol=symbol, description=description, series=series)

    def _iter_symbol_data(self, symbols: Sequence[str], date_range: DateRange) -> Iterator[SymbolData]:
        """Yield fetched symbols strictly in configuration order."""

        if self.max_workers == 1 or len(symbols) <= 1:
            for symbol in symbols:
                self._check_cancelled()
                yield self._fetch(symbol, date_range)
            return

        self._check_cancelled()
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="ivy-fetch")
        try:
            futures = [executor.submit(self._fetch, symbol, date_range) for symbol in symbols]
            for future in futures:
                self._check_cancelled()
                yield future.result()
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    def _log_signals(self, summary: SymbolSheetSummary, moving_averages: Sequence[MovingAverageSpec]) -> None:
        if summary.latest_close is None:
            return
        for index, spec in enumerate(moving_averages):
            average = summary.latest_averages.get(index)
            if not average:
                LOGGER.info("%s %s: not enough history", summary.symbol, spec.display_title)
                continue
            signal = evaluate_signal(summary.latest_close, average)
            LOGGER.info("%s %s: %s (%+.2f%%)", summary.symbol, spec.display_title, signal.position, signal.variance)

    def _sync_remote_documents(self, document: Document, workbook: WorkbookGrid, outcome: DocumentOutcome) -> None:
        for remote in document.remote_documents:
            self._check_cancelled()
            target = self.sync_targets.get(remote.account)
            if target is None:
                LOGGER.warning(
                    "No remote sync backend for account %s; skipping %s",
                    remote.account,
                    remote.identifier,
                )
                continue
            try:
                pushed = target.push_sheet_values(workbook, remote.identifier)
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.error("Remote sync of %s to %s failed: %s", document.file_name, remote.identifier, exc)
                outcome.sync_failures.append(SyncFailure(remote.account, remote.identifier, str(exc)))
                continue
            LOGGER.info("Synced %d sheets of %s to %s", pushed, document.file_name, remote.identifier)
            outcome.synced.append(remote.identifier)

        if outcome.synced:
            outcome.advance(DocumentState.REMOTE_SYNCED)


__all__ = [
    "DocumentOutcome",
    "DocumentState",
    "GenerationCancelled",
    "InvalidDocumentError",
    "ReportGenerator",
    "RunReport",
    "SymbolData",
    "SyncFailure",
]
