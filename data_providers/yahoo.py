"""Yahoo Finance market data provider implementation."""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

import pandas as pd
import yfinance as yf

from .base import (
    ADJUSTED_CLOSE,
    PRICE_COLUMNS,
    EmptyPriceDataError,
    PriceDataError,
    PriceRequest,
    StockSeries,
)

LOGGER = logging.getLogger(__name__)


class YahooPriceProvider:
    """Retrieve daily prices and fund names from Yahoo Finance.

    Downloads are cached on disk per symbol. Transient failures are retried
    ``max_retries`` times with a growing delay; once retries are exhausted a
    :class:`PriceDataError` is raised so the caller never sees a silently
    empty series.
    """

    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        cache_ttl_days: int = 1,
        max_retries: int = 3,
        backoff_factor: float = 1.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.cache_ttl_days = cache_ttl_days
        self.max_retries = max(1, max_retries)
        self.backoff_factor = backoff_factor
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get_description(self, symbol: str) -> str:
        try:
            info = yf.Ticker(symbol).info or {}
        except Exception as exc:  # yfinance raises broad exceptions
            LOGGER.warning("Failed to look up description for %s: %s", symbol, exc)
            return ""
        name = info.get("longName") or info.get("shortName") or ""
        return str(name).replace("&amp;", "&")

    def get_price_history(self, symbol: str, start: date, end: date) -> StockSeries:
        request = PriceRequest(symbol=symbol, start=start, end=end)
        self._validate_request(request)

        cache_path = self._cache_path(request.symbol, request.interval)
        if cache_path is not None and self._cache_satisfies(request, cache_path):
            LOGGER.debug("Using cached prices for %s from %s", symbol, cache_path)
            data = self._load_cache(cache_path)
            return StockSeries(symbol, self._filter_frame(data, request.start, request.end))

        data = self._download_with_retry(request)
        standardised = self._prepare_frame(data, request.symbol)
        if cache_path is not None:
            standardised.to_csv(cache_path, index=True, index_label="date")

        return StockSeries(symbol, self._filter_frame(standardised, request.start, request.end))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _validate_request(request: PriceRequest) -> None:
        if request.start > request.end:
            raise ValueError("Request start date must be before end date")

    def _cache_path(self, symbol: str, interval: str) -> Optional[Path]:
        if self.cache_dir is None:
            return None
        safe_symbol = symbol.upper().replace("/", "-")
        interval_dir = self.cache_dir / interval
        interval_dir.mkdir(parents=True, exist_ok=True)
        return interval_dir / f"{safe_symbol}.csv"

    def _cache_satisfies(self, request: PriceRequest, cache_path: Path) -> bool:
        if not cache_path.exists():
            return False

        if self.cache_ttl_days > 0:
            last_modified = datetime.fromtimestamp(cache_path.stat().st_mtime)
            if datetime.now() - last_modified > timedelta(days=self.cache_ttl_days):
                return False

        data = self._load_cache(cache_path)
        if data.empty:
            return False

        min_date = data.index.min().date()
        max_date = data.index.max().date()

        tolerance = timedelta(days=3)
        if min_date > request.start + tolerance:
            return False
        if max_date < request.end - tolerance:
            return False
        return True

    @staticmethod
    def _load_cache(cache_path: Path) -> pd.DataFrame:
        return pd.read_csv(cache_path, parse_dates=["date"], index_col="date")

    @staticmethod
    def _filter_frame(frame: pd.DataFrame, start: date, end: date) -> pd.DataFrame:
        if frame.empty:
            return frame
        mask = (frame.index.date >= start) & (frame.index.date <= end)
        return frame.loc[mask]

    def _download_with_retry(self, request: PriceRequest) -> pd.DataFrame:
        delay = 1.0
        last_exception: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                end_inclusive = request.end + timedelta(days=1)
                data = yf.download(
                    request.symbol,
                    start=request.start.isoformat(),
                    end=end_inclusive.isoformat(),
                    interval=request.interval,
                    progress=False,
                    auto_adjust=False,
                    threads=False,
                )
                if not isinstance(data, pd.DataFrame):
                    raise RuntimeError("Unexpected response type from yfinance")
            except Exception as exc:  # yfinance raises broad exceptions
                last_exception = exc
                LOGGER.warning(
                    "Attempt %s/%s failed for %s: %s",
                    attempt,
                    self.max_retries,
                    request.symbol,
                    exc,
                )
            else:
                if data.empty:
                    raise EmptyPriceDataError(f"No price data returned for {request.symbol}")
                return data

            if attempt < self.max_retries:
                self._sleep(delay)
                delay *= self.backoff_factor

        raise PriceDataError(f"Failed to download data for {request.symbol}") from last_exception

    @staticmethod
    def _prepare_frame(raw: pd.DataFrame, symbol: str) -> pd.DataFrame:
        frame = raw.copy()

        if isinstance(frame.columns, pd.MultiIndex):
            # Prefer selecting the requested symbol if multi-index contains tickers.
            try:
                frame = frame.xs(symbol, axis=1, level=-1)
            except (KeyError, TypeError):
                frame.columns = [" ".join(str(part) for part in col if part) for col in frame.columns.to_flat_index()]

        renamed = {}
        for col in frame.columns:
            key = str(col).strip().lower().replace("_", " ")
            if key in {"adj close", "adjclose"}:
                renamed[col] = ADJUSTED_CLOSE
            else:
                renamed[col] = key.title()
        frame = frame.rename(columns=renamed)

        required = {"Open", "High", "Low", "Close", "Volume"}
        if not required.issubset(frame.columns):
            raise PriceDataError(f"Downloaded data for {symbol} missing required OHLCV columns")

        if ADJUSTED_CLOSE not in frame.columns:
            frame[ADJUSTED_CLOSE] = frame["Close"]

        ordered = frame[list(PRICE_COLUMNS)].copy()
        ordered.index.name = "date"
        return ordered.sort_index()


__all__ = ["YahooPriceProvider"]
