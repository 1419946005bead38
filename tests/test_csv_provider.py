from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

import pytest

from data_providers.base import EmptyPriceDataError, PriceDataError
from data_providers.csv_files import CsvPriceProvider, parse_price_csv

HEADER = "Date,Open,High,Low,Close,Adj Close,Volume\n"


def test_parse_price_csv_puts_adjusted_close_first():
    text = HEADER + "2024-01-02,1,2,0.5,1.5,1.4,100\n"

    series = parse_price_csv(text, "SPY")

    assert series.columns == ["Adj Close", "Open", "High", "Low", "Close", "Volume"]
    assert series.observations()[0].adjusted_close == 1.4


def test_parse_price_csv_drops_null_rows():
    text = HEADER + (
        "2024-01-02,1,2,0.5,1.5,1.4,100\n"
        "2024-01-03,null,null,null,null,null,null\n"
        "2024-01-04,1,2,0.5,1.6,1.5,100\n"
    )

    series = parse_price_csv(text, "SPY")

    assert series.dates == [date(2024, 1, 2), date(2024, 1, 4)]


def test_parse_price_csv_skips_malformed_rows(caplog: pytest.LogCaptureFixture):
    text = HEADER + (
        "2024-01-02,1,2,0.5,1.5,1.4,100\n"
        "2024-01-03,1,2,0.5\n"
        "01/04/2024,1,2,0.5,1.6,1.5,100\n"
        "2024-01-05,1,2,abc,1.6,1.5,100\n"
    )

    with caplog.at_level(logging.WARNING, logger="data_providers.csv_files"):
        series = parse_price_csv(text, "SPY")

    assert series.dates == [date(2024, 1, 2)]
    messages = " ".join(record.getMessage() for record in caplog.records)
    assert "inconsistent number of columns" in messages
    assert "failed to parse date" in messages
    assert "failed to parse value" in messages


def test_parse_price_csv_sorts_descending_files():
    text = HEADER + (
        "2024-01-04,1,2,0.5,1.6,3.0,100\n"
        "2024-01-03,1,2,0.5,1.6,2.0,100\n"
        "2024-01-02,1,2,0.5,1.6,1.0,100\n"
    )

    series = parse_price_csv(text, "SPY")

    assert list(series.adjusted_close) == [1.0, 2.0, 3.0]


def test_empty_payload_yields_empty_series():
    assert parse_price_csv("", "SPY").empty


def _write(tmp_path: Path, symbol: str, rows: list[str]) -> None:
    (tmp_path / f"{symbol}.csv").write_text(HEADER + "".join(rows), encoding="utf-8")


def test_provider_filters_to_requested_range(tmp_path: Path):
    _write(
        tmp_path,
        "SPY",
        [
            "2024-01-02,1,2,0.5,1.5,1.0,100\n",
            "2024-01-03,1,2,0.5,1.5,2.0,100\n",
            "2024-01-04,1,2,0.5,1.5,3.0,100\n",
        ],
    )
    provider = CsvPriceProvider(tmp_path, descriptions={"SPY": "SPDR S&P 500 ETF Trust"})

    series = provider.get_price_history("spy", date(2024, 1, 3), date(2024, 1, 4))

    assert series.symbol == "spy"
    assert list(series.adjusted_close) == [2.0, 3.0]
    assert provider.get_description("SPY") == "SPDR S&P 500 ETF Trust"
    assert provider.get_description("EFA") == ""


def test_provider_missing_file_raises(tmp_path: Path):
    with pytest.raises(PriceDataError):
        CsvPriceProvider(tmp_path).get_price_history("SPY", date(2024, 1, 1), date(2024, 1, 31))


def test_provider_out_of_range_raises_empty(tmp_path: Path):
    _write(tmp_path, "SPY", ["2024-01-02,1,2,0.5,1.5,1.0,100\n"])

    with pytest.raises(EmptyPriceDataError):
        CsvPriceProvider(tmp_path).get_price_history("SPY", date(2025, 1, 1), date(2025, 1, 31))


@pytest.mark.parametrize("adjusted_header", ["Adj_Close", "AdjClose", "adj close"])
def test_adjusted_close_header_variants_are_normalised(adjusted_header: str):
    text = f"Date,Open,High,Low,Close,{adjusted_header},Volume\n2024-01-02,1,2,0.5,1.5,1.4,100\n"

    series = parse_price_csv(text, "SPY")

    assert series.columns == ["Adj Close", "Open", "High", "Low", "Close", "Volume"]
    assert list(series.adjusted_close) == [1.4]


def test_lowercase_headers_map_to_price_columns():
    text = "date,open,high,low,close,adj_close,volume\n2024-01-02,1,2,0.5,1.5,1.4,100\n"

    series = parse_price_csv(text, "SPY")

    assert series.columns == ["Adj Close", "Open", "High", "Low", "Close", "Volume"]


def test_missing_adjusted_close_falls_back_to_close():
    text = "Date,Open,High,Low,Close,Volume\n2024-01-02,1,2,0.5,1.5,100\n"

    series = parse_price_csv(text, "SPY")

    assert series.columns == ["Adj Close", "Open", "High", "Low", "Close", "Volume"]
    assert list(series.adjusted_close) == [1.5]


def test_file_without_any_close_column_is_rejected():
    with pytest.raises(PriceDataError):
        parse_price_csv("Date,Open,High\n2024-01-02,1,2\n", "SPY")
