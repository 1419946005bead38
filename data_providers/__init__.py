from .base import (
    DataProviderError,
    EmptyPriceDataError,
    FinancialDataClient,
    PriceDataError,
    PriceObservation,
    StockSeries,
)
from .csv_files import CsvPriceProvider, parse_price_csv

__all__ = [
    'CsvPriceProvider',
    'DataProviderError',
    'EmptyPriceDataError',
    'FinancialDataClient',
    'PriceDataError',
    'PriceObservation',
    'StockSeries',
    'parse_price_csv',
]
