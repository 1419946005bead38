"""CLI entry point for the Ivy Portfolio signal report generator."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence

from automation.remote_sync import RemoteSyncTarget, build_sync_targets
from data_providers.base import FinancialDataClient
from data_providers.csv_files import CsvPriceProvider
from ivy_portfolio.config_manager import DEFAULT_CONFIG_PATH, ConfigError, ConfigManager, Portfolio
from reports.generator import ReportGenerator

logger = logging.getLogger("ivy_portfolio.cli")


@dataclass
class AppContext:
    manager: ConfigManager
    config: Portfolio


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def build_context(args: argparse.Namespace) -> AppContext:
    manager = ConfigManager(path=Path(args.config).expanduser())
    config = manager.load(force_reload=True)
    return AppContext(manager=manager, config=config)


def load_descriptions(path: Optional[Path]) -> Dict[str, str]:
    if path is None or not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Descriptions file must contain a JSON object: {path}")
    return {str(key): str(value) for key, value in data.items()}


def build_client(args: argparse.Namespace, ctx: AppContext) -> FinancialDataClient:
    if args.provider == "csv":
        data_dir = Path(args.data_dir) if args.data_dir else ctx.manager.base_dir / "data"
        descriptions = load_descriptions(data_dir / "descriptions.json")
        return CsvPriceProvider(data_dir, descriptions=descriptions)

    try:
        from data_providers.yahoo import YahooPriceProvider
    except ModuleNotFoundError as exc:  # pragma: no cover - dependency hint
        raise RuntimeError(
            "Yahoo Finance price downloads require the `yfinance` package. Install it via `pip install yfinance`."
        ) from exc

    cache_dir = Path(args.cache_dir) if args.cache_dir else None
    return YahooPriceProvider(cache_dir=cache_dir, max_retries=args.retries)


def build_sync(args: argparse.Namespace, ctx: AppContext) -> Dict[str, RemoteSyncTarget]:
    if args.no_sync:
        return {}
    return build_sync_targets(ctx.config.accounts, ctx.manager.base_dir)


def handle_generate(args: argparse.Namespace, ctx: AppContext) -> int:
    if not ctx.config.documents:
        logger.warning("No documents configured in %s", ctx.manager.path)
        return 0

    client = build_client(args, ctx)
    output_dir = Path(args.output_dir) if args.output_dir else ctx.manager.base_dir
    generator = ReportGenerator(
        client,
        output_dir=output_dir,
        sync_targets=build_sync(args, ctx),
        max_workers=args.workers,
    )
    report = generator.run(ctx.config.documents)

    for line in report.summary_lines():
        print(line)

    return 1 if report.failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ivy Portfolio moving-average signal reports")
    parser.add_argument("config", nargs="?", default=str(DEFAULT_CONFIG_PATH), help="Path to the portfolio JSON file")
    parser.add_argument("--provider", choices=["yahoo", "csv"], default="yahoo", help="Price data source")
    parser.add_argument("--data-dir", type=Path, help="Directory of SYMBOL.csv files for the csv provider")
    parser.add_argument("--cache-dir", type=Path, help="Directory for caching Yahoo downloads")
    parser.add_argument("--output-dir", type=Path, help="Directory for generated workbooks (default: config directory)")
    parser.add_argument("--retries", type=int, default=3, help="Download attempts per symbol")
    parser.add_argument("--workers", type=int, default=1, help="Parallel price downloads per document")
    parser.add_argument("--no-sync", action="store_true", help="Skip pushing sheets to remote spreadsheets")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.set_defaults(handler=handle_generate)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    try:
        ctx = build_context(args)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 2

    return args.handler(args, ctx)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
