"""kline-fetcher CLI entry point."""

from __future__ import annotations

import argparse
import sys

from kline_fetcher.config.loader import ConfigError, ConfigLoader
from kline_fetcher.config.settings import DownloadSettings
from kline_fetcher.core.logging import get_logger
from kline_fetcher.data.binance_client import FetchError
from kline_fetcher.data.csv_sink import SinkError

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="kline-fetcher",
        description="Download historical Binance klines for a date range into a CSV file",
    )
    parser.add_argument("--symbol", type=str, default=None, help="Trading pair, e.g. BTCUSDT")
    parser.add_argument(
        "--interval",
        type=str,
        default=None,
        help="Kline interval code: 1s, 1m, 3m, 5m, 15m, 30m, 1h, 2h, 4h, 6h, 8h, 12h, 1d, 3d, 1w, 1M",
    )
    parser.add_argument("--start", type=str, default=None, help="First day, YYYY-MM-DD (inclusive)")
    parser.add_argument("--end", type=str, default=None, help="Last day, YYYY-MM-DD (inclusive)")
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory for the CSV file (default: sink.output_dir from config)",
    )
    parser.add_argument(
        "--config-dir",
        type=str,
        default="config",
        help="Config directory path (default: config)",
    )
    parser.add_argument(
        "--env",
        type=str,
        default=None,
        help="Environment name (default: from KLINES_ENV)",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        default=False,
        help="Disable the progress bar",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    from kline_fetcher.pipeline import run_download

    try:
        config = ConfigLoader(config_dir=args.config_dir, env=args.env)
        config.load()
        settings = DownloadSettings.from_config(
            config,
            symbol=args.symbol,
            interval=args.interval,
            start_date=args.start,
            end_date=args.end,
            output_dir=args.output_dir,
        )
        print(
            f"Fetching {settings.symbol} {settings.interval} klines "
            f"from {settings.start_date} to {settings.end_date}..."
        )
        result = run_download(settings, show_progress=not args.no_progress)
    except ConfigError as e:
        logger.error("cli.config_error", error=str(e))
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except FetchError as e:
        logger.error("cli.fetch_error", error=str(e), status=e.status_code)
        print(f"Error while fetching klines: {e}", file=sys.stderr)
        return 1
    except SinkError as e:
        logger.error("cli.sink_error", error=str(e))
        print(f"Error while saving CSV file: {e}", file=sys.stderr)
        return 1

    print(f"Saved {result.rows_written:,} klines to {result.path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
