#!/usr/bin/env python3
"""
MEXC Futures History Reporter - Main Entry Point

Fetches historical positions and orders, then logs the records and summaries.

Usage:
    python main.py                          # Positions and orders, trailing 90 days
    python main.py positions --symbol BTC_USDT
    python main.py orders --states 3,4 --category 1 --side 1
    python main.py --env dev --watch        # Re-run every interval_minutes

Configuration:
    - config.<env>.yaml when present (exchange/report sections)
    - otherwise MEXC_API_KEY / MEXC_API_SECRET from the environment or .env
"""

import argparse
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mexchistory.config import (
    credentials_status,
    get_report_config,
    load_exchange_config,
)
from mexchistory.dataflows.mexc_contract_api import DAY_MS, DEFAULT_LOOKBACK_DAYS
from mexchistory.history_runner import REPORT_KINDS, initialize_client, run_report
from mexchistory.models.history_models import HistoryFilters


def init_logger(log_dir: str = "./logs") -> None:
    """Configure console and file sinks."""
    run_timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    # Console output (INFO and above)
    logger.add(
        sys.stdout,
        colorize=True,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level="INFO"
    )
    # General log file (DEBUG and above)
    logger.add(
        log_path / f"history_{run_timestamp}.log",
        rotation="1 day",
        retention="30 days",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
        level="DEBUG"
    )
    # Separate error log file (WARNING and above)
    logger.add(
        log_path / f"error_{run_timestamp}.log",
        rotation="1 day",
        retention="30 days",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
        level="WARNING",
        backtrace=True,
        diagnose=False  # Locals could include credentials
    )


def parse_date_ms(value: str) -> int:
    """Parse an ISO date or datetime into epoch milliseconds (local time)."""
    try:
        return int(datetime.fromisoformat(value).timestamp() * 1000)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD[THH:MM]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="MEXC Futures History Reporter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                               # Positions and orders
  python main.py positions --symbol BTC_USDT   # Position history for one symbol
  python main.py orders --states 3,4 --side 1  # Completed/cancelled open-long orders
        """
    )
    parser.add_argument("kind", nargs="?", default="all", choices=REPORT_KINDS,
                        help="Which history to fetch (default: all)")
    parser.add_argument("--env", type=str, default="prod", choices=["dev", "prod"],
                        help="Environment config to use (default: prod)")
    parser.add_argument("--config", type=str, default=None,
                        help="Explicit config file (overrides --env)")
    parser.add_argument("--symbol", type=str, default=None, help="Contract symbol, e.g. BTC_USDT")
    parser.add_argument("--states", type=str, default=None, help="Order states, e.g. 3,4")
    parser.add_argument("--category", type=int, default=None, help="Order category")
    parser.add_argument("--side", type=int, default=None, help="Order side")
    parser.add_argument("--type", dest="order_type", type=int, default=None, help="Order type")
    parser.add_argument("--days", type=int, default=None,
                        help="Lookback in days (default: report.lookback_days, max 90)")
    parser.add_argument("--start", type=parse_date_ms, default=None, help="Window start (ISO date)")
    parser.add_argument("--end", type=parse_date_ms, default=None, help="Window end (ISO date)")
    parser.add_argument("--page-size", type=int, default=None, help="Records per page")
    parser.add_argument("--quiet", action="store_true", help="Only log the summaries")
    parser.add_argument("--watch", action="store_true",
                        help="Re-run every report.interval_minutes until interrupted")
    return parser


def build_filters(args: argparse.Namespace, lookback_days: int, now_ms: Optional[int] = None):
    """
    Build position and order filters from CLI arguments.

    The window is resolved here so both reports share the same bounds.
    """
    end_time = args.end
    if end_time is None:
        end_time = now_ms if now_ms is not None else int(datetime.now().timestamp() * 1000)
    start_time = args.start
    if start_time is None:
        start_time = end_time - (args.days or lookback_days) * DAY_MS
    if start_time >= end_time:
        raise ValueError("Window start must be before window end")
    if end_time - start_time > DEFAULT_LOOKBACK_DAYS * DAY_MS:
        raise ValueError(f"Window longer than {DEFAULT_LOOKBACK_DAYS} days is not supported by the exchange")

    position_filters = HistoryFilters(
        symbol=args.symbol,
        start_time=start_time,
        end_time=end_time,
    )
    order_filters = HistoryFilters(
        symbol=args.symbol,
        states=args.states,
        category=args.category,
        side=args.side,
        order_type=args.order_type,
        start_time=start_time,
        end_time=end_time,
    )
    return position_filters, order_filters


def run_once(args: argparse.Namespace, config_file: str) -> bool:
    """Run the requested reports once."""
    report_config = get_report_config(config_file)
    exchange_config = load_exchange_config(config_file)

    logger.info("Starting data fetch...")
    for name, status in credentials_status(exchange_config).items():
        logger.info(f"{name}: {status}")

    position_filters, order_filters = build_filters(args, int(report_config["lookback_days"]))
    client = initialize_client(exchange_config)
    return run_report(
        client,
        kind=args.kind,
        position_filters=position_filters,
        order_filters=order_filters,
        page_size=args.page_size or int(report_config["page_size"]),
        show_details=not args.quiet,
    )


def run_continuously(args: argparse.Namespace, config_file: str, interval_minutes: int) -> None:
    """
    Re-run the reports at a fixed interval using APScheduler.

    Args:
        args: Parsed CLI arguments
        config_file: Config file path
        interval_minutes: Minutes between runs
    """
    logger.info("=" * 80)
    logger.info(f"Schedule: every {interval_minutes} minutes. Press Ctrl+C to stop")
    logger.info("=" * 80)

    scheduler = BlockingScheduler()
    scheduler.add_job(
        func=run_once,
        trigger=IntervalTrigger(minutes=interval_minutes),
        args=[args, config_file],
        id='history_job',
        name='History Report',
        replace_existing=True
    )

    run_once(args, config_file)

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.warning("Shutdown signal received")
        scheduler.shutdown()
        logger.info("Scheduler stopped")


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config_file = args.config or f"config.{args.env}.yaml"
    # Child code reads CONFIG_FILE when no explicit path is given
    os.environ["CONFIG_FILE"] = config_file

    try:
        report_config = get_report_config(config_file)
    except ValueError as e:
        logger.error(f"Config validation error: {e}")
        return 1

    init_logger(report_config["log_dir"])
    if Path(config_file).exists():
        logger.info(f"Loading configuration from: {config_file}")
    else:
        logger.info(f"No {config_file}, using environment credentials")

    try:
        if args.watch:
            run_continuously(args, config_file, int(report_config["interval_minutes"]))
            return 0
        return 0 if run_once(args, config_file) else 1
    except ValueError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(0)
