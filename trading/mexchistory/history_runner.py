"""
History report execution module.

Fetches position and order history through the contract client, logs each
record and the aggregate summary, and reports API failures with full detail.
"""

import json
from typing import Dict, List, Optional

from loguru import logger

from mexchistory.config import ExchangeConfig
from mexchistory.dataflows.mexc_contract_api import (
    ApiError,
    MexcContractClient,
    DEFAULT_PAGE_SIZE,
)
from mexchistory.models.history_models import (
    HistoryFilters,
    HistoryOrder,
    HistoryPosition,
    OrderSummary,
    PositionSummary,
    format_timestamp,
    summarize_orders,
    summarize_positions,
)

REPORT_KINDS = ("positions", "orders", "all")
SEPARATOR = "-------------------"


def initialize_client(exchange_config: ExchangeConfig) -> MexcContractClient:
    """
    Create a contract client from explicit configuration.

    Args:
        exchange_config: Exchange configuration object

    Returns:
        MexcContractClient instance
    """
    return MexcContractClient(
        api_key=exchange_config.api_key,
        api_secret=exchange_config.api_secret,
        base_url=exchange_config.base_url,
        recv_window=exchange_config.recv_window,
        page_delay=exchange_config.page_delay,
        timeout=exchange_config.timeout,
    )


def format_position_summary(summary: PositionSummary) -> List[str]:
    return [
        "Summary:",
        f"Total Positions: {summary.total_positions}",
        f"Total P&L: {summary.total_pnl:.4f} USDT",
        f"Total Fees: {summary.total_fees:.4f} USDT",
        f"Net P&L: {summary.net_pnl:.4f} USDT",
    ]


def format_order_summary(summary: OrderSummary) -> List[str]:
    return [
        "Summary:",
        f"Total Orders: {summary.total_orders}",
        f"Total Profit: {summary.total_profit:.4f} USDT",
        f"Total Fees: {summary.total_fees:.4f} USDT",
        f"Net Profit: {summary.net_profit:.4f} USDT",
    ]


def format_record(record: Dict) -> str:
    """Render a record view as indented JSON."""
    return json.dumps(record, indent=2, default=str)


def log_api_error(error: ApiError) -> None:
    """Log everything known about a failed API call."""
    logger.error(f"API Error Details: {format_record(error.details())}")


def _log_window(kind: str, filters: HistoryFilters) -> None:
    if filters.start_time and filters.end_time:
        logger.info(f"Fetching {kind}:")
        logger.info(f"From: {format_timestamp(filters.start_time)}")
        logger.info(f"To: {format_timestamp(filters.end_time)}")
    else:
        logger.info(f"Fetching {kind} (trailing 90 days)")


def run_position_history(
    client: MexcContractClient,
    filters: Optional[HistoryFilters] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    show_details: bool = True,
) -> Optional[PositionSummary]:
    """
    Fetch and report position history.

    Args:
        client: Contract client
        filters: Symbol and time window filters
        page_size: Records per page
        show_details: Log every position, not only the summary

    Returns:
        PositionSummary, or None when the fetch failed
    """
    filters = filters or HistoryFilters()
    _log_window("positions", filters)

    try:
        positions = client.get_position_history(filters, page_size=page_size)
    except ApiError as e:
        log_api_error(e)
        logger.error(f"Failed to fetch position history: {e.message}")
        return None

    summary = summarize_positions(positions)
    if not positions:
        logger.info("No positions found")
        return summary

    if show_details:
        logger.info("Successfully retrieved positions:")
        for record in positions:
            logger.info(format_record(HistoryPosition.from_api(record).to_dict()))
            logger.info(SEPARATOR)

    for line in format_position_summary(summary):
        logger.info(line)
    return summary


def run_order_history(
    client: MexcContractClient,
    filters: Optional[HistoryFilters] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    show_details: bool = True,
) -> Optional[OrderSummary]:
    """
    Fetch and report order history.

    Args:
        client: Contract client
        filters: Symbol, states, category, side, type and time window filters
        page_size: Records per page
        show_details: Log every order, not only the summary

    Returns:
        OrderSummary, or None when the fetch failed
    """
    filters = filters or HistoryFilters()
    _log_window("orders", filters)

    try:
        orders = client.get_order_history(filters, page_size=page_size)
    except ApiError as e:
        log_api_error(e)
        logger.error(f"Failed to fetch order history: {e.message}")
        return None

    summary = summarize_orders(orders)
    if not orders:
        logger.info("No orders found")
        return summary

    if show_details:
        logger.info("Detailed Order Information:")
        for record in orders:
            logger.info(format_record(HistoryOrder.from_api(record).to_dict()))
            logger.info(SEPARATOR)

    for line in format_order_summary(summary):
        logger.info(line)
    return summary


def run_report(
    client: MexcContractClient,
    kind: str = "all",
    position_filters: Optional[HistoryFilters] = None,
    order_filters: Optional[HistoryFilters] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    show_details: bool = True,
) -> bool:
    """
    Run one or both history reports.

    Args:
        client: Contract client
        kind: "positions", "orders" or "all"
        position_filters: Filters for the position report
        order_filters: Filters for the order report
        page_size: Records per page
        show_details: Log every record, not only the summaries

    Returns:
        True if every requested report succeeded
    """
    if kind not in REPORT_KINDS:
        raise ValueError(f"kind must be one of {REPORT_KINDS}, got '{kind}'")

    ok = True
    if kind in ("positions", "all"):
        result = run_position_history(client, position_filters, page_size, show_details)
        ok = ok and result is not None
    if kind in ("orders", "all"):
        result = run_order_history(client, order_filters, page_size, show_details)
        ok = ok and result is not None
    return ok
