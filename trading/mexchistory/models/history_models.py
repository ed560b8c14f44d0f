"""
Data models for futures history queries.

Standardises the structures returned by the MEXC contract history endpoints.
Uses Pydantic to validate the response envelope and dataclasses for records,
filters and summaries.
"""

from typing import Optional, Dict, Any, Iterable
from pydantic import BaseModel, Field
from dataclasses import dataclass
from datetime import datetime
from loguru import logger


POSITION_TYPES = {1: "LONG", 2: "SHORT"}
OPEN_TYPES = {1: "ISOLATED", 2: "CROSS"}
POSITION_STATES = {1: "HOLDING", 2: "SYSTEM_HOLDING", 3: "CLOSED"}
ORDER_SIDES = {1: "OPEN_LONG", 2: "CLOSE_SHORT", 3: "OPEN_SHORT", 4: "CLOSE_LONG"}
ORDER_CATEGORIES = {1: "LIMIT", 2: "SYSTEM_TAKEOVER", 3: "CLOSE_DELEGATE", 4: "ADL_REDUCTION"}
ORDER_STATES = {1: "UNINFORMED", 2: "UNCOMPLETED", 3: "COMPLETED", 4: "CANCELLED", 5: "INVALID"}


def to_float(value: Any) -> float:
    """Parse an exchange numeric field, treating missing or malformed values as 0."""
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug(f"Non-numeric value {value!r} treated as 0")
        return 0.0


def _label(mapping: Dict[int, str], code: Any) -> str:
    try:
        return mapping[int(code)]
    except (KeyError, TypeError, ValueError):
        return f"UNKNOWN({code})"


def format_timestamp(ms: Any) -> str:
    """Render an epoch-millisecond timestamp in local time."""
    if not ms:
        return ""
    try:
        return datetime.fromtimestamp(int(ms) / 1000).strftime("%Y-%m-%d %H:%M:%S")
    except (TypeError, ValueError, OverflowError, OSError):
        logger.debug(f"Unrenderable timestamp {ms!r} shown as-is")
        return str(ms)


class ApiResponse(BaseModel):
    """Response envelope shared by every MEXC contract endpoint."""
    success: bool = Field(..., description="Whether the request succeeded")
    code: Optional[int] = Field(None, description="Exchange status code")
    message: Optional[str] = Field(None, description="Error message when success is false")
    data: Any = Field(None, description="Payload; a list of records for history endpoints")


@dataclass
class HistoryFilters:
    """Recognised filters for the history endpoints."""
    symbol: Optional[str] = None  # e.g. "BTC_USDT"
    states: Optional[str] = None  # Order states, comma separated (e.g. "3,4")
    category: Optional[int] = None  # Order category
    side: Optional[int] = None  # Order side
    order_type: Optional[int] = None  # Sent as "type"
    start_time: Optional[int] = None  # Epoch milliseconds
    end_time: Optional[int] = None  # Epoch milliseconds

    def to_params(self) -> Dict[str, Any]:
        """Request parameters for the set filters. Empty strings count as unset."""
        params = {
            "symbol": self.symbol,
            "states": self.states,
            "category": self.category,
            "side": self.side,
            "type": self.order_type,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }
        return {k: v for k, v in params.items() if v is not None and v != ""}


@dataclass
class HistoryPosition:
    """Closed or historical futures position."""
    position_id: Any
    symbol: str
    position_type: int  # 1 long, 2 short
    open_type: int  # 1 isolated, 2 cross
    state: int
    hold_vol: float
    frozen_vol: float
    close_vol: float
    hold_avg_price: float
    open_avg_price: float
    close_avg_price: float
    liquidate_price: float
    oim: float  # Original initial margin
    im: float  # Initial margin
    hold_fee: float
    realised: float
    adl_level: Optional[int]
    leverage: Optional[int]
    create_time: int
    update_time: int
    auto_add_im: Optional[bool] = None

    @classmethod
    def from_api(cls, record: Dict) -> "HistoryPosition":
        return cls(
            position_id=record.get("positionId"),
            symbol=record.get("symbol", ""),
            position_type=record.get("positionType"),
            open_type=record.get("openType"),
            state=record.get("state"),
            hold_vol=to_float(record.get("holdVol")),
            frozen_vol=to_float(record.get("frozenVol")),
            close_vol=to_float(record.get("closeVol")),
            hold_avg_price=to_float(record.get("holdAvgPrice")),
            open_avg_price=to_float(record.get("openAvgPrice")),
            close_avg_price=to_float(record.get("closeAvgPrice")),
            liquidate_price=to_float(record.get("liquidatePrice")),
            oim=to_float(record.get("oim")),
            im=to_float(record.get("im")),
            hold_fee=to_float(record.get("holdFee")),
            realised=to_float(record.get("realised")),
            adl_level=record.get("adlLevel"),
            leverage=record.get("leverage"),
            create_time=record.get("createTime") or 0,
            update_time=record.get("updateTime") or 0,
            auto_add_im=record.get("autoAddIm"),
        )

    @property
    def position_type_label(self) -> str:
        return _label(POSITION_TYPES, self.position_type)

    @property
    def open_type_label(self) -> str:
        return _label(OPEN_TYPES, self.open_type)

    @property
    def state_label(self) -> str:
        return _label(POSITION_STATES, self.state)

    def to_dict(self) -> Dict:
        """Human-readable view for console output."""
        return {
            "positionId": self.position_id,
            "symbol": self.symbol,
            "positionType": self.position_type_label,
            "openType": self.open_type_label,
            "state": self.state_label,
            "holdVol": self.hold_vol,
            "frozenVol": self.frozen_vol,
            "closeVol": self.close_vol,
            "holdAvgPrice": self.hold_avg_price,
            "openAvgPrice": self.open_avg_price,
            "closeAvgPrice": self.close_avg_price,
            "liquidatePrice": self.liquidate_price,
            "oim": self.oim,
            "im": self.im,
            "holdFee": self.hold_fee,
            "realised": self.realised,
            "adlLevel": self.adl_level,
            "leverage": self.leverage,
            "createTime": format_timestamp(self.create_time),
            "updateTime": format_timestamp(self.update_time),
            "autoAddIm": self.auto_add_im,
        }


@dataclass
class HistoryOrder:
    """Historical futures order."""
    order_id: Any
    symbol: str
    position_id: Any
    price: float
    vol: float
    leverage: Optional[int]
    side: int
    category: int
    order_type: int
    deal_avg_price: float
    deal_vol: float
    order_margin: float
    taker_fee: float
    maker_fee: float
    profit: float
    fee_currency: str
    open_type: int
    state: int
    error_code: Optional[int]
    external_oid: Optional[str]
    used_margin: float
    create_time: int
    update_time: int
    stop_loss_price: Optional[float] = None
    take_profit_price: Optional[float] = None

    @classmethod
    def from_api(cls, record: Dict) -> "HistoryOrder":
        sl = record.get("stopLossPrice")
        tp = record.get("takeProfitPrice")
        return cls(
            order_id=record.get("orderId"),
            symbol=record.get("symbol", ""),
            position_id=record.get("positionId"),
            price=to_float(record.get("price")),
            vol=to_float(record.get("vol")),
            leverage=record.get("leverage"),
            side=record.get("side"),
            category=record.get("category"),
            order_type=record.get("orderType"),
            deal_avg_price=to_float(record.get("dealAvgPrice")),
            deal_vol=to_float(record.get("dealVol")),
            order_margin=to_float(record.get("orderMargin")),
            taker_fee=to_float(record.get("takerFee")),
            maker_fee=to_float(record.get("makerFee")),
            profit=to_float(record.get("profit")),
            fee_currency=record.get("feeCurrency", ""),
            open_type=record.get("openType"),
            state=record.get("state"),
            error_code=record.get("errorCode"),
            external_oid=record.get("externalOid"),
            used_margin=to_float(record.get("usedMargin")),
            create_time=record.get("createTime") or 0,
            update_time=record.get("updateTime") or 0,
            stop_loss_price=to_float(sl) if sl is not None else None,
            take_profit_price=to_float(tp) if tp is not None else None,
        )

    @property
    def side_label(self) -> str:
        return _label(ORDER_SIDES, self.side)

    @property
    def category_label(self) -> str:
        return _label(ORDER_CATEGORIES, self.category)

    @property
    def state_label(self) -> str:
        return _label(ORDER_STATES, self.state)

    @property
    def total_fee(self) -> float:
        return self.taker_fee + self.maker_fee

    def to_dict(self) -> Dict:
        """Human-readable view for console output."""
        return {
            "orderId": self.order_id,
            "symbol": self.symbol,
            "positionId": self.position_id,
            "price": self.price,
            "vol": self.vol,
            "leverage": self.leverage,
            "side": self.side_label,
            "category": self.category_label,
            "orderType": self.order_type,
            "dealAvgPrice": self.deal_avg_price,
            "dealVol": self.deal_vol,
            "orderMargin": self.order_margin,
            "takerFee": self.taker_fee,
            "makerFee": self.maker_fee,
            "profit": self.profit,
            "feeCurrency": self.fee_currency,
            "openType": _label(OPEN_TYPES, self.open_type),
            "state": self.state_label,
            "errorCode": self.error_code,
            "externalOid": self.external_oid,
            "usedMargin": self.used_margin,
            "createTime": format_timestamp(self.create_time),
            "updateTime": format_timestamp(self.update_time),
            "stopLossPrice": self.stop_loss_price,
            "takeProfitPrice": self.take_profit_price,
        }


@dataclass
class PositionSummary:
    """Totals over a set of historical positions."""
    total_positions: int = 0
    total_pnl: float = 0.0  # Sum of realised P&L
    total_fees: float = 0.0  # Sum of holding fees

    @property
    def net_pnl(self) -> float:
        return self.total_pnl - self.total_fees


@dataclass
class OrderSummary:
    """Totals over a set of historical orders."""
    total_orders: int = 0
    total_profit: float = 0.0
    total_fees: float = 0.0  # Taker plus maker fees

    @property
    def net_profit(self) -> float:
        return self.total_profit - self.total_fees


def summarize_positions(records: Iterable[Dict]) -> PositionSummary:
    """
    Fold position records into totals.

    Args:
        records: Raw position records as returned by the API

    Returns:
        PositionSummary (all zeros for no records)
    """
    summary = PositionSummary()
    for record in records:
        summary = PositionSummary(
            total_positions=summary.total_positions + 1,
            total_pnl=summary.total_pnl + to_float(record.get("realised")),
            total_fees=summary.total_fees + to_float(record.get("holdFee")),
        )
    return summary


def summarize_orders(records: Iterable[Dict]) -> OrderSummary:
    """
    Fold order records into totals.

    Args:
        records: Raw order records as returned by the API

    Returns:
        OrderSummary (all zeros for no records)
    """
    summary = OrderSummary()
    for record in records:
        summary = OrderSummary(
            total_orders=summary.total_orders + 1,
            total_profit=summary.total_profit + to_float(record.get("profit")),
            total_fees=summary.total_fees
            + to_float(record.get("takerFee"))
            + to_float(record.get("makerFee")),
        )
    return summary
