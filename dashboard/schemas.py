"""
Pydantic schemas for Dashboard API requests and responses.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =======================
# COMMON
# =======================

class BaseResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


# =======================
# 1. SYMBOLS
# =======================

class CreateSymbolRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    listing_date: str = Field(alias="listingDate", min_length=1)


class SymbolView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    listing_date: datetime
    price_on_start: Optional[Decimal] = None
    price_on_minute: Optional[Decimal] = None
    is_listed: bool
    is_finished: bool
    created_at: Optional[datetime] = None


class SymbolResponse(BaseResponse):
    data: SymbolView
    state: Optional[str] = None


class SymbolListResponse(BaseResponse):
    data: List[SymbolView]


# =======================
# 2. ORDERS
# =======================

class OrderView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: str
    price: str
    orig_qty: str
    side: str
    symbol_id: int
    buy_order_id: Optional[int] = None
    created_at: Optional[datetime] = None


class NotSoldEntry(BaseModel):
    symbol: SymbolView
    order: OrderView
    sell_due_at: datetime


class NotSoldResponse(BaseResponse):
    data: List[NotSoldEntry]


class OverviewResponse(BaseResponse):
    listed: List[SymbolView]
    not_sold: List[NotSoldEntry]


class BuyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    symbol_id: int = Field(alias="symbolId")
    quote_order_qty: Optional[Decimal] = Field(default=None, alias="quoteOrderQty", gt=0)


class SellRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: int = Field(alias="orderId")


class OrderActionResponse(BaseResponse):
    outcome: str
    symbol: str
    order: Optional[OrderView] = None


# =======================
# 3. MAINTENANCE
# =======================

class StatisticsResponse(BaseResponse):
    data: List[Dict[str, Any]]


class RestartResponse(BaseResponse):
    timers: List[str]


class HealthResponse(BaseResponse):
    data: Dict[str, Any]
