"""
Exchange Gateway - Types.

============================================================
PURPOSE
============================================================
Value types exchanged with the gateway.

- OrderSide / OrderType: enumerations sent on the wire
- QueryParam: one ordered (key, value) pair of an order request
- PlacedOrder: the exchange's acknowledgement, verbatim
- OrderResult: success/failure value returned by place_order

Decimal strings (price, origQty) are kept exactly as the exchange
returned them; they are never re-normalized.

============================================================
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================
# ENUMS
# ============================================================

class OrderSide(Enum):
    """Order side."""

    BUY = "BUY"
    SELL = "SELL"

    @classmethod
    def parse(cls, value: str) -> "OrderSide":
        """Parse an exchange side string case-insensitively."""
        return cls(str(value).upper())


class OrderType(Enum):
    """Order type. Only market orders are placed."""

    MARKET = "MARKET"


# ============================================================
# REQUEST PARAMETERS
# ============================================================

@dataclass
class QueryParam:
    """
    One query-string parameter of a signed request.

    Parameters keep insertion order; disabled parameters are dropped
    from both the query string and the signature input.
    """

    key: str
    value: Any
    disabled: bool = False


def market_buy_params(symbol: str, quote_order_qty: Decimal) -> List[QueryParam]:
    """Parameters for a market buy spending a fixed quote amount."""
    return [
        QueryParam("symbol", symbol),
        QueryParam("side", OrderSide.BUY.value),
        QueryParam("type", OrderType.MARKET.value),
        QueryParam("quoteOrderQty", format_decimal(quote_order_qty)),
    ]


def market_sell_params(symbol: str, quantity: str) -> List[QueryParam]:
    """Parameters for a market sell of an exact base quantity."""
    return [
        QueryParam("symbol", symbol),
        QueryParam("side", OrderSide.SELL.value),
        QueryParam("type", OrderType.MARKET.value),
        QueryParam("quantity", quantity),
    ]


def format_decimal(value: Decimal) -> str:
    """Render a decimal without exponent or trailing zeros ("6", "0.5")."""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


# ============================================================
# RESPONSES
# ============================================================

@dataclass
class PlacedOrder:
    """Order acknowledgement returned by the exchange."""

    order_id: str
    """Exchange-assigned order ID."""

    price: str
    """Fill price, verbatim."""

    orig_qty: str
    """Quantity, verbatim."""

    side: OrderSide
    """Order side."""

    symbol: Optional[str] = None
    """Symbol echoed back by the exchange."""

    raw_response: Dict[str, Any] = field(default_factory=dict)
    """Raw exchange response."""


@dataclass
class OrderResult:
    """Result of place_order. Never an exception."""

    success: bool
    """Whether the exchange accepted the order."""

    order: Optional[PlacedOrder] = None
    """Acknowledgement when successful."""

    error_message: Optional[str] = None
    """Exchange msg field or transport error when failed."""

    @classmethod
    def failed(cls, message: str) -> "OrderResult":
        return cls(success=False, error_message=message)
