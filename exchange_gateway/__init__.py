"""
Exchange Gateway Package.

============================================================
PURPOSE
============================================================
Signs and issues price-poll and order-placement requests.

AUTHORITY BOUNDARIES:
    CAN:
        - Look up ticker prices
        - Retry price lookups until a usable value appears
        - Place signed market orders
    MUST NOT:
        - Persist anything
        - Raise out of place_order

============================================================
MODULES
============================================================
- types: order sides, query parameters, order results
- config: host, credentials, poll bounds
- signing: canonical query and HMAC-SHA256 signature
- base: gateway interface and price polling loop
- mexc: MEXC spot REST gateway (aiohttp)
- mock: in-memory gateway for tests and dry runs
- logging_utils: credential masking

============================================================
"""

from .base import ExchangeGateway, is_tradeable, parse_price
from .config import GatewayConfig, PricePollConfig
from .mexc import MexcGateway
from .mock import MockConfig, MockGateway
from .signing import canonical_query, sign, signed_query_string
from .types import (
    OrderResult,
    OrderSide,
    OrderType,
    PlacedOrder,
    QueryParam,
    market_buy_params,
    market_sell_params,
)

__all__ = [
    "ExchangeGateway",
    "MexcGateway",
    "MockGateway",
    "MockConfig",
    "GatewayConfig",
    "PricePollConfig",
    "OrderResult",
    "OrderSide",
    "OrderType",
    "PlacedOrder",
    "QueryParam",
    "market_buy_params",
    "market_sell_params",
    "canonical_query",
    "sign",
    "signed_query_string",
    "parse_price",
    "is_tradeable",
]
