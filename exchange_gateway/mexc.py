"""
Exchange Gateway - MEXC Spot Adapter.

============================================================
PURPOSE
============================================================
Production gateway for the MEXC spot REST API.

ENDPOINTS:
- GET  /ticker/price?symbol=<NAME>         -> {"price": ...}
- POST /order?<canonical-signed-query>     -> {"orderId", "price", "origQty", "side"}
                                              or {"code", "msg"}

SAFETY FEATURES:
- Request signing over the exact query string sent
- Credential masking in logs
- Order failures returned as values, never raised

============================================================
"""

import asyncio
import functools
import json
import logging
from decimal import Decimal
from typing import Any, List, Optional

import aiohttp
from yarl import URL

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import GatewayError

from .base import ExchangeGateway, parse_price
from .config import (
    API_KEY_HEADER,
    ORDER_PATH,
    TICKER_PRICE_PATH,
    GatewayConfig,
    PricePollConfig,
)
from .logging_utils import mask_headers, mask_query_string
from .signing import signed_query_string
from .types import OrderResult, OrderSide, PlacedOrder, QueryParam


logger = logging.getLogger(__name__)

# Keeps JSON numbers such as "price": 0.000123 exact
_decimal_loads = functools.partial(json.loads, parse_float=Decimal)


# ============================================================
# MEXC SPOT GATEWAY
# ============================================================

class MexcGateway(ExchangeGateway):
    """
    MEXC spot exchange gateway.
    """

    def __init__(
        self,
        config: GatewayConfig,
        poll_config: Optional[PricePollConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize MEXC gateway.

        Args:
            config: Host and credentials
            poll_config: Price polling bounds
            clock: Source of signing timestamps
        """
        super().__init__(poll_config)
        self._config = config
        self._clock = clock or ClockFactory.get_clock()
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def exchange_id(self) -> str:
        return "mexc"

    @property
    def is_connected(self) -> bool:
        return self._session is not None and not self._session.closed

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """Open the HTTP session."""
        if self.is_connected:
            return

        timeout = aiohttp.ClientTimeout(total=self._config.request_timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)

        if not self._config.has_credentials:
            logger.warning("MEXC credentials not configured; orders will be rejected locally")
        logger.info(f"MEXC gateway ready ({self._config.host})")

    async def disconnect(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None
        logger.info("MEXC gateway disconnected")

    def _require_session(self, endpoint: str) -> aiohttp.ClientSession:
        if not self.is_connected:
            raise GatewayError("Not connected", endpoint=endpoint)
        return self._session

    # --------------------------------------------------------
    # MARKET DATA
    # --------------------------------------------------------

    async def fetch_price(self, symbol: str) -> Optional[Decimal]:
        """Look up the last price; None when missing."""
        session = self._require_session(TICKER_PRICE_PATH)
        url = f"{self._config.host}{TICKER_PRICE_PATH}"

        try:
            async with session.get(url, params={"symbol": symbol}) as response:
                data = await response.json(content_type=None, loads=_decimal_loads)
        except aiohttp.ClientError as e:
            raise GatewayError(f"Network error: {e}", endpoint=TICKER_PRICE_PATH, cause=e)
        except asyncio.TimeoutError as e:
            raise GatewayError("Request timeout", endpoint=TICKER_PRICE_PATH, cause=e)
        except ValueError as e:
            raise GatewayError(f"Invalid JSON: {e}", endpoint=TICKER_PRICE_PATH, cause=e)

        if not isinstance(data, dict):
            return None

        return parse_price(data.get("price"))

    # --------------------------------------------------------
    # ORDER OPERATIONS
    # --------------------------------------------------------

    async def place_order(self, params: List[QueryParam], side: OrderSide) -> OrderResult:
        """Place a signed market order."""
        if not self._config.api_secret:
            logger.error("Order rejected locally: MEXC_API_SECRET is not configured")
            return OrderResult.failed("API secret not configured")

        query = signed_query_string(params, self._config.api_secret, self._clock.epoch_millis())
        headers = {API_KEY_HEADER: self._config.api_key}

        logger.info(
            f"POST {ORDER_PATH}?{mask_query_string(query)} headers={mask_headers(headers)}"
        )

        try:
            session = self._require_session(ORDER_PATH)
            url = URL(f"{self._config.host}{ORDER_PATH}?{query}", encoded=True)
            async with session.post(url, headers=headers) as response:
                status = response.status
                data = await response.json(content_type=None, loads=_decimal_loads)
        except GatewayError as e:
            logger.error(f"Order placement failed: {e}")
            return OrderResult.failed(str(e))
        except aiohttp.ClientError as e:
            logger.error(f"Order placement network error: {e}")
            return OrderResult.failed(f"Network error: {e}")
        except asyncio.TimeoutError:
            logger.error("Order placement timed out")
            return OrderResult.failed("Request timeout")
        except ValueError as e:
            logger.error(f"Order placement returned invalid JSON: {e}")
            return OrderResult.failed(f"Invalid JSON: {e}")

        return self._parse_order_response(data, status, side)

    def _parse_order_response(self, data: Any, status: int, side: OrderSide) -> OrderResult:
        if not isinstance(data, dict):
            logger.error(f"Unexpected order response (HTTP {status}): {data!r}")
            return OrderResult.failed(f"Unexpected response (HTTP {status})")

        if data.get("msg"):
            logger.error(f"Order rejected (HTTP {status}): {data['msg']}")
            return OrderResult.failed(str(data["msg"]))

        if data.get("orderId") in (None, ""):
            logger.error(f"Order response without orderId (HTTP {status}): {data}")
            return OrderResult.failed(f"Missing orderId (HTTP {status})")

        placed = PlacedOrder(
            order_id=str(data["orderId"]),
            price=_verbatim(data.get("price")),
            orig_qty=_verbatim(data.get("origQty")),
            side=_parse_side(data.get("side"), side),
            symbol=data.get("symbol"),
            raw_response=data,
        )

        logger.info(
            f"Order accepted: {placed.side.value} {placed.symbol or ''} "
            f"id={placed.order_id} price={placed.price} qty={placed.orig_qty}"
        )
        return OrderResult(success=True, order=placed)


def _verbatim(value: Any) -> str:
    """Keep exchange decimal strings as-is; render numbers without re-rounding."""
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _parse_side(value: Any, requested: OrderSide) -> OrderSide:
    if value is None:
        return requested
    try:
        return OrderSide.parse(value)
    except ValueError:
        logger.warning(f"Unknown order side {value!r}, using {requested.value}")
        return requested
