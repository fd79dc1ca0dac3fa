"""
Exchange Gateway - Mock Gateway.

============================================================
PURPOSE
============================================================
In-memory gateway for tests and dry runs.

FEATURES:
- Scripted price sequences per symbol (e.g. 0, 0, 0, 42)
- Default price once a script is exhausted
- Error injection for price lookups and order placement
- Full record of placed orders and their canonical parameters

============================================================
"""

import asyncio
import itertools
import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Deque, Dict, Iterable, List, Optional

from core.exceptions import GatewayError

from .base import ExchangeGateway, parse_price
from .config import PricePollConfig
from .signing import is_blank
from .types import OrderResult, OrderSide, PlacedOrder, QueryParam, format_decimal


logger = logging.getLogger(__name__)


# ============================================================
# MOCK CONFIGURATION
# ============================================================

@dataclass
class MockConfig:
    """Configuration for the mock gateway."""

    default_price: Optional[Decimal] = Decimal("1.0")
    """Price returned once a symbol's script is exhausted; None means missing."""

    fill_qty: str = "6.00"
    """origQty reported for buys placed with quoteOrderQty."""

    latency_seconds: float = 0.0
    """Simulated latency per call."""

    reject_message: Optional[str] = None
    """When set, every order is rejected with this msg."""


@dataclass
class MockOrderCall:
    """One recorded place_order call."""

    side: OrderSide
    params: Dict[str, str] = field(default_factory=dict)
    result: Optional[OrderResult] = None


# ============================================================
# MOCK GATEWAY
# ============================================================

class MockGateway(ExchangeGateway):
    """
    Mock exchange gateway.
    """

    def __init__(
        self,
        config: Optional[MockConfig] = None,
        poll_config: Optional[PricePollConfig] = None,
    ):
        super().__init__(poll_config or PricePollConfig(interval_seconds=0))
        self._config = config or MockConfig()
        self._prices: Dict[str, Deque[Any]] = defaultdict(deque)
        self._order_results: Deque[Any] = deque()
        self._ids = itertools.count(1)
        self.price_calls: Dict[str, int] = defaultdict(int)
        self.order_calls: List[MockOrderCall] = []
        self.connected = False

    @property
    def exchange_id(self) -> str:
        return "mock"

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    # --------------------------------------------------------
    # SCRIPTING
    # --------------------------------------------------------

    def script_prices(self, symbol: str, values: Iterable[Any]) -> None:
        """
        Queue price responses for symbol.

        Items may be numbers, strings, None (missing price) or an
        Exception instance to raise.
        """
        self._prices[symbol].extend(values)

    def script_order(self, response: Any) -> None:
        """
        Queue the next order response.

        Accepts an OrderResult, a raw exchange dict, or an Exception.
        """
        self._order_results.append(response)

    # --------------------------------------------------------
    # GATEWAY OPERATIONS
    # --------------------------------------------------------

    async def fetch_price(self, symbol: str) -> Optional[Decimal]:
        await self._simulate_latency()
        self.price_calls[symbol] += 1

        queue = self._prices.get(symbol)
        value = queue.popleft() if queue else self._config.default_price

        if isinstance(value, Exception):
            if isinstance(value, GatewayError):
                raise value
            raise GatewayError(str(value), endpoint="mock", cause=value)

        return parse_price(value)

    async def place_order(self, params: List[QueryParam], side: OrderSide) -> OrderResult:
        await self._simulate_latency()

        sent = {
            p.key: str(p.value)
            for p in params
            if not p.disabled and not is_blank(p.value)
        }
        call = MockOrderCall(side=side, params=sent)
        self.order_calls.append(call)

        call.result = self._next_result(sent, side)
        if not call.result.success:
            logger.error(f"Mock order rejected: {call.result.error_message}")
        return call.result

    def _next_result(self, sent: Dict[str, str], side: OrderSide) -> OrderResult:
        if self._order_results:
            scripted = self._order_results.popleft()
            if isinstance(scripted, OrderResult):
                return scripted
            if isinstance(scripted, Exception):
                return OrderResult.failed(f"Network error: {scripted}")
            if isinstance(scripted, dict):
                if scripted.get("msg"):
                    return OrderResult.failed(str(scripted["msg"]))
                return OrderResult(
                    success=True,
                    order=PlacedOrder(
                        order_id=str(scripted["orderId"]),
                        price=str(scripted.get("price", "")),
                        orig_qty=str(scripted.get("origQty", "")),
                        side=OrderSide.parse(scripted.get("side", side.value)),
                        symbol=scripted.get("symbol", sent.get("symbol")),
                        raw_response=scripted,
                    ),
                )

        if self._config.reject_message:
            return OrderResult.failed(self._config.reject_message)

        qty = sent.get("quantity") or self._config.fill_qty
        price = self._config.default_price
        return OrderResult(
            success=True,
            order=PlacedOrder(
                order_id=f"mock-{next(self._ids)}",
                price=format_decimal(price) if price is not None else "",
                orig_qty=qty,
                side=side,
                symbol=sent.get("symbol"),
            ),
        )

    async def _simulate_latency(self) -> None:
        if self._config.latency_seconds > 0:
            await asyncio.sleep(self._config.latency_seconds)
