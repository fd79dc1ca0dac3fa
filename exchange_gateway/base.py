"""
Exchange Gateway - Base Interface.

============================================================
PURPOSE
============================================================
Abstract gateway used by the lifecycle transitions.

OPERATIONS:
- fetch_price(symbol): one price lookup, None when not tradeable
- poll_price(symbol): retry fetch_price until a non-zero price
- place_order(params, side): signed order placement, never raises

============================================================
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from core.exceptions import GatewayError, PollCancelled, PricePollTimeout

from .config import PricePollConfig
from .types import OrderResult, OrderSide, QueryParam


logger = logging.getLogger(__name__)


def parse_price(value: Any) -> Optional[Decimal]:
    """
    Parse a ticker price given as number or string.

    Returns None when the value is missing or not a number.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price


def is_tradeable(price: Optional[Decimal]) -> bool:
    """A missing or zero price means the pair is not trading yet."""
    return price is not None and price > 0


# ============================================================
# GATEWAY INTERFACE
# ============================================================

class ExchangeGateway(ABC):
    """
    Abstract exchange gateway.
    """

    def __init__(self, poll_config: Optional[PricePollConfig] = None):
        self._poll_config = poll_config or PricePollConfig()

    @property
    @abstractmethod
    def exchange_id(self) -> str:
        pass

    @property
    def poll_config(self) -> PricePollConfig:
        return self._poll_config

    async def connect(self) -> None:
        """Open network resources."""

    async def disconnect(self) -> None:
        """Release network resources."""

    @abstractmethod
    async def fetch_price(self, symbol: str) -> Optional[Decimal]:
        """
        Look up the current price once.

        Raises:
            GatewayError: transport or decoding failure
        """

    @abstractmethod
    async def place_order(self, params: List[QueryParam], side: OrderSide) -> OrderResult:
        """
        Place a signed order.

        Failures (error payload or transport fault) are logged and
        returned as OrderResult(success=False); nothing is raised.
        """

    async def poll_price(
        self,
        symbol: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Decimal:
        """
        Poll until the symbol reports a non-zero price.

        Missing or zero prices and transport failures are retried
        every poll_config.interval_seconds. Without configured bounds
        the loop only ends on success or cancellation.

        Raises:
            PricePollTimeout: max_attempts or max_seconds exhausted
            PollCancelled: cancel_event was set
        """
        poll = self._poll_config
        attempts = 0
        started = time.monotonic()

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise PollCancelled(symbol, attempts)

            attempts += 1
            try:
                price = await self.fetch_price(symbol)
            except GatewayError as e:
                logger.warning(f"Price poll {symbol} attempt {attempts} failed: {e}")
                price = None

            if is_tradeable(price):
                if attempts > 1:
                    logger.info(f"{symbol} tradeable at {price} after {attempts} attempts")
                return price

            logger.debug(f"{symbol} not tradeable yet (attempt {attempts}, price={price})")

            elapsed = time.monotonic() - started
            if poll.max_attempts and attempts >= poll.max_attempts:
                raise PricePollTimeout(symbol, attempts, elapsed)
            if poll.max_seconds and elapsed >= poll.max_seconds:
                raise PricePollTimeout(symbol, attempts, elapsed)

            await _sleep(poll.interval_seconds, cancel_event)


async def _sleep(seconds: float, cancel_event: Optional[asyncio.Event]) -> None:
    """Sleep, waking early if cancel_event is set."""
    if cancel_event is None or seconds <= 0:
        await asyncio.sleep(max(seconds, 0))
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass
