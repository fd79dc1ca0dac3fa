"""
Lifecycle - Listing Service.

============================================================
PURPOSE
============================================================
Facade over the symbol lifecycle.

RESPONSIBILITIES:
- Route timer messages to transitions (phase -> handler table)
- Register the timers a transition asks for
- Create symbols and rebuild timers after a restart
- Manual buy / sell and read-side queries

AUTHORITY BOUNDARIES:
    The service is the only component that both runs transitions
    and mutates the scheduler.

============================================================
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from core.exceptions import OrderNotFoundError, SymbolNotFoundError
from storage.models import Order, Symbol

from .messages import Phase, TimerKey, TimerMessage, timer_key
from .naming import normalize_symbol_name, parse_listing_instant
from .scheduler import LifecycleScheduler
from .state import SymbolState, derive_state
from .transitions import (
    OutcomeKind,
    TransitionContext,
    TransitionOutcome,
    create_symbol,
    handle_minute,
    handle_sell,
    handle_start,
    place_buy,
    plan_rehydration,
    sell_timer,
)


logger = logging.getLogger(__name__)


# ============================================================
# LISTING SERVICE
# ============================================================

class ListingService:
    """
    Symbol lifecycle operations.
    """

    def __init__(self, ctx: TransitionContext, scheduler: LifecycleScheduler):
        self._ctx = ctx
        self._scheduler = scheduler

        scheduler.register_handler(Phase.START, self.on_start)
        scheduler.register_handler(Phase.MINUTE, self.on_minute)
        scheduler.register_handler(Phase.SELL, self.on_sell)

    @property
    def context(self) -> TransitionContext:
        return self._ctx

    @property
    def scheduler(self) -> LifecycleScheduler:
        return self._scheduler

    def apply(self, outcome: TransitionOutcome) -> List[TimerKey]:
        """Register the timers requested by a transition."""
        return [
            self._scheduler.schedule(timer.message, timer.delay_seconds)
            for timer in outcome.timers
        ]

    # --------------------------------------------------------
    # CREATE / RESTART
    # --------------------------------------------------------

    async def create_symbol(self, name: str, listing_date: Union[str, datetime]) -> Symbol:
        """
        Track a new symbol.

        Args:
            name: Base asset or pair name ("abc" -> "ABCUSDT")
            listing_date: Listing instant; naive values use the
                configured listing offset

        Raises:
            InvalidSymbolError: bad name or listing date
            DuplicateSymbolError: name already tracked
        """
        config = self._ctx.config
        pair = normalize_symbol_name(name, config.quote_asset)
        instant = parse_listing_instant(listing_date, config.listing_utc_offset)

        outcome = await create_symbol(self._ctx, pair, instant)
        self.apply(outcome)
        logger.info(f"Symbol {pair} created, listing at {instant.isoformat()}")
        return outcome.symbol

    async def restart_all(self) -> List[TimerKey]:
        """
        Rebuild timers from the durable state.

        Safe to call repeatedly: every timer replaces its key.
        """
        timers = await plan_rehydration(self._ctx)
        keys = [self._scheduler.schedule(t.message, t.delay_seconds) for t in timers]

        if keys:
            logger.info(f"Timers restarted: {', '.join(str(k) for k in keys)}")
        else:
            logger.info("No timer to restart")
        return keys

    # --------------------------------------------------------
    # TIMER HANDLERS
    # --------------------------------------------------------

    async def on_start(self, message: TimerMessage) -> TransitionOutcome:
        outcome = await handle_start(self._ctx, message.symbol_name)
        self.apply(outcome)
        return outcome

    async def on_minute(self, message: TimerMessage) -> TransitionOutcome:
        return await handle_minute(self._ctx, message.symbol_name)

    async def on_sell(self, message: TimerMessage) -> TransitionOutcome:
        if message.order_pk is None:
            logger.error(f"Sell timer {message.key} carries no order")
            return TransitionOutcome(OutcomeKind.MISSING, message.symbol_name)
        return await handle_sell(self._ctx, message.order_pk)

    # --------------------------------------------------------
    # MANUAL OPERATIONS
    # --------------------------------------------------------

    async def buy(self, symbol_id: int, quote_order_qty: Optional[Decimal] = None) -> TransitionOutcome:
        """
        Place a manual buy and schedule its sell.

        Raises:
            SymbolNotFoundError: unknown symbol id
            SymbolNotListedError: symbol not listed yet
            UnmatchedBuyExistsError: an unsold buy already exists
        """
        symbol = await self._ctx.store.get_symbol(symbol_id)
        if symbol is None:
            raise SymbolNotFoundError(symbol_id)

        order = await place_buy(self._ctx, symbol, quote_order_qty)
        if order is None:
            return TransitionOutcome(OutcomeKind.BUY_FAILED, symbol.name)

        outcome = TransitionOutcome(
            OutcomeKind.BOUGHT,
            symbol.name,
            symbol=symbol,
            order=order,
            timers=[sell_timer(self._ctx, symbol.name, order)],
        )
        self.apply(outcome)
        return outcome

    async def sell(self, order_pk: int) -> TransitionOutcome:
        """
        Sell a buy order now.

        A pending sell timer for the same order is cancelled once
        the buy is closed. A sell timer handler already running for
        the order is serialized with this call; whichever runs second
        returns SKIPPED.

        Raises:
            OrderNotFoundError: unknown order row id
        """
        outcome = await handle_sell(self._ctx, order_pk)
        if outcome.kind is OutcomeKind.MISSING:
            raise OrderNotFoundError(order_pk)

        if outcome.order is not None and outcome.order.buy_order_id == order_pk:
            key = timer_key(outcome.symbol_name, Phase.SELL)
            pending = self._scheduler.pending_message(key)
            if pending is not None and pending.order_pk == order_pk:
                self._scheduler.cancel(key)
        return outcome

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    async def list_symbols(
        self,
        is_listed: Optional[bool] = None,
        is_finished: Optional[bool] = None,
    ) -> List[Symbol]:
        return await self._ctx.store.list_symbols(is_listed=is_listed, is_finished=is_finished)

    async def list_not_sold(self) -> List[Order]:
        """Buy orders still waiting for their sell, with symbols loaded."""
        return await self._ctx.store.find_unmatched_buy_orders()

    async def get_statistics(self) -> List[Dict[str, Any]]:
        """
        Start, minute and hourly prices of finished symbols.

        Each row has symbol, priceOnStart, priceOnMinute and the
        first sample_threshold history prices keyed "1", "2", ...
        """
        limit = self._ctx.config.sample_threshold
        rows = []
        for symbol in await self._ctx.store.find_finished_with_history():
            row: Dict[str, Any] = {
                "symbol": symbol.name,
                "priceOnStart": symbol.price_on_start,
                "priceOnMinute": symbol.price_on_minute,
            }
            for index, sample in enumerate(symbol.history[:limit], start=1):
                row[str(index)] = sample.price
            rows.append(row)
        return rows

    async def symbol_state(self, name: str) -> SymbolState:
        """
        Raises:
            SymbolNotFoundError: unknown name
        """
        symbol = await self._ctx.store.get_symbol_by_name(name)
        if symbol is None:
            raise SymbolNotFoundError(name)

        unmatched = await self._ctx.store.get_unmatched_buy(symbol.id)
        has_sell = await self._ctx.store.has_sell_order(symbol.id)
        return derive_state(symbol, unmatched is not None, has_sell)
