"""
Lifecycle - Symbol State Machine Transitions.

============================================================
PURPOSE
============================================================
Transition logic for a symbol's lifecycle, shared by the timer
handlers, the history sampler and manual operations.

Each transition takes a TransitionContext (store, gateway, config,
clock) plus the identity of what it acts on, reloads the persisted
rows, decides what to write, and returns a TransitionOutcome naming
the timers to register next. Transitions never touch the scheduler.

TRANSITIONS:
- create_symbol: persist unlisted symbol, request START timer
- handle_start:  poll first price, mark listed, buy, request SELL + MINUTE
- handle_minute: record price_on_minute
- handle_sell:   sell the buy order's exact quantity
- record_sample: append history, finish at the sample threshold
- plan_rehydration: timers implied by the durable state

============================================================
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import AsyncIterator, Dict, List, Optional

from core.clock import ClockProtocol
from core.exceptions import (
    DuplicateSymbolError,
    GatewayError,
    PollCancelled,
    PricePollTimeout,
    SymbolNotListedError,
    UnmatchedBuyExistsError,
)
from exchange_gateway import (
    ExchangeGateway,
    OrderSide,
    is_tradeable,
    market_buy_params,
    market_sell_params,
)
from storage.models import Order, Symbol
from storage.repositories import DuplicateRecordError, RepositoryException, SymbolStore

from .config import LifecycleConfig
from .messages import Phase, ScheduledTimer, TimerMessage


logger = logging.getLogger(__name__)


# ============================================================
# CONTEXT AND OUTCOME
# ============================================================

@dataclass
class TransitionContext:
    """Capabilities a transition may use."""

    store: SymbolStore
    gateway: ExchangeGateway
    config: LifecycleConfig
    clock: ClockProtocol
    quote_order_qty: Decimal = Decimal("6")
    cancel_event: Optional[asyncio.Event] = None

    # key -> [lock, holders and waiters]
    _order_locks: Dict[str, list] = field(default_factory=dict, init=False, repr=False)

    @asynccontextmanager
    async def order_lock(self, key: str) -> AsyncIterator[None]:
        """
        Serialize order placement under key.

        The durable-state check and the exchange call run under the
        same lock, so overlapping timer and manual callers cannot
        both place an order for one buy or one symbol.
        """
        entry = self._order_locks.get(key)
        if entry is None:
            entry = self._order_locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._order_locks[key]


class OutcomeKind(Enum):
    """What a transition did."""

    CREATED = "CREATED"
    LISTED = "LISTED"
    BOUGHT = "BOUGHT"
    BUY_FAILED = "BUY_FAILED"
    POLL_FAILED = "POLL_FAILED"
    PRICE_RECORDED = "PRICE_RECORDED"
    SOLD = "SOLD"
    SELL_FAILED = "SELL_FAILED"
    SAMPLED = "SAMPLED"
    FINISHED = "FINISHED"
    SKIPPED = "SKIPPED"
    MISSING = "MISSING"


@dataclass
class TransitionOutcome:
    """Result of a transition."""

    kind: OutcomeKind
    symbol_name: str
    timers: List[ScheduledTimer] = field(default_factory=list)
    symbol: Optional[Symbol] = None
    order: Optional[Order] = None
    price: Optional[Decimal] = None
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.kind in (
            OutcomeKind.CREATED,
            OutcomeKind.LISTED,
            OutcomeKind.BOUGHT,
            OutcomeKind.PRICE_RECORDED,
            OutcomeKind.SOLD,
            OutcomeKind.SAMPLED,
            OutcomeKind.FINISHED,
        )


# ============================================================
# TIMER HELPERS
# ============================================================

def start_delay(ctx: TransitionContext, listing_date: datetime) -> float:
    """Seconds until the start timer should fire."""
    return ctx.clock.seconds_until(listing_date) - ctx.config.start_lead_seconds


def start_timer(ctx: TransitionContext, symbol: Symbol) -> ScheduledTimer:
    return ScheduledTimer(
        TimerMessage(symbol.name, Phase.START),
        max(0.0, start_delay(ctx, symbol.listing_date)),
    )


def sell_deadline(ctx: TransitionContext, buy: Order) -> datetime:
    return buy.created_at + timedelta(seconds=ctx.config.holding_window_seconds)


def sell_timer(ctx: TransitionContext, symbol_name: str, buy: Order) -> ScheduledTimer:
    """Sell timer for a buy order, due holding_window after the buy."""
    delay = ctx.clock.seconds_until(sell_deadline(ctx, buy))
    return ScheduledTimer(
        TimerMessage(symbol_name, Phase.SELL, order_pk=buy.id),
        max(0.0, delay),
    )


def minute_timer(symbol_name: str, delay_seconds: float) -> ScheduledTimer:
    return ScheduledTimer(TimerMessage(symbol_name, Phase.MINUTE), max(0.0, delay_seconds))


# ============================================================
# CREATE
# ============================================================

async def create_symbol(
    ctx: TransitionContext,
    name: str,
    listing_date: datetime,
) -> TransitionOutcome:
    """
    Persist a new unlisted symbol.

    A START timer is requested only while the listing instant is
    still ahead.

    Raises:
        DuplicateSymbolError: name already tracked
    """
    try:
        symbol = await ctx.store.create_symbol(name, listing_date)
    except DuplicateRecordError:
        raise DuplicateSymbolError(name)

    outcome = TransitionOutcome(OutcomeKind.CREATED, symbol.name, symbol=symbol)

    delay = start_delay(ctx, symbol.listing_date)
    if delay > 0:
        outcome.timers.append(start_timer(ctx, symbol))
    else:
        logger.warning(f"{symbol.name} listing instant already passed, no start timer")
        outcome.detail = "listing instant passed"

    return outcome


# ============================================================
# START
# ============================================================

async def handle_start(ctx: TransitionContext, name: str) -> TransitionOutcome:
    """
    Listing instant reached.

    Polls until the pair trades, records the start price once,
    places the automatic buy and, only if the buy succeeded,
    requests the SELL and MINUTE timers.
    """
    symbol = await ctx.store.get_symbol_by_name(name)
    if symbol is None:
        logger.error(f"Start fired for unknown symbol {name}")
        return TransitionOutcome(OutcomeKind.MISSING, name)

    if symbol.is_listed:
        logger.info(f"{name} already listed, start ignored")
        return TransitionOutcome(OutcomeKind.SKIPPED, name, detail="already listed")

    try:
        price = await ctx.gateway.poll_price(name, ctx.cancel_event)
    except (PricePollTimeout, PollCancelled) as e:
        logger.error(f"{name} start aborted: {e}")
        return TransitionOutcome(OutcomeKind.POLL_FAILED, name, detail=str(e))

    if not await ctx.store.mark_listed(symbol.id, price):
        logger.info(f"{name} was listed concurrently, start ignored")
        return TransitionOutcome(OutcomeKind.SKIPPED, name, detail="listed concurrently")

    logger.info(f"{name} listed at {price}")
    symbol.is_listed = True
    symbol.price_on_start = price

    try:
        buy = await place_buy(ctx, symbol)
    except UnmatchedBuyExistsError as e:
        logger.warning(f"{name} automatic buy skipped: {e}")
        return TransitionOutcome(OutcomeKind.SKIPPED, name, price=price, detail="open buy exists")
    if buy is None:
        # Without a recorded buy there is nothing to sell; no timers
        return TransitionOutcome(OutcomeKind.BUY_FAILED, name, price=price)

    return TransitionOutcome(
        OutcomeKind.LISTED,
        name,
        price=price,
        order=buy,
        timers=[
            sell_timer(ctx, name, buy),
            minute_timer(name, ctx.config.minute_sample_delay_seconds),
        ],
    )


async def place_buy(
    ctx: TransitionContext,
    symbol: Symbol,
    quote_order_qty: Optional[Decimal] = None,
) -> Optional[Order]:
    """
    Place a market buy and record it.

    Returns the recorded order, or None when the exchange rejected
    the order or the row could not be written.

    Raises:
        SymbolNotListedError: symbol is not listed
        UnmatchedBuyExistsError: an unsold buy already exists
    """
    if not symbol.is_listed:
        raise SymbolNotListedError(symbol.name)

    async with ctx.order_lock(f"buy:{symbol.id}"):
        existing = await ctx.store.get_unmatched_buy(symbol.id)
        if existing is not None:
            raise UnmatchedBuyExistsError(symbol.name, existing.order_id)

        amount = quote_order_qty or ctx.quote_order_qty
        result = await ctx.gateway.place_order(market_buy_params(symbol.name, amount), OrderSide.BUY)
        if not result.success:
            logger.error(f"{symbol.name} buy failed: {result.error_message}")
            return None

        return await _record_order(ctx, symbol, result.order)


async def _record_order(
    ctx: TransitionContext,
    symbol: Symbol,
    placed,
    buy_order_id: Optional[int] = None,
) -> Optional[Order]:
    try:
        order = await ctx.store.insert_order(symbol.id, placed, buy_order_id)
    except RepositoryException as e:
        logger.critical(
            f"{symbol.name} {placed.side.value} order {placed.order_id} "
            f"accepted by exchange but not recorded: {e}"
        )
        return None
    logger.info(f"{symbol.name} {order.side} order {order.order_id} recorded (qty={order.orig_qty})")
    return order


# ============================================================
# MINUTE SAMPLE
# ============================================================

async def handle_minute(ctx: TransitionContext, name: str) -> TransitionOutcome:
    """Poll the price once and store it as price_on_minute."""
    symbol = await ctx.store.get_symbol_by_name(name)
    if symbol is None:
        logger.error(f"Minute sample fired for unknown symbol {name}")
        return TransitionOutcome(OutcomeKind.MISSING, name)

    try:
        price = await ctx.gateway.fetch_price(name)
    except GatewayError as e:
        logger.error(f"{name} minute sample failed: {e}")
        return TransitionOutcome(OutcomeKind.POLL_FAILED, name, detail=str(e))

    if price is None:
        logger.warning(f"{name} minute sample returned no price")
        return TransitionOutcome(OutcomeKind.POLL_FAILED, name, detail="no price")

    await ctx.store.set_minute_price(symbol.id, price)
    logger.info(f"{name} price after first minute: {price}")
    return TransitionOutcome(OutcomeKind.PRICE_RECORDED, name, price=price)


# ============================================================
# SELL
# ============================================================

async def handle_sell(ctx: TransitionContext, order_pk: int) -> TransitionOutcome:
    """
    Sell the exact quantity of a recorded buy order.

    A buy already closed by a sell is left alone. Overlapping calls
    for the same buy run one after the other, so only the first
    reaches the exchange.
    """
    async with ctx.order_lock(f"sell:{order_pk}"):
        buy = await ctx.store.get_order(order_pk)
        if buy is None:
            logger.error(f"Sell fired for unknown order {order_pk}")
            return TransitionOutcome(OutcomeKind.MISSING, str(order_pk))

        name = buy.symbol.name
        if buy.side != OrderSide.BUY.value:
            logger.error(f"Sell fired for non-buy order {buy.order_id}")
            return TransitionOutcome(OutcomeKind.SKIPPED, name, detail="not a buy order")

        closing = await ctx.store.get_closing_sell(buy.id)
        if closing is not None:
            logger.info(f"{name} buy {buy.order_id} already sold by {closing.order_id}, sell ignored")
            return TransitionOutcome(OutcomeKind.SKIPPED, name, order=closing, detail="already sold")

        result = await ctx.gateway.place_order(market_sell_params(name, buy.orig_qty), OrderSide.SELL)
        if not result.success:
            logger.error(f"{name} sell failed: {result.error_message}")
            return TransitionOutcome(OutcomeKind.SELL_FAILED, name, detail=result.error_message or "")

        sell = await _record_order(ctx, buy.symbol, result.order, buy_order_id=buy.id)
        if sell is None:
            return TransitionOutcome(OutcomeKind.SELL_FAILED, name, detail="not recorded")

        return TransitionOutcome(OutcomeKind.SOLD, name, order=sell)


# ============================================================
# HISTORY SAMPLE
# ============================================================

async def record_sample(ctx: TransitionContext, symbol: Symbol) -> TransitionOutcome:
    """
    Append one history sample and finish the symbol at the threshold.
    """
    name = symbol.name

    if symbol.is_finished or not symbol.is_listed:
        return TransitionOutcome(OutcomeKind.SKIPPED, name, detail="not active")

    try:
        price = await ctx.gateway.fetch_price(name)
    except GatewayError as e:
        logger.warning(f"{name} history sample failed: {e}")
        return TransitionOutcome(OutcomeKind.POLL_FAILED, name, detail=str(e))

    if not is_tradeable(price):
        logger.warning(f"{name} history sample returned no usable price ({price})")
        return TransitionOutcome(OutcomeKind.POLL_FAILED, name, detail="no price")

    await ctx.store.insert_history(symbol.id, price)
    count = await ctx.store.count_history(symbol.id)

    if count >= ctx.config.sample_threshold:
        await ctx.store.mark_finished(symbol.id)
        logger.info(f"{name} finished after {count} samples")
        return TransitionOutcome(OutcomeKind.FINISHED, name, price=price, detail=f"{count} samples")

    logger.debug(f"{name} sample {count}/{ctx.config.sample_threshold}: {price}")
    return TransitionOutcome(OutcomeKind.SAMPLED, name, price=price, detail=f"{count} samples")


# ============================================================
# REHYDRATION
# ============================================================

async def plan_rehydration(ctx: TransitionContext) -> List[ScheduledTimer]:
    """
    Timers implied by the persisted state.

    - unlisted symbols: START at listing_date - lead
    - buy orders without a sell: SELL at buy.created_at + holding window
    - listed, unfinished symbols without price_on_minute: MINUTE at
      listing_date + minute delay, only while that instant is ahead

    Overdue START and SELL timers are due immediately.
    """
    timers: List[ScheduledTimer] = []

    for symbol in await ctx.store.find_unlisted_symbols():
        timers.append(start_timer(ctx, symbol))

    for buy in await ctx.store.find_unmatched_buy_orders():
        timers.append(sell_timer(ctx, buy.symbol.name, buy))

    minute_offset = timedelta(seconds=ctx.config.minute_sample_delay_seconds)
    for symbol in await ctx.store.find_active_symbols():
        if symbol.price_on_minute is not None:
            continue
        remaining = ctx.clock.seconds_until(symbol.listing_date + minute_offset)
        if remaining > 0:
            timers.append(minute_timer(symbol.name, remaining))

    return timers
