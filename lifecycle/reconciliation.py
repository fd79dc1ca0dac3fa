"""
Lifecycle - Reconciliation.

============================================================
PURPOSE
============================================================
Reconciles the in-memory timer registry with the durable state.

Timers are volatile. If one is lost (handler crashed before
re-registering, a create raced a listing instant) the database
still shows the pending work:

- An unlisted symbol with no START timer pending or running
- A buy order without a sell and no SELL timer pending or running

Each such gap is reported as a mismatch and closed by registering
the missing timer.

CRITICAL INVARIANT:
    "The database is authoritative for pending lifecycle work."

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .messages import Phase, ScheduledTimer, timer_key
from .scheduler import LifecycleScheduler
from .transitions import TransitionContext, sell_timer, start_timer


logger = logging.getLogger(__name__)


# ============================================================
# RECONCILIATION TYPES
# ============================================================

class MismatchType(Enum):
    """Types of reconciliation mismatches."""

    MISSING_START_TIMER = "MISSING_START_TIMER"
    """Unlisted symbol without a start timer."""

    MISSING_SELL_TIMER = "MISSING_SELL_TIMER"
    """Unmatched buy order without a sell timer."""

    STALE_SELL_TIMER = "STALE_SELL_TIMER"
    """Sell timer pending for a different order than the unmatched buy."""


@dataclass
class ReconciliationMismatch:
    """A detected mismatch."""

    mismatch_type: MismatchType
    symbol: str
    order_id: Optional[str] = None
    message: str = ""
    auto_resolved: bool = False
    resolution: Optional[str] = None


@dataclass
class ReconciliationResult:
    """Result of a reconciliation run."""

    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    symbols_checked: int = 0
    orders_checked: int = 0
    mismatches: List[ReconciliationMismatch] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


# ============================================================
# RECONCILER
# ============================================================

class Reconciler:
    """
    Re-registers timers the durable state says should exist.

    Keys that are pending or whose handler is running are left
    alone, so a reconciliation pass never doubles a sell.
    """

    def __init__(self, ctx: TransitionContext, scheduler: LifecycleScheduler):
        self._ctx = ctx
        self._scheduler = scheduler
        self._lock = asyncio.Lock()
        self._run_counter = 0
        self._history: List[ReconciliationResult] = []
        self._max_history = 100

    @property
    def history(self) -> List[ReconciliationResult]:
        return list(self._history)

    async def reconcile(self) -> ReconciliationResult:
        """Run a reconciliation pass."""
        async with self._lock:
            self._run_counter += 1
            result = ReconciliationResult(
                run_id=f"REC_{self._run_counter:06d}",
                started_at=self._ctx.clock.now(),
            )

            try:
                await self._check_start_timers(result)
                await self._check_sell_timers(result)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                result.errors.append(f"Reconciliation failed: {e}")
                logger.error(f"Reconciliation run {result.run_id} failed: {e}")

            result.completed_at = self._ctx.clock.now()
            self._history.append(result)
            if len(self._history) > self._max_history:
                self._history.pop(0)

            log = logger.warning if result.mismatches else logger.debug
            log(
                f"Reconciliation {result.run_id} complete: "
                f"{result.symbols_checked} symbols, "
                f"{result.orders_checked} open buys, "
                f"{len(result.mismatches)} mismatches"
            )
            return result

    async def _check_start_timers(self, result: ReconciliationResult) -> None:
        for symbol in await self._ctx.store.find_unlisted_symbols():
            result.symbols_checked += 1
            if self._scheduler.is_active(timer_key(symbol.name, Phase.START)):
                continue

            self._restore(result, start_timer(self._ctx, symbol), ReconciliationMismatch(
                mismatch_type=MismatchType.MISSING_START_TIMER,
                symbol=symbol.name,
                message=f"{symbol.name} is unlisted with no start timer",
            ))

    async def _check_sell_timers(self, result: ReconciliationResult) -> None:
        for buy in await self._ctx.store.find_unmatched_buy_orders():
            result.orders_checked += 1
            name = buy.symbol.name
            key = timer_key(name, Phase.SELL)

            if self._scheduler.is_running(key):
                continue

            pending = self._scheduler.pending_message(key)
            if pending is not None and pending.order_pk == buy.id:
                continue

            if pending is None:
                mismatch = ReconciliationMismatch(
                    mismatch_type=MismatchType.MISSING_SELL_TIMER,
                    symbol=name,
                    order_id=buy.order_id,
                    message=f"Buy {buy.order_id} of {name} has no sell timer",
                )
            else:
                mismatch = ReconciliationMismatch(
                    mismatch_type=MismatchType.STALE_SELL_TIMER,
                    symbol=name,
                    order_id=buy.order_id,
                    message=f"Sell timer of {name} targets order row {pending.order_pk}, expected {buy.id}",
                )

            self._restore(result, sell_timer(self._ctx, name, buy), mismatch)

    def _restore(
        self,
        result: ReconciliationResult,
        timer: ScheduledTimer,
        mismatch: ReconciliationMismatch,
    ) -> None:
        logger.warning(f"Reconciliation mismatch: {mismatch.message}")
        self._scheduler.schedule(timer.message, timer.delay_seconds)
        mismatch.auto_resolved = True
        mismatch.resolution = f"registered {timer.key} in {timer.delay_seconds:.1f}s"
        result.mismatches.append(mismatch)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Reconcile every reconcile_interval_seconds until stop_event is set."""
        interval = self._ctx.config.reconcile_interval_seconds
        logger.info(f"Reconciler started (interval={interval}s)")

        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.reconcile()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Reconciliation pass failed: {e}")

        logger.info("Reconciler stopped")
