"""
Reconciliation Tests.

============================================================
PURPOSE
============================================================
Detection and repair of timers missing from the registry.

============================================================
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from exchange_gateway import OrderSide, PlacedOrder
from lifecycle import (
    LifecycleScheduler,
    ListingService,
    MismatchType,
    Phase,
    Reconciler,
    TimerMessage,
    timer_key,
)

from conftest import FIXED_NOW


@pytest_asyncio.fixture
async def scheduler(ctx):
    sched = LifecycleScheduler()
    ListingService(ctx, sched)
    yield sched
    await sched.shutdown(timeout=1)


async def _holding(store, name="AAAUSDT"):
    symbol = await store.create_symbol(name, FIXED_NOW)
    await store.mark_listed(symbol.id, Decimal("1"))
    return await store.insert_order(
        symbol.id,
        PlacedOrder(order_id=f"{name}-BUY", price="1", orig_qty="6", side=OrderSide.BUY),
    )


class TestReconcile:
    """Tests for Reconciler.reconcile."""

    @pytest.mark.asyncio
    async def test_restores_missing_sell_timer(self, ctx, scheduler, clock):
        buy = await _holding(ctx.store)
        clock.advance(minutes=10)

        result = await Reconciler(ctx, scheduler).reconcile()

        [mismatch] = result.mismatches
        assert mismatch.mismatch_type is MismatchType.MISSING_SELL_TIMER
        assert mismatch.auto_resolved
        key = timer_key("AAAUSDT", Phase.SELL)
        assert scheduler.pending_message(key).order_pk == buy.id
        assert scheduler.seconds_until(key) == pytest.approx(50 * 60, abs=1)

    @pytest.mark.asyncio
    async def test_pending_timer_left_alone(self, ctx, scheduler):
        buy = await _holding(ctx.store)
        message = TimerMessage("AAAUSDT", Phase.SELL, order_pk=buy.id)
        scheduler.schedule(message, 1234)

        result = await Reconciler(ctx, scheduler).reconcile()

        assert result.mismatches == []
        assert scheduler.pending_message(message.key) is message

    @pytest.mark.asyncio
    async def test_stale_sell_timer_replaced(self, ctx, scheduler):
        buy = await _holding(ctx.store)
        scheduler.schedule(TimerMessage("AAAUSDT", Phase.SELL, order_pk=buy.id + 100), 1234)

        result = await Reconciler(ctx, scheduler).reconcile()

        assert [m.mismatch_type for m in result.mismatches] == [MismatchType.STALE_SELL_TIMER]
        assert scheduler.pending_message(timer_key("AAAUSDT", Phase.SELL)).order_pk == buy.id

    @pytest.mark.asyncio
    async def test_running_sell_not_doubled(self, ctx):
        release = asyncio.Event()
        calls = []

        async def slow_sell(message):
            calls.append(message)
            await release.wait()

        sched = LifecycleScheduler()
        sched.register_handler(Phase.SELL, slow_sell)
        sched.register_handler(Phase.START, slow_sell)
        buy = await _holding(ctx.store)

        sched.schedule(TimerMessage("AAAUSDT", Phase.SELL, order_pk=buy.id), 0)
        await asyncio.sleep(0.01)
        result = await Reconciler(ctx, sched).reconcile()

        assert result.mismatches == []
        assert not sched.is_pending(timer_key("AAAUSDT", Phase.SELL))

        release.set()
        await sched.shutdown(timeout=1)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_restores_missing_start_timer(self, ctx, scheduler):
        await ctx.store.create_symbol("BBBUSDT", FIXED_NOW + timedelta(hours=2))

        result = await Reconciler(ctx, scheduler).reconcile()

        assert [m.mismatch_type for m in result.mismatches] == [MismatchType.MISSING_START_TIMER]
        assert result.symbols_checked == 1
        assert scheduler.is_pending(timer_key("BBBUSDT", Phase.START))

    @pytest.mark.asyncio
    async def test_history_kept(self, ctx, scheduler):
        reconciler = Reconciler(ctx, scheduler)

        await reconciler.reconcile()
        await reconciler.reconcile()

        assert [r.run_id for r in reconciler.history] == ["REC_000001", "REC_000002"]
        assert all(r.success for r in reconciler.history)
