"""
Listing Service Tests.

============================================================
PURPOSE
============================================================
Service-level behaviour: timer registration, restart
rehydration, manual orders and read-side queries.

============================================================
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
import pytest_asyncio

from core.exceptions import (
    DuplicateSymbolError,
    InvalidSymbolError,
    OrderNotFoundError,
    SymbolNotFoundError,
    UnmatchedBuyExistsError,
)
from exchange_gateway import MockConfig, MockGateway, OrderSide, PlacedOrder
from lifecycle import (
    LifecycleScheduler,
    ListingService,
    OutcomeKind,
    Phase,
    SymbolState,
    TransitionContext,
    timer_key,
)
from lifecycle.transitions import handle_sell

from conftest import FIXED_NOW


@pytest_asyncio.fixture
async def service(ctx):
    scheduler = LifecycleScheduler()
    svc = ListingService(ctx, scheduler)
    yield svc
    await scheduler.shutdown(timeout=1)


async def _drain(scheduler, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    await asyncio.sleep(0.01)
    while scheduler.running_count and loop.time() < deadline:
        await asyncio.sleep(0.01)


async def _buy(store, symbol_id, order_id="B1", qty="100"):
    return await store.insert_order(
        symbol_id,
        PlacedOrder(order_id=order_id, price="0.06", orig_qty=qty, side=OrderSide.BUY),
    )


# ============================================================
# CREATE
# ============================================================

class TestCreate:
    """Tests for ListingService.create_symbol."""

    @pytest.mark.asyncio
    async def test_normalizes_and_schedules_start(self, service):
        symbol = await service.create_symbol("abc", "2025-01-01T17:00:00")

        assert symbol.name == "ABCUSDT"
        # naive instants are read at +04:00
        assert symbol.listing_date == FIXED_NOW + timedelta(hours=1)

        key = timer_key("ABCUSDT", Phase.START)
        assert service.scheduler.is_pending(key)
        assert service.scheduler.seconds_until(key) == pytest.approx(3599, abs=1)

    @pytest.mark.asyncio
    async def test_duplicate(self, service):
        await service.create_symbol("ABC", "2025-01-01T13:00:00Z")

        with pytest.raises(DuplicateSymbolError):
            await service.create_symbol("abcusdt", "2025-01-01T14:00:00Z")

    @pytest.mark.asyncio
    async def test_invalid_name(self, service):
        with pytest.raises(InvalidSymbolError):
            await service.create_symbol("ab-c", "2025-01-01T13:00:00Z")

    @pytest.mark.asyncio
    async def test_invalid_date(self, service):
        with pytest.raises(InvalidSymbolError):
            await service.create_symbol("abc", "tomorrow")


# ============================================================
# RESTART
# ============================================================

class TestRestartAll:
    """Tests for restart_all rehydration."""

    @pytest.mark.asyncio
    async def test_only_pending_work_is_scheduled(self, service, ctx):
        await ctx.store.create_symbol("AAAUSDT", FIXED_NOW + timedelta(seconds=5))
        finished = await ctx.store.create_symbol("BBBUSDT", FIXED_NOW - timedelta(days=2))
        await ctx.store.mark_listed(finished.id, Decimal("1"))
        await ctx.store.set_minute_price(finished.id, Decimal("1"))
        await ctx.store.mark_finished(finished.id)

        keys = await service.restart_all()

        assert keys == [timer_key("AAAUSDT", Phase.START)]
        assert service.scheduler.pending_keys() == keys
        assert service.scheduler.seconds_until(keys[0]) == pytest.approx(4, abs=0.5)

    @pytest.mark.asyncio
    async def test_unmatched_buy_gets_sell_timer(self, service, ctx, clock):
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW - timedelta(minutes=30))
        await ctx.store.mark_listed(symbol.id, Decimal("1"))
        await ctx.store.set_minute_price(symbol.id, Decimal("1"))
        buy = await _buy(ctx.store, symbol.id)
        clock.advance(minutes=20)

        keys = await service.restart_all()

        key = timer_key("AAAUSDT", Phase.SELL)
        assert keys == [key]
        assert service.scheduler.pending_message(key).order_pk == buy.id
        assert service.scheduler.seconds_until(key) == pytest.approx(40 * 60, abs=1)

    @pytest.mark.asyncio
    async def test_sold_symbol_gets_no_sell_timer(self, service, ctx):
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        await ctx.store.mark_listed(symbol.id, Decimal("1"))
        await ctx.store.set_minute_price(symbol.id, Decimal("1"))
        buy = await _buy(ctx.store, symbol.id)
        await ctx.store.insert_order(
            symbol.id,
            PlacedOrder(order_id="S1", price="0.07", orig_qty="100", side=OrderSide.SELL),
            buy_order_id=buy.id,
        )

        assert await service.restart_all() == []

    @pytest.mark.asyncio
    async def test_minute_timer_restored_only_when_ahead(self, service, ctx):
        recent = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW - timedelta(seconds=20))
        stale = await ctx.store.create_symbol("BBBUSDT", FIXED_NOW - timedelta(minutes=5))
        await ctx.store.mark_listed(recent.id, Decimal("1"))
        await ctx.store.mark_listed(stale.id, Decimal("1"))

        keys = await service.restart_all()

        assert keys == [timer_key("AAAUSDT", Phase.MINUTE)]
        assert service.scheduler.seconds_until(keys[0]) == pytest.approx(40, abs=1)

    @pytest.mark.asyncio
    async def test_overdue_start_fires_immediately(self, service, ctx, gateway):
        await ctx.store.create_symbol("AAAUSDT", FIXED_NOW - timedelta(minutes=1))
        gateway.script_prices("AAAUSDT", ["2"])

        await service.restart_all()
        await _drain(service.scheduler)

        symbol = await ctx.store.get_symbol_by_name("AAAUSDT")
        assert symbol.is_listed is True
        assert symbol.price_on_start == Decimal("2")
        assert service.scheduler.is_pending(timer_key("AAAUSDT", Phase.SELL))
        assert service.scheduler.is_pending(timer_key("AAAUSDT", Phase.MINUTE))

    @pytest.mark.asyncio
    async def test_restart_is_idempotent(self, service, ctx):
        await ctx.store.create_symbol("AAAUSDT", FIXED_NOW + timedelta(hours=1))

        await service.restart_all()
        await service.restart_all()

        assert len(service.scheduler) == 1


# ============================================================
# MANUAL ORDERS
# ============================================================

class TestManualOrders:
    """Tests for manual buy / sell."""

    @pytest.mark.asyncio
    async def test_manual_buy_schedules_sell(self, service, ctx):
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        await ctx.store.mark_listed(symbol.id, Decimal("1"))

        outcome = await service.buy(symbol.id, Decimal("10"))

        assert outcome.kind is OutcomeKind.BOUGHT
        pending = service.scheduler.pending_message(timer_key("AAAUSDT", Phase.SELL))
        assert pending.order_pk == outcome.order.id

    @pytest.mark.asyncio
    async def test_manual_buy_with_open_position(self, service, ctx):
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        await ctx.store.mark_listed(symbol.id, Decimal("1"))
        await _buy(ctx.store, symbol.id)

        with pytest.raises(UnmatchedBuyExistsError):
            await service.buy(symbol.id)

    @pytest.mark.asyncio
    async def test_manual_buy_unknown_symbol(self, service):
        with pytest.raises(SymbolNotFoundError):
            await service.buy(404)

    @pytest.mark.asyncio
    async def test_manual_sell_cancels_pending_timer(self, service, ctx):
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        await ctx.store.mark_listed(symbol.id, Decimal("1"))
        bought = await service.buy(symbol.id)

        outcome = await service.sell(bought.order.id)

        assert outcome.kind is OutcomeKind.SOLD
        assert not service.scheduler.is_pending(timer_key("AAAUSDT", Phase.SELL))
        assert await service.symbol_state("AAAUSDT") is SymbolState.SOLD

    @pytest.mark.asyncio
    async def test_manual_sell_unknown_order(self, service):
        with pytest.raises(OrderNotFoundError):
            await service.sell(404)

    @pytest.mark.asyncio
    async def test_rebuy_after_sell_is_tracked(self, service, ctx, gateway):
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        await ctx.store.mark_listed(symbol.id, Decimal("1"))
        first = await service.buy(symbol.id)
        await service.sell(first.order.id)

        second = await service.buy(symbol.id)

        assert second.kind is OutcomeKind.BOUGHT
        assert [o.id for o in await service.list_not_sold()] == [second.order.id]
        assert await service.symbol_state("AAAUSDT") is SymbolState.AWAITING_SALE
        pending = service.scheduler.pending_message(timer_key("AAAUSDT", Phase.SELL))
        assert pending.order_pk == second.order.id

        sold = await service.sell(second.order.id)

        assert sold.kind is OutcomeKind.SOLD
        assert sold.order.buy_order_id == second.order.id
        assert await service.list_not_sold() == []
        assert await service.symbol_state("AAAUSDT") is SymbolState.SOLD
        assert [c.side for c in gateway.order_calls] == [
            OrderSide.BUY, OrderSide.SELL, OrderSide.BUY, OrderSide.SELL,
        ]

    @pytest.mark.asyncio
    async def test_repeated_manual_sell_is_skipped(self, service, ctx, gateway):
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        await ctx.store.mark_listed(symbol.id, Decimal("1"))
        bought = await service.buy(symbol.id)
        await service.sell(bought.order.id)

        again = await service.sell(bought.order.id)

        assert again.kind is OutcomeKind.SKIPPED
        assert len([c for c in gateway.order_calls if c.side is OrderSide.SELL]) == 1


class TestOverlappingOrders:
    """Tests for overlapping order placement on one buy or symbol."""

    @pytest_asyncio.fixture
    async def slow_service(self, ctx):
        gateway = MockGateway(MockConfig(latency_seconds=0.05))
        slow_ctx = TransitionContext(
            store=ctx.store,
            gateway=gateway,
            config=ctx.config,
            clock=ctx.clock,
        )
        scheduler = LifecycleScheduler()
        svc = ListingService(slow_ctx, scheduler)
        yield svc
        await scheduler.shutdown(timeout=1)

    @pytest.mark.asyncio
    async def test_concurrent_sells_place_one_order(self, slow_service):
        ctx = slow_service.context
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        await ctx.store.mark_listed(symbol.id, Decimal("1"))
        buy = await _buy(ctx.store, symbol.id)

        outcomes = await asyncio.gather(
            handle_sell(ctx, buy.id),
            slow_service.sell(buy.id),
        )

        assert sorted(o.kind.value for o in outcomes) == ["SKIPPED", "SOLD"]
        sells = [c for c in ctx.gateway.order_calls if c.side is OrderSide.SELL]
        assert len(sells) == 1
        orders = await ctx.store.list_orders(symbol.id)
        assert [o.side for o in orders] == ["BUY", "SELL"]

    @pytest.mark.asyncio
    async def test_concurrent_buys_place_one_order(self, slow_service):
        ctx = slow_service.context
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        await ctx.store.mark_listed(symbol.id, Decimal("1"))

        results = await asyncio.gather(
            slow_service.buy(symbol.id),
            slow_service.buy(symbol.id),
            return_exceptions=True,
        )

        bought = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, UnmatchedBuyExistsError)]
        assert len(bought) == 1
        assert len(rejected) == 1
        assert len(ctx.gateway.order_calls) == 1
        assert len(await ctx.store.find_unmatched_buy_orders()) == 1


# ============================================================
# QUERIES
# ============================================================

class TestQueries:
    """Tests for read-side queries."""

    @pytest.mark.asyncio
    async def test_statistics(self, service, ctx):
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        await ctx.store.mark_listed(symbol.id, Decimal("1.5"))
        await ctx.store.set_minute_price(symbol.id, Decimal("1.7"))
        for i in range(1, 26):
            await ctx.store.insert_history(symbol.id, Decimal(i))
        await ctx.store.mark_finished(symbol.id)
        await ctx.store.create_symbol("BBBUSDT", FIXED_NOW)

        [row] = await service.get_statistics()

        assert row["symbol"] == "AAAUSDT"
        assert row["priceOnStart"] == Decimal("1.5")
        assert row["priceOnMinute"] == Decimal("1.7")
        assert row["1"] == Decimal("1")
        assert row["24"] == Decimal("24")
        assert "25" not in row

    @pytest.mark.asyncio
    async def test_states(self, service, ctx):
        await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        listed = await ctx.store.create_symbol("BBBUSDT", FIXED_NOW)
        await ctx.store.mark_listed(listed.id, Decimal("1"))
        holding = await ctx.store.create_symbol("CCCUSDT", FIXED_NOW)
        await ctx.store.mark_listed(holding.id, Decimal("1"))
        await _buy(ctx.store, holding.id)

        assert await service.symbol_state("AAAUSDT") is SymbolState.AWAITING_LISTING
        assert await service.symbol_state("BBBUSDT") is SymbolState.LISTED
        assert await service.symbol_state("CCCUSDT") is SymbolState.AWAITING_SALE

        with pytest.raises(SymbolNotFoundError):
            await service.symbol_state("ZZZUSDT")

    @pytest.mark.asyncio
    async def test_not_sold(self, service, ctx):
        symbol = await ctx.store.create_symbol("AAAUSDT", FIXED_NOW)
        await ctx.store.mark_listed(symbol.id, Decimal("1"))
        await _buy(ctx.store, symbol.id, order_id="OPEN")

        [order] = await service.list_not_sold()

        assert order.order_id == "OPEN"
        assert order.symbol.name == "AAAUSDT"
