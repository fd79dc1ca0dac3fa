"""
Symbol Repository.

============================================================
PURPOSE
============================================================
Database operations for tracked symbols, their orders and their
price history.

QUERY SURFACE:
- find by name / id
- symbols not yet listed
- symbols listed and not finished
- buy orders not closed by a sell (anti-join on sell.buy_order_id)
- history count per symbol
- insert symbol, insert order, insert history

CONCURRENCY:
    Every method opens its own short-lived session, so interleaved
    lifecycle tasks never share ORM state. Each write commits on
    its own; no transaction spans several writes.

============================================================
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, List, Optional

from sqlalchemy import and_, exists, func, select, update
from sqlalchemy.exc import IntegrityError as SQLAlchemyIntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased, selectinload

from core.clock import ClockProtocol, ClockFactory, ensure_utc
from exchange_gateway.types import OrderSide, PlacedOrder

from ..models import History, Order, Symbol
from .exceptions import (
    DuplicateRecordError,
    ImmutableRecordError,
    QueryError,
    RecordNotFoundError,
    RepositoryException,
)


logger = logging.getLogger(__name__)


# ============================================================
# SYMBOL STORE
# ============================================================

class SymbolStore:
    """
    Repository for symbols, orders and history.
    """

    REPOSITORY_NAME = "SymbolStore"

    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize repository.

        Args:
            session_factory: SQLAlchemy async session factory
            clock: Clock used for created_at stamps
        """
        self._session_factory = session_factory
        self._clock = clock or ClockFactory.get_clock()

    # --------------------------------------------------------
    # SESSION HANDLING
    # --------------------------------------------------------

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Open a session and wrap database errors."""
        async with self._session_factory() as session:
            try:
                yield session
            except RepositoryException:
                await session.rollback()
                raise
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"[{self.REPOSITORY_NAME}] {operation} failed: {e}")
                raise QueryError(self.REPOSITORY_NAME, operation, str(e)) from e

    # --------------------------------------------------------
    # SYMBOL OPERATIONS
    # --------------------------------------------------------

    async def create_symbol(self, name: str, listing_date: datetime) -> Symbol:
        """
        Insert a new, unlisted symbol.

        Raises:
            DuplicateRecordError: name already exists
        """
        async with self._session("create_symbol") as session:
            symbol = Symbol(
                name=name,
                listing_date=ensure_utc(listing_date),
                price_on_start=None,
                price_on_minute=None,
                is_listed=False,
                is_finished=False,
                created_at=self._clock.now(),
            )
            session.add(symbol)
            try:
                await session.commit()
            except SQLAlchemyIntegrityError as e:
                await session.rollback()
                raise DuplicateRecordError(self.REPOSITORY_NAME, "name", name) from e

            logger.info(f"Symbol created: {name} listing at {symbol.listing_date.isoformat()}")
            return symbol

    async def get_symbol(self, symbol_id: int) -> Optional[Symbol]:
        async with self._session("get_symbol") as session:
            return await session.get(Symbol, symbol_id)

    async def get_symbol_by_name(self, name: str) -> Optional[Symbol]:
        async with self._session("get_symbol_by_name") as session:
            result = await session.execute(select(Symbol).where(Symbol.name == name))
            return result.scalar_one_or_none()

    async def list_symbols(
        self,
        is_listed: Optional[bool] = None,
        is_finished: Optional[bool] = None,
    ) -> List[Symbol]:
        """List symbols, optionally filtered by lifecycle flags."""
        query = select(Symbol).order_by(Symbol.id)
        if is_listed is not None:
            query = query.where(Symbol.is_listed == is_listed)
        if is_finished is not None:
            query = query.where(Symbol.is_finished == is_finished)

        async with self._session("list_symbols") as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def find_unlisted_symbols(self) -> List[Symbol]:
        """Symbols still waiting for their listing instant."""
        return await self.list_symbols(is_listed=False)

    async def find_active_symbols(self) -> List[Symbol]:
        """Symbols listed and not yet finished."""
        return await self.list_symbols(is_listed=True, is_finished=False)

    async def mark_listed(self, symbol_id: int, price: Decimal) -> bool:
        """
        Set is_listed and price_on_start in one conditional update.

        The update only applies while price_on_start is still null, so
        the start price is written at most once even if two start
        callbacks interleave.

        Returns:
            True if this call performed the transition
        """
        async with self._session("mark_listed") as session:
            result = await session.execute(
                update(Symbol)
                .where(
                    and_(
                        Symbol.id == symbol_id,
                        Symbol.is_listed.is_(False),
                        Symbol.price_on_start.is_(None),
                    )
                )
                .values(is_listed=True, price_on_start=price)
            )
            await session.commit()
            return result.rowcount == 1

    async def set_minute_price(self, symbol_id: int, price: Optional[Decimal]) -> None:
        async with self._session("set_minute_price") as session:
            result = await session.execute(
                update(Symbol).where(Symbol.id == symbol_id).values(price_on_minute=price)
            )
            await session.commit()
            if result.rowcount == 0:
                raise RecordNotFoundError(self.REPOSITORY_NAME, symbol_id)

    async def mark_finished(self, symbol_id: int) -> None:
        """
        Set is_finished on a listed symbol.

        Raises:
            ImmutableRecordError: the symbol is not listed
        """
        async with self._session("mark_finished") as session:
            result = await session.execute(
                update(Symbol)
                .where(and_(Symbol.id == symbol_id, Symbol.is_listed.is_(True)))
                .values(is_finished=True)
            )
            await session.commit()
            if result.rowcount == 0:
                raise ImmutableRecordError(self.REPOSITORY_NAME, symbol_id, "finish unlisted symbol")

    # --------------------------------------------------------
    # ORDER OPERATIONS
    # --------------------------------------------------------

    async def insert_order(
        self,
        symbol_id: int,
        placed: PlacedOrder,
        buy_order_id: Optional[int] = None,
    ) -> Order:
        """
        Append an order row exactly as the exchange returned it.

        Args:
            symbol_id: Owning symbol
            placed: Order as returned by the exchange
            buy_order_id: For a sell, row id of the buy it closes

        Raises:
            DuplicateRecordError: order_id already recorded, or the
                buy is already closed by another sell
        """
        async with self._session("insert_order") as session:
            order = Order(
                order_id=placed.order_id,
                price=placed.price,
                orig_qty=placed.orig_qty,
                side=placed.side.value,
                symbol_id=symbol_id,
                buy_order_id=buy_order_id,
                created_at=self._clock.now(),
            )
            session.add(order)
            try:
                await session.commit()
            except SQLAlchemyIntegrityError as e:
                await session.rollback()
                raise DuplicateRecordError(self.REPOSITORY_NAME, "order_id", placed.order_id) from e
            return order

    async def get_order(self, order_pk: int) -> Optional[Order]:
        """Get an order by row id with its symbol loaded."""
        async with self._session("get_order") as session:
            result = await session.execute(
                select(Order).options(selectinload(Order.symbol)).where(Order.id == order_pk)
            )
            return result.scalar_one_or_none()

    def _unmatched_buy_query(self):
        sell = aliased(Order)
        matched = exists().where(
            and_(
                sell.buy_order_id == Order.id,
                sell.side == OrderSide.SELL.value,
            )
        )
        return (
            select(Order)
            .options(selectinload(Order.symbol))
            .where(and_(Order.side == OrderSide.BUY.value, ~matched))
            .order_by(Order.id)
        )

    async def find_unmatched_buy_orders(self) -> List[Order]:
        """Buy orders not closed by a sell."""
        async with self._session("find_unmatched_buy_orders") as session:
            result = await session.execute(self._unmatched_buy_query())
            return list(result.scalars().all())

    async def get_unmatched_buy(self, symbol_id: int) -> Optional[Order]:
        """The symbol's unmatched buy order, if any."""
        query = self._unmatched_buy_query().where(Order.symbol_id == symbol_id)
        async with self._session("get_unmatched_buy") as session:
            result = await session.execute(query)
            return result.scalars().first()

    async def get_closing_sell(self, buy_order_id: int) -> Optional[Order]:
        """The sell that closed a buy, if any."""
        async with self._session("get_closing_sell") as session:
            result = await session.execute(
                select(Order).where(
                    and_(Order.buy_order_id == buy_order_id, Order.side == OrderSide.SELL.value)
                )
            )
            return result.scalar_one_or_none()

    async def has_sell_order(self, symbol_id: int) -> bool:
        """Whether any sell has been recorded for the symbol."""
        async with self._session("has_sell_order") as session:
            result = await session.execute(
                select(func.count(Order.id)).where(
                    and_(Order.symbol_id == symbol_id, Order.side == OrderSide.SELL.value)
                )
            )
            return result.scalar_one() > 0

    async def list_orders(self, symbol_id: int) -> List[Order]:
        async with self._session("list_orders") as session:
            result = await session.execute(
                select(Order).where(Order.symbol_id == symbol_id).order_by(Order.id)
            )
            return list(result.scalars().all())

    # --------------------------------------------------------
    # HISTORY OPERATIONS
    # --------------------------------------------------------

    async def insert_history(self, symbol_id: int, price: Decimal) -> History:
        async with self._session("insert_history") as session:
            row = History(symbol_id=symbol_id, price=price, created_at=self._clock.now())
            session.add(row)
            await session.commit()
            return row

    async def count_history(self, symbol_id: int) -> int:
        async with self._session("count_history") as session:
            result = await session.execute(
                select(func.count(History.id)).where(History.symbol_id == symbol_id)
            )
            return result.scalar_one()

    async def find_finished_with_history(self) -> List[Symbol]:
        """Finished symbols with their history rows loaded in sample order."""
        async with self._session("find_finished_with_history") as session:
            result = await session.execute(
                select(Symbol)
                .options(selectinload(Symbol.history))
                .where(Symbol.is_finished.is_(True))
                .order_by(Symbol.id)
            )
            return list(result.scalars().all())
