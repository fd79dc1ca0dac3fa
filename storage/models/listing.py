"""
Listing ORM Models.

============================================================
PURPOSE
============================================================
SQLAlchemy ORM models for tracked listings.

TABLES:
- symbol: tracked trading pairs and their lifecycle flags
- order: exchange orders placed for a symbol (append-only)
- history: hourly price samples for a symbol (append-only)

INVARIANTS:
- symbol.name is unique
- is_finished implies is_listed
- order.order_id is the exchange-assigned id and is unique
- order.price / order.orig_qty are stored verbatim as strings
- a SELL row references the BUY it closes (order.buy_order_id);
  a buy is closed by at most one sell

============================================================
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UTCDateTime


PRICE_TYPE = Numeric(28, 12, asdecimal=True)


# ============================================================
# SYMBOL MODEL
# ============================================================

class Symbol(Base):
    """
    A tracked exchange trading pair.

    Lifecycle flags are mutated by timer transitions and the
    history sampler; rows are never deleted by the core.
    """

    __tablename__ = "symbol"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    listing_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    price_on_start: Mapped[Optional[Decimal]] = mapped_column(PRICE_TYPE, nullable=True)
    price_on_minute: Mapped[Optional[Decimal]] = mapped_column(PRICE_TYPE, nullable=True)

    is_listed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_finished: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, server_default=func.now()
    )

    orders: Mapped[List["Order"]] = relationship(
        "Order",
        back_populates="symbol",
        order_by="Order.id",
    )
    history: Mapped[List["History"]] = relationship(
        "History",
        back_populates="symbol",
        order_by="History.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_symbol_listed_finished", "is_listed", "is_finished"),
    )

    def __repr__(self) -> str:
        return f"<Symbol {self.name} listed={self.is_listed} finished={self.is_finished}>"


# ============================================================
# ORDER MODEL
# ============================================================

class Order(Base):
    """
    Exchange order, created exactly once per accepted placement.
    """

    __tablename__ = "order"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    price: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    orig_qty: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    side: Mapped[str] = mapped_column(String(8), nullable=False)

    symbol_id: Mapped[int] = mapped_column(
        ForeignKey("symbol.id", ondelete="NO ACTION"), nullable=False, index=True
    )
    symbol: Mapped["Symbol"] = relationship("Symbol", back_populates="orders")

    buy_order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("order.id", ondelete="NO ACTION"), nullable=True, unique=True
    )
    """Row id of the buy a sell closes; null on buys."""

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_order_symbol_side", "symbol_id", "side"),
    )

    def __repr__(self) -> str:
        return f"<Order {self.order_id} {self.side} qty={self.orig_qty}>"


# ============================================================
# HISTORY MODEL
# ============================================================

class History(Base):
    """
    One hourly price sample.
    """

    __tablename__ = "history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    price: Mapped[Decimal] = mapped_column(PRICE_TYPE, nullable=False)

    symbol_id: Mapped[int] = mapped_column(
        ForeignKey("symbol.id", ondelete="CASCADE"), nullable=False, index=True
    )
    symbol: Mapped["Symbol"] = relationship("Symbol", back_populates="history")

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<History symbol_id={self.symbol_id} price={self.price}>"
