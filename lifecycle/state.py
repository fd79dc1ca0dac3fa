"""
Lifecycle - Symbol State.

============================================================
PURPOSE
============================================================
Single place where a symbol's lifecycle state is derived.

STATE MACHINE:

    AWAITING_LISTING
           │  start timer: price polled, listed
           ▼
        LISTED ──────────────► FINISHED
           │  buy placed           ▲
           ▼                       │
    AWAITING_SALE                  │
           │  sell timer           │
           ▼                       │
         SOLD ─────────────────────┘
                 24 history samples

The state is not stored. It is derived from the durable record:
is_listed / is_finished flags plus the buy/sell pairing on
orders (sell.buy_order_id), the only source of truth for AWAITING_SALE.

============================================================
"""

from enum import Enum

from storage.models import Symbol


class SymbolState(Enum):
    """Derived lifecycle state of a symbol."""

    AWAITING_LISTING = "AWAITING_LISTING"
    LISTED = "LISTED"
    AWAITING_SALE = "AWAITING_SALE"
    SOLD = "SOLD"
    FINISHED = "FINISHED"

    def is_terminal(self) -> bool:
        return self is SymbolState.FINISHED


def derive_state(symbol: Symbol, has_unmatched_buy: bool, has_sell: bool) -> SymbolState:
    """
    Derive a symbol's state.

    Args:
        symbol: Persisted symbol row
        has_unmatched_buy: A buy order of the symbol is not closed by a sell
        has_sell: A sell order exists for the symbol
    """
    if symbol.is_finished:
        return SymbolState.FINISHED
    if not symbol.is_listed:
        return SymbolState.AWAITING_LISTING
    if has_unmatched_buy:
        return SymbolState.AWAITING_SALE
    if has_sell:
        return SymbolState.SOLD
    return SymbolState.LISTED
