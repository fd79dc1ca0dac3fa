"""
Lifecycle - Timer Messages.

============================================================
PURPOSE
============================================================
Data-only messages carried by deferred timers.

A timer never captures service objects; it carries a
TimerMessage that the scheduler dispatches through a
phase -> handler table when the delay elapses.

KEYS:
    (symbol_name, phase) identifies a registration. Phases of the
    same symbol never collide; scheduling an existing key replaces
    the pending registration.

============================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional


class Phase(Enum):
    """Deferred action of a symbol's lifecycle."""

    START = "start"
    """Listing instant reached: poll the first price and buy."""

    MINUTE = "minute"
    """Record the price shortly after listing."""

    SELL = "sell"
    """Holding window over: sell the bought quantity."""


class TimerKey(NamedTuple):
    """Registry key of a pending timer."""

    symbol_name: str
    phase: Phase

    def __str__(self) -> str:
        return f"{self.symbol_name}:{self.phase.value}"


@dataclass(frozen=True)
class TimerMessage:
    """Payload dispatched when a timer fires."""

    symbol_name: str
    phase: Phase
    order_pk: Optional[int] = None
    """Row id of the buy order a SELL message refers to."""

    @property
    def key(self) -> TimerKey:
        return TimerKey(self.symbol_name, self.phase)


@dataclass(frozen=True)
class ScheduledTimer:
    """A timer a transition asks to register."""

    message: TimerMessage
    delay_seconds: float

    @property
    def key(self) -> TimerKey:
        return self.message.key


def timer_key(symbol_name: str, phase: Phase) -> TimerKey:
    return TimerKey(symbol_name, phase)
