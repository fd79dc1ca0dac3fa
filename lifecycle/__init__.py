"""
Lifecycle Package.

============================================================
PURPOSE
============================================================
Per-symbol listing lifecycle: deferred timers, state transitions,
hourly history sampling and timer reconciliation.

FLOW:
    create -> START timer -> poll price, list, buy
           -> MINUTE timer -> price_on_minute
           -> SELL timer -> sell bought quantity
    hourly sampler -> history, finished at the sample threshold

The process runtime lives in lifecycle.runtime.

============================================================
"""

from .config import LifecycleConfig
from .messages import Phase, ScheduledTimer, TimerKey, TimerMessage, timer_key
from .naming import normalize_symbol_name, parse_listing_instant, parse_utc_offset
from .reconciliation import (
    MismatchType,
    Reconciler,
    ReconciliationMismatch,
    ReconciliationResult,
)
from .sampler import HistorySampler, SamplingResult
from .scheduler import LifecycleScheduler
from .service import ListingService
from .state import SymbolState, derive_state
from .transitions import OutcomeKind, TransitionContext, TransitionOutcome

__all__ = [
    "LifecycleConfig",
    "Phase",
    "ScheduledTimer",
    "TimerKey",
    "TimerMessage",
    "timer_key",
    "normalize_symbol_name",
    "parse_listing_instant",
    "parse_utc_offset",
    "LifecycleScheduler",
    "ListingService",
    "HistorySampler",
    "SamplingResult",
    "Reconciler",
    "ReconciliationResult",
    "ReconciliationMismatch",
    "MismatchType",
    "SymbolState",
    "derive_state",
    "OutcomeKind",
    "TransitionContext",
    "TransitionOutcome",
]
