"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Unified wall-clock abstraction
- exceptions: Custom exception hierarchy
- config: Environment-driven settings
"""

from .clock import ClockProtocol, SystemClock, MockClock, ClockFactory, ensure_utc
from .exceptions import ListingMonitorError, Severity, ErrorClassification

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ClockFactory",
    "ensure_utc",
    "ListingMonitorError",
    "Severity",
    "ErrorClassification",
]
