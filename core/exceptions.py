"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the listing monitor.

- Provides clear exception hierarchy
- Enables specific error handling at the API boundary
- Supports error categorization for logging
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
ListingMonitorError (base)
├── ConfigurationError
│   ├── MissingConfigError
│   └── InvalidConfigError
├── ValidationError
│   ├── DuplicateSymbolError
│   └── InvalidSymbolError
├── NotFoundError
│   ├── SymbolNotFoundError
│   └── OrderNotFoundError
├── GatewayError
│   ├── PricePollTimeout
│   └── PollCancelled
├── SchedulerError
│   └── UnknownPhaseError
└── LifecycleError
    ├── UnmatchedBuyExistsError
    └── SymbolNotListedError

============================================================
"""

from enum import Enum
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, may leave a symbol stuck."""

    CRITICAL = "critical"
    """Critical issue, requires immediate action."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error can be recovered from automatically."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class ListingMonitorError(Exception):
    """
    Base exception for all listing monitor errors.

    All exceptions carry:
    - severity: for logging
    - context: for debugging
    - classification: recoverability, reported in log lines
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = (
            f"[{self.severity.value.upper()}/{self.classification.value}] "
            f"{type(self).__name__}: {self.message}"
        )
        return f"{line} | {ctx_str}" if ctx_str else line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(ListingMonitorError):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""

    def __init__(self, key: str, source: str = "environment"):
        super().__init__(
            message=f"Missing required configuration: {key}",
            config_key=key,
            context={"source": source},
        )


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# VALIDATION ERRORS
# ============================================================

class ValidationError(ListingMonitorError):
    """Request failed validation. Surfaced to the caller, never retried."""

    default_severity = Severity.LOW
    default_classification = ErrorClassification.NON_RECOVERABLE


class DuplicateSymbolError(ValidationError):
    """A symbol with the same name is already tracked."""

    def __init__(self, name: str):
        super().__init__(
            message="Symbol already exists",
            context={"symbol": name},
        )
        self.name = name


class InvalidSymbolError(ValidationError):
    """Symbol name or listing instant cannot be used."""

    def __init__(self, message: str, name: Optional[str] = None):
        context = {"symbol": name} if name else {}
        super().__init__(message, context=context)


# ============================================================
# NOT FOUND ERRORS
# ============================================================

class NotFoundError(ListingMonitorError):
    """Requested record does not exist."""

    default_severity = Severity.LOW
    default_classification = ErrorClassification.NON_RECOVERABLE


class SymbolNotFoundError(NotFoundError):
    """Symbol lookup failed."""

    def __init__(self, identifier: Any):
        super().__init__(
            message=f"Symbol {identifier} not found",
            context={"symbol": str(identifier)},
        )


class OrderNotFoundError(NotFoundError):
    """Order lookup failed."""

    def __init__(self, order_id: Any):
        super().__init__(
            message=f"Order {order_id} not found",
            context={"order_id": str(order_id)},
        )


# ============================================================
# GATEWAY ERRORS
# ============================================================

class GatewayError(ListingMonitorError):
    """Exchange communication error."""

    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if endpoint:
            context["endpoint"] = endpoint
        if status is not None:
            context["status"] = status

        super().__init__(message, context=context, **kwargs)
        self.endpoint = endpoint
        self.status = status


class PricePollTimeout(GatewayError):
    """Price never became usable within the configured poll bounds."""

    default_severity = Severity.HIGH

    def __init__(self, symbol: str, attempts: int, elapsed_seconds: float):
        super().__init__(
            message=f"No tradeable price for {symbol} after {attempts} attempts",
            context={
                "symbol": symbol,
                "attempts": attempts,
                "elapsed_seconds": round(elapsed_seconds, 3),
            },
        )
        self.symbol = symbol
        self.attempts = attempts


class PollCancelled(GatewayError):
    """Price polling was interrupted by shutdown."""

    default_severity = Severity.LOW

    def __init__(self, symbol: str, attempts: int):
        super().__init__(
            message=f"Price polling for {symbol} cancelled",
            context={"symbol": symbol, "attempts": attempts},
        )
        self.symbol = symbol


# ============================================================
# SCHEDULER ERRORS
# ============================================================

class SchedulerError(ListingMonitorError):
    """Timer registry misuse."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE


class UnknownPhaseError(SchedulerError):
    """No handler is registered for a timer phase."""

    def __init__(self, phase: Any):
        super().__init__(
            message=f"No handler registered for phase {phase}",
            context={"phase": str(phase)},
        )


# ============================================================
# LIFECYCLE ERRORS
# ============================================================

class LifecycleError(ListingMonitorError):
    """Requested transition is not allowed in the symbol's current state."""

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.NON_RECOVERABLE


class UnmatchedBuyExistsError(LifecycleError):
    """Symbol already holds a Buy order without a matching Sell."""

    def __init__(self, name: str, order_id: str):
        super().__init__(
            message=f"{name} already has an unsold buy order {order_id}",
            context={"symbol": name, "order_id": order_id},
        )


class SymbolNotListedError(LifecycleError):
    """Operation requires a listed symbol."""

    def __init__(self, name: str):
        super().__init__(
            message=f"{name} is not listed yet",
            context={"symbol": name},
        )


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "Severity",
    "ErrorClassification",
    "ListingMonitorError",
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    "ValidationError",
    "DuplicateSymbolError",
    "InvalidSymbolError",
    "NotFoundError",
    "SymbolNotFoundError",
    "OrderNotFoundError",
    "GatewayError",
    "PricePollTimeout",
    "PollCancelled",
    "SchedulerError",
    "UnknownPhaseError",
    "LifecycleError",
    "UnmatchedBuyExistsError",
    "SymbolNotListedError",
]
