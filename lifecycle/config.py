"""
Lifecycle - Configuration.

Timing and threshold settings for the per-symbol lifecycle.
"""

from dataclasses import dataclass


@dataclass
class LifecycleConfig:
    """
    Per-symbol lifecycle timing.
    """

    holding_window_seconds: float = 3600.0
    """Delay between a successful buy and its market sell."""

    minute_sample_delay_seconds: float = 60.0
    """Delay between the start transition and the minute price sample."""

    start_lead_seconds: float = 1.0
    """The start timer fires this long before the listing instant."""

    sample_threshold: int = 24
    """History samples after which a symbol is finished."""

    sample_interval_seconds: float = 3600.0
    """Cadence of the history sampler, aligned to multiples since the epoch."""

    reconcile_interval_seconds: float = 300.0
    """Cadence of the unmatched-buy reconciliation sweep."""

    quote_asset: str = "USDT"
    """Suffix appended to base asset names on creation."""

    listing_utc_offset: str = "+04:00"
    """Offset applied to naive listing instants from the create request."""
