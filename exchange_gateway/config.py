"""
Exchange Gateway - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the MEXC spot gateway.

CRITICAL CONSTRAINTS:
- Credentials come from the environment, never from code
- Price polling is retry-until-usable; bounds are opt-in
- The gateway imposes no request timeout unless configured

============================================================
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


# ============================================================
# ENDPOINTS
# ============================================================

DEFAULT_HOST = "https://api.mexc.com/api/v3"

TICKER_PRICE_PATH = "/ticker/price"
ORDER_PATH = "/order"

API_KEY_HEADER = "x-mexc-apikey"


# ============================================================
# GATEWAY CONFIGURATION
# ============================================================

@dataclass
class GatewayConfig:
    """
    Exchange connection settings.
    """

    host: str = DEFAULT_HOST
    """Base URL including the API version prefix."""

    api_key: str = ""
    """API key sent in the x-mexc-apikey header."""

    api_secret: str = ""
    """Secret used to HMAC-sign order requests."""

    quote_order_qty: Decimal = Decimal("6")
    """Quote amount spent by every automatic market buy."""

    request_timeout_seconds: Optional[float] = None
    """Total request timeout; None leaves outbound calls unbounded."""

    def __post_init__(self):
        self.host = self.host.rstrip("/")

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)


# ============================================================
# PRICE POLL CONFIGURATION
# ============================================================

@dataclass
class PricePollConfig:
    """
    Retry settings for polling the first tradeable price.

    A missing or zero price means "not yet tradeable"; the poller
    sleeps interval_seconds and tries again.
    """

    interval_seconds: float = 0.1
    """Sleep between attempts."""

    max_attempts: int = 0
    """Maximum attempts; 0 polls until a price appears."""

    max_seconds: float = 0.0
    """Maximum elapsed time; 0 polls until a price appears."""
