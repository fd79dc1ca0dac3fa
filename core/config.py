"""
Core Module - Settings.

============================================================
RESPONSIBILITY
============================================================
Loads process configuration from the environment.

- Reads an optional .env file (python-dotenv)
- Builds the per-package config dataclasses
- Fails fast on malformed numeric values

============================================================
ENVIRONMENT
============================================================
MEXC_HOST, MEXC_API_KEY, MEXC_API_SECRET,
MEXC_REQUEST_TIMEOUT_SECONDS, QUOTE_ORDER_QTY, QUOTE_ASSET,
HOLDING_WINDOW_SECONDS, MINUTE_SAMPLE_DELAY_SECONDS,
START_LEAD_SECONDS, SAMPLE_THRESHOLD, SAMPLE_INTERVAL_SECONDS,
RECONCILE_INTERVAL_SECONDS, PRICE_POLL_INTERVAL_SECONDS,
PRICE_POLL_MAX_ATTEMPTS, PRICE_POLL_MAX_SECONDS,
LISTING_UTC_OFFSET, DATABASE_URL, DATABASE_ECHO, LOG_LEVEL

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from dotenv import load_dotenv

from exchange_gateway.config import DEFAULT_HOST, GatewayConfig, PricePollConfig
from lifecycle.config import LifecycleConfig
from lifecycle.naming import parse_utc_offset
from storage.database import DEFAULT_DATABASE_URL, DatabaseConfig

from .exceptions import InvalidConfigError, MissingConfigError


logger = logging.getLogger(__name__)


# ============================================================
# ENV PARSING HELPERS
# ============================================================

def _env_str(env: Mapping[str, str], key: str, default: str) -> str:
    value = env.get(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "expected a number")
    if value < 0:
        raise InvalidConfigError(key, raw, "must not be negative")
    return value


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "expected an integer")
    if value < 0:
        raise InvalidConfigError(key, raw, "must not be negative")
    return value


def _env_decimal(env: Mapping[str, str], key: str, default: Decimal) -> Decimal:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise InvalidConfigError(key, raw, "expected a decimal amount")
    if value <= 0:
        raise InvalidConfigError(key, raw, "must be positive")
    return value


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


# ============================================================
# SETTINGS
# ============================================================

@dataclass
class Settings:
    """Complete process configuration."""

    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    price_poll: PricePollConfig = field(default_factory=PricePollConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
    ) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read instead of os.environ
            dotenv: Whether to load a .env file first
        """
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ

        timeout = _env_float(env, "MEXC_REQUEST_TIMEOUT_SECONDS", 0.0)

        gateway = GatewayConfig(
            host=_env_str(env, "MEXC_HOST", DEFAULT_HOST),
            api_key=env.get("MEXC_API_KEY", ""),
            api_secret=env.get("MEXC_API_SECRET", ""),
            quote_order_qty=_env_decimal(env, "QUOTE_ORDER_QTY", Decimal("6")),
            request_timeout_seconds=timeout or None,
        )

        price_poll = PricePollConfig(
            interval_seconds=_env_float(env, "PRICE_POLL_INTERVAL_SECONDS", 0.1),
            max_attempts=_env_int(env, "PRICE_POLL_MAX_ATTEMPTS", 0),
            max_seconds=_env_float(env, "PRICE_POLL_MAX_SECONDS", 0.0),
        )

        lifecycle = LifecycleConfig(
            holding_window_seconds=_env_float(env, "HOLDING_WINDOW_SECONDS", 3600.0),
            minute_sample_delay_seconds=_env_float(env, "MINUTE_SAMPLE_DELAY_SECONDS", 60.0),
            start_lead_seconds=_env_float(env, "START_LEAD_SECONDS", 1.0),
            sample_threshold=_env_int(env, "SAMPLE_THRESHOLD", 24),
            sample_interval_seconds=_env_float(env, "SAMPLE_INTERVAL_SECONDS", 3600.0),
            reconcile_interval_seconds=_env_float(env, "RECONCILE_INTERVAL_SECONDS", 300.0),
            quote_asset=_env_str(env, "QUOTE_ASSET", "USDT").upper(),
            listing_utc_offset=_env_str(env, "LISTING_UTC_OFFSET", "+04:00"),
        )

        if lifecycle.sample_threshold < 1:
            raise InvalidConfigError("SAMPLE_THRESHOLD", lifecycle.sample_threshold, "must be at least 1")
        if lifecycle.sample_interval_seconds <= 0:
            raise InvalidConfigError("SAMPLE_INTERVAL_SECONDS", lifecycle.sample_interval_seconds, "must be positive")
        if lifecycle.reconcile_interval_seconds <= 0:
            raise InvalidConfigError("RECONCILE_INTERVAL_SECONDS", lifecycle.reconcile_interval_seconds, "must be positive")
        try:
            parse_utc_offset(lifecycle.listing_utc_offset)
        except ValueError as e:
            raise InvalidConfigError("LISTING_UTC_OFFSET", lifecycle.listing_utc_offset, str(e))

        database = DatabaseConfig(
            url=_env_str(env, "DATABASE_URL", DEFAULT_DATABASE_URL),
            echo=_env_bool(env, "DATABASE_ECHO", False),
        )

        return cls(
            gateway=gateway,
            price_poll=price_poll,
            lifecycle=lifecycle,
            database=database,
            log_level=_env_str(env, "LOG_LEVEL", "INFO").upper(),
        )

    def require_credentials(self) -> None:
        """
        Raises:
            MissingConfigError: API key or secret not set
        """
        if not self.gateway.api_key:
            raise MissingConfigError("MEXC_API_KEY")
        if not self.gateway.api_secret:
            raise MissingConfigError("MEXC_API_SECRET")
