"""
Settings Tests.
"""

from decimal import Decimal

import pytest

from core.config import Settings
from core.exceptions import (
    InvalidConfigError,
    ListingMonitorError,
    MissingConfigError,
    UnmatchedBuyExistsError,
)


class TestSettingsFromEnv:
    """Tests for Settings.from_env."""

    def test_defaults(self):
        settings = Settings.from_env(env={})

        assert settings.gateway.host == "https://api.mexc.com/api/v3"
        assert settings.gateway.quote_order_qty == Decimal("6")
        assert settings.gateway.request_timeout_seconds is None
        assert settings.price_poll.max_attempts == 0
        assert settings.lifecycle.holding_window_seconds == 3600
        assert settings.lifecycle.sample_threshold == 24
        assert settings.lifecycle.listing_utc_offset == "+04:00"
        assert settings.database.url.startswith("sqlite+aiosqlite")
        assert settings.log_level == "INFO"

    def test_overrides(self):
        settings = Settings.from_env(env={
            "MEXC_API_KEY": "key",
            "MEXC_API_SECRET": "secret",
            "QUOTE_ORDER_QTY": "10.5",
            "QUOTE_ASSET": "usdc",
            "HOLDING_WINDOW_SECONDS": "120",
            "PRICE_POLL_MAX_ATTEMPTS": "50",
            "MEXC_REQUEST_TIMEOUT_SECONDS": "15",
            "DATABASE_URL": "postgresql+asyncpg://u:p@db/listings",
            "DATABASE_ECHO": "true",
            "LOG_LEVEL": "debug",
        })

        assert settings.gateway.has_credentials
        assert settings.gateway.quote_order_qty == Decimal("10.5")
        assert settings.gateway.request_timeout_seconds == 15
        assert settings.lifecycle.quote_asset == "USDC"
        assert settings.lifecycle.holding_window_seconds == 120
        assert settings.price_poll.max_attempts == 50
        assert settings.database.echo is True
        assert not settings.database.is_sqlite
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("key, value", [
        ("HOLDING_WINDOW_SECONDS", "soon"),
        ("PRICE_POLL_MAX_ATTEMPTS", "1.5"),
        ("QUOTE_ORDER_QTY", "-1"),
        ("SAMPLE_THRESHOLD", "0"),
        ("SAMPLE_INTERVAL_SECONDS", "0"),
        ("LISTING_UTC_OFFSET", "Asia/Dubai"),
    ])
    def test_invalid_values(self, key, value):
        with pytest.raises(InvalidConfigError):
            Settings.from_env(env={key: value})


class TestRequireCredentials:
    """Tests for Settings.require_credentials."""

    def test_missing_key(self):
        with pytest.raises(MissingConfigError):
            Settings.from_env(env={"MEXC_API_SECRET": "s"}).require_credentials()

    def test_missing_secret(self):
        with pytest.raises(MissingConfigError):
            Settings.from_env(env={"MEXC_API_KEY": "k"}).require_credentials()

    def test_complete(self):
        Settings.from_env(env={"MEXC_API_KEY": "k", "MEXC_API_SECRET": "s"}).require_credentials()


class TestErrorLogFormat:
    """Tests for ListingMonitorError.to_log_format."""

    def test_includes_classification_and_context(self):
        line = UnmatchedBuyExistsError("AAAUSDT", "B1").to_log_format()

        assert line.startswith("[MEDIUM/non_recoverable] UnmatchedBuyExistsError:")
        assert "AAAUSDT already has an unsold buy order B1" in line
        assert line.endswith("| symbol=AAAUSDT, order_id=B1")

    def test_without_context(self):
        line = ListingMonitorError("bad value").to_log_format()

        assert line == "[MEDIUM/recoverable] ListingMonitorError: bad value"
