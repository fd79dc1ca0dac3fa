"""
Symbol Naming and State Derivation Tests.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from core.exceptions import InvalidSymbolError
from lifecycle import (
    SymbolState,
    derive_state,
    normalize_symbol_name,
    parse_listing_instant,
    parse_utc_offset,
)


class TestNormalizeSymbolName:
    """Tests for normalize_symbol_name."""

    def test_base_asset_gets_quote_suffix(self):
        assert normalize_symbol_name("abc") == "ABCUSDT"

    def test_pair_name_kept(self):
        assert normalize_symbol_name(" abcusdt ") == "ABCUSDT"

    def test_quote_asset_alone_is_suffixed(self):
        assert normalize_symbol_name("usdt") == "USDTUSDT"

    def test_other_quote_asset(self):
        assert normalize_symbol_name("abc", quote_asset="usdc") == "ABCUSDC"

    @pytest.mark.parametrize("raw", ["", "   ", "ab c", "abc/usdt", None])
    def test_invalid_names(self, raw):
        with pytest.raises(InvalidSymbolError):
            normalize_symbol_name(raw)


class TestListingInstant:
    """Tests for parse_utc_offset / parse_listing_instant."""

    @pytest.mark.parametrize("text, hours", [("+04:00", 4), ("-0530", -5.5), ("+4", 4), ("Z", 0), ("utc", 0)])
    def test_offsets(self, text, hours):
        assert parse_utc_offset(text).utcoffset(None) == timedelta(hours=hours)

    @pytest.mark.parametrize("text", ["4", "+25:00", "GMT+4", ""])
    def test_invalid_offsets(self, text):
        with pytest.raises(ValueError):
            parse_utc_offset(text)

    def test_naive_instant_uses_default_offset(self):
        instant = parse_listing_instant("2025-03-01T16:00:00", "+04:00")

        assert instant == datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_aware_instant_converted_to_utc(self):
        instant = parse_listing_instant("2025-03-01T16:00:00Z", "+04:00")

        assert instant == datetime(2025, 3, 1, 16, 0, tzinfo=timezone.utc)
        assert instant.utcoffset() == timedelta(0)

    def test_datetime_input(self):
        naive = datetime(2025, 3, 1, 16, 0)

        assert parse_listing_instant(naive, "+00:00") == datetime(2025, 3, 1, 16, 0, tzinfo=timezone.utc)

    def test_garbage(self):
        with pytest.raises(InvalidSymbolError):
            parse_listing_instant("next friday")


class TestDeriveState:
    """Tests for derive_state."""

    @staticmethod
    def _symbol(is_listed=False, is_finished=False):
        return SimpleNamespace(is_listed=is_listed, is_finished=is_finished)

    def test_awaiting_listing(self):
        assert derive_state(self._symbol(), False, False) is SymbolState.AWAITING_LISTING

    def test_listed_without_orders(self):
        assert derive_state(self._symbol(is_listed=True), False, False) is SymbolState.LISTED

    def test_awaiting_sale(self):
        assert derive_state(self._symbol(is_listed=True), True, False) is SymbolState.AWAITING_SALE

    def test_sold(self):
        assert derive_state(self._symbol(is_listed=True), False, True) is SymbolState.SOLD

    def test_finished_wins(self):
        state = derive_state(self._symbol(is_listed=True, is_finished=True), True, False)

        assert state is SymbolState.FINISHED
        assert state.is_terminal()
        assert not SymbolState.SOLD.is_terminal()
