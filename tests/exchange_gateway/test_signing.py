"""
Request Signing Tests.

============================================================
PURPOSE
============================================================
Canonical query construction and HMAC-SHA256 signatures.

============================================================
"""

import hashlib
import hmac
from decimal import Decimal

from exchange_gateway import (
    QueryParam,
    canonical_query,
    market_buy_params,
    market_sell_params,
    sign,
    signed_query_string,
)
from exchange_gateway.types import format_decimal


TIMESTAMP = 1735732800000
SECRET = "test-secret"


def _expected_signature(payload: str) -> str:
    return hmac.new(SECRET.encode(), payload.encode(), hashlib.sha256).hexdigest()


class TestCanonicalQuery:
    """Tests for canonical_query."""

    def test_market_buy_order(self):
        params = market_buy_params("ABCUSDT", Decimal("6"))

        query = canonical_query(params, TIMESTAMP)

        assert query == f"symbol=ABCUSDT&side=BUY&type=MARKET&quoteOrderQty=6&timestamp={TIMESTAMP}"

    def test_blank_and_disabled_params_dropped(self):
        params = [
            QueryParam("symbol", "ABCUSDT"),
            QueryParam("side", "BUY"),
            QueryParam("newClientOrderId", ""),
            QueryParam("recvWindow", "5000", disabled=True),
            QueryParam("type", "MARKET"),
            QueryParam("price", None),
            QueryParam("quoteOrderQty", "6"),
        ]

        query = canonical_query(params, TIMESTAMP)

        assert query == f"symbol=ABCUSDT&side=BUY&type=MARKET&quoteOrderQty=6&timestamp={TIMESTAMP}"

    def test_reserved_keys_replaced(self):
        params = [
            QueryParam("timestamp", "1"),
            QueryParam("symbol", "ABCUSDT"),
            QueryParam("signature", "stale"),
        ]

        query = canonical_query(params, TIMESTAMP)

        assert query == f"symbol=ABCUSDT&timestamp={TIMESTAMP}"
        assert "stale" not in query

    def test_sell_quantity_kept_verbatim(self):
        params = market_sell_params("ABCUSDT", "123.4500")

        query = canonical_query(params, TIMESTAMP)

        assert "quantity=123.4500&" in query


class TestSignature:
    """Tests for sign / signed_query_string."""

    def test_signature_matches_hmac(self):
        payload = f"symbol=ABCUSDT&side=BUY&type=MARKET&quoteOrderQty=6&timestamp={TIMESTAMP}"

        assert sign(payload, SECRET) == _expected_signature(payload)

    def test_signed_query_appends_signature(self):
        params = market_buy_params("ABCUSDT", Decimal("6"))
        payload = f"symbol=ABCUSDT&side=BUY&type=MARKET&quoteOrderQty=6&timestamp={TIMESTAMP}"

        query = signed_query_string(params, SECRET, TIMESTAMP)

        assert query == f"{payload}&signature={_expected_signature(payload)}"

    def test_excluded_param_not_in_signature_input(self):
        with_disabled = [
            QueryParam("symbol", "ABCUSDT"),
            QueryParam("note", "x", disabled=True),
        ]
        without = [QueryParam("symbol", "ABCUSDT")]

        assert signed_query_string(with_disabled, SECRET, TIMESTAMP) == signed_query_string(
            without, SECRET, TIMESTAMP
        )

    def test_different_secret_changes_signature(self):
        payload = "symbol=ABCUSDT&timestamp=1"

        assert sign(payload, SECRET) != sign(payload, "other-secret")


class TestFormatDecimal:
    """Tests for quote amount rendering."""

    def test_integral_amount(self):
        assert format_decimal(Decimal("6")) == "6"
        assert format_decimal(Decimal("6.00")) == "6"

    def test_fractional_amount(self):
        assert format_decimal(Decimal("0.50")) == "0.5"

    def test_no_exponent(self):
        assert format_decimal(Decimal("1E+1")) == "10"
