"""
Dashboard API Tests.

============================================================
PURPOSE
============================================================
HTTP surface of the listing monitor (FastAPI TestClient),
backed by a mock exchange and an in-memory database.

============================================================
"""

import time

import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from dashboard.main import create_app
from exchange_gateway import MockGateway
from lifecycle.runtime import ListingRuntime
from storage.database import Database, DatabaseConfig

from conftest import MEMORY_URL


@pytest.fixture
def runtime(clock):
    return ListingRuntime(
        Settings.from_env(env={}),
        gateway=MockGateway(),
        clock=clock,
        database=Database(DatabaseConfig(url=MEMORY_URL)),
        run_loops=False,
    )


@pytest.fixture
def client(runtime):
    with TestClient(create_app(runtime)) as test_client:
        yield test_client


def _wait_for_state(client, name, state, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/symbols/{name}").json()
        if body.get("state") == state:
            return body
        time.sleep(0.02)
    raise AssertionError(f"{name} never reached {state}")


# ============================================================
# SYMBOLS
# ============================================================

class TestCreateSymbol:
    """Tests for POST /symbols."""

    def test_create_registers_start_timer(self, client):
        response = client.post("/symbols", json={"name": "abc", "listingDate": "2025-01-01T17:00:00"})

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["name"] == "ABCUSDT"
        assert body["data"]["is_listed"] is False

        health = client.get("/health").json()
        assert health["data"]["pending_timers"] == 1
        assert health["data"]["timers"] == ["ABCUSDT:start"]

    def test_duplicate_is_conflict(self, client):
        client.post("/symbols", json={"name": "abc", "listingDate": "2025-01-01T17:00:00"})

        response = client.post("/symbols", json={"name": "ABCUSDT", "listingDate": "2025-01-01T18:00:00"})

        assert response.status_code == 409
        assert response.json()["detail"] == "Symbol already exists"

    def test_invalid_name(self, client):
        response = client.post("/symbols", json={"name": "a b", "listingDate": "2025-01-01T17:00:00"})

        assert response.status_code == 400

    def test_missing_field(self, client):
        response = client.post("/symbols", json={"name": "abc"})

        assert response.status_code == 422


class TestReadSymbols:
    """Tests for symbol listings."""

    def test_list_and_filter(self, client):
        client.post("/symbols", json={"name": "abc", "listingDate": "2025-01-01T17:00:00"})

        all_symbols = client.get("/symbols").json()["data"]
        listed = client.get("/symbols", params={"isListed": "true"}).json()["data"]

        assert [s["name"] for s in all_symbols] == ["ABCUSDT"]
        assert listed == []

    def test_symbol_state(self, client):
        client.post("/symbols", json={"name": "abc", "listingDate": "2025-01-01T17:00:00"})

        body = client.get("/symbols/abc").json()

        assert body["state"] == "AWAITING_LISTING"

    def test_unknown_symbol(self, client):
        assert client.get("/symbols/zzz").status_code == 404

    def test_empty_statistics(self, client):
        body = client.get("/statistics").json()

        assert body["success"] is True
        assert body["data"] == []


# ============================================================
# MAINTENANCE AND ORDERS
# ============================================================

class TestLifecycleFlow:
    """End-to-end flow through the API."""

    def test_restart_buy_and_manual_sell(self, client):
        # listing instant already passed: no timer until restart
        client.post("/symbols", json={"name": "abc", "listingDate": "2025-01-01T12:00:00"})
        assert client.get("/health").json()["data"]["pending_timers"] == 0

        restarted = client.post("/restart-timeouts").json()
        assert restarted["timers"] == ["ABCUSDT:start"]

        _wait_for_state(client, "abc", "AWAITING_SALE")

        [entry] = client.get("/symbols/not-sold").json()["data"]
        assert entry["symbol"]["name"] == "ABCUSDT"
        assert entry["order"]["side"] == "BUY"

        overview = client.get("/").json()
        assert [s["name"] for s in overview["listed"]] == ["ABCUSDT"]

        sold = client.post("/orders/sell", json={"orderId": entry["order"]["id"]}).json()
        assert sold["outcome"] == "SOLD"
        assert sold["order"]["side"] == "SELL"
        assert sold["order"]["orig_qty"] == entry["order"]["orig_qty"]

        assert client.get("/symbols/abc").json()["state"] == "SOLD"
        assert client.get("/symbols/not-sold").json()["data"] == []

    def test_buy_unlisted_symbol_is_conflict(self, client):
        created = client.post("/symbols", json={"name": "abc", "listingDate": "2025-01-01T17:00:00"}).json()

        response = client.post("/orders/buy", json={"symbolId": created["data"]["id"]})

        assert response.status_code == 409

    def test_buy_unknown_symbol(self, client):
        assert client.post("/orders/buy", json={"symbolId": 404}).status_code == 404

    def test_sell_unknown_order(self, client):
        assert client.post("/orders/sell", json={"orderId": 404}).status_code == 404


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["success"] is True
        assert body["data"]["status"] == "running"
        assert body["data"]["exchange"] == "mock"
        assert body["data"]["database"] is True
