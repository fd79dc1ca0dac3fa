"""
Shared fixtures.

The clock is a MockClock pinned to FIXED_NOW; the database is an
in-memory SQLite database (aiosqlite) created per test.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from core.clock import MockClock
from exchange_gateway import MockGateway
from lifecycle.config import LifecycleConfig
from lifecycle.transitions import TransitionContext
from storage.database import Database, DatabaseConfig
from storage.repositories import SymbolStore


FIXED_NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def clock():
    return MockClock(FIXED_NOW)


@pytest_asyncio.fixture
async def database():
    db = Database(DatabaseConfig(url=MEMORY_URL))
    await db.create_tables()
    yield db
    await db.dispose()


@pytest.fixture
def store(database, clock):
    return SymbolStore(database.session_factory, clock)


@pytest.fixture
def gateway():
    return MockGateway()


@pytest.fixture
def lifecycle_config():
    return LifecycleConfig()


@pytest.fixture
def ctx(store, gateway, lifecycle_config, clock):
    return TransitionContext(
        store=store,
        gateway=gateway,
        config=lifecycle_config,
        clock=clock,
    )
