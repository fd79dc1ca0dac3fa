"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Manages async database connections and sessions.

- Creates the async engine from configuration
- Provides the session factory used by repositories
- Creates tables at startup
- Disposes the connection pool at shutdown

============================================================
DATABASE REQUIREMENTS
============================================================
- PostgreSQL via asyncpg in production
- SQLite via aiosqlite for development and tests
- SQLAlchemy 2.0 async ORM

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from .models import Base
from .repositories.exceptions import ConnectionError as RepositoryConnectionError


logger = logging.getLogger(__name__)


DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./listing_monitor.db"


# ============================================================
# CONFIGURATION
# ============================================================

@dataclass
class DatabaseConfig:
    """Database connection settings."""

    url: str = DEFAULT_DATABASE_URL
    """SQLAlchemy async URL."""

    echo: bool = False
    """Log SQL statements."""

    pool_size: int = 5
    """Connections kept in the pool (server databases only)."""

    pool_recycle: int = 1800
    """Recycle connections after N seconds."""

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and ":memory:" in self.url


# ============================================================
# DATABASE
# ============================================================

class Database:
    """
    Owns the async engine and session factory.

    Usage:
        database = Database(DatabaseConfig(url=...))
        await database.create_tables()
        async with database.session() as session:
            ...
        await database.dispose()
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self._config = config or DatabaseConfig()
        self._engine = self._create_engine()
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            autoflush=False,
        )

    def _create_engine(self) -> AsyncEngine:
        config = self._config
        logger.info(f"Creating database engine for: {config.url.split('@')[-1]}")

        if config.is_memory:
            # A single shared connection keeps the in-memory database alive
            return create_async_engine(
                config.url,
                echo=config.echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )

        if config.is_sqlite:
            return create_async_engine(config.url, echo=config.echo)

        return create_async_engine(
            config.url,
            echo=config.echo,
            pool_size=config.pool_size,
            pool_recycle=config.pool_recycle,
            pool_pre_ping=True,
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker:
        return self._session_factory

    def session(self) -> AsyncSession:
        """Open a new session; use as an async context manager."""
        return self._session_factory()

    async def create_tables(self) -> None:
        """Create all tables if they do not exist."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables ready")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise RepositoryConnectionError("Database", "create_tables", str(e)) from e

    async def health_check(self) -> bool:
        """Check that a connection can be opened."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Database health check failed: {e}")
            return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self._engine.dispose()
        logger.info("Database engine disposed")
