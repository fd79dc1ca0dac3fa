"""
Storage Package.

This package manages all data persistence.

Modules:
- database: Async engine and session management
- models/: ORM models
- repositories/: Data access layer
"""

from .database import Database, DatabaseConfig
from .models import Base, History, Order, Symbol
from .repositories import SymbolStore

__all__ = [
    "Database",
    "DatabaseConfig",
    "Base",
    "Symbol",
    "Order",
    "History",
    "SymbolStore",
]
