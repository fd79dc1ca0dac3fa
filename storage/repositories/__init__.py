"""
Repository Layer Package.

============================================================
PURPOSE
============================================================
The repository layer is the only gateway to persistent storage.
All database access goes through SymbolStore.

============================================================
"""

from .exceptions import (
    ConnectionError,
    DuplicateRecordError,
    ImmutableRecordError,
    QueryError,
    RecordNotFoundError,
    RepositoryException,
)
from .symbol_repo import SymbolStore

__all__ = [
    "SymbolStore",
    "RepositoryException",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "ImmutableRecordError",
    "QueryError",
    "ConnectionError",
]
