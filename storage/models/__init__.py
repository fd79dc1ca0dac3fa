"""
Storage Models Package.

ORM models for the listing monitor database.

============================================================
MODEL ORGANIZATION
============================================================
- base.py: Base declarative class, UTCDateTime column type
- listing.py: Symbol, Order, History

============================================================
"""

from .base import Base, UTCDateTime
from .listing import History, Order, Symbol

__all__ = [
    "Base",
    "UTCDateTime",
    "Symbol",
    "Order",
    "History",
]
