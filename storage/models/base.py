"""
Base ORM Model and Column Types.

============================================================
PURPOSE
============================================================
Provides the declarative base shared by all ORM models of the
listing monitor.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- UTCDateTime: timezone-aware datetime column that always
  loads as UTC (SQLite drops tzinfo on round-trip)

============================================================
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Datetime column normalized to UTC on write and read.

    Naive values are assumed to already be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    All models in the listing monitor inherit from this base.
    """

    type_annotation_map = {
        datetime: UTCDateTime(),
    }
