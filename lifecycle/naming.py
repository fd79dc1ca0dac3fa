"""
Lifecycle - Symbol Naming and Listing Instants.

Normalizes the inputs of a create request: base asset names become
exchange pair names, naive listing instants get the configured offset.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Union

from core.clock import ensure_utc
from core.exceptions import InvalidSymbolError


_OFFSET_RE = re.compile(r"^([+-])(\d{1,2}):?(\d{2})?$")
_NAME_RE = re.compile(r"^[A-Z0-9]+$")


def parse_utc_offset(value: str) -> timezone:
    """
    Parse "+04:00", "-0530", "+4" or "Z" into a fixed timezone.

    Raises:
        ValueError: unparseable offset
    """
    text = value.strip()
    if text.upper() in ("Z", "UTC"):
        return timezone.utc

    match = _OFFSET_RE.match(text)
    if not match:
        raise ValueError(f"Invalid UTC offset: {value!r}")

    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes or 0))
    if delta >= timedelta(hours=24):
        raise ValueError(f"Invalid UTC offset: {value!r}")
    return timezone(-delta if sign == "-" else delta)


def normalize_symbol_name(raw: str, quote_asset: str = "USDT") -> str:
    """
    "abc" -> "ABCUSDT". Names already ending in the quote asset are kept.

    Raises:
        InvalidSymbolError: blank or non-alphanumeric name
    """
    name = (raw or "").strip().upper()
    quote = quote_asset.strip().upper()

    if not name:
        raise InvalidSymbolError("Symbol name is required")
    if not _NAME_RE.match(name):
        raise InvalidSymbolError("Symbol name must be alphanumeric", name=name)

    if quote and name.endswith(quote) and name != quote:
        return name
    return name + quote


def parse_listing_instant(value: Union[str, datetime], default_offset: str = "+04:00") -> datetime:
    """
    Convert a listing instant to aware UTC.

    Naive values (no offset) are interpreted at default_offset.

    Raises:
        InvalidSymbolError: unparseable instant
    """
    if isinstance(value, datetime):
        instant = value
    else:
        text = (value or "").strip()
        if not text:
            raise InvalidSymbolError("Listing date is required")
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            instant = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidSymbolError(f"Invalid listing date: {value!r}")

    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=parse_utc_offset(default_offset))
    return ensure_utc(instant)
