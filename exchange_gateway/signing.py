"""
Exchange Gateway - Request Signing.

============================================================
PURPOSE
============================================================
Builds the canonical query string of a signed MEXC request and
appends its HMAC-SHA256 signature.

CANONICALIZATION:
1. Drop parameters named signature or timestamp
2. Drop blank values and disabled parameters
3. Append timestamp=<epoch millis>
4. Join key=value pairs with & in insertion order

SIGNING:
    signature = hex(HMAC-SHA256(secret, canonical_query))
    query     = canonical_query + "&signature=" + signature

Values are joined verbatim (no percent-encoding); the signature
covers exactly the bytes sent on the wire.

============================================================
"""

import hashlib
import hmac
from typing import Any, Dict, Iterable

from .types import QueryParam


RESERVED_KEYS = ("signature", "timestamp")


def is_blank(value: Any) -> bool:
    """True for None and for strings that are empty or whitespace only."""
    if value is None:
        return True
    return str(value).strip() == ""


def canonical_query(params: Iterable[QueryParam], timestamp_ms: int) -> str:
    """
    Build the string that is signed.

    A key repeated in params keeps its first position and its last value.
    """
    pairs: Dict[str, str] = {}

    for param in params:
        if param.key in RESERVED_KEYS:
            continue
        if param.disabled or is_blank(param.value):
            continue
        pairs[param.key] = str(param.value)

    pairs["timestamp"] = str(timestamp_ms)

    return "&".join(f"{key}={value}" for key, value in pairs.items())


def sign(payload: str, secret: str) -> str:
    """Hex-encoded HMAC-SHA256 of payload keyed by secret."""
    return hmac.new(
        secret.encode(),
        payload.encode(),
        hashlib.sha256,
    ).hexdigest()


def signed_query_string(
    params: Iterable[QueryParam],
    secret: str,
    timestamp_ms: int,
) -> str:
    """Canonical query with the signature appended."""
    query = canonical_query(params, timestamp_ms)
    return f"{query}&signature={sign(query, secret)}"
