"""
Exchange Gateway - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Credential masking for gateway log lines.

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log raw API keys or secrets
2. Mask the x-mexc-apikey header
3. Mask the signature parameter of signed query strings

============================================================
"""

from typing import Dict


# Header names that should be masked
SENSITIVE_HEADERS = {
    "authorization",
    "x-api-key",
    "x-mexc-apikey",
    "api-key",
    "secret",
    "signature",
}

# Parameter names that should be masked
SENSITIVE_PARAMS = {
    "apikey",
    "api_key",
    "secret",
    "signature",
    "sign",
}


def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start

    Returns:
        Masked value
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """Mask sensitive headers."""
    if not headers:
        return {}

    masked = {}
    for key, value in headers.items():
        if key.lower() in SENSITIVE_HEADERS:
            masked[key] = mask_value(str(value))
        else:
            masked[key] = value
    return masked


def mask_query_string(query: str) -> str:
    """Mask sensitive values of a key=value&... query string."""
    if not query:
        return query

    parts = []
    for pair in query.split("&"):
        key, sep, value = pair.partition("=")
        if sep and key.lower() in SENSITIVE_PARAMS:
            parts.append(f"{key}={mask_value(value)}")
        else:
            parts.append(pair)
    return "&".join(parts)
