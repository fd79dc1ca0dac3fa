"""
Dashboard API Routers.
"""
from . import health, symbols

__all__ = ["health", "symbols"]
