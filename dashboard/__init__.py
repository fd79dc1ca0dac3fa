"""
Dashboard Package.

REST API over the listing monitor.

Modules:
- main: application factory
- routers/: symbol, maintenance and health endpoints
- services: ListingService to schema translation
"""

from .main import create_app

__all__ = ["create_app"]
