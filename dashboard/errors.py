"""
Error mapping for Dashboard API routes.
"""
import logging

from fastapi import HTTPException, status

from core.exceptions import (
    DuplicateSymbolError,
    LifecycleError,
    ListingMonitorError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong"


def http_error(exc: Exception) -> HTTPException:
    """Translate a domain or storage exception into an HTTP error."""
    if isinstance(exc, DuplicateSymbolError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Symbol already exists")
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, LifecycleError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)

    if isinstance(exc, ListingMonitorError):
        logger.error(f"Request failed: {exc.to_log_format()}")
    else:
        logger.exception("Request failed")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=GENERIC_ERROR)
