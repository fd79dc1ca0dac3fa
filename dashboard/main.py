"""
Dashboard API Application.

Builds the FastAPI app that serves the listing monitor.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import Settings
from core.exceptions import ListingMonitorError
from lifecycle.runtime import ListingRuntime
from storage.repositories import RepositoryException
from dashboard.errors import http_error
from dashboard.routers import health, symbols
from dashboard.routers.symbols import get_service
from dashboard.schemas import OverviewResponse
from dashboard.services import DashboardService


def create_app(runtime: Optional[ListingRuntime] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    The runtime is started and stopped with the application lifespan.
    Without an explicit runtime one is built from settings (or the
    environment).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = runtime or ListingRuntime(settings or Settings.from_env())
        await active.start()
        app.state.runtime = active
        try:
            yield
        finally:
            await active.stop()
            app.state.runtime = None

    app = FastAPI(
        title="Listing Monitor API",
        description="Track new exchange listings, their automatic orders and price history.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS (Allow local frontend development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(symbols.router)
    app.include_router(health.router)

    @app.get("/", response_model=OverviewResponse)
    async def root(service: DashboardService = Depends(get_service)):
        """Listed symbols and symbols waiting for their sell."""
        try:
            listed = await service.list_symbols(is_listed=True)
            not_sold = await service.list_not_sold()
        except (ListingMonitorError, RepositoryException) as e:
            raise http_error(e)
        return OverviewResponse(success=True, listed=listed, not_sold=not_sold)

    return app
