"""
FastAPI Router for Symbol and Order Endpoints.

Provides REST API for tracked listings:
- Create and look up symbols
- List symbols still holding a buy
- Daily history statistics
- Restart lifecycle timers
- Manual buy and sell orders
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from core.exceptions import ListingMonitorError
from storage.repositories import RepositoryException
from dashboard.errors import http_error
from dashboard.schemas import (
    BuyRequest,
    CreateSymbolRequest,
    NotSoldResponse,
    OrderActionResponse,
    RestartResponse,
    SellRequest,
    StatisticsResponse,
    SymbolListResponse,
    SymbolResponse,
)
from dashboard.services import DashboardService

router = APIRouter(tags=["Symbols"])


def get_service(request: Request) -> DashboardService:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Runtime not started")
    return DashboardService(runtime)


# =============================================================
# SYMBOLS
# =============================================================

@router.post("/symbols", response_model=SymbolResponse, status_code=status.HTTP_201_CREATED)
async def create_symbol(body: CreateSymbolRequest, service: DashboardService = Depends(get_service)):
    """
    Track a new listing. The start timer is registered immediately.
    """
    try:
        symbol = await service.create_symbol(body.name, body.listing_date)
    except (ListingMonitorError, RepositoryException) as e:
        raise http_error(e)
    return SymbolResponse(success=True, data=symbol)


@router.get("/symbols", response_model=SymbolListResponse)
async def list_symbols(
    is_listed: Optional[bool] = Query(None, alias="isListed"),
    is_finished: Optional[bool] = Query(None, alias="isFinished"),
    service: DashboardService = Depends(get_service),
):
    try:
        symbols = await service.list_symbols(is_listed=is_listed, is_finished=is_finished)
    except (ListingMonitorError, RepositoryException) as e:
        raise http_error(e)
    return SymbolListResponse(success=True, data=symbols)


@router.get("/symbols/not-sold", response_model=NotSoldResponse)
async def list_not_sold(service: DashboardService = Depends(get_service)):
    """
    Symbols holding a buy order without a matching sell.
    """
    try:
        entries = await service.list_not_sold()
    except (ListingMonitorError, RepositoryException) as e:
        raise http_error(e)
    return NotSoldResponse(success=True, data=entries)


@router.get("/symbols/{name}", response_model=SymbolResponse)
async def get_symbol(name: str, service: DashboardService = Depends(get_service)):
    try:
        result = await service.get_symbol(name)
    except (ListingMonitorError, RepositoryException) as e:
        raise http_error(e)
    return SymbolResponse(success=True, **result)


# =============================================================
# MAINTENANCE
# =============================================================

@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(service: DashboardService = Depends(get_service)):
    """
    Start, minute and hourly prices of finished symbols.
    """
    try:
        rows = await service.get_statistics()
    except (ListingMonitorError, RepositoryException) as e:
        raise http_error(e)
    return StatisticsResponse(success=True, data=rows)


@router.post("/restart-timeouts", response_model=RestartResponse)
async def restart_timeouts(service: DashboardService = Depends(get_service)):
    """
    Rebuild all timers from the database.
    """
    try:
        keys = await service.restart_timers()
    except (ListingMonitorError, RepositoryException) as e:
        raise http_error(e)
    return RestartResponse(success=True, timers=keys)


# =============================================================
# MANUAL ORDERS
# =============================================================

@router.post("/orders/buy", response_model=OrderActionResponse)
async def buy_symbol(body: BuyRequest, service: DashboardService = Depends(get_service)):
    try:
        return await service.buy(body.symbol_id, body.quote_order_qty)
    except (ListingMonitorError, RepositoryException) as e:
        raise http_error(e)


@router.post("/orders/sell", response_model=OrderActionResponse)
async def sell_symbol(body: SellRequest, service: DashboardService = Depends(get_service)):
    try:
        return await service.sell(body.order_id)
    except (ListingMonitorError, RepositoryException) as e:
        raise http_error(e)
