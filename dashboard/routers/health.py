"""
FastAPI Router for Runtime Health.
"""

from fastapi import APIRouter, Depends

from dashboard.routers.symbols import get_service
from dashboard.schemas import HealthResponse
from dashboard.services import DashboardService

router = APIRouter(tags=["System Health"])


@router.get("/health", response_model=HealthResponse)
async def get_health(service: DashboardService = Depends(get_service)):
    """
    Runtime status and pending timers.
    """
    data = await service.health()
    return HealthResponse(success=data["status"] == "running", data=data)
