"""
Health check endpoint.
Returns system status and uptime information.
"""

from fastapi import APIRouter

from teamreview.schemas.health import HealthResponse
from teamreview.deps.di_container import get_container

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def get_health() -> HealthResponse:
    """
    Health check endpoint.
    Returns system status, uptime, transaction policy and health checks.
    """
    return await get_container().health_controller().get_health()
