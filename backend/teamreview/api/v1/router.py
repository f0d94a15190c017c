"""
API v1 router that aggregates all endpoint routers.
"""

from fastapi import APIRouter

from teamreview.api.v1.endpoints import health, timesheets

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(timesheets.router, prefix="/timesheets", tags=["timesheets"])
