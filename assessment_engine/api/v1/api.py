"""
API v1 router combining all v1 endpoints.
"""
from fastapi import APIRouter
from assessment_engine.api.v1 import attempts, health, maintenance, reports, sessions

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(health.router, tags=["health"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
api_router.include_router(attempts.router, prefix="/attempts", tags=["attempts"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(
    maintenance.router, prefix="/maintenance", tags=["maintenance"]
)
