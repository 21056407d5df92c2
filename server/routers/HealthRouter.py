import os

from fastapi import APIRouter

from server.models.responses import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> HealthResponse:
    """Liveness check. Needs no API key."""
    return HealthResponse(version=os.getenv("APP_VERSION", "unknown"))
