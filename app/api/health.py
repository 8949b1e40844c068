"""
Health check endpoint.
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel
from datetime import datetime

from app.utils.config import get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str
    timestamp: datetime
    watching: bool
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Verifies:
    - API is running
    - Watch folder is being observed when auto-convert is enabled
    """
    settings = get_settings()
    service = request.app.state.service
    status = service.status()

    healthy = status.watching or not status.enabled

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(),
        watching=status.watching,
        version=settings.api_version
    )
