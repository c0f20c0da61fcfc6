"""Health check endpoint.

Public so that a reverse proxy or uptime monitor can probe it without a
session. Reports nothing beyond liveness and version.
"""

from fastapi import APIRouter
from pydantic import BaseModel

from lightsail_panel.api.deps import SettingsDep

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(status="healthy", version=settings.app_version)
