"""Host metrics endpoint."""

from fastapi import APIRouter

from lightsail_panel.api.deps import AuthDep
from lightsail_panel.schemas.system import SystemInfoResponse
from lightsail_panel.services.system_metrics import collect_system_info

router = APIRouter(tags=["system"])


@router.get("/system", response_model=SystemInfoResponse)
async def get_system_info(_: AuthDep) -> SystemInfoResponse:
    """Hostname, uptime, memory and root disk usage."""
    return await collect_system_info()
