"""Service management API endpoints.

Every route requires the live session; routes that change state also
require the CSRF header.
"""

import logging

from fastapi import APIRouter, HTTPException, Query, status

from lightsail_panel.api.deps import AuditServiceDep, AuthDep, AuthServiceDep, CSRFDep, SystemdServiceDep
from lightsail_panel.schemas.auth import SuccessResponse
from lightsail_panel.schemas.service import (
    EnvResponse,
    EnvRevealRequest,
    EnvRevealResponse,
    EnvUpdateRequest,
    LogsResponse,
    ServiceActionRequest,
    ServiceStatus,
)
from lightsail_panel.services.audit import AuditAction
from lightsail_panel.services.shell import (
    DEFAULT_LOG_LINES,
    MAX_LOG_LINES,
    ShellError,
    journalctl,
    validate_service_name,
)
from lightsail_panel.services.systemd import (
    EnvFileNotConfiguredError,
    ServiceNotFoundError,
    mask_entries,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/services",
    tags=["services"],
)

_ACTION_AUDIT = {
    "start": AuditAction.SERVICE_START,
    "stop": AuditAction.SERVICE_STOP,
    "restart": AuditAction.SERVICE_RESTART,
}


def _check_name(name: str) -> None:
    if not validate_service_name(name):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid service name")


def _env_file_or_404(systemd: SystemdServiceDep, name: str) -> str:
    try:
        return systemd.get_env_file(name)
    except ServiceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found") from e
    except EnvFileNotConfiguredError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No env file configured"
        ) from e


@router.get("", response_model=list[ServiceStatus])
async def list_services(_: AuthDep, systemd: SystemdServiceDep) -> list[ServiceStatus]:
    """List discovered services with live status."""
    return await systemd.get_all_statuses()


@router.get("/{name}", response_model=ServiceStatus)
async def get_service(name: str, _: AuthDep, systemd: SystemdServiceDep) -> ServiceStatus:
    """Get live status for one service."""
    _check_name(name)
    try:
        return await systemd.get_status(name)
    except ServiceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found") from e


@router.post("/{name}", response_model=ServiceStatus)
async def service_action(
    name: str,
    request: ServiceActionRequest,
    auth: CSRFDep,
    systemd: SystemdServiceDep,
    audit: AuditServiceDep,
) -> ServiceStatus:
    """Start, stop or restart a service and return its refreshed status."""
    _check_name(name)

    await audit.log(_ACTION_AUDIT[request.action], auth.ip, name)

    try:
        await systemd.perform_action(name, request.action)
        return await systemd.get_status(name)
    except ServiceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found") from e
    except ShellError as e:
        logger.error(f"Service {request.action} failed for {name}: {e} {e.stderr}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to perform action",
        ) from e


@router.get("/{name}/env", response_model=EnvResponse)
async def read_env(
    name: str,
    auth: AuthDep,
    systemd: SystemdServiceDep,
    audit: AuditServiceDep,
) -> EnvResponse:
    """Read a service's env file with secret-looking values masked."""
    _check_name(name)
    env_path = _env_file_or_404(systemd, name)

    await audit.log(AuditAction.ENV_READ, auth.ip, name)

    entries = await systemd.read_env_file(env_path)
    return EnvResponse(entries=mask_entries(entries), path=env_path)


@router.put("/{name}/env", response_model=SuccessResponse)
async def write_env(
    name: str,
    request: EnvUpdateRequest,
    auth: CSRFDep,
    auth_service: AuthServiceDep,
    systemd: SystemdServiceDep,
    audit: AuditServiceDep,
) -> SuccessResponse:
    """Replace a service's env file.

    Requires the panel password again, even with a valid session. The
    previous file is kept as ``<path>.bak.<timestamp>``.
    """
    _check_name(name)

    if not await auth_service.verify_password(request.password):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid password")

    env_path = _env_file_or_404(systemd, name)

    await audit.log(AuditAction.ENV_WRITE, auth.ip, name, f"{len(request.entries)} entries")

    try:
        await systemd.write_env_file(env_path, list(request.entries))
    except ShellError as e:
        logger.error(f"Env write failed for {name}: {e} {e.stderr}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to write env file",
        ) from e

    return SuccessResponse()


@router.post("/{name}/env/reveal", response_model=EnvRevealResponse)
async def reveal_env_value(
    name: str,
    request: EnvRevealRequest,
    auth: CSRFDep,
    systemd: SystemdServiceDep,
    audit: AuditServiceDep,
) -> EnvRevealResponse:
    """Return the unmasked value of a single env key."""
    _check_name(name)
    env_path = _env_file_or_404(systemd, name)

    await audit.log(AuditAction.ENV_REVEAL, auth.ip, name, request.key)

    for entry in await systemd.read_env_file(env_path):
        if entry.key == request.key:
            return EnvRevealResponse(value=entry.value)

    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Key not found")


@router.get("/{name}/logs", response_model=LogsResponse)
async def get_logs(
    name: str,
    _: AuthDep,
    lines: int = Query(DEFAULT_LOG_LINES, ge=1, le=MAX_LOG_LINES, description="Number of lines"),
    since: str | None = Query(None, max_length=32, description="e.g. 30m, 2h, 2026-01-01"),
) -> LogsResponse:
    """Tail the journal for a service."""
    _check_name(name)
    try:
        output = await journalctl(name, lines=lines, since=since)
    except ShellError as e:
        logger.error(f"journalctl failed for {name}: {e} {e.stderr}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch logs",
        ) from e
    return LogsResponse(logs=output)
