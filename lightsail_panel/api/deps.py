"""Request-boundary dependencies: client address, auth guards and cookies."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request, Response

from lightsail_panel.core.config import Settings
from lightsail_panel.core.request_utils import get_client_ip
from lightsail_panel.services.audit import AuditService
from lightsail_panel.services.auth import AuthorizationError, AuthService
from lightsail_panel.services.csrf import CSRF_COOKIE, CSRF_HEADER
from lightsail_panel.services.systemd import SystemdService

SESSION_COOKIE = "lsp_session"


@dataclass(frozen=True)
class AuthContext:
    """Identity of an authorized request."""

    ip: str
    session_ip: str | None


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_audit_service(request: Request) -> AuditService:
    return request.app.state.audit_service


def get_systemd_service(request: Request) -> SystemdService:
    return request.app.state.systemd_service


def get_request_ip(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    return get_client_ip(request, settings.trusted_proxy_ips_set)


async def require_auth(
    request: Request,
    ip: Annotated[str, Depends(get_request_ip)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthContext:
    """Reject the request with 401 unless it carries the live session cookie."""
    check = auth_service.check_auth(ip, request.cookies.get(SESSION_COOKIE))
    if not check.ok:
        raise AuthorizationError(check.failure)
    return AuthContext(ip=ip, session_ip=check.session_ip)


async def require_csrf(
    request: Request,
    auth: Annotated[AuthContext, Depends(require_auth)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> AuthContext:
    """Reject a mutating request with 403 unless its CSRF header matches."""
    check = auth_service.check_csrf(request.headers.get(CSRF_HEADER))
    if not check.ok:
        raise AuthorizationError(check.failure)
    return auth


def set_session_cookies(
    response: Response,
    session_cookie: str,
    csrf_token: str,
    *,
    secure: bool,
    max_age: int,
) -> None:
    """Set the signed session cookie and the script-readable CSRF cookie."""
    response.set_cookie(
        SESSION_COOKIE,
        session_cookie,
        max_age=max_age,
        path="/",
        secure=secure,
        httponly=True,
        samesite="strict",
    )
    response.set_cookie(
        CSRF_COOKIE,
        csrf_token,
        max_age=max_age,
        path="/",
        secure=secure,
        # Client-side code reads this cookie to fill the X-CSRF-Token header
        httponly=False,
        samesite="strict",
    )


def clear_session_cookies(response: Response, *, secure: bool) -> None:
    response.delete_cookie(SESSION_COOKIE, path="/", secure=secure, httponly=True, samesite="strict")
    response.delete_cookie(CSRF_COOKIE, path="/", secure=secure, samesite="strict")


SettingsDep = Annotated[Settings, Depends(get_settings)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]
SystemdServiceDep = Annotated[SystemdService, Depends(get_systemd_service)]
RequestIPDep = Annotated[str, Depends(get_request_ip)]
AuthDep = Annotated[AuthContext, Depends(require_auth)]
CSRFDep = Annotated[AuthContext, Depends(require_csrf)]
