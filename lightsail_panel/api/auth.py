"""Authentication API endpoints."""

from fastapi import APIRouter, HTTPException, Request, Response, status
from pydantic import ValidationError

from lightsail_panel.api.deps import (
    AuthDep,
    AuthServiceDep,
    CSRFDep,
    RequestIPDep,
    SettingsDep,
    clear_session_cookies,
    set_session_cookies,
)
from lightsail_panel.schemas.auth import (
    AuthErrorResponse,
    LoginRequest,
    SessionResponse,
    SuccessResponse,
)
from lightsail_panel.services.auth import AuthorizationError

router = APIRouter(prefix="/auth", tags=["auth"])

_AUTH_ERRORS = {
    status.HTTP_401_UNAUTHORIZED: {"model": AuthErrorResponse},
    status.HTTP_403_FORBIDDEN: {"model": AuthErrorResponse},
}


async def _read_password(request: Request) -> str | None:
    """Password from the JSON body, or None for a missing or malformed body."""
    try:
        payload = await request.json()
    except ValueError:
        return None
    try:
        return LoginRequest.model_validate(payload).password
    except ValidationError:
        return None


@router.post(
    "/login",
    response_model=SuccessResponse,
    responses={
        **_AUTH_ERRORS,
        status.HTTP_429_TOO_MANY_REQUESTS: {"model": AuthErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": AuthErrorResponse},
    },
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": LoginRequest.model_json_schema()}},
        }
    },
)
async def login(
    request: Request,
    response: Response,
    ip: RequestIPDep,
    auth_service: AuthServiceDep,
    settings: SettingsDep,
) -> SuccessResponse:
    """Authenticate with the panel password and start a session.

    Logging in replaces any existing session. Failed attempts count
    against a per-address budget (5 per 15 minutes).
    """
    password = await _read_password(request)
    if not password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Password required")

    result = await auth_service.login(password, ip)
    if result.failure is not None:
        raise AuthorizationError(result.failure)
    if result.session is None or result.session_cookie is None:
        raise RuntimeError("Successful login produced no session")

    set_session_cookies(
        response,
        result.session_cookie,
        result.session.csrf_token,
        secure=settings.is_production,
        max_age=settings.session_max_age_seconds,
    )
    return SuccessResponse()


@router.post("/logout", response_model=SuccessResponse, responses=_AUTH_ERRORS)
async def logout(
    response: Response,
    auth: CSRFDep,
    auth_service: AuthServiceDep,
    settings: SettingsDep,
) -> SuccessResponse:
    """End the current session and clear both cookies."""
    await auth_service.logout(auth.ip)
    clear_session_cookies(response, secure=settings.is_production)
    return SuccessResponse()


@router.get("/session", response_model=SessionResponse, responses=_AUTH_ERRORS)
async def get_session(auth: AuthDep) -> SessionResponse:
    """Report that the caller holds the live session."""
    return SessionResponse(authenticated=True, ip=auth.session_ip)
