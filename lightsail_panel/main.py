"""Lightsail Panel - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from lightsail_panel.api import api_router
from lightsail_panel.api.error_handlers import (
    authorization_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from lightsail_panel.api.health import router as health_router
from lightsail_panel.core import setup_logging
from lightsail_panel.core.config import Settings, get_settings
from lightsail_panel.core.logging import get_logger
from lightsail_panel.middleware import SecurityHeadersMiddleware
from lightsail_panel.services import (
    AuditService,
    AuthService,
    CSRFGuard,
    IPAllowlist,
    LoginRateLimiter,
    LoginRateLimitPolicy,
    SessionStore,
    Signer,
    SystemdService,
)
from lightsail_panel.services.auth import AuthorizationError
from lightsail_panel.services.rate_limit_cleanup import rate_limit_cleanup_loop

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


def build_auth_service(settings: Settings, audit: AuditService) -> AuthService:
    """Wire the signer, session store, limiter, CSRF guard and allowlist."""
    signer = Signer(settings.panel_secret)
    sessions = SessionStore(signer, max_age_seconds=settings.session_max_age_seconds)
    rate_limiter = LoginRateLimiter(
        LoginRateLimitPolicy(
            max_attempts=settings.login_max_attempts,
            window_seconds=settings.login_window_seconds,
            lockout_attempts=settings.lockout_attempts,
            lockout_seconds=settings.lockout_duration_seconds,
        )
    )
    return AuthService(
        password_hash=settings.panel_password_hash,
        sessions=sessions,
        rate_limiter=rate_limiter,
        csrf=CSRFGuard(sessions),
        allowlist=IPAllowlist(settings.allowed_ips_list),
        audit=audit,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings
    auth_service: AuthService = app.state.auth_service

    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
        audit_level=settings.audit_log_level,
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    cleanup_task = asyncio.create_task(
        rate_limit_cleanup_loop(
            auth_service.rate_limiter,
            interval_seconds=settings.rate_limit_cleanup_interval_seconds,
        )
    )
    cleanup_task.add_done_callback(task_done_callback)

    yield

    logger.info("Shutting down...")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    All authentication state lives on ``app.state`` and is owned by the
    returned application, so each call yields an independent panel.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Single-operator systemd service control panel",
        version=settings.app_version,
        lifespan=lifespan,
        # The API schema is not served unless debugging
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    audit_service = AuditService(settings.audit_log_path or None)
    app.state.settings = settings
    app.state.audit_service = audit_service
    app.state.auth_service = build_auth_service(settings, audit_service)
    app.state.systemd_service = SystemdService(
        settings.systemd_dir, excluded=settings.excluded_services_set
    )

    app.add_middleware(SecurityHeadersMiddleware, force_hsts=settings.is_production)

    app.add_exception_handler(AuthorizationError, authorization_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api

    return app


# Application instance
app = create_app()
