"""Pydantic schemas for authentication API."""

from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Request for login. An empty password is rejected by the route with 400."""

    password: str | None = Field(None, max_length=1024)


class SuccessResponse(BaseModel):
    """Generic success response."""

    success: bool = True


class SessionResponse(BaseModel):
    """Current session information."""

    authenticated: bool
    ip: str | None = None


class AuthErrorResponse(BaseModel):
    """Body of every authentication/authorization failure."""

    error: str
    kind: str
    remaining: int | None = None
    retry_after_ms: int | None = None
