"""Pydantic schemas for service inventory API."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class ServiceInfo(BaseModel):
    """Static service metadata parsed from a unit file."""

    name: str
    unit: str
    description: str
    working_dir: str | None = None
    env_file: str | None = None
    exec_start: str | None = None


class ServiceStatus(ServiceInfo):
    """Service metadata enriched with live systemd state."""

    active: str = Field(description="ActiveState, e.g. active, inactive, failed")
    sub: str = Field(description="SubState, e.g. running, dead")
    pid: int | None = None
    memory_bytes: int | None = None
    uptime_seconds: int | None = None
    started_at: str | None = None


class ServiceActionRequest(BaseModel):
    """Request to start, stop or restart a service."""

    action: Literal["start", "stop", "restart"]


class EnvEntry(BaseModel):
    """A single KEY=value line from an env file."""

    key: str
    value: str


class EnvEntryInput(EnvEntry):
    """An env entry submitted for writing.

    Keys and values are written one per line, so neither may contain a
    line break and keys may not contain "=".
    """

    key: str = Field(..., min_length=1, max_length=256)
    value: str = Field(..., max_length=16384)

    @field_validator("key")
    @classmethod
    def validate_key(cls, v: str) -> str:
        if "=" in v or v.strip() != v or v.startswith("#"):
            raise ValueError("Invalid env key")
        if "\n" in v or "\r" in v:
            raise ValueError("Env keys cannot contain line breaks")
        return v

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        if "\n" in v or "\r" in v:
            raise ValueError("Env values cannot contain line breaks")
        return v


class MaskedEnvEntry(EnvEntry):
    """An env entry as shown to the operator."""

    sensitive: bool


class EnvResponse(BaseModel):
    entries: list[MaskedEnvEntry]
    path: str


class EnvUpdateRequest(BaseModel):
    """Replace an env file. Requires re-entering the panel password."""

    entries: list[EnvEntryInput]
    password: str = Field(..., min_length=1)


class EnvRevealRequest(BaseModel):
    key: str = Field(..., min_length=1)


class EnvRevealResponse(BaseModel):
    value: str


class LogsResponse(BaseModel):
    logs: str
