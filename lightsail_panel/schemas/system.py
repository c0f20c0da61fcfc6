"""Pydantic schemas for host metrics."""

from pydantic import BaseModel


class UsageStats(BaseModel):
    total: int = 0
    used: int = 0
    percent: int = 0


class SystemInfoResponse(BaseModel):
    """Host-level metrics shown in the panel header."""

    hostname: str
    uptime: int
    memory: UsageStats
    disk: UsageStats
