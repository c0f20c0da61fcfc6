"""Security Audit Logging Service.

Appends one line per security-relevant event to the audit log file:

    [2026-01-01T00:00:00+00:00] [203.0.113.7] [login_failed] [-] 4 attempts remaining

When no audit log path is configured (development), lines go to the
application logger instead.
"""

import asyncio
import logging
import re
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

# Level set by setup_logging(audit_level=...)
logger = logging.getLogger("lightsail_panel.audit")

_CONTROL_CHARS = re.compile(r"[\r\n\t\x00-\x1f\x7f]")

# "password=hunter2" or "token: abc" style fragments in free-form details
_SENSITIVE_ASSIGNMENT = re.compile(
    r"\b(\w*(?:password|secret|token|api_key)\w*)\s*[=:]\s*\S+", re.IGNORECASE
)


class AuditAction(str, Enum):
    """Security audit action types."""

    # Authentication events
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    RATE_LIMITED = "rate_limited"
    BLOCKED_IP = "blocked_ip"

    # Service control events
    SERVICE_START = "service_start"
    SERVICE_STOP = "service_stop"
    SERVICE_RESTART = "service_restart"

    # Environment file events
    ENV_READ = "env_read"
    ENV_WRITE = "env_write"
    ENV_REVEAL = "env_reveal"


def _clean(value: str) -> str:
    """Strip control characters so a field cannot forge extra log lines."""
    return _CONTROL_CHARS.sub(" ", value)


def _redact(details: str) -> str:
    """Replace the value of any secret-looking KEY=value fragment."""
    return _SENSITIVE_ASSIGNMENT.sub(lambda m: f"{m.group(1)}=[REDACTED]", details)


class AuditService:
    """Append-only audit sink.

    ``log`` never raises: a failing write is reported through the
    application logger and the caller's decision stands.
    """

    def __init__(self, log_path: str | Path | None = None):
        self.log_path = Path(log_path) if log_path else None
        self._dir_checked = False

    def format_line(
        self,
        action: AuditAction,
        ip: str,
        target: str | None = None,
        details: str | None = None,
        timestamp: datetime | None = None,
    ) -> str:
        ts = (timestamp or datetime.now(UTC)).isoformat()
        return (
            f"[{ts}] [{_clean(ip)}] [{action.value}] [{_clean(target) if target else '-'}] "
            f"{_clean(_redact(details)) if details else ''}".rstrip()
        )

    def _append(self, path: Path, line: str) -> None:
        if not self._dir_checked:
            path.parent.mkdir(parents=True, exist_ok=True)
            self._dir_checked = True
        with path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    async def log(
        self,
        action: AuditAction,
        ip: str,
        target: str | None = None,
        details: str | None = None,
    ) -> None:
        """Record an audit event.

        Args:
            action: The audit action type
            ip: Source address of the actor
            target: Affected resource (e.g. service name)
            details: Free-form detail text
        """
        line = self.format_line(action, ip, target, details)

        if self.log_path is None:
            fields = {"action": action.value, "ip": ip, "target": target}
            logger.info(f"AUDIT: {line}", extra={"audit": fields})
            return

        try:
            await asyncio.to_thread(self._append, self.log_path, line)
        except Exception as e:
            logger.error(f"Failed to write audit log ({e}): {line}")
