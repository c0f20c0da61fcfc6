"""Systemd service discovery and management.

Discovers operator-created services from ``/etc/systemd/system/*.service``
by parsing unit files for WorkingDirectory, EnvironmentFile and friends,
then enriches them with live status from ``systemctl show``.
"""

import asyncio
import logging
import re
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from lightsail_panel.schemas.service import EnvEntry, MaskedEnvEntry, ServiceInfo, ServiceStatus
from lightsail_panel.services.shell import ShellError, safe_exec, systemctl, validate_service_name

logger = logging.getLogger(__name__)

ServiceAction = Literal["start", "stop", "restart"]
SERVICE_ACTIONS: tuple[ServiceAction, ...] = ("start", "stop", "restart")

STATUS_PROPERTIES = "ActiveState,SubState,MainPID,MemoryCurrent,ActiveEnterTimestamp"

SENSITIVE_KEY_RE = re.compile(r"key|secret|password|token|cert|credential", re.IGNORECASE)
MASK = "••••••••"


class ServiceNotFoundError(Exception):
    """No discoverable service has the requested name."""


class EnvFileNotConfiguredError(Exception):
    """The service's unit file declares no EnvironmentFile."""


def parse_unit_file(content: str) -> dict[str, str]:
    """Extract the unit properties the panel cares about."""
    keys = {
        "Description": "description",
        "WorkingDirectory": "working_dir",
        "EnvironmentFile": "env_file",
        "ExecStart": "exec_start",
    }
    result: dict[str, str] = {}
    for line in content.splitlines():
        name, sep, value = line.strip().partition("=")
        if not sep or name not in keys:
            continue
        if name == "EnvironmentFile":
            # A leading "-" only tells systemd the file is optional
            value = value.removeprefix("-")
        result[keys[name]] = value
    return result


def parse_env_file(content: str) -> list[EnvEntry]:
    """Parse KEY=value lines, skipping blanks and comments."""
    entries = []
    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        key, sep, value = trimmed.partition("=")
        if sep and key:
            entries.append(EnvEntry(key=key, value=value))
    return entries


def is_sensitive_key(key: str) -> bool:
    return SENSITIVE_KEY_RE.search(key) is not None


def mask_entries(entries: list[EnvEntry]) -> list[MaskedEnvEntry]:
    """Hide values whose keys look like secrets."""
    masked = []
    for entry in entries:
        sensitive = is_sensitive_key(entry.key)
        masked.append(
            MaskedEnvEntry(
                key=entry.key,
                value=MASK if sensitive else entry.value,
                sensitive=sensitive,
            )
        )
    return masked


def _parse_show_output(stdout: str) -> dict[str, str]:
    props = {}
    for line in stdout.splitlines():
        name, sep, value = line.partition("=")
        if sep and name:
            props[name] = value
    return props


def _parse_timestamp(value: str) -> datetime | None:
    """Parse systemd's ``Mon 2026-01-05 10:00:00 UTC`` timestamps.

    The result is always timezone-aware. An unrecognised zone token
    (systemd prints the host's local abbreviation, e.g. ``CEST``) is
    taken to mean the host's local time.
    """
    parts = value.split()
    if len(parts) < 3:
        return None
    try:
        naive = datetime.strptime(f"{parts[1]} {parts[2]}", "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None

    zone = parts[3] if len(parts) > 3 else None
    if zone in ("UTC", "GMT"):
        return naive.replace(tzinfo=UTC)
    if zone:
        try:
            return naive.replace(tzinfo=ZoneInfo(zone))
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return naive.astimezone()


def _parse_int(value: str | None) -> int | None:
    if not value or value == "[not set]":
        return None
    try:
        return int(value) or None
    except ValueError:
        return None


class SystemdService:
    """Service inventory backed by unit files and systemctl."""

    def __init__(self, systemd_dir: str | Path, excluded: set[str] | None = None):
        self.systemd_dir = Path(systemd_dir)
        self.excluded = excluded or set()

    def discover(self) -> list[ServiceInfo]:
        """List user-created services (those with a WorkingDirectory)."""
        try:
            unit_files = sorted(self.systemd_dir.glob("*.service"))
        except OSError as e:
            logger.warning(f"Cannot read {self.systemd_dir}: {e}")
            return []

        services = []
        for path in unit_files:
            name = path.stem
            if name in self.excluded or not validate_service_name(name):
                continue

            try:
                parsed = parse_unit_file(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError) as e:
                logger.debug(f"Skipping unreadable unit file {path}: {e}")
                continue

            if not parsed.get("working_dir"):
                continue

            services.append(
                ServiceInfo(
                    name=name,
                    unit=path.name,
                    description=parsed.get("description") or name,
                    working_dir=parsed["working_dir"],
                    env_file=parsed.get("env_file") or None,
                    exec_start=parsed.get("exec_start") or None,
                )
            )

        return sorted(services, key=lambda s: s.name)

    def get_service(self, name: str) -> ServiceInfo:
        for service in self.discover():
            if service.name == name:
                return service
        raise ServiceNotFoundError(f"Service not found: {name}")

    async def enrich_with_status(self, service: ServiceInfo) -> ServiceStatus:
        """Attach live state from ``systemctl show``.

        Any failure yields an ``unknown`` state rather than an error.
        """
        try:
            result = await safe_exec(
                "sudo", ["systemctl", "show", service.unit, f"--property={STATUS_PROPERTIES}"]
            )
        except ShellError as e:
            logger.warning(f"systemctl show failed for {service.unit}: {e}")
            return ServiceStatus(**service.model_dump(), active="unknown", sub="unknown")

        props = _parse_show_output(result.stdout)

        started_at = props.get("ActiveEnterTimestamp") or None
        uptime_seconds = None
        if started_at:
            started = _parse_timestamp(started_at)
            if started is not None:
                uptime_seconds = max(0, int(time.time() - started.timestamp()))

        return ServiceStatus(
            **service.model_dump(),
            active=props.get("ActiveState") or "unknown",
            sub=props.get("SubState") or "unknown",
            pid=_parse_int(props.get("MainPID")),
            memory_bytes=_parse_int(props.get("MemoryCurrent")),
            uptime_seconds=uptime_seconds,
            started_at=started_at,
        )

    async def get_status(self, name: str) -> ServiceStatus:
        return await self.enrich_with_status(self.get_service(name))

    async def get_all_statuses(self) -> list[ServiceStatus]:
        return list(await asyncio.gather(*(self.enrich_with_status(s) for s in self.discover())))

    async def perform_action(self, name: str, action: ServiceAction) -> None:
        if action not in SERVICE_ACTIONS:
            raise ShellError(f"Invalid service action: {action}")
        await systemctl(action, name)
        logger.info(f"Service {name}: {action}")

    def get_env_file(self, name: str) -> str:
        service = self.get_service(name)
        if not service.env_file:
            raise EnvFileNotConfiguredError(f"No env file configured for {name}")
        return service.env_file

    async def read_env_file(self, env_path: str) -> list[EnvEntry]:
        """Read an env file via sudo. Unreadable files read as empty."""
        try:
            result = await safe_exec("sudo", ["cat", env_path])
        except ShellError as e:
            logger.warning(f"Cannot read env file {env_path}: {e}")
            return []
        return parse_env_file(result.stdout)

    async def write_env_file(self, env_path: str, entries: list[EnvEntry]) -> str:
        """Back up then overwrite an env file. Returns the backup path."""
        backup_path = f"{env_path}.bak.{int(time.time() * 1000)}"
        await safe_exec("sudo", ["cp", env_path, backup_path])

        content = "".join(f"{e.key}={e.value}\n" for e in entries)
        await safe_exec("sudo", ["tee", env_path], timeout=5.0, input=content.encode("utf-8"))
        logger.info(f"Wrote {len(entries)} entries to {env_path} (backup: {backup_path})")
        return backup_path
