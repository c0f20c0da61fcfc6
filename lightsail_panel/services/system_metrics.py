"""Host metrics gathered from standard Linux tools."""

import asyncio
import logging
import time
from datetime import datetime

from lightsail_panel.schemas.system import SystemInfoResponse, UsageStats
from lightsail_panel.services.shell import ShellError, safe_exec

logger = logging.getLogger(__name__)


def parse_free_output(stdout: str) -> UsageStats:
    """Parse the ``Mem:`` row of ``free -b``."""
    for line in stdout.splitlines():
        if line.startswith("Mem:"):
            parts = line.split()
            if len(parts) < 3:
                break
            return _usage(parts[1], parts[2])
    return UsageStats()


def parse_df_output(stdout: str) -> UsageStats:
    """Parse the first filesystem row of ``df -B1``."""
    lines = stdout.splitlines()
    if len(lines) < 2:
        return UsageStats()
    parts = lines[1].split()
    if len(parts) < 3:
        return UsageStats()
    return _usage(parts[1], parts[2])


def _usage(total_str: str, used_str: str) -> UsageStats:
    try:
        total = int(total_str)
        used = int(used_str)
    except ValueError:
        return UsageStats()
    percent = round(used / total * 100) if total else 0
    return UsageStats(total=total, used=used, percent=percent)


async def get_hostname() -> str:
    try:
        result = await safe_exec("hostname", [])
    except ShellError as e:
        logger.debug(f"hostname failed: {e}")
        return "unknown"
    return result.stdout.strip() or "unknown"


async def get_uptime_seconds() -> int:
    try:
        result = await safe_exec("uptime", ["-s"])
        boot_time = datetime.strptime(result.stdout.strip(), "%Y-%m-%d %H:%M:%S")
    except (ShellError, ValueError) as e:
        logger.debug(f"uptime failed: {e}")
        return 0
    return max(0, int(time.time() - boot_time.timestamp()))


async def get_memory() -> UsageStats:
    try:
        result = await safe_exec("free", ["-b"])
    except ShellError as e:
        logger.debug(f"free failed: {e}")
        return UsageStats()
    return parse_free_output(result.stdout)


async def get_disk() -> UsageStats:
    try:
        result = await safe_exec("df", ["-B1", "/"])
    except ShellError as e:
        logger.debug(f"df failed: {e}")
        return UsageStats()
    return parse_df_output(result.stdout)


async def collect_system_info() -> SystemInfoResponse:
    """Gather all probes concurrently. Each probe degrades on its own."""
    hostname, uptime, memory, disk = await asyncio.gather(
        get_hostname(), get_uptime_seconds(), get_memory(), get_disk()
    )
    return SystemInfoResponse(hostname=hostname, uptime=uptime, memory=memory, disk=disk)
