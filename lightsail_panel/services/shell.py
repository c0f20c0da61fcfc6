"""Allowlisted command execution.

Commands run through ``asyncio.create_subprocess_exec`` with an argument
array, never through a shell. Only allowlisted programs may run and
arguments carrying shell metacharacters are refused outright.
"""

import asyncio
import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ALLOWED_COMMANDS = frozenset(
    {
        "systemctl",
        "journalctl",
        "sudo",
        "hostname",
        "uptime",
        "free",
        "df",
        "cat",
        "tee",
        "cp",
        "ls",
    }
)

SYSTEMCTL_ACTIONS = frozenset(
    {"start", "stop", "restart", "status", "show", "is-active", "list-units"}
)

SERVICE_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
MAX_SERVICE_NAME_LENGTH = 128

_DANGEROUS_FRAGMENTS = (";", "|", "&", "`", "$(")

DEFAULT_TIMEOUT = 10.0
MAX_OUTPUT_BYTES = 1024 * 1024

DEFAULT_LOG_LINES = 100
MAX_LOG_LINES = 500
_SINCE_RELATIVE_RE = re.compile(r"^[0-9]+[smhd]$")
_SINCE_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


class ShellError(Exception):
    """A command was refused or failed."""

    def __init__(self, message: str, code: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.code = code
        self.stderr = stderr


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str


def validate_service_name(name: str) -> bool:
    """Check that a service name is safe to pass to systemd tools."""
    return len(name) <= MAX_SERVICE_NAME_LENGTH and SERVICE_NAME_RE.match(name) is not None


def validate_action(action: str) -> bool:
    return action in SYSTEMCTL_ACTIONS


def _unit_name(service_name: str) -> str:
    return service_name if service_name.endswith(".service") else f"{service_name}.service"


async def safe_exec(
    command: str,
    args: list[str],
    timeout: float = DEFAULT_TIMEOUT,
    input: bytes | None = None,
) -> CommandResult:
    """Run an allowlisted command and capture its output.

    Args:
        command: Program to run (for ``sudo`` the first argument is checked)
        args: Argument array passed straight to the program
        timeout: Seconds before the process is killed
        input: Optional bytes written to the process's stdin

    Raises:
        ShellError: If the command is refused, times out, or exits non-zero.
    """
    actual_command = args[0] if command == "sudo" and args else command
    if actual_command not in ALLOWED_COMMANDS:
        raise ShellError(f"Command not allowed: {actual_command}")

    for arg in args:
        if any(fragment in arg for fragment in _DANGEROUS_FRAGMENTS):
            raise ShellError(f"Dangerous characters in argument: {arg}")

    try:
        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ShellError(f"Command not found: {command}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(input=input), timeout=timeout)
    except TimeoutError:
        process.kill()
        await process.wait()
        logger.warning(f"Command timed out after {timeout}s: {command} {' '.join(args)}")
        raise ShellError(f"Command timed out after {timeout}s") from None

    stdout_text = stdout[:MAX_OUTPUT_BYTES].decode("utf-8", errors="replace")
    stderr_text = stderr[:MAX_OUTPUT_BYTES].decode("utf-8", errors="replace")

    if process.returncode != 0:
        raise ShellError(
            f"Command failed with exit code {process.returncode}",
            code=process.returncode,
            stderr=stderr_text,
        )

    return CommandResult(stdout=stdout_text, stderr=stderr_text)


async def systemctl(action: str, service_name: str) -> str:
    """Run a systemctl action on a service."""
    if not validate_action(action):
        raise ShellError(f"Invalid systemctl action: {action}")
    if not validate_service_name(service_name):
        raise ShellError(f"Invalid service name: {service_name}")

    result = await safe_exec("sudo", ["systemctl", action, _unit_name(service_name)])
    return result.stdout.strip()


async def journalctl(
    service_name: str,
    lines: int | None = None,
    since: str | None = None,
) -> str:
    """Fetch recent journal lines for a service.

    ``lines`` is capped at 500. ``since`` is only honoured in relative
    (``30m``, ``2h``) or ISO date form and silently dropped otherwise.
    """
    if not validate_service_name(service_name):
        raise ShellError(f"Invalid service name: {service_name}")

    count = min(lines, MAX_LOG_LINES) if lines and lines > 0 else DEFAULT_LOG_LINES
    args = ["journalctl", "-u", _unit_name(service_name), "--no-pager", "-o", "short-iso"]
    args += ["-n", str(count)]

    if since and (_SINCE_RELATIVE_RE.match(since) or _SINCE_DATE_RE.match(since)):
        args += ["--since", since]

    result = await safe_exec("sudo", args, timeout=15.0)
    return result.stdout
