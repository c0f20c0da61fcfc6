"""Lightsail Panel Logging Configuration."""

import json
import logging
import sys
from typing import Literal

# Human-readable format for development
DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Audit events are logged here; its level is configured separately
AUDIT_LOGGER = "lightsail_panel.audit"

# LogRecord attribute carrying an audit event's fields
AUDIT_EXTRA = "audit"


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Uses json.dumps() so quotes, backslashes and newlines in messages
    cannot break the one-object-per-line output. Records logged by the
    audit sink carry their event fields (action, ip, target) under
    ``"audit"`` so log shippers can filter on them.
    """

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        audit = getattr(record, AUDIT_EXTRA, None)
        if isinstance(audit, dict):
            log_entry["audit"] = audit
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
    audit_level: str | None = None,
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format - 'structured' for JSON, 'dev' for readable
        audit_level: Level for the audit logger; defaults to ``level``.
            WARNING silences routine audit events while keeping audit
            write failures.
    """
    if format_type == "structured":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logging.root.handlers = [handler]
        logging.root.setLevel(getattr(logging, level.upper()))
    else:
        logging.basicConfig(
            level=getattr(logging, level.upper()),
            format=DEV_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
            stream=sys.stdout,
            force=True,
        )

    logging.getLogger(AUDIT_LOGGER).setLevel(getattr(logging, (audit_level or level).upper()))

    # Uvicorn's access log duplicates the audit trail
    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger("lightsail_panel")
    logger.info(f"Logging configured: level={level}, audit={audit_level or level}, format={format_type}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the lightsail_panel prefix."""
    return logging.getLogger(f"lightsail_panel.{name}")
