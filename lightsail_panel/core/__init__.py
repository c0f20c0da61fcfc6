# Lightsail Panel Core Module
from .config import Settings, get_settings, settings
from .logging import setup_logging

__all__ = [
    "Settings",
    "settings",
    "get_settings",
    "setup_logging",
]
