"""Middleware module for Lightsail Panel."""

from lightsail_panel.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "SecurityHeadersMiddleware",
]
