"""Request utility functions for handling common request operations."""

import ipaddress
import logging
from collections.abc import Collection

from fastapi import Request

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request, trusted_proxies: Collection[str] = ()) -> str:
    """Get the client IP address from a request.

    Priority Order:
    1. First entry of X-Forwarded-For (set by the reverse proxy)
    2. X-Real-IP
    3. Direct client connection
    4. The literal "unknown"

    When ``trusted_proxies`` is non-empty, the forwarded headers are only
    honoured if the direct connection comes from one of those addresses.
    Otherwise the panel assumes it sits behind its own reverse proxy and
    trusts them as-is.

    Args:
        request: The FastAPI request object
        trusted_proxies: Peer addresses allowed to set forwarded headers

    Returns:
        Client IP address, or "unknown" if none can be determined
    """
    direct_ip = request.client.host if request.client else None
    trust_headers = not trusted_proxies or (direct_ip is not None and direct_ip in trusted_proxies)

    if trust_headers:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid IP in X-Forwarded-For header: {ip}")

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid X-Real-IP: {real_ip}")
    elif request.headers.get("X-Forwarded-For") or request.headers.get("X-Real-IP"):
        logger.debug(f"Ignoring forwarded headers from untrusted source: {direct_ip}")

    if direct_ip:
        return direct_ip

    return UNKNOWN_IP
