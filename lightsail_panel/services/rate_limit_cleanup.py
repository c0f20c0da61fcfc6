"""Background cleanup task for the login rate limiter."""

import asyncio
import logging

from lightsail_panel.services.rate_limit import LoginRateLimiter

logger = logging.getLogger(__name__)


async def rate_limit_cleanup_loop(rate_limiter: LoginRateLimiter, interval_seconds: float = 300) -> None:
    """Periodically purge stale rate limit entries to bound memory."""
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = rate_limiter.cleanup_stale_entries()
            if removed > 0:
                logger.debug(f"Rate limiter cleanup: removed {removed} stale entries")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Rate limiter cleanup error: {e}")
