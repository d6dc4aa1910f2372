"""Post-commit cache invalidation.

Runs after the update transaction has committed and never changes the
outcome of the request. A failed revalidation is logged and dropped; the
usage limiter's own TTL bounds how long the stale state survives.
"""

from __future__ import annotations

import structlog

from keyadmin.services.usage_limiter import UsageLimiter

log = structlog.get_logger(__name__)


class CacheInvalidator:
    def __init__(self, usage_limiter: UsageLimiter) -> None:
        self._usage_limiter = usage_limiter

    async def invalidate(self, key_id: str) -> bool:
        """Tell the usage limiter to revalidate *key_id*.

        Returns:
            True if the signal was delivered, False if it failed
        """
        try:
            await self._usage_limiter.revalidate(key_id)
        except Exception as exc:
            log.warning("key.cache_invalidation_failed", key_id=key_id, error=str(exc))
            return False

        log.debug("key.cache_invalidated", key_id=key_id)
        return True
