"""Usage limiter client.

The usage limiter keeps per-key usage state (remaining uses, rate limit
settings) close to the verification path. After a key changes it must be
told to drop that state; this module is the only thing the rest of the
service knows about it.

Two implementations:
- CacheUsageLimiter: state lives in the shared CacheBackend under
  ``usage:<key_id>:*``, with ``keyhash:<hash>`` pointing at the key id so
  the verifier can find it from a bearer token. Entries expire after
  ``ttl_seconds``, which bounds staleness even when a revalidation is lost.
- HttpUsageLimiter: the limiter runs as its own service; revalidation is
  a POST to ``/v1/usage.revalidate``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from keyadmin.cache.backend import CacheBackend, get_cache_backend
from keyadmin.config import Settings

log = structlog.get_logger(__name__)


def _state_key(key_id: str, name: str) -> str:
    return f"usage:{key_id}:{name}"


def _hash_index_key(key_hash: str) -> str:
    return f"keyhash:{key_hash}"


class UsageLimiter(ABC):
    """Interface of the usage limiter subsystem."""

    @abstractmethod
    async def revalidate(self, key_id: str) -> None:
        """Drop or refresh any cached state for *key_id*. Raises on failure."""

    async def cached_key_state(self, key_hash: str) -> dict[str, Any] | None:
        """Return the verification state cached for a key hash, if any."""
        return None

    async def cache_key_state(self, key_hash: str, state: dict[str, Any]) -> None:
        """Remember verification state for a key. No-op when state lives remotely."""

    async def close(self) -> None:
        """Release resources held by the limiter."""


class CacheUsageLimiter(UsageLimiter):
    def __init__(self, backend: CacheBackend, ttl_seconds: int) -> None:
        self._backend = backend
        self._ttl_seconds = ttl_seconds

    async def cache_state(self, key_id: str, name: str, value: Any) -> None:
        """Store one piece of usage state for a key."""
        await self._backend.set(_state_key(key_id, name), value, self._ttl_seconds)

    async def cached_state(self, key_id: str, name: str) -> Any | None:
        return await self._backend.get(_state_key(key_id, name))

    async def cached_key_state(self, key_hash: str) -> dict[str, Any] | None:
        key_id = await self._backend.get(_hash_index_key(key_hash))
        if key_id is None:
            return None
        return await self.cached_state(key_id, "key")

    async def cache_key_state(self, key_hash: str, state: dict[str, Any]) -> None:
        # The hash index outlives a revalidation; it only maps to the key id
        await self._backend.set(_hash_index_key(key_hash), state["key_id"], self._ttl_seconds)
        await self.cache_state(state["key_id"], "key", state)

    async def revalidate(self, key_id: str) -> None:
        deleted = await self._backend.delete_pattern(_state_key(key_id, "*"))
        log.debug("usage_limiter.revalidated", key_id=key_id, entries_deleted=deleted)

    async def close(self) -> None:
        await self._backend.close()


class HttpUsageLimiter(UsageLimiter):
    """Talks to a remote usage-limiter service."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
        )

    async def revalidate(self, key_id: str) -> None:
        response = await self._client.post("/v1/usage.revalidate", json={"keyId": key_id})
        response.raise_for_status()
        log.debug("usage_limiter.revalidated", key_id=key_id, status=response.status_code)

    async def close(self) -> None:
        await self._client.aclose()


def get_usage_limiter(settings: Settings) -> UsageLimiter:
    """Build the usage limiter configured by *settings*."""
    if settings.usage_limiter_url:
        log.info("usage_limiter.selected", kind="http", url=settings.usage_limiter_url)
        return HttpUsageLimiter(
            settings.usage_limiter_url,
            timeout_seconds=settings.usage_limiter_timeout_seconds,
        )

    log.info("usage_limiter.selected", kind="cache")
    return CacheUsageLimiter(get_cache_backend(settings), settings.key_cache_ttl_seconds)
