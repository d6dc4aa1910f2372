"""Key verification.

The verifier answers one question for a raw bearer token: is it a valid
key, is it a root key, and which workspace may it administer. It never
raises for an unknown or unusable key - that is a verdict - and reports
its own failures (store unavailable) as a VerificationError value so the
caller decides how to surface them.

Security:
- Keys are looked up by SHA-256 hash; the raw key is never stored or logged
- Expired and exhausted keys verify as invalid
- Cached key state is keyed by hash; the raw key never reaches the cache
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keyadmin.models.api_key import Key
from keyadmin.services.usage_limiter import UsageLimiter

log = structlog.get_logger(__name__)


def hash_key(raw_key: str) -> str:
    """Hash a raw key using SHA-256.

    Returns:
        Hex-encoded SHA-256 hash (64 characters)
    """
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo; stored values are always UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(frozen=True)
class KeyVerdict:
    valid: bool
    is_root_key: bool = False
    authorized_workspace_id: str | None = None
    key_id: str | None = None


@dataclass(frozen=True)
class VerificationError:
    message: str


@dataclass(frozen=True)
class VerificationResult:
    """Either a verdict or an error, never both."""

    verdict: KeyVerdict | None = None
    error: VerificationError | None = None

    @classmethod
    def of(cls, verdict: KeyVerdict) -> VerificationResult:
        return cls(verdict=verdict)

    @classmethod
    def failed(cls, message: str) -> VerificationResult:
        return cls(error=VerificationError(message))


class KeyVerifier(ABC):
    """Interface of the key verification subsystem."""

    @abstractmethod
    async def verify(self, raw_key: str) -> VerificationResult:
        """Verify *raw_key* and return a verdict or an error."""


def key_state(key: Key) -> dict[str, Any]:
    """Snapshot of the fields verification depends on, JSON-serialisable.

    This is the per-key usage state the usage limiter caches; a
    revalidation drops it so the next verification reads the row again.
    """
    ratelimit = None
    if key.has_ratelimit:
        ratelimit = {
            "type": key.ratelimit_type,
            "limit": key.ratelimit_limit,
            "refill_rate": key.ratelimit_refill_rate,
            "refill_interval": key.ratelimit_refill_interval,
        }
    return {
        "key_id": key.id,
        "workspace_id": key.workspace_id,
        "for_workspace_id": key.for_workspace_id,
        "expires": _as_utc(key.expires).isoformat() if key.expires is not None else None,
        "remaining": key.remaining,
        "ratelimit": ratelimit,
    }


def _verdict(state: dict[str, Any]) -> KeyVerdict:
    key_id = state["key_id"]

    expires = state["expires"]
    if expires is not None and datetime.fromisoformat(expires) <= datetime.now(UTC):
        log.info("key.verify.expired", key_id=key_id, expired_at=expires)
        return KeyVerdict(valid=False, key_id=key_id)

    remaining = state["remaining"]
    if remaining is not None and remaining <= 0:
        log.info("key.verify.exhausted", key_id=key_id)
        return KeyVerdict(valid=False, key_id=key_id)

    return KeyVerdict(
        valid=True,
        is_root_key=state["for_workspace_id"] is not None,
        authorized_workspace_id=state["for_workspace_id"] or state["workspace_id"],
        key_id=key_id,
    )


class DatabaseKeyVerifier(KeyVerifier):
    """Verifies keys against the ``keys`` table.

    With a usage limiter, the key state read from the table is cached
    there for the limiter's TTL and reused until the key is revalidated.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        usage_limiter: UsageLimiter | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._usage_limiter = usage_limiter

    async def verify(self, raw_key: str) -> VerificationResult:
        key_hash = hash_key(raw_key)

        state = None
        if self._usage_limiter is not None:
            state = await self._usage_limiter.cached_key_state(key_hash)

        if state is None:
            try:
                async with self._session_factory() as session:
                    result = await session.execute(select(Key).where(Key.hash == key_hash))
                    key = result.scalar_one_or_none()
            except SQLAlchemyError as exc:
                log.error("key.verify.store_failed", error=str(exc))
                return VerificationResult.failed("key store unavailable")

            if key is None:
                log.info("key.verify.not_found", key_hash_prefix=key_hash[:8])
                return VerificationResult.of(KeyVerdict(valid=False))

            state = key_state(key)
            if self._usage_limiter is not None:
                await self._usage_limiter.cache_key_state(key_hash, state)

        return VerificationResult.of(_verdict(state))
