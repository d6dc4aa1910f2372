"""
Shared test fixtures for pytest.

Every test that touches the database gets its own SQLite file, created
from the ORM metadata and seeded with the same small tenant hierarchy:

    ws_internal  owns the root keys (KeyAuth ks_root)
      key_root_1      root key for ws_1   (raw: root_secret_1)
      key_root_2      root key for ws_2   (raw: root_secret_2)
      key_root_old    expired root key for ws_1 (raw: root_secret_expired)
    ws_1  (KeyAuth ks_1)
      key_123         the key most tests update (expires and ratelimit set)
      key_plain       valid, but not a root key (raw: plain_secret)
    ws_2  (KeyAuth ks_2)
      key_456

Fixtures:
- fake_settings: Test environment configuration
- engine / session_factory: Real async SQLite database with foreign keys on
- seed_data: The hierarchy above
- usage_limiter: In-memory CacheUsageLimiter
- app / client: FastAPI app wired to the test database via dependency_overrides
- root_headers: Authorization header for key_root_1
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from keyadmin.api.dependencies import get_usage_limiter
from keyadmin.auth.verifier import hash_key
from keyadmin.cache.backend import InMemoryCacheBackend
from keyadmin.config import Environment, Settings, get_settings
from keyadmin.database import Base, get_session_factory, make_session_factory
from keyadmin.main import create_app
from keyadmin.models import Key, KeyAuth, Workspace
from keyadmin.services.usage_limiter import CacheUsageLimiter, UsageLimiter
from keyadmin.telemetry.logging import clear_context

ROOT_SECRET_1 = "root_secret_1"
ROOT_SECRET_2 = "root_secret_2"
ROOT_SECRET_EXPIRED = "root_secret_expired"
PLAIN_SECRET = "plain_secret"


# ------------------------------------------------------------------ #
# Session-scoped: clear settings cache between test sessions
# ------------------------------------------------------------------ #

@pytest.fixture(autouse=True, scope="session")
def _clear_settings_cache():
    """Clear the lru_cache on get_settings so test overrides take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Keep structlog contextvars from leaking between tests."""
    clear_context()
    yield
    clear_context()


# ------------------------------------------------------------------ #
# Settings
# ------------------------------------------------------------------ #

@pytest.fixture
def fake_settings(tmp_path) -> Settings:
    return Settings(
        environment=Environment.TEST,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'keyadmin.db'}",
        redis_url="",
        usage_limiter_url=None,
        key_cache_ttl_seconds=30,
    )


# ------------------------------------------------------------------ #
# Database
# ------------------------------------------------------------------ #

def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
async def engine(fake_settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Real SQLite database file, schema created from the ORM metadata."""
    engine = create_async_engine(fake_settings.database_url, poolclass=NullPool)
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
async def seed_data(session_factory: async_sessionmaker[AsyncSession]) -> dict[str, Any]:
    """Insert the workspace/key hierarchy described in the module docstring."""
    past = datetime.now(UTC) - timedelta(days=1)

    async with session_factory() as session, session.begin():
        session.add_all(
            [
                Workspace(id="ws_internal", name="internal"),
                Workspace(id="ws_1", name="Acme"),
                Workspace(id="ws_2", name="Globex"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                KeyAuth(id="ks_root", workspace_id="ws_internal"),
                KeyAuth(id="ks_1", workspace_id="ws_1"),
                KeyAuth(id="ks_2", workspace_id="ws_2"),
            ]
        )
        await session.flush()
        session.add_all(
            [
                Key(
                    id="key_root_1",
                    key_auth_id="ks_root",
                    workspace_id="ws_internal",
                    for_workspace_id="ws_1",
                    hash=hash_key(ROOT_SECRET_1),
                    start=ROOT_SECRET_1[:8],
                    name="Acme root key",
                ),
                Key(
                    id="key_root_2",
                    key_auth_id="ks_root",
                    workspace_id="ws_internal",
                    for_workspace_id="ws_2",
                    hash=hash_key(ROOT_SECRET_2),
                    start=ROOT_SECRET_2[:8],
                    name="Globex root key",
                ),
                Key(
                    id="key_root_old",
                    key_auth_id="ks_root",
                    workspace_id="ws_internal",
                    for_workspace_id="ws_1",
                    hash=hash_key(ROOT_SECRET_EXPIRED),
                    start=ROOT_SECRET_EXPIRED[:8],
                    expires=past,
                ),
                Key(
                    id="key_plain",
                    key_auth_id="ks_1",
                    workspace_id="ws_1",
                    hash=hash_key(PLAIN_SECRET),
                    start=PLAIN_SECRET[:8],
                ),
                Key(
                    id="key_123",
                    key_auth_id="ks_1",
                    workspace_id="ws_1",
                    hash=hash_key("sk_key_123"),
                    start="sk_key_1",
                    name="Customer X",
                    owner_id="user_123",
                    meta=json.dumps({"plan": "pro"}),
                    expires=datetime(2029, 6, 1, tzinfo=UTC),
                    remaining=1000,
                    ratelimit_type="consistent",
                    ratelimit_limit=100,
                    ratelimit_refill_rate=10,
                    ratelimit_refill_interval=1000,
                ),
                Key(
                    id="key_456",
                    key_auth_id="ks_2",
                    workspace_id="ws_2",
                    hash=hash_key("sk_key_456"),
                    start="sk_key_4",
                    name="Globex backend",
                ),
            ]
        )

    return {
        "internal_workspace_id": "ws_internal",
        "workspace_1_id": "ws_1",
        "workspace_2_id": "ws_2",
        "root_key_1_id": "key_root_1",
        "root_key_2_id": "key_root_2",
        "key_id": "key_123",
        "other_workspace_key_id": "key_456",
    }


async def load_key(session_factory: async_sessionmaker[AsyncSession], key_id: str) -> Key | None:
    """Read a key back in a fresh session."""
    async with session_factory() as session:
        return await session.get(Key, key_id)


@pytest.fixture
def key_loader(session_factory: async_sessionmaker[AsyncSession]):
    async def _load(key_id: str) -> Key | None:
        return await load_key(session_factory, key_id)

    return _load


# ------------------------------------------------------------------ #
# Usage limiter
# ------------------------------------------------------------------ #

@pytest.fixture
def cache_backend() -> InMemoryCacheBackend:
    return InMemoryCacheBackend()


@pytest.fixture
def usage_limiter(cache_backend: InMemoryCacheBackend) -> CacheUsageLimiter:
    return CacheUsageLimiter(cache_backend, ttl_seconds=30)


class FailingUsageLimiter(UsageLimiter):
    """Usage limiter whose revalidation always fails."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    async def revalidate(self, key_id: str) -> None:
        self.calls.append(key_id)
        raise ConnectionError("usage limiter unreachable")


@pytest.fixture
def failing_usage_limiter() -> FailingUsageLimiter:
    return FailingUsageLimiter()


# ------------------------------------------------------------------ #
# HTTP client
# ------------------------------------------------------------------ #

@pytest.fixture
def app(
    session_factory: async_sessionmaker[AsyncSession],
    usage_limiter: UsageLimiter,
) -> FastAPI:
    """FastAPI app backed by the test database and in-memory limiter."""
    application = create_app()
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    application.dependency_overrides[get_usage_limiter] = lambda: usage_limiter
    return application


@pytest.fixture
async def client(app: FastAPI, seed_data: dict[str, Any]) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client over ASGI transport, database already seeded."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def root_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {ROOT_SECRET_1}"}
