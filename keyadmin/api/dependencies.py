"""FastAPI dependencies that provide the workflow's collaborators.

The session factory comes from keyadmin.database; the usage limiter is
created in the application lifespan and kept on ``app.state``. Tests
replace any of these with ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keyadmin.auth.verifier import DatabaseKeyVerifier, KeyVerifier
from keyadmin.database import get_session_factory
from keyadmin.services.update_key import UpdateKeyWorkflow
from keyadmin.services.usage_limiter import UsageLimiter


def get_usage_limiter(request: Request) -> UsageLimiter:
    """Return the usage limiter created at startup."""
    return request.app.state.usage_limiter  # type: ignore[no-any-return]


def get_key_verifier(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    usage_limiter: UsageLimiter = Depends(get_usage_limiter),
) -> KeyVerifier:
    return DatabaseKeyVerifier(session_factory, usage_limiter=usage_limiter)


def get_update_key_workflow(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    verifier: KeyVerifier = Depends(get_key_verifier),
    usage_limiter: UsageLimiter = Depends(get_usage_limiter),
) -> UpdateKeyWorkflow:
    return UpdateKeyWorkflow.build(
        session_factory=session_factory,
        verifier=verifier,
        usage_limiter=usage_limiter,
    )
