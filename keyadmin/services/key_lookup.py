"""Workspace-scoped key lookup.

A key from another workspace is reported exactly like a missing key, so a
root key cannot discover the existence of other tenants' keys.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keyadmin.auth.guard import AuthorizationContext
from keyadmin.core.errors import not_found
from keyadmin.models.api_key import Key

log = structlog.get_logger(__name__)


class KeyLookup:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find(self, key_id: str, context: AuthorizationContext) -> Key:
        """Return the key *key_id* if it belongs to the caller's workspace.

        Raises:
            ApiError(NOT_FOUND): no such key, or it belongs to another workspace
        """
        async with self._session_factory() as session:
            key = await session.get(Key, key_id)

        if key is None:
            log.info("key.lookup.missing", key_id=key_id)
            raise not_found(f"key {key_id} not found")

        if key.workspace_id != context.authorized_workspace_id:
            log.warning(
                "key.lookup.cross_workspace",
                key_id=key_id,
                key_workspace_id=key.workspace_id,
            )
            raise not_found(f"key {key_id} not found")

        return key
