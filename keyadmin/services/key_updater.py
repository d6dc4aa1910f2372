"""Atomic key update + audit entry.

The column update and the audit insert run in one transaction opened with
``session.begin()``. The context manager commits when the block finishes
and rolls back on any exception, so either both rows are written or
neither is.

No row lock or version check is taken: two concurrent updates to the same
key both commit, the later one wins per column, and each leaves its own
audit entry.
"""

from __future__ import annotations

import structlog
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keyadmin.auth.guard import AuthorizationContext
from keyadmin.core.audit import AuditService
from keyadmin.core.errors import internal_error
from keyadmin.models.api_key import Key
from keyadmin.models.audit import ActorType, AuditEvent, AuditLog
from keyadmin.services.key_patch import KeyPatch

log = structlog.get_logger(__name__)


class TransactionalUpdater:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def apply(
        self,
        key: Key,
        patch: KeyPatch,
        context: AuthorizationContext,
    ) -> AuditLog:
        """Write *patch* to *key* and record a ``key.update`` audit entry.

        Raises:
            ApiError(INTERNAL_SERVER_ERROR): the transaction could not commit;
                nothing was written
        """
        try:
            async with self._session_factory() as session, session.begin():
                if patch:
                    await session.execute(
                        update(Key)
                        .where(Key.id == key.id)
                        .values(**patch.values)
                        .execution_options(synchronize_session=False)
                    )

                entry = await AuditService(session).log(
                    workspace_id=context.authorized_workspace_id,
                    actor_type=ActorType.KEY,
                    actor_id=context.root_key_id,
                    event=AuditEvent.KEY_UPDATE,
                    description="Key was updated",
                    key_auth_id=key.key_auth_id,
                )
        except SQLAlchemyError as exc:
            log.error(
                "key.update.commit_failed",
                key_id=key.id,
                fields=patch.fields,
                error=str(exc),
            )
            raise internal_error("failed to update key") from exc

        log.info(
            "key.update.committed",
            key_id=key.id,
            fields=patch.fields,
            audit_log_id=entry.id,
        )
        return entry
