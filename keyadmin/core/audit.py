"""Audit logging service.

Provides a small interface for writing audit log entries inside the
caller's transaction.

Design:
- The service never commits. The caller owns the transaction, so the
  audit row and the change it describes are committed or rolled back
  together.
- A failed write is logged and re-raised: an administrative change must
  not be committed without its audit entry.
- Descriptions are capped at 500 characters.
- The service is a plain class (not a singleton) to keep it testable.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from keyadmin.ids import new_id
from keyadmin.models.audit import ActorType, AuditLog

log = structlog.get_logger(__name__)

_DESCRIPTION_MAX_CHARS = 500


def _truncate(text: str, max_chars: int = _DESCRIPTION_MAX_CHARS) -> str:
    """Truncate text to max_chars, appending '...' if truncated."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


class AuditService:
    """Write-only audit log service.

    Usage:
        async with session.begin():
            ...
            audit = AuditService(session)
            await audit.log(
                workspace_id=workspace_id,
                actor_type=ActorType.KEY,
                actor_id=root_key_id,
                event="key.update",
                description="Key was updated",
            )
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def log(
        self,
        *,
        workspace_id: str,
        actor_type: ActorType,
        actor_id: str,
        event: str,
        description: str,
        key_auth_id: str | None = None,
    ) -> AuditLog:
        """Add an audit log entry and flush it to the DB.

        This does not commit - the calling code owns the transaction boundary.
        """
        entry = AuditLog(
            id=new_id("auditLog"),
            time=datetime.now(UTC),
            workspace_id=workspace_id,
            actor_type=actor_type,
            actor_id=actor_id,
            event=event,
            description=_truncate(description),
            key_auth_id=key_auth_id,
        )
        self._db.add(entry)
        try:
            await self._db.flush()
        except Exception as exc:
            log.error("audit.write_failed", error=str(exc), audit_event=event, actor_id=actor_id)
            raise
        return entry
