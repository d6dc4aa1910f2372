"""AuditLog model - immutable record of every administrative action.

Design principles:
- Append-only: never update or delete audit rows
- workspace_id is always set for per-workspace reporting queries
- Written in the same transaction as the change it records, so an entry
  exists if and only if the change was committed
- The actor is whoever authenticated the request (a root key), never the
  key being changed
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from keyadmin.database import Base


class ActorType(StrEnum):
    KEY = "key"


class AuditEvent(StrEnum):
    KEY_UPDATE = "key.update"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Who did it
    actor_type: Mapped[str] = mapped_column(String(32), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # What happened, e.g. "key.update"
    event: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Resource scope
    key_auth_id: Mapped[str | None] = mapped_column(
        ForeignKey("key_auth.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_audit_workspace_time", "workspace_id", "time"),
        Index("ix_audit_key_auth", "key_auth_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog id={self.id} event={self.event!r} actor={self.actor_id}>"
