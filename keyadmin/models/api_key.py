"""API key model.

A key is owned by one workspace and grouped under a KeyAuth. Keys whose
``for_workspace_id`` is set are root keys: they authorize management
operations on the keys of that workspace.

Security considerations:
- Only the SHA-256 hash of the key is stored, never the raw key
- ``start`` keeps the first characters for human identification

Rate limiting is stored as four columns that form one unit. The CHECK
constraint below rejects any row where only some of them are set.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from keyadmin.database import Base
from keyadmin.ids import new_id

RATELIMIT_COLUMNS = (
    "ratelimit_type",
    "ratelimit_limit",
    "ratelimit_refill_rate",
    "ratelimit_refill_interval",
)


class RatelimitType(StrEnum):
    FAST = "fast"
    CONSISTENT = "consistent"


class Key(Base):
    __tablename__ = "keys"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: new_id("key"),
    )
    key_auth_id: Mapped[str] = mapped_column(
        ForeignKey("key_auth.id", ondelete="CASCADE"),
        nullable=False,
    )
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Security
    hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="SHA-256 hash of the raw key (never store raw key)",
    )
    start: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="First characters of the key for identification",
    )

    # Root keys carry the workspace they may administer
    for_workspace_id: Mapped[str | None] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=True,
    )

    # Mutable attributes
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    owner_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Caller-defined reference to the tenant using this key",
    )
    meta: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="JSON-serialized metadata object",
    )
    expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Expiration timestamp (None = never expires)",
    )
    remaining: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Uses left before the key becomes invalid (None = unlimited)",
    )

    # Rate limiting (all four set, or all four NULL)
    ratelimit_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    ratelimit_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ratelimit_refill_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ratelimit_refill_interval: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Refill interval in milliseconds",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    key_auth: Mapped[KeyAuth] = relationship("KeyAuth", back_populates="keys")  # type: ignore[name-defined]

    __table_args__ = (
        Index("ix_keys_key_auth_id", "key_auth_id"),
        Index("ix_keys_workspace_id", "workspace_id"),
        CheckConstraint(
            "(ratelimit_type IS NULL) = (ratelimit_limit IS NULL)"
            " AND (ratelimit_type IS NULL) = (ratelimit_refill_rate IS NULL)"
            " AND (ratelimit_type IS NULL) = (ratelimit_refill_interval IS NULL)",
            name="ck_keys_ratelimit_all_or_nothing",
        ),
    )

    @property
    def is_root_key(self) -> bool:
        return self.for_workspace_id is not None

    @property
    def has_ratelimit(self) -> bool:
        return self.ratelimit_type is not None

    def __repr__(self) -> str:
        return f"<Key id={self.id} workspace={self.workspace_id} start={self.start!r}>"
