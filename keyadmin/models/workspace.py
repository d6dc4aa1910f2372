"""Workspace and KeyAuth models - the tenant hierarchy keys live in.

Every key belongs to exactly one workspace. Keys are grouped under a
KeyAuth (one per API the workspace protects); audit entries reference the
KeyAuth so an API's history can be listed without joining through keys.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from keyadmin.database import Base
from keyadmin.ids import new_id


class Workspace(Base):
    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: new_id("workspace"),
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    key_auths: Mapped[list[KeyAuth]] = relationship(
        "KeyAuth", back_populates="workspace", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Workspace id={self.id} name={self.name!r}>"


class KeyAuth(Base):
    __tablename__ = "key_auth"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        default=lambda: new_id("keyAuth"),
    )
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    workspace: Mapped[Workspace] = relationship("Workspace", back_populates="key_auths")
    keys: Mapped[list[Key]] = relationship(  # type: ignore[name-defined]
        "Key", back_populates="key_auth", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<KeyAuth id={self.id} workspace={self.workspace_id}>"
