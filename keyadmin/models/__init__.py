"""ORM models package.

Import all models here so that SQLAlchemy's metadata is fully populated
when Alembic runs autogenerate. The order of imports matters for foreign
key resolution.
"""

from keyadmin.models.workspace import KeyAuth, Workspace
from keyadmin.models.api_key import RATELIMIT_COLUMNS, Key, RatelimitType
from keyadmin.models.audit import ActorType, AuditEvent, AuditLog

__all__ = [
    "Workspace",
    "KeyAuth",
    "Key",
    "RatelimitType",
    "RATELIMIT_COLUMNS",
    "AuditLog",
    "ActorType",
    "AuditEvent",
]
