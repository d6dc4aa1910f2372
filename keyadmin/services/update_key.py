"""Update-key workflow.

    authorize -> look up -> resolve patch -> commit (update + audit) -> invalidate

Each step either returns or raises ApiError, and a raise ends the request:
authorization and lookup failures happen before anything is written, and
the commit is all-or-nothing. Invalidation runs only after a successful
commit and cannot fail the request. Nothing is retried.

All collaborators are passed in, so the workflow can be assembled with
test doubles.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keyadmin.auth.guard import AuthorizationGuard
from keyadmin.auth.verifier import KeyVerifier
from keyadmin.models.audit import AuditLog
from keyadmin.services.cache_invalidator import CacheInvalidator
from keyadmin.services.key_lookup import KeyLookup
from keyadmin.services.key_patch import FieldPatchResolver, UpdateKeyRequest
from keyadmin.services.key_updater import TransactionalUpdater
from keyadmin.services.usage_limiter import UsageLimiter
from keyadmin.telemetry.logging import bind_actor_context, bind_workspace_context

log = structlog.get_logger(__name__)


class UpdateKeyWorkflow:
    def __init__(
        self,
        *,
        guard: AuthorizationGuard,
        lookup: KeyLookup,
        resolver: FieldPatchResolver,
        updater: TransactionalUpdater,
        invalidator: CacheInvalidator,
    ) -> None:
        self._guard = guard
        self._lookup = lookup
        self._resolver = resolver
        self._updater = updater
        self._invalidator = invalidator

    @classmethod
    def build(
        cls,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        verifier: KeyVerifier,
        usage_limiter: UsageLimiter,
    ) -> UpdateKeyWorkflow:
        """Assemble the workflow from its three external collaborators."""
        return cls(
            guard=AuthorizationGuard(verifier),
            lookup=KeyLookup(session_factory),
            resolver=FieldPatchResolver(),
            updater=TransactionalUpdater(session_factory),
            invalidator=CacheInvalidator(usage_limiter),
        )

    async def run(self, authorization: str | None, request: UpdateKeyRequest) -> AuditLog:
        context = await self._guard.authorize(authorization)
        bind_workspace_context(context.authorized_workspace_id)
        bind_actor_context(context.root_key_id)
        log.debug("key.update.authorized", key_id=request.key_id)

        key = await self._lookup.find(request.key_id, context)

        patch = self._resolver.resolve(request)
        log.debug("key.update.patch_resolved", key_id=key.id, fields=patch.fields)

        entry = await self._updater.apply(key, patch, context)

        await self._invalidator.invalidate(key.id)
        return entry
