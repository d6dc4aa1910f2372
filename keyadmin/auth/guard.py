"""Root key authorization for administrative endpoints.

Flow:
1. Extract the bearer token from the Authorization header
2. Ask the KeyVerifier for a verdict
3. Reject anything that is not a valid root key
4. Return the AuthorizationContext the rest of the request works with

Every rejection is an ApiError; nothing else is raised from here.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from keyadmin.auth.verifier import KeyVerifier
from keyadmin.core.errors import internal_error, unauthorized

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class AuthorizationContext:
    """Who is calling and what they may touch. Lives for one request."""

    valid: bool
    is_root_key: bool
    authorized_workspace_id: str
    root_key_id: str


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an Authorization header value, or None."""
    if not authorization:
        return None
    token = authorization.removeprefix("Bearer ").strip()
    return token or None


class AuthorizationGuard:
    """Validates the caller's root key."""

    def __init__(self, verifier: KeyVerifier) -> None:
        self._verifier = verifier

    async def authorize(self, authorization: str | None) -> AuthorizationContext:
        token = extract_bearer_token(authorization)
        if token is None:
            raise unauthorized("key required")

        result = await self._verifier.verify(token)
        if result.error is not None:
            log.error("auth.verification_failed", error=result.error.message)
            raise internal_error("unable to verify the root key")

        verdict = result.verdict
        if verdict is None or not verdict.valid:
            log.warning("auth.root_key_invalid", key_id=verdict.key_id if verdict else None)
            raise unauthorized("the root key is not valid")

        if not verdict.is_root_key:
            log.warning("auth.root_key_required", key_id=verdict.key_id)
            raise unauthorized("root key required")

        return AuthorizationContext(
            valid=verdict.valid,
            is_root_key=verdict.is_root_key,
            authorized_workspace_id=verdict.authorized_workspace_id,
            root_key_id=verdict.key_id,
        )
