"""Key management endpoints.

POST /v1/keys.updateKey - Update a key's mutable attributes (root key only)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel

from keyadmin.api.dependencies import get_update_key_workflow
from keyadmin.services.key_patch import UpdateKeyRequest
from keyadmin.services.update_key import UpdateKeyWorkflow

router = APIRouter(prefix="/v1", tags=["keys"])


class UpdateKeyResponse(BaseModel):
    """Empty object on success."""


@router.post(
    "/keys.updateKey",
    response_model=UpdateKeyResponse,
    summary="Update a key (root key only)",
    response_description=(
        "The key was successfully updated, it may take up to 30s for this "
        "to take effect in all regions"
    ),
)
async def update_key(
    body: UpdateKeyRequest,
    authorization: str | None = Header(default=None),
    workflow: UpdateKeyWorkflow = Depends(get_update_key_workflow),
) -> UpdateKeyResponse:
    """Update the name, owner, metadata, expiration, remaining uses or
    rate limit of a key.

    Omitted fields are left unchanged; fields sent as `null` are cleared
    (`meta: null` resets the metadata to `{}`).
    """
    await workflow.run(authorization, body)
    return UpdateKeyResponse()
