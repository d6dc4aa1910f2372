"""Partial key updates.

Every optional field of an update request has three states:

    absent        -> leave the column unchanged
    explicit null -> clear the column
    value         -> set the column

Pydantic records which fields the caller actually sent in
``model_fields_set``; that set, not the field values, decides whether a
column is written. ``None`` on a model attribute therefore means either
"absent" or "null" and is never inspected on its own.

Two fields deviate from the plain mapping:
- ``meta``: null resets the metadata to an empty object, it does not
  leave it unchanged.
- ``ratelimit``: the four rate-limit columns are written together or not
  at all.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from keyadmin.models.api_key import RATELIMIT_COLUMNS, RatelimitType

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# 9999-12-31T23:59:59.999Z, the last instant a datetime can hold
MAX_EXPIRES_MS = 253402300799999


# ------------------------------------------------------------------ #
# Request schema
# ------------------------------------------------------------------ #


class RatelimitSettings(BaseModel):
    """Per-key rate limit. All four fields are required together."""

    model_config = ConfigDict(populate_by_name=True)

    type: RatelimitType = Field(
        ...,
        description="Fast ratelimiting doesn't add latency, while consistent ratelimiting is more accurate.",
    )
    limit: int = Field(..., ge=1, description="The total amount of burstable requests.")
    refill_rate: int = Field(
        ...,
        ge=1,
        alias="refillRate",
        description="How many tokens to refill during each refillInterval.",
    )
    refill_interval: int = Field(
        ...,
        ge=1,
        alias="refillInterval",
        description="Determines the speed at which tokens are refilled, in milliseconds.",
    )


class UpdateKeyRequest(BaseModel):
    """Request body of ``POST /v1/keys.updateKey``."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "keyId": "key_123",
                "name": "Customer X",
                "ownerId": "user_123",
                "meta": {"roles": ["admin", "user"], "stripeCustomerId": "cus_1234"},
                "ratelimit": {"type": "fast", "limit": 10, "refillRate": 1, "refillInterval": 60},
                "remaining": 1000,
            }
        },
    )

    key_id: str = Field(..., alias="keyId", description="The id of the key you want to modify")
    name: str | None = Field(default=None, description="The name of the key")
    owner_id: str | None = Field(
        default=None,
        alias="ownerId",
        description=(
            "The id of the tenant associated with this key. Returned when the key "
            "is verified so you know who is accessing your API."
        ),
    )
    meta: dict[str, Any] | None = Field(
        default=None,
        description="Any additional metadata you want to store with the key. Set `null` to reset to {}.",
    )
    expires: int | None = Field(
        default=None,
        ge=0,
        le=MAX_EXPIRES_MS,
        description="Unix timestamp in milliseconds when the key expires. Set `null` to never expire.",
    )
    ratelimit: RatelimitSettings | None = Field(
        default=None,
        description="Per-key ratelimiting. Set `null` to disable.",
    )
    remaining: int | None = Field(
        default=None,
        ge=0,
        description="Uses left before the key becomes invalid. Set `null` for unlimited.",
    )


# ------------------------------------------------------------------ #
# Resolved patch
# ------------------------------------------------------------------ #


@dataclass
class KeyPatch:
    """Column-level changes ready to be written to the ``keys`` table."""

    values: dict[str, Any] = field(default_factory=dict)

    @property
    def fields(self) -> list[str]:
        return list(self.values)

    def __bool__(self) -> bool:
        return bool(self.values)


def _from_epoch_ms(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


class FieldPatchResolver:
    """Turns an UpdateKeyRequest into a KeyPatch. Pure, no I/O."""

    # request field -> column, for fields copied verbatim
    _SCALAR_COLUMNS = {
        "name": "name",
        "owner_id": "owner_id",
        "remaining": "remaining",
    }

    def resolve(self, request: UpdateKeyRequest) -> KeyPatch:
        supplied = request.model_fields_set
        values: dict[str, Any] = {}

        for attr, column in self._SCALAR_COLUMNS.items():
            if attr in supplied:
                values[column] = getattr(request, attr)

        if "expires" in supplied:
            values["expires"] = None if request.expires is None else _from_epoch_ms(request.expires)

        if "meta" in supplied:
            values["meta"] = json.dumps(request.meta if request.meta is not None else {})

        if "ratelimit" in supplied:
            values.update(self._resolve_ratelimit(request.ratelimit))

        return KeyPatch(values=values)

    @staticmethod
    def _resolve_ratelimit(ratelimit: RatelimitSettings | None) -> dict[str, Any]:
        if ratelimit is None:
            return dict.fromkeys(RATELIMIT_COLUMNS)

        if not isinstance(ratelimit, RatelimitSettings):
            raise TypeError(
                f"ratelimit must be RatelimitSettings or None, got {type(ratelimit).__name__}"
            )

        return {
            "ratelimit_type": str(ratelimit.type),
            "ratelimit_limit": ratelimit.limit,
            "ratelimit_refill_rate": ratelimit.refill_rate,
            "ratelimit_refill_interval": ratelimit.refill_interval,
        }
