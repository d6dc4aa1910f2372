"""Tests for partial key updates (FieldPatchResolver).

Covers:
- Absent fields produce no column change
- Explicit null clears a column; meta null resets to "{}"
- expires is converted from epoch milliseconds to a UTC datetime
- ratelimit writes all four columns or none
- Request schema validation (aliases, bounds, incomplete ratelimit)
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from keyadmin.models.api_key import RATELIMIT_COLUMNS
from keyadmin.services.key_patch import (
    MAX_EXPIRES_MS,
    FieldPatchResolver,
    KeyPatch,
    RatelimitSettings,
    UpdateKeyRequest,
)


def _resolve(body: dict) -> KeyPatch:
    return FieldPatchResolver().resolve(UpdateKeyRequest.model_validate(body))


# ------------------------------------------------------------------ #
# Absent vs null vs value
# ------------------------------------------------------------------ #


class TestTriStateFields:
    def test_only_key_id_yields_empty_patch(self) -> None:
        patch = _resolve({"keyId": "key_123"})
        assert patch.values == {}
        assert not patch
        assert patch.fields == []

    def test_value_sets_column(self) -> None:
        patch = _resolve({"keyId": "key_123", "name": "Customer Y", "ownerId": "user_9"})
        assert patch.values == {"name": "Customer Y", "owner_id": "user_9"}

    def test_null_clears_column(self) -> None:
        patch = _resolve({"keyId": "key_123", "name": None, "ownerId": None, "remaining": None})
        assert patch.values == {"name": None, "owner_id": None, "remaining": None}

    def test_absent_fields_are_not_in_patch(self) -> None:
        patch = _resolve({"keyId": "key_123", "remaining": 5})
        assert patch.fields == ["remaining"]
        for column in ("name", "owner_id", "meta", "expires", *RATELIMIT_COLUMNS):
            assert column not in patch.values

    def test_remaining_zero_is_a_value(self) -> None:
        patch = _resolve({"keyId": "key_123", "remaining": 0})
        assert patch.values == {"remaining": 0}

    def test_snake_case_names_are_accepted(self) -> None:
        request = UpdateKeyRequest(key_id="key_123", owner_id="user_1")
        patch = FieldPatchResolver().resolve(request)
        assert patch.values == {"owner_id": "user_1"}


# ------------------------------------------------------------------ #
# meta
# ------------------------------------------------------------------ #


class TestMeta:
    def test_meta_object_is_serialized(self) -> None:
        patch = _resolve({"keyId": "key_123", "meta": {"roles": ["admin"], "n": 1}})
        assert json.loads(patch.values["meta"]) == {"roles": ["admin"], "n": 1}

    def test_meta_null_resets_to_empty_object(self) -> None:
        patch = _resolve({"keyId": "key_123", "meta": None})
        assert patch.values == {"meta": "{}"}

    def test_meta_empty_object(self) -> None:
        patch = _resolve({"keyId": "key_123", "meta": {}})
        assert patch.values == {"meta": "{}"}

    def test_meta_absent_is_untouched(self) -> None:
        patch = _resolve({"keyId": "key_123", "name": "x"})
        assert "meta" not in patch.values


# ------------------------------------------------------------------ #
# expires
# ------------------------------------------------------------------ #


class TestExpires:
    def test_epoch_ms_converted_to_utc_datetime(self) -> None:
        patch = _resolve({"keyId": "key_123", "expires": 1893456000000})
        assert patch.values["expires"] == datetime(2030, 1, 1, tzinfo=UTC)

    def test_sub_second_precision_kept(self) -> None:
        patch = _resolve({"keyId": "key_123", "expires": 1893456000500})
        assert patch.values["expires"] == datetime(2030, 1, 1, 0, 0, 0, 500000, tzinfo=UTC)

    def test_null_means_never_expires(self) -> None:
        patch = _resolve({"keyId": "key_123", "expires": None})
        assert patch.values == {"expires": None}

    def test_latest_representable_instant(self) -> None:
        patch = _resolve({"keyId": "key_123", "expires": MAX_EXPIRES_MS})
        assert patch.values["expires"] == datetime(9999, 12, 31, 23, 59, 59, 999000, tzinfo=UTC)

    @pytest.mark.parametrize("expires", [MAX_EXPIRES_MS + 1, 10**20, -1])
    def test_out_of_range_rejected_by_schema(self, expires: int) -> None:
        with pytest.raises(ValidationError):
            UpdateKeyRequest.model_validate({"keyId": "key_123", "expires": expires})


# ------------------------------------------------------------------ #
# ratelimit
# ------------------------------------------------------------------ #


class TestRatelimit:
    def test_object_sets_all_four_columns(self) -> None:
        patch = _resolve(
            {
                "keyId": "key_123",
                "ratelimit": {"type": "fast", "limit": 10, "refillRate": 1, "refillInterval": 60},
            }
        )
        assert patch.values == {
            "ratelimit_type": "fast",
            "ratelimit_limit": 10,
            "ratelimit_refill_rate": 1,
            "ratelimit_refill_interval": 60,
        }

    def test_type_is_stored_as_plain_string(self) -> None:
        patch = _resolve(
            {
                "keyId": "key_123",
                "ratelimit": {"type": "consistent", "limit": 5, "refillRate": 5, "refillInterval": 1000},
            }
        )
        assert type(patch.values["ratelimit_type"]) is str
        assert patch.values["ratelimit_type"] == "consistent"

    def test_null_clears_all_four_columns(self) -> None:
        patch = _resolve({"keyId": "key_123", "ratelimit": None})
        assert patch.values == dict.fromkeys(RATELIMIT_COLUMNS)

    def test_absent_leaves_all_four_columns(self) -> None:
        patch = _resolve({"keyId": "key_123", "name": "x"})
        assert not set(RATELIMIT_COLUMNS) & set(patch.values)

    def test_non_settings_value_is_rejected(self) -> None:
        request = UpdateKeyRequest.model_construct(
            key_id="key_123",
            ratelimit={"type": "fast"},
            _fields_set={"key_id", "ratelimit"},
        )
        with pytest.raises(TypeError):
            FieldPatchResolver().resolve(request)


# ------------------------------------------------------------------ #
# Request schema
# ------------------------------------------------------------------ #


class TestUpdateKeyRequestValidation:
    def test_key_id_required(self) -> None:
        with pytest.raises(ValidationError):
            UpdateKeyRequest.model_validate({"name": "x"})

    @pytest.mark.parametrize(
        "ratelimit",
        [
            {"type": "fast"},
            {"type": "fast", "limit": 10},
            {"type": "fast", "limit": 10, "refillRate": 1},
            {"limit": 10, "refillRate": 1, "refillInterval": 60},
        ],
    )
    def test_incomplete_ratelimit_rejected(self, ratelimit: dict) -> None:
        with pytest.raises(ValidationError):
            UpdateKeyRequest.model_validate({"keyId": "key_123", "ratelimit": ratelimit})

    def test_unknown_ratelimit_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RatelimitSettings.model_validate(
                {"type": "slow", "limit": 10, "refillRate": 1, "refillInterval": 60}
            )

    def test_non_positive_limit_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RatelimitSettings.model_validate(
                {"type": "fast", "limit": 0, "refillRate": 1, "refillInterval": 60}
            )

    def test_negative_remaining_rejected(self) -> None:
        with pytest.raises(ValidationError):
            UpdateKeyRequest.model_validate({"keyId": "key_123", "remaining": -1})

    def test_fields_set_records_explicit_null(self) -> None:
        request = UpdateKeyRequest.model_validate({"keyId": "key_123", "name": None})
        assert request.model_fields_set == {"key_id", "name"}
