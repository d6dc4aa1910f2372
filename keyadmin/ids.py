"""Prefixed random identifiers.

Every persisted entity gets a string id of the form ``<prefix>_<random>``
so an id alone tells an operator what kind of object it refers to.
"""

from __future__ import annotations

import secrets
from typing import Literal

# Base58 alphabet (no 0/O/I/l) keeps ids unambiguous when read aloud
_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_RANDOM_LENGTH = 22

IdKind = Literal["key", "keyAuth", "workspace", "auditLog"]

_PREFIXES: dict[str, str] = {
    "key": "key",
    "keyAuth": "ks",
    "workspace": "ws",
    "auditLog": "log",
}


def new_id(kind: IdKind) -> str:
    """Return a new random id for *kind*, e.g. ``new_id("auditLog") -> "log_..."``."""
    prefix = _PREFIXES[kind]
    random_part = "".join(secrets.choice(_BASE58_ALPHABET) for _ in range(_RANDOM_LENGTH))
    return f"{prefix}_{random_part}"
