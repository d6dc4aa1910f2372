#!/usr/bin/env python3
"""Seed development database with sample workspaces and keys.

Creates:
  - 1 internal workspace that owns the root keys
  - 2 tenant workspaces: "Acme" and "Demo Corp"
  - 1 KeyAuth (protected API) per tenant workspace
  - 1 root key per tenant workspace, able to administer that workspace
  - 2 sample keys per tenant workspace (one with a rate limit)
  - Prints the raw root keys and a ready-to-run curl command

Idempotent: safe to run multiple times - workspaces identified by name are
reused, and keys are only created for workspaces that have none yet. Raw
keys are only printed when they are created; they are never stored.

Usage:
    # From project root (database must be running and migrated)
    python scripts/seed.py
"""

from __future__ import annotations

import asyncio
import json
import secrets
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure the project root is on sys.path so "keyadmin.*" imports work whether
# this script is run directly or via "python scripts/seed.py".
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

INTERNAL_WORKSPACE = "keyadmin-internal"

TENANT_WORKSPACES: list[str] = ["Acme", "Demo Corp"]

SAMPLE_KEYS: list[dict] = [
    {
        "name": "production backend",
        "owner_id": "user_backend",
        "meta": {"plan": "pro", "region": "eu-west-1"},
        "remaining": None,
        "ratelimit": None,
    },
    {
        "name": "trial integration",
        "owner_id": "user_trial",
        "meta": {"plan": "trial"},
        "remaining": 1000,
        "ratelimit": {"type": "fast", "limit": 10, "refill_rate": 1, "refill_interval": 60_000},
    },
]


def _new_raw_key(prefix: str) -> str:
    return f"{prefix}_{secrets.token_urlsafe(24)}"


async def seed() -> None:
    """Main seed routine - idempotent."""
    from sqlalchemy import select

    from keyadmin.auth.verifier import hash_key
    from keyadmin.config import get_settings
    from keyadmin.database import close_db, get_session_factory, init_db
    from keyadmin.models import Key, KeyAuth, Workspace

    settings = get_settings()
    init_db(settings)
    session_factory = get_session_factory()

    printed_keys: list[dict] = []

    async with session_factory() as db:
        # ------------------------------------------------------------------
        # Workspaces
        # ------------------------------------------------------------------
        async def _workspace(name: str) -> Workspace:
            result = await db.execute(select(Workspace).where(Workspace.name == name))
            workspace = result.scalar_one_or_none()
            if workspace is None:
                workspace = Workspace(name=name)
                db.add(workspace)
                await db.flush()
                print(f"  [+] Workspace created: {name} ({workspace.id})")
            else:
                print(f"  [~] Workspace exists:  {name} ({workspace.id})")
            return workspace

        internal = await _workspace(INTERNAL_WORKSPACE)

        result = await db.execute(select(KeyAuth).where(KeyAuth.workspace_id == internal.id))
        root_key_auth = result.scalars().first()
        if root_key_auth is None:
            root_key_auth = KeyAuth(workspace_id=internal.id)
            db.add(root_key_auth)
            await db.flush()

        for name in TENANT_WORKSPACES:
            workspace = await _workspace(name)

            existing = await db.execute(select(Key.id).where(Key.workspace_id == workspace.id).limit(1))
            if existing.scalar_one_or_none() is not None:
                print(f"  [~] Keys exist for {name}, skipping")
                continue

            key_auth = KeyAuth(workspace_id=workspace.id)
            db.add(key_auth)
            await db.flush()

            # ------------------------------------------------------------------
            # Root key (lives in the internal workspace, administers this one)
            # ------------------------------------------------------------------
            raw_root = _new_raw_key("root")
            root_key = Key(
                key_auth_id=root_key_auth.id,
                workspace_id=internal.id,
                for_workspace_id=workspace.id,
                hash=hash_key(raw_root),
                start=raw_root[:8],
                name=f"{name} root key",
            )
            db.add(root_key)

            # ------------------------------------------------------------------
            # Sample keys
            # ------------------------------------------------------------------
            sample_ids: list[str] = []
            for sample in SAMPLE_KEYS:
                raw = _new_raw_key("sk")
                ratelimit = sample["ratelimit"] or {}
                key = Key(
                    key_auth_id=key_auth.id,
                    workspace_id=workspace.id,
                    hash=hash_key(raw),
                    start=raw[:8],
                    name=sample["name"],
                    owner_id=sample["owner_id"],
                    meta=json.dumps(sample["meta"]),
                    remaining=sample["remaining"],
                    ratelimit_type=ratelimit.get("type"),
                    ratelimit_limit=ratelimit.get("limit"),
                    ratelimit_refill_rate=ratelimit.get("refill_rate"),
                    ratelimit_refill_interval=ratelimit.get("refill_interval"),
                )
                db.add(key)
                await db.flush()
                sample_ids.append(key.id)

            await db.flush()
            print(f"  [+] Keys seeded for {name}: root {root_key.id}, samples {', '.join(sample_ids)}")
            printed_keys.append(
                {
                    "workspace": name,
                    "root_key": raw_root,
                    "sample_key_id": sample_ids[0],
                }
            )

        await db.commit()

    # ------------------------------------------------------------------
    # Print root keys to stdout
    # ------------------------------------------------------------------
    divider = "=" * 72
    print(f"\n{divider}")
    print("SEED COMPLETE - Root keys (shown once, store them now):")
    print(divider)
    for entry in printed_keys:
        print(
            f"\n  Workspace : {entry['workspace']}\n"
            f"  Root key  : {entry['root_key']}"
        )
        print(
            f"\n  curl -s -X POST http://localhost:8000/v1/keys.updateKey \\\n"
            f"    -H 'Authorization: Bearer {entry['root_key']}' \\\n"
            f"    -H 'Content-Type: application/json' \\\n"
            f"    -d '{{\"keyId\": \"{entry['sample_key_id']}\", \"name\": \"renamed\"}}'"
        )
    print(f"\n{divider}")
    print("  API Docs : http://localhost:8000/docs")
    print(f"{divider}\n")

    await close_db()


if __name__ == "__main__":
    asyncio.run(seed())
