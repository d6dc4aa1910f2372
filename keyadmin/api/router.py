"""Main API router - aggregates all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from keyadmin.api import health, keys

# Public router (no auth required)
public_router = APIRouter()
public_router.include_router(health.router)

# Root-key authenticated API
api_router = APIRouter()
api_router.include_router(keys.router)
