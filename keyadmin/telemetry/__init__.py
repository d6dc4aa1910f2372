"""Telemetry package for observability.

This package contains structured logging with request correlation.
"""

from __future__ import annotations

from keyadmin.telemetry.logging import (
    RequestIdMiddleware,
    bind_actor_context,
    bind_workspace_context,
    clear_context,
    configure_logging,
)

__all__ = [
    "RequestIdMiddleware",
    "bind_actor_context",
    "bind_workspace_context",
    "clear_context",
    "configure_logging",
]
