# src/civic_guard/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    anonymous_router,
    audit_router,
    items_router,
    moderation_router,
    system_router,
)

__all__ = [
    "anonymous_router",
    "audit_router",
    "items_router",
    "moderation_router",
    "system_router",
]
