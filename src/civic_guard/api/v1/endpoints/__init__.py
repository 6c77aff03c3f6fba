# src/civic_guard/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .anonymous import router as anonymous_router
from .audit import router as audit_router
from .items import router as items_router
from .moderation import router as moderation_router
from .system import router as system_router

__all__ = [
    "anonymous_router",
    "audit_router",
    "items_router",
    "moderation_router",
    "system_router",
]
