"""System and transparency endpoints."""

from __future__ import annotations

import time

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from civic_guard.api.v1.dependencies import SessionDep
from civic_guard.core.settings import settings
from civic_guard.services.audit import audit_metrics

router = APIRouter(prefix="/system", tags=["system", "transparency"])


@router.get("/config")
async def get_public_config() -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes secrets and connection strings; suitable for transparency UIs.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "jwt_algorithm": settings.jwt_algorithm,
            "access_token_expire_minutes": settings.access_token_expire_minutes,
            "debug": settings.debug,
        },
        "moderation": {
            "thresholds": settings.moderation_thresholds,
            "scoring_mode": settings.scoring_mode,
        },
        "chat": {
            "max_message_length": settings.chat_max_message_length,
            "warning_suspend_threshold": settings.chat_warning_suspend_threshold,
        },
        "anonymous": {
            "min_length": settings.anonymous_min_length,
            "max_length": settings.anonymous_max_length,
        },
    }


@router.get("/health")
async def get_system_health(db: SessionDep) -> dict[str, object]:
    """Health of the database and of audit writes."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {e}"

    return {
        "status": "healthy" if db_status == "healthy" else "unhealthy",
        "timestamp": int(time.time()),
        "components": {
            "database": db_status,
            "audit": {
                "recorded": audit_metrics.recorded_count,
                "failed_writes": audit_metrics.failed_writes,
                "last_error": audit_metrics.last_error,
            },
        },
        "version": settings.app_version,
    }
