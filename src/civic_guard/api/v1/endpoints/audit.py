"""Audit trail endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query

from civic_guard.api.v1.dependencies import CurrentAccountDep, PipelineDep, http_error
from civic_guard.models import AuditLogEntry
from civic_guard.schemas.audit import AuditEntryResponse
from civic_guard.services.errors import ItemNotFound, ModerationError
from civic_guard.services.roles import require_role

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/pending", response_model=list[AuditEntryResponse])
async def pending_review(
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
    limit: int = Query(50, ge=1, le=200),
) -> list[AuditLogEntry]:
    """Worklist of items waiting on a human decision, oldest first."""
    try:
        require_role(pipeline.roles, current_account.actor_ref, action="view the review worklist")
    except ModerationError as exc:
        raise http_error(exc) from exc
    return pipeline.audit.pending_review(limit=limit)


@router.get("/{item_id}", response_model=list[AuditEntryResponse])
async def get_audit_trail(
    item_id: str,
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
) -> list[AuditLogEntry]:
    """Return every recorded decision for an item in chronological order."""
    try:
        item = pipeline.lookup_status(item_id)
        if item.is_anonymous and not current_account.is_privileged:
            raise ItemNotFound(f"Item {item_id} not found")
        return pipeline.get_audit_trail(item_id)
    except ModerationError as exc:
        raise http_error(exc) from exc
