"""Anonymous report endpoints.

Intake and status lookups take no credentials. The protocol travels in the
request body rather than the URL so it never shows up in access logs.
"""

from __future__ import annotations

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from civic_guard.api.v1.dependencies import AnonymityDep, CurrentAccountDep, http_error
from civic_guard.schemas.anonymous import (
    AnonymousReceipt,
    AnonymousReportCreate,
    AnonymousResponseCreate,
    AnonymousStatsResponse,
    AnonymousStatusResponse,
)
from civic_guard.services.anonymity import AnonymousStats, AnonymousStatus
from civic_guard.services.errors import ModerationError

router = APIRouter(prefix="/anonymous", tags=["anonymous"])


class ProtocolLookup(BaseModel):
    protocol: str = Field(..., min_length=1, max_length=128)


@router.post("/reports", response_model=AnonymousReceipt, status_code=status.HTTP_201_CREATED)
async def submit_anonymous_report(
    report_data: AnonymousReportCreate,
    guard: AnonymityDep,
) -> AnonymousReceipt:
    """Submit a report without any identity. Keep the returned protocol."""
    try:
        _, token = guard.submit(
            report_data.content,
            report_data.category,
            severity=report_data.severity,
            latitude=report_data.latitude,
            longitude=report_data.longitude,
            address=report_data.address,
        )
    except ModerationError as exc:
        raise http_error(exc) from exc
    return AnonymousReceipt(protocol=token)


@router.post("/status", response_model=AnonymousStatusResponse)
async def get_anonymous_status(lookup: ProtocolLookup, guard: AnonymityDep) -> AnonymousStatus:
    """Look up a report's public status by its protocol."""
    try:
        return guard.lookup_by_token(lookup.protocol)
    except ModerationError as exc:
        raise http_error(exc) from exc


@router.post("/{item_id}/response")
async def respond_to_anonymous_report(
    item_id: str,
    response_data: AnonymousResponseCreate,
    current_account: CurrentAccountDep,
    guard: AnonymityDep,
) -> dict[str, str]:
    """Attach a public response visible through the protocol lookup."""
    try:
        guard.respond(item_id, current_account.actor_ref, response_data.message)
    except ModerationError as exc:
        raise http_error(exc) from exc
    return {"status": "response_recorded"}


@router.get("/stats", response_model=AnonymousStatsResponse)
async def get_anonymous_stats(
    current_account: CurrentAccountDep,
    guard: AnonymityDep,
) -> AnonymousStats:
    """Aggregate counters over anonymous reports."""
    try:
        return guard.stats(current_account.actor_ref)
    except ModerationError as exc:
        raise http_error(exc) from exc
