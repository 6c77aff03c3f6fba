"""Authority override endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter

from civic_guard.api.v1.dependencies import CurrentAccountDep, PipelineDep, http_error
from civic_guard.schemas.moderation import AuthorityDecisionCreate, TransitionResponse
from civic_guard.services.errors import ModerationError

router = APIRouter(prefix="/moderation", tags=["moderation"])


@router.post("/{item_id}/decision", response_model=TransitionResponse)
async def decide(
    item_id: str,
    decision_data: AuthorityDecisionCreate,
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
) -> TransitionResponse:
    """Force a terminal decision. Requires the civil defense or admin role."""
    try:
        transition = pipeline.authority_decide(
            item_id,
            current_account.actor_ref,
            decision_data.decision,
            decision_data.reason,
        )
    except ModerationError as exc:
        raise http_error(exc) from exc
    return TransitionResponse(**asdict(transition))
