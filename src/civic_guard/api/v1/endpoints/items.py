"""Item intake, lookup and community ballot endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Query, status

from civic_guard.api.v1.dependencies import CurrentAccountDep, PipelineDep, http_error
from civic_guard.models import ChatChannel, ModerationItem
from civic_guard.models.account import ROLE_ADMIN, ROLE_SYSTEM
from civic_guard.schemas.item import (
    ChannelCreate,
    ChannelResponse,
    ChatMessageCreate,
    ItemResponse,
    ReportCreate,
)
from civic_guard.schemas.moderation import TransitionResponse
from civic_guard.schemas.vote import BallotResponse, ReportFlagCreate, VoteCreate
from civic_guard.services.errors import ModerationError
from civic_guard.services.pipeline import BallotResult
from civic_guard.services.roles import require_role

router = APIRouter(prefix="/items", tags=["items"])

SCORING_TRIGGER_ROLES = frozenset({ROLE_SYSTEM, ROLE_ADMIN})


def _ballot_response(result: BallotResult) -> BallotResponse:
    return BallotResponse(
        item_id=result.item_id,
        status=result.status,
        upvotes=result.tally.upvotes,
        downvotes=result.tally.downvotes,
        report_count=result.tally.report_count,
        transitioned=result.transition is not None,
    )


@router.post("/reports", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def submit_report(
    report_data: ReportCreate,
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
) -> ModerationItem:
    """Submit an incident report; it is scored before the response returns."""
    try:
        return pipeline.submit_report(
            current_account.actor_ref,
            report_data.content,
            report_data.category,
            severity=report_data.severity,
            urgent=report_data.urgent,
            latitude=report_data.latitude,
            longitude=report_data.longitude,
            address=report_data.address,
        )
    except ModerationError as exc:
        raise http_error(exc) from exc


@router.post("/messages", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def submit_chat_message(
    message_data: ChatMessageCreate,
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
) -> ModerationItem:
    """Post a chat message to a channel."""
    try:
        return pipeline.submit_chat_message(
            current_account.actor_ref,
            message_data.channel_id,
            message_data.content,
        )
    except ModerationError as exc:
        raise http_error(exc) from exc


@router.post("/channels", response_model=ChannelResponse, status_code=status.HTTP_201_CREATED)
async def create_channel(
    channel_data: ChannelCreate,
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
) -> ChatChannel:
    """Register a chat channel. Requires the civil defense or admin role."""
    try:
        return pipeline.create_channel(
            current_account.actor_ref,
            channel_data.channel_id,
            channel_data.name,
            channel_type=channel_data.channel_type,
            max_message_length=channel_data.max_message_length,
        )
    except ModerationError as exc:
        raise http_error(exc) from exc


@router.get("", response_model=list[ItemResponse])
async def list_items(
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
    kind: str | None = Query(None),
    item_status: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
) -> list[ModerationItem]:
    """List items, newest first. Anonymous reports are listed for authorities only."""
    return pipeline.list_items(
        kind=kind,
        status=item_status,
        limit=limit,
        include_anonymous=current_account.is_privileged,
    )


@router.get("/channels/{channel_id}/messages", response_model=list[ItemResponse])
async def list_channel_messages(
    channel_id: str,
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
    limit: int = Query(50, ge=1, le=100),
) -> list[ModerationItem]:
    """Return the visible messages of a channel in chronological order."""
    return pipeline.list_channel_messages(channel_id, limit=limit)


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(
    item_id: str,
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
) -> ModerationItem:
    """Return an item with its current status and tally."""
    try:
        item = pipeline.lookup_status(item_id)
    except ModerationError as exc:
        raise http_error(exc) from exc

    if item.is_anonymous and not current_account.is_privileged:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


@router.post("/{item_id}/score", response_model=TransitionResponse)
async def trigger_scoring(
    item_id: str,
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
) -> TransitionResponse:
    """Score an item again. Repeated calls are harmless."""
    try:
        require_role(
            pipeline.roles,
            current_account.actor_ref,
            SCORING_TRIGGER_ROLES,
            "trigger scoring",
        )
        transition = pipeline.request_scoring(item_id)
    except ModerationError as exc:
        raise http_error(exc) from exc
    return TransitionResponse(**asdict(transition))


@router.post("/{item_id}/votes", response_model=BallotResponse, status_code=status.HTTP_201_CREATED)
async def cast_vote(
    item_id: str,
    vote_data: VoteCreate,
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
) -> BallotResponse:
    """Vote on a report under community review."""
    try:
        result = pipeline.cast_vote(item_id, current_account.actor_ref, vote_data.direction)
    except ModerationError as exc:
        raise http_error(exc) from exc
    return _ballot_response(result)


@router.post(
    "/{item_id}/reports",
    response_model=BallotResponse,
    status_code=status.HTTP_201_CREATED,
)
async def cast_report(
    item_id: str,
    flag_data: ReportFlagCreate,
    current_account: CurrentAccountDep,
    pipeline: PipelineDep,
) -> BallotResponse:
    """Flag a chat message as inappropriate."""
    try:
        result = pipeline.cast_report(item_id, current_account.actor_ref, flag_data.reason)
    except ModerationError as exc:
        raise http_error(exc) from exc
    return _ballot_response(result)
