# src/civic_guard/schemas/item.py
"""Item-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["low", "medium", "high", "critical"]


class ReportCreate(BaseModel):
    """Schema for submitting an incident report."""

    content: str = Field(..., min_length=1, max_length=5000, description="Report description")
    category: str = Field(..., min_length=1, max_length=40, description="Incident category")
    severity: Severity = "medium"
    urgent: bool = False
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    address: str | None = Field(None, max_length=500)


class ChatMessageCreate(BaseModel):
    """Schema for posting a chat message.

    The length limit is enforced by the pipeline so it follows configuration.
    """

    channel_id: str = Field(..., min_length=1, max_length=64)
    content: str = Field(..., min_length=1)


class TallyResponse(BaseModel):
    """Community counters attached to an item."""

    model_config = ConfigDict(from_attributes=True)

    upvotes: int
    downvotes: int
    report_count: int


class ItemResponse(BaseModel):
    """Schema for an item and its moderation state returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    kind: str
    author_ref: str | None
    content: str
    category: str
    severity: str
    urgent: bool
    status: str
    channel_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    address: str | None = None
    score: float | None = None
    scoring_action: str | None = None
    scoring_reasons: list[str] | None = None
    scoring_failed: bool = False
    resolved_by: str | None = None
    authority_decision: str | None = None
    authority_reason: str | None = None
    authority_decided_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    consensus: TallyResponse | None = None


class ChannelCreate(BaseModel):
    """Schema for registering a chat channel."""

    channel_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    channel_type: Literal["general", "emergency", "neighborhood"] = "general"
    max_message_length: int | None = Field(None, ge=1, le=5000)


class ChannelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    channel_id: str
    name: str
    channel_type: str
    max_message_length: int
    is_active: bool
    created_by: str
    created_at: datetime
