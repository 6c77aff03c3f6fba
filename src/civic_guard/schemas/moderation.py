# src/civic_guard/schemas/moderation.py
"""Moderation-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field


class AuthorityDecisionCreate(BaseModel):
    """Schema for an authority override."""

    decision: Literal["approve", "reject"]
    reason: str | None = Field(None, max_length=1000)


class TransitionResponse(BaseModel):
    """Schema for a state change applied by the pipeline."""

    item_id: str
    source: str
    decision: str
    from_status: str
    to_status: str
    reasons: list[str] = Field(default_factory=list)
    confidence: float | None = None
    discarded: bool = False
