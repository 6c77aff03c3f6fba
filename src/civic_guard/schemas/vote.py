# src/civic_guard/schemas/vote.py
"""Vote and report-flag Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field


class VoteCreate(BaseModel):
    """Schema for casting a community vote."""

    direction: Literal["up", "down"] = Field(..., description="up to support, down to dispute")


class ReportFlagCreate(BaseModel):
    """Schema for flagging a chat message."""

    reason: str | None = Field(None, max_length=500)


class BallotResponse(BaseModel):
    """Tally state after a ballot was recorded."""

    item_id: str
    status: str
    upvotes: int
    downvotes: int
    report_count: int
    transitioned: bool
