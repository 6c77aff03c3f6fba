# src/civic_guard/schemas/anonymous.py
"""Anonymous report Pydantic schemas.

None of these carry a field that could identify the requester.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .item import Severity


class AnonymousReportCreate(BaseModel):
    """Schema for submitting an anonymous report.

    Length bounds are enforced by the service so they follow configuration.
    """

    content: str
    category: str = Field(..., min_length=1, max_length=40)
    severity: Severity = "medium"
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    address: str | None = Field(None, max_length=500)


class AnonymousReceipt(BaseModel):
    """Returned once at intake; the protocol cannot be recovered later."""

    protocol: str
    message: str = "Report received. Keep the protocol to follow its status."


class AnonymousStatusResponse(BaseModel):
    """Public status visible to a protocol holder."""

    model_config = ConfigDict(from_attributes=True, extra="forbid")

    protocol: str
    status: str
    last_update: datetime
    response_message: str | None
    can_receive_updates: bool


class AnonymousResponseCreate(BaseModel):
    """Schema for an authority response to an anonymous report."""

    message: str = Field(..., min_length=1, max_length=2000)


class AnonymousStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    pending: int
    resolved: int
    by_status: dict[str, int]
    by_category: dict[str, int]
    by_severity: dict[str, int]
