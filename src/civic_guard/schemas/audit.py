# src/civic_guard/schemas/audit.py
"""Audit trail Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AuditEntryResponse(BaseModel):
    """One immutable decision record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: str
    source: str
    decision: str
    confidence: float | None
    reasons: list[str]
    from_status: str | None
    to_status: str | None
    at: datetime
