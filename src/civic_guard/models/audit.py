# src/civic_guard/models/audit.py
"""Append-only audit trail of automated, community and authority decisions."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Float, Index, Integer, String, event
from sqlalchemy.orm import Mapped, mapped_column

from civic_guard.db.session import Base
from civic_guard.db.time import utcnow

SOURCE_AUTOMATED = "automated"
SOURCE_COMMUNITY = "community"
SOURCE_AUTHORITY = "authority"

DECISION_ERROR = "error"


class AuditLogEntry(Base):
    """Single decision record. Rows are inserted once and never touched again.

    There is no identity column: the trail explains *why* an item moved, not *who* submitted it.
    """

    __tablename__ = "audit_log_entry"
    __table_args__ = (Index("ix_audit_log_entry_item_id", "item_id"),)

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"),
        primary_key=True,
        autoincrement=True,
    )
    item_id: Mapped[str] = mapped_column(String(32), nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    decision: Mapped[str] = mapped_column(String(30), nullable=False)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    reasons: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


@event.listens_for(AuditLogEntry, "before_update")
def _refuse_update(mapper: Any, connection: Any, target: AuditLogEntry) -> None:
    raise ValueError("Audit log entries are append-only")


@event.listens_for(AuditLogEntry, "before_delete")
def _refuse_delete(mapper: Any, connection: Any, target: AuditLogEntry) -> None:
    raise ValueError("Audit log entries are append-only")
