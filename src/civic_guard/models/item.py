# src/civic_guard/models/item.py
"""Models for items moving through the moderation pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar
from uuid import uuid4

from sqlalchemy import (
    CHAR,
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civic_guard.db.session import Base
from civic_guard.db.time import utcnow

if TYPE_CHECKING:
    from civic_guard.models.consensus import ConsensusTally

KIND_REPORT = "report"
KIND_CHAT_MESSAGE = "chat_message"
KIND_ANONYMOUS_REPORT = "anonymous_report"

STATUS_SUBMITTED = "submitted"
STATUS_SCORING = "scoring"
STATUS_COMMUNITY_REVIEW = "community_review"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_ACTIVE = "active"
STATUS_HIDDEN = "hidden"
STATUS_BLOCKED = "blocked"

# Statuses the scoring trigger still owes a decision.
UNSCORED_STATUSES = frozenset({STATUS_SUBMITTED, STATUS_SCORING})

SEVERITIES = ("low", "medium", "high", "critical")

RESOLVED_AUTOMATED = "automated"
RESOLVED_COMMUNITY = "community"
RESOLVED_AUTHORITY = "authority"


def _new_item_id() -> str:
    return uuid4().hex


class ModerationItem(Base):
    """Common state-machine record shared by every moderated item kind.

    Rows are only ever instantiated through one of the concrete variants
    below; `kind` is the discriminator.
    """

    __tablename__ = "moderation_item"
    __table_args__ = (
        Index("ix_moderation_item_kind_status", "kind", "status"),
        Index("ix_moderation_item_channel", "channel_id"),
    )

    TERMINAL_STATUSES: ClassVar[frozenset[str]] = frozenset()

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_item_id)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    # Null for anonymous items; never backfilled.
    author_ref: Mapped[str | None] = mapped_column(String(64), nullable=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(40), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    urgent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_SUBMITTED)

    # Chat messages only.
    channel_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Reports only; all optional.
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Anonymous reports only. The token itself is never stored.
    protocol_hash: Mapped[str | None] = mapped_column(CHAR(64), nullable=True, unique=True)
    response_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Latest scoring attempt; a re-score overwrites all four fields together.
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    scoring_action: Mapped[str | None] = mapped_column(String(20), nullable=True)
    scoring_reasons: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    scored_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scoring_failed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Who moved the item into a terminal status: automated, community or authority.
    resolved_by: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Set at most once; absorbing when present.
    authority_reviewer: Mapped[str | None] = mapped_column(String(64), nullable=True)
    authority_decision: Mapped[str | None] = mapped_column(String(10), nullable=True)
    authority_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    authority_decided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    consensus: Mapped[ConsensusTally | None] = relationship(
        "ConsensusTally",
        back_populates="item",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __mapper_args__: ClassVar[dict[str, Any]] = {"polymorphic_on": "kind"}

    @property
    def is_terminal(self) -> bool:
        """Return True once no automated or community transition may apply."""
        return self.authority_decision is not None or self.status in self.TERMINAL_STATUSES

    @property
    def is_anonymous(self) -> bool:
        """Return True for items that must never be linked to an identity."""
        return self.kind == KIND_ANONYMOUS_REPORT


class Report(ModerationItem):
    """Citizen incident report, approved by automation, community or authority."""

    TERMINAL_STATUSES: ClassVar[frozenset[str]] = frozenset({STATUS_APPROVED, STATUS_REJECTED})

    __mapper_args__: ClassVar[dict[str, Any]] = {"polymorphic_identity": KIND_REPORT}


class AnonymousReport(Report):
    """Incident report with no identity linkage, tracked through a protocol token."""

    __mapper_args__: ClassVar[dict[str, Any]] = {"polymorphic_identity": KIND_ANONYMOUS_REPORT}


class ChatMessage(ModerationItem):
    """Chat message; visible while `active`, terminal once `blocked`."""

    TERMINAL_STATUSES: ClassVar[frozenset[str]] = frozenset({STATUS_BLOCKED})

    __mapper_args__: ClassVar[dict[str, Any]] = {"polymorphic_identity": KIND_CHAT_MESSAGE}


@event.listens_for(AnonymousReport, "before_insert")
@event.listens_for(AnonymousReport, "before_update")
def _refuse_identity_on_anonymous(mapper: Any, connection: Any, target: AnonymousReport) -> None:
    if target.author_ref is not None:
        raise ValueError("Anonymous reports cannot carry an author reference")
