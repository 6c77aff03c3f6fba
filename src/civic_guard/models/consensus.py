# src/civic_guard/models/consensus.py
"""Models capturing community votes and report flags on moderated items."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civic_guard.db.session import Base
from civic_guard.db.time import utcnow

if TYPE_CHECKING:
    from civic_guard.models.item import ModerationItem

BALLOT_VOTE = "vote"
BALLOT_REPORT = "report"

DIRECTION_UP = 1
DIRECTION_DOWN = -1


class ConsensusTally(Base):
    """Aggregate counters for one item under community review."""

    __tablename__ = "consensus_tally"

    item_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("moderation_item.id", ondelete="CASCADE"),
        primary_key=True,
    )
    upvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    downvotes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    report_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    opened_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    item: Mapped[ModerationItem] = relationship("ModerationItem", back_populates="consensus")

    @property
    def total_votes(self) -> int:
        """Return the number of up and down votes combined."""
        return self.upvotes + self.downvotes


class ConsensusBallot(Base):
    """One vote or report flag by one identity on one item.

    The composite primary key is what makes a second ballot of the same kind
    from the same identity impossible.
    """

    __tablename__ = "consensus_ballot"
    __table_args__ = (
        CheckConstraint("ballot IN ('vote', 'report')", name="ck_consensus_ballot_kind"),
        CheckConstraint(
            "direction IS NULL OR direction IN (1, -1)",
            name="ck_consensus_ballot_direction",
        ),
        Index("ix_consensus_ballot_item_id", "item_id"),
    )

    item_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("moderation_item.id", ondelete="CASCADE"),
        primary_key=True,
    )
    voter_ref: Mapped[str] = mapped_column(String(64), primary_key=True)
    ballot: Mapped[str] = mapped_column(String(10), primary_key=True)

    # 1 = up, -1 = down; null for report flags.
    direction: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
