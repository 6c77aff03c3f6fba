"""Community consensus: one ballot per identity and the threshold evaluator."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from civic_guard.core.settings import Settings, settings
from civic_guard.models import ChatMessage, ConsensusBallot, ConsensusTally, ModerationItem, Report
from civic_guard.models.consensus import (
    BALLOT_REPORT,
    BALLOT_VOTE,
    DIRECTION_DOWN,
    DIRECTION_UP,
)
from civic_guard.models.item import STATUS_APPROVED, STATUS_COMMUNITY_REVIEW, STATUS_HIDDEN
from civic_guard.services.errors import AlreadyVoted, InvalidState, ItemNotFound, ValidationError

logger = logging.getLogger(__name__)

DIRECTIONS = {"up": DIRECTION_UP, "down": DIRECTION_DOWN}


@dataclass(frozen=True)
class TallySnapshot:
    """Counters read back inside the transaction that changed them."""

    upvotes: int
    downvotes: int
    report_count: int

    @property
    def total_votes(self) -> int:
        return self.upvotes + self.downvotes


@dataclass(frozen=True)
class BallotOutcome:
    """Result of a ballot: the locked item, fresh counters and any proposed status."""

    item: ModerationItem
    tally: TallySnapshot
    proposed_status: str | None


def evaluate_report_votes(
    upvotes: int,
    downvotes: int,
    config: Settings = settings,
) -> str | None:
    """Return ``approved`` when the community rule fires, otherwise None.

    A downvote majority never rejects; rejection is left to an authority.
    """
    if upvotes + downvotes < config.consensus_min_votes:
        return None
    if upvotes > downvotes and upvotes >= config.consensus_min_upvotes:
        return STATUS_APPROVED
    return None


def evaluate_report_flags(report_count: int, config: Settings = settings) -> str | None:
    """Return ``hidden`` once the flag count has reached the threshold."""
    if report_count >= config.chat_report_hide_threshold:
        return STATUS_HIDDEN
    return None


class ConsensusService:
    """Record votes and report flags as single check-then-write units.

    Every ballot locks the item row, checks its state and the voter's previous
    ballot, inserts the new ballot and increments the counter in SQL, all in
    the caller's transaction. Nothing here commits: the pipeline commits the
    ballot together with whatever transition it proposes.
    """

    def __init__(self, db: Session, config: Settings = settings) -> None:
        self.db = db
        self.config = config

    def lock_item(self, item_id: str) -> ModerationItem:
        """Load an item with a row lock, refreshing any cached copy."""
        item = (
            self.db.query(ModerationItem)
            .filter(ModerationItem.id == item_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if item is None:
            raise ItemNotFound(f"Item {item_id} not found")
        return item

    def open_tally(self, item: ModerationItem) -> ConsensusTally:
        """Return the item's tally, creating a zeroed one when absent."""
        tally = self.db.get(ConsensusTally, item.id)
        if tally is None:
            tally = ConsensusTally(item_id=item.id, upvotes=0, downvotes=0, report_count=0)
            self.db.add(tally)
            self.db.flush()
        return tally

    def cast_vote(self, item_id: str, voter_ref: str, direction: str) -> BallotOutcome:
        """Add one up or down vote on a report under community review."""
        if direction not in DIRECTIONS:
            raise ValidationError(f"Unknown vote direction: {direction!r}")

        item = self.lock_item(item_id)
        if item.is_terminal:
            raise InvalidState(f"Item {item_id} is already {item.status}")
        if not isinstance(item, Report) or item.status != STATUS_COMMUNITY_REVIEW:
            raise InvalidState(f"Item {item_id} is not open for community votes")

        self._insert_ballot(
            ConsensusBallot(
                item_id=item_id,
                voter_ref=voter_ref,
                ballot=BALLOT_VOTE,
                direction=DIRECTIONS[direction],
            )
        )
        counter = ConsensusTally.upvotes if direction == "up" else ConsensusTally.downvotes
        self._increment(item, counter.key)

        snapshot = self._snapshot(item_id)
        proposed = evaluate_report_votes(snapshot.upvotes, snapshot.downvotes, self.config)
        logger.info(
            "Vote %s on item %s (up=%d, down=%d)",
            direction,
            item_id,
            snapshot.upvotes,
            snapshot.downvotes,
        )
        return BallotOutcome(item=item, tally=snapshot, proposed_status=proposed)

    def cast_report(self, item_id: str, voter_ref: str, reason: str | None = None) -> BallotOutcome:
        """Add one report flag on a chat message."""
        item = self.lock_item(item_id)
        if item.is_terminal:
            raise InvalidState(f"Item {item_id} is already {item.status}")
        if not isinstance(item, ChatMessage):
            raise InvalidState(f"Item {item_id} does not accept report flags")

        self._insert_ballot(
            ConsensusBallot(
                item_id=item_id,
                voter_ref=voter_ref,
                ballot=BALLOT_REPORT,
                reason=reason,
            )
        )
        self._increment(item, ConsensusTally.report_count.key)

        snapshot = self._snapshot(item_id)
        proposed = evaluate_report_flags(snapshot.report_count, self.config)
        if proposed == item.status:
            proposed = None
        logger.info("Report flag on item %s (count=%d)", item_id, snapshot.report_count)
        return BallotOutcome(item=item, tally=snapshot, proposed_status=proposed)

    def report_count(self, item_id: str) -> int:
        """Return the current flag count, 0 when no tally exists yet."""
        count = self.db.execute(
            select(ConsensusTally.report_count).where(ConsensusTally.item_id == item_id)
        ).scalar_one_or_none()
        return count or 0

    def has_ballot(self, item_id: str, voter_ref: str, ballot: str) -> bool:
        return (
            self.db.execute(
                select(ConsensusBallot.voter_ref).where(
                    ConsensusBallot.item_id == item_id,
                    ConsensusBallot.voter_ref == voter_ref,
                    ConsensusBallot.ballot == ballot,
                )
            ).first()
            is not None
        )

    def _insert_ballot(self, ballot: ConsensusBallot) -> None:
        if self.has_ballot(ballot.item_id, ballot.voter_ref, ballot.ballot):
            raise AlreadyVoted(f"Voter already cast a {ballot.ballot} on item {ballot.item_id}")
        self.db.add(ballot)
        try:
            self.db.flush()
        except IntegrityError as exc:
            # Lost a race that the row lock could not prevent; the PK decides.
            self.db.rollback()
            raise AlreadyVoted(
                f"Voter already cast a {ballot.ballot} on item {ballot.item_id}"
            ) from exc

    def _increment(self, item: ModerationItem, column: str) -> None:
        self.open_tally(item)
        self.db.execute(
            update(ConsensusTally)
            .where(ConsensusTally.item_id == item.id)
            .values({column: getattr(ConsensusTally, column) + 1})
            .execution_options(synchronize_session="fetch")
        )

    def _snapshot(self, item_id: str) -> TallySnapshot:
        row = self.db.execute(
            select(
                ConsensusTally.upvotes,
                ConsensusTally.downvotes,
                ConsensusTally.report_count,
            ).where(ConsensusTally.item_id == item_id)
        ).one()
        return TallySnapshot(
            upvotes=row.upvotes,
            downvotes=row.downvotes,
            report_count=row.report_count,
        )
