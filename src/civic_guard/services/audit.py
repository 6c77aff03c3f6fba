"""Audit log services for the moderation pipeline."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from civic_guard.models import AuditLogEntry, ModerationItem
from civic_guard.models.item import STATUS_ACTIVE, STATUS_COMMUNITY_REVIEW, STATUS_HIDDEN

logger = logging.getLogger(__name__)

AuditFailureHook = Callable[[str, Exception], None]


@dataclass
class AuditMetrics:
    """Counters exposed to operators for audit write health."""

    recorded_count: int = 0
    failed_writes: int = 0
    last_error: str | None = None

    def record_success(self) -> None:
        self.recorded_count += 1

    def record_failure(self, error: Exception) -> None:
        self.failed_writes += 1
        self.last_error = f"{type(error).__name__}: {error}"


audit_metrics = AuditMetrics()


class AuditLog:
    """Append-only sink for every automated, community and authority decision.

    Writes are best-effort. The caller commits its state transition first and
    then records the decision here; a failed write is rolled back, logged and
    reported to the metrics and the optional failure hook, but never raised.
    """

    def __init__(
        self,
        db: Session,
        metrics: AuditMetrics | None = None,
        on_failure: AuditFailureHook | None = None,
    ) -> None:
        self.db = db
        self.metrics = metrics or audit_metrics
        self.on_failure = on_failure

    def record(
        self,
        item_id: str,
        source: str,
        decision: str,
        reasons: Iterable[str] = (),
        confidence: float | None = None,
        *,
        from_status: str | None = None,
        to_status: str | None = None,
    ) -> AuditLogEntry | None:
        """Append one decision and commit it.

        Returns:
            The persisted entry, or None when the write failed.
        """
        entry = AuditLogEntry(
            item_id=item_id,
            source=source,
            decision=decision,
            confidence=confidence,
            reasons=list(reasons),
            from_status=from_status,
            to_status=to_status,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.metrics.record_failure(exc)
            logger.error(
                "Audit write failed for item %s (%s/%s): %s",
                item_id,
                source,
                decision,
                exc,
                exc_info=True,
            )
            if self.on_failure is not None:
                try:
                    self.on_failure(item_id, exc)
                except Exception:  # pragma: no cover - observer must not break callers
                    logger.exception("Audit failure hook raised for item %s", item_id)
            return None

        self.metrics.record_success()
        return entry

    def trail(self, item_id: str) -> list[AuditLogEntry]:
        """Return every entry for an item in the order it was written."""
        return (
            self.db.query(AuditLogEntry)
            .filter(AuditLogEntry.item_id == item_id)
            .order_by(AuditLogEntry.at, AuditLogEntry.id)
            .all()
        )

    def pending_review(self, limit: int = 50) -> list[AuditLogEntry]:
        """Return the latest entry of each item still waiting on a human.

        That is every undecided item sitting in community review or hidden,
        plus chat messages left active after a scoring fault.
        """
        awaiting = (
            select(ModerationItem.id)
            .where(
                ModerationItem.authority_decision.is_(None),
                or_(
                    ModerationItem.status.in_((STATUS_COMMUNITY_REVIEW, STATUS_HIDDEN)),
                    and_(
                        ModerationItem.status == STATUS_ACTIVE,
                        ModerationItem.scoring_failed.is_(True),
                    ),
                ),
            )
        )
        latest = (
            select(func.max(AuditLogEntry.id))
            .where(AuditLogEntry.item_id.in_(awaiting))
            .group_by(AuditLogEntry.item_id)
        )
        return (
            self.db.query(AuditLogEntry)
            .filter(AuditLogEntry.id.in_(latest))
            .order_by(AuditLogEntry.at, AuditLogEntry.id)
            .limit(limit)
            .all()
        )
