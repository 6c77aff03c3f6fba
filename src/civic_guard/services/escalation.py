"""Escalation events emitted on notable pipeline transitions.

Delivery (push, email, in-app) belongs to another layer. This module only
hands events over, and the pipeline treats every emit as fire-and-forget.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from civic_guard.models import EscalationOutbound
from civic_guard.models.account import ROLE_ADMIN, ROLE_CIVIL_DEFENSE

logger = logging.getLogger(__name__)

EVENT_CRITICAL_REPORT = "critical_report"
EVENT_BLOCKED_MESSAGE = "blocked_message"
EVENT_COMMUNITY_FLAGGED = "community_flagged"
EVENT_ANONYMOUS_REPORT = "anonymous_report"

# Anonymous report severity -> notification priority.
SEVERITY_PRIORITY = {
    "critical": "critical",
    "high": "high",
    "medium": "medium",
    "low": "low",
}


@dataclass(frozen=True)
class EscalationEvent:
    """Payload handed to the notification layer."""

    item_id: str
    kind: str
    severity: str
    reasons: tuple[str, ...] = ()
    target_roles: tuple[str, ...] = field(default=(ROLE_ADMIN,))


class EscalationEmitter(Protocol):
    """Consumer of escalation events."""

    def emit(self, event: EscalationEvent) -> None:
        """Accept an event for delivery."""


class LoggingEscalationEmitter:
    """Emitter that only writes events to the log."""

    def emit(self, event: EscalationEvent) -> None:
        logger.info(
            "Escalation %s for item %s (severity=%s, targets=%s)",
            event.kind,
            event.item_id,
            event.severity,
            ",".join(event.target_roles),
        )


class OutboxEscalationEmitter:
    """Emitter that stores events in ``escalation_outbound`` for later delivery."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def emit(self, event: EscalationEvent) -> None:
        record = EscalationOutbound(
            item_id=event.item_id,
            event_kind=event.kind,
            severity=event.severity,
            reasons=list(event.reasons),
            target_roles=list(event.target_roles),
            status="pending",
            retry_count=0,
        )
        try:
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning(
                "Could not queue escalation %s for item %s: %s",
                event.kind,
                event.item_id,
                exc,
            )
            return
        logger.debug("Queued escalation %s for item %s", event.kind, event.item_id)


def critical_report_event(item_id: str, reasons: tuple[str, ...]) -> EscalationEvent:
    return EscalationEvent(
        item_id=item_id,
        kind=EVENT_CRITICAL_REPORT,
        severity="critical",
        reasons=reasons,
        target_roles=(ROLE_CIVIL_DEFENSE, ROLE_ADMIN),
    )


def blocked_message_event(item_id: str, reasons: tuple[str, ...]) -> EscalationEvent:
    return EscalationEvent(
        item_id=item_id,
        kind=EVENT_BLOCKED_MESSAGE,
        severity="medium",
        reasons=reasons,
        target_roles=(ROLE_ADMIN,),
    )


def community_flagged_event(item_id: str, report_count: int, reason: str | None) -> EscalationEvent:
    summary = f"{report_count} community reports"
    if reason:
        summary = f"{summary}: {reason}"
    return EscalationEvent(
        item_id=item_id,
        kind=EVENT_COMMUNITY_FLAGGED,
        severity="medium",
        reasons=(summary,),
        target_roles=(ROLE_ADMIN, ROLE_CIVIL_DEFENSE),
    )


def anonymous_report_event(item_id: str, severity: str, category: str) -> EscalationEvent:
    return EscalationEvent(
        item_id=item_id,
        kind=EVENT_ANONYMOUS_REPORT,
        severity=SEVERITY_PRIORITY.get(severity, "medium"),
        reasons=(f"anonymous {category} report",),
        target_roles=(ROLE_ADMIN, ROLE_CIVIL_DEFENSE),
    )
