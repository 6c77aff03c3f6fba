"""Anonymous report intake and protocol-token status lookups.

An anonymous report runs through the same state machine as a named one, but
no identity is stored next to it. The requester keeps a protocol token; the
database only keeps that token's SHA-256 digest, so nothing maps back from a
stored item to whoever submitted it. Tokens are never logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from civic_guard.core.security import hash_protocol_token, mint_protocol_token
from civic_guard.core.settings import Settings, settings
from civic_guard.models import AnonymousReport
from civic_guard.models.item import KIND_ANONYMOUS_REPORT, SEVERITIES, STATUS_SUBMITTED
from civic_guard.services.errors import ItemNotFound, ValidationError
from civic_guard.services.escalation import anonymous_report_event
from civic_guard.services.pipeline import ModerationPipeline
from civic_guard.services.roles import require_role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnonymousStatus:
    """Everything a token holder may learn about their report."""

    protocol: str
    status: str
    last_update: datetime
    response_message: str | None
    can_receive_updates: bool


@dataclass(frozen=True)
class AnonymousStats:
    total: int
    pending: int
    resolved: int
    by_status: dict[str, int]
    by_category: dict[str, int]
    by_severity: dict[str, int]


class AnonymityGuard:
    """Identity-free intake in front of :class:`ModerationPipeline`."""

    def __init__(
        self,
        db: Session,
        pipeline: ModerationPipeline | None = None,
        config: Settings = settings,
    ) -> None:
        self.db = db
        self.config = config
        self.pipeline = pipeline or ModerationPipeline(db, config=config)

    def submit(
        self,
        content: str,
        category: str,
        severity: str = "medium",
        latitude: float | None = None,
        longitude: float | None = None,
        address: str | None = None,
    ) -> tuple[AnonymousReport, str]:
        """Store an anonymous report and return it with its protocol token.

        The token is returned exactly once; it cannot be recovered later.
        """
        content = (content or "").strip()
        category = (category or "").strip().lower()
        if len(content) < self.config.anonymous_min_length:
            raise ValidationError(
                f"Description must have at least {self.config.anonymous_min_length} characters"
            )
        if len(content) > self.config.anonymous_max_length:
            raise ValidationError(
                f"Description cannot exceed {self.config.anonymous_max_length} characters"
            )
        if not category:
            raise ValidationError("Report category is required")
        if severity not in SEVERITIES:
            raise ValidationError(f"Severity must be one of: {', '.join(SEVERITIES)}")

        token = mint_protocol_token()
        report = AnonymousReport(
            author_ref=None,
            content=content,
            category=category,
            severity=severity,
            urgent=severity == "critical",
            latitude=latitude,
            longitude=longitude,
            address=(address or "").strip() or None,
            protocol_hash=hash_protocol_token(token),
            status=STATUS_SUBMITTED,
        )
        self.db.add(report)
        self.db.commit()
        logger.info(
            "Anonymous report %s received (category=%s, severity=%s, has_location=%s)",
            report.id,
            category,
            severity,
            latitude is not None and longitude is not None,
        )

        self.pipeline.escalate(anonymous_report_event(report.id, severity, category))
        if self.pipeline.scores_inline:
            self.pipeline.request_scoring(report.id)
            self.db.refresh(report)
        return report, token

    def _find(self, token: str) -> AnonymousReport:
        if not token or not token.strip():
            raise ValidationError("Protocol is required")
        report = (
            self.db.query(AnonymousReport)
            .filter(AnonymousReport.protocol_hash == hash_protocol_token(token))
            .one_or_none()
        )
        if report is None:
            raise ItemNotFound("Protocol not found")
        return report

    def lookup_by_token(self, token: str) -> AnonymousStatus:
        """Return the public status of the report behind a protocol token."""
        report = self._find(token)
        return AnonymousStatus(
            protocol=token.strip(),
            status=report.status,
            last_update=report.updated_at,
            response_message=report.response_message,
            can_receive_updates=not report.is_terminal,
        )

    def respond(self, item_id: str, reviewer_ref: str, message: str) -> AnonymousReport:
        """Attach a public response that the token holder can read."""
        require_role(self.pipeline.roles, reviewer_ref, action="respond to anonymous reports")
        message = (message or "").strip()
        if not message:
            raise ValidationError("Response message is required")

        report = self.db.get(AnonymousReport, item_id)
        if report is None:
            raise ItemNotFound(f"Anonymous report {item_id} not found")
        report.response_message = message
        self.db.commit()
        logger.info("Response added to anonymous report %s", item_id)
        return report

    def stats(self, actor_ref: str) -> AnonymousStats:
        """Return counters over every anonymous report."""
        require_role(self.pipeline.roles, actor_ref, action="view anonymous report statistics")

        def grouped(column) -> dict[str, int]:
            rows = (
                self.db.query(column, func.count(AnonymousReport.id))
                .filter(AnonymousReport.kind == KIND_ANONYMOUS_REPORT)
                .group_by(column)
                .all()
            )
            return {key: count for key, count in rows}

        by_status = grouped(AnonymousReport.status)
        total = sum(by_status.values())
        resolved = sum(
            count
            for status, count in by_status.items()
            if status in AnonymousReport.TERMINAL_STATUSES
        )
        return AnonymousStats(
            total=total,
            pending=total - resolved,
            resolved=resolved,
            by_status=by_status,
            by_category=grouped(AnonymousReport.category),
            by_severity=grouped(AnonymousReport.severity),
        )
