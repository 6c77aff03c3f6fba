"""Orchestration of the moderation state machine.

Items are created in ``submitted``, scored, and then either resolved by the
automated rule or handed to the community and the authority. Each public
method re-reads the item under a row lock before it transitions it, commits
the transition, and only then writes the audit entry and any escalation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from civic_guard.core.settings import Settings, settings
from civic_guard.db.time import utcnow
from civic_guard.models import (
    Account,
    AuditLogEntry,
    ChatChannel,
    ChatMessage,
    ModerationItem,
    Report,
)
from civic_guard.models.account import PRIVILEGED_ROLES
from civic_guard.models.audit import (
    DECISION_ERROR,
    SOURCE_AUTHORITY,
    SOURCE_AUTOMATED,
    SOURCE_COMMUNITY,
)
from civic_guard.models.item import (
    KIND_ANONYMOUS_REPORT,
    KIND_CHAT_MESSAGE,
    RESOLVED_AUTHORITY,
    RESOLVED_AUTOMATED,
    RESOLVED_COMMUNITY,
    SEVERITIES,
    STATUS_ACTIVE,
    STATUS_APPROVED,
    STATUS_BLOCKED,
    STATUS_COMMUNITY_REVIEW,
    STATUS_HIDDEN,
    STATUS_REJECTED,
    STATUS_SCORING,
    STATUS_SUBMITTED,
    UNSCORED_STATUSES,
)
from civic_guard.services.audit import AuditLog
from civic_guard.services.consensus import ConsensusService, TallySnapshot
from civic_guard.services.errors import (
    AlreadyDecided,
    InvalidState,
    ItemNotFound,
    ModerationError,
    PermissionDenied,
    ValidationError,
)
from civic_guard.services.escalation import (
    EscalationEmitter,
    EscalationEvent,
    OutboxEscalationEmitter,
    blocked_message_event,
    community_flagged_event,
    critical_report_event,
)
from civic_guard.services.roles import AccountRoleProvider, RoleProvider, require_role
from civic_guard.services.scoring import (
    ACTION_ALLOW,
    ACTION_BLOCK,
    ACTION_HIDE,
    RECOMMEND_APPROVE,
    RECOMMEND_REJECT,
    ContentScorer,
    ScoringResult,
    build_chat_policy,
    build_report_policy,
)

logger = logging.getLogger(__name__)

DECISION_APPROVE = "approve"
DECISION_REJECT = "reject"
DECISION_DISCARDED = "discarded"
AUTHORITY_DECISIONS = (DECISION_APPROVE, DECISION_REJECT)

_CHAT_ACTION_STATUS = {
    ACTION_BLOCK: STATUS_BLOCKED,
    ACTION_HIDE: STATUS_HIDDEN,
    ACTION_ALLOW: STATUS_ACTIVE,
}
_REPORT_AUTHORITY_STATUS = {DECISION_APPROVE: STATUS_APPROVED, DECISION_REJECT: STATUS_REJECTED}
_CHAT_AUTHORITY_STATUS = {DECISION_APPROVE: STATUS_ACTIVE, DECISION_REJECT: STATUS_BLOCKED}


@dataclass(frozen=True)
class Transition:
    """A state change applied to one item (or a discarded attempt at one)."""

    item_id: str
    source: str
    decision: str
    from_status: str
    to_status: str
    reasons: tuple[str, ...] = ()
    confidence: float | None = None
    discarded: bool = False


@dataclass(frozen=True)
class BallotResult:
    """Outcome of a vote or report flag as seen by the caller."""

    item_id: str
    status: str
    tally: TallySnapshot
    transition: Transition | None = None


def _clean(value: str | None) -> str:
    return (value or "").strip()


class ModerationPipeline:
    """Drive items through scoring, community consensus and authority review."""

    def __init__(
        self,
        db: Session,
        *,
        config: Settings = settings,
        report_scorer: ContentScorer | None = None,
        chat_scorer: ContentScorer | None = None,
        roles: RoleProvider | None = None,
        audit: AuditLog | None = None,
        emitter: EscalationEmitter | None = None,
    ) -> None:
        self.db = db
        self.config = config
        self.report_scorer = report_scorer or ContentScorer(build_report_policy(config))
        self.chat_scorer = chat_scorer or ContentScorer(build_chat_policy(config))
        self.roles = roles or AccountRoleProvider(db)
        self.audit = audit or AuditLog(db)
        self.emitter = emitter or OutboxEscalationEmitter(db)
        self.consensus = ConsensusService(db, config)

    @property
    def scores_inline(self) -> bool:
        """Return True when submissions are scored inside the submit call."""
        return self.config.scoring_mode == "sync"

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def submit_report(
        self,
        author_ref: str,
        content: str,
        category: str,
        severity: str = "medium",
        urgent: bool = False,
        latitude: float | None = None,
        longitude: float | None = None,
        address: str | None = None,
    ) -> Report:
        """Validate and store a citizen report, then request scoring."""
        content = _clean(content)
        category = _clean(category).lower()
        if not _clean(author_ref):
            raise ValidationError("Reports require an author")
        self._validate_report_fields(content, category, severity, latitude, longitude)

        report = Report(
            author_ref=author_ref,
            content=content,
            category=category,
            severity=severity,
            urgent=urgent,
            latitude=latitude,
            longitude=longitude,
            address=_clean(address) or None,
            status=STATUS_SUBMITTED,
        )
        self.db.add(report)
        self.db.commit()
        logger.info("Report %s submitted (category=%s, severity=%s)", report.id, category, severity)

        if self.scores_inline:
            self.request_scoring(report.id)
            self.db.refresh(report)
        return report

    def submit_chat_message(self, author_ref: str, channel_id: str, content: str) -> ChatMessage:
        """Validate and store a chat message, then request scoring."""
        content = _clean(content)
        channel_id = _clean(channel_id)
        if not _clean(author_ref):
            raise ValidationError("Chat messages require an author")
        if not channel_id:
            raise ValidationError("Chat messages require a channel")
        if not content:
            raise ValidationError("Message content is required")

        max_length = self.config.chat_max_message_length
        channel = self.db.get(ChatChannel, channel_id)
        if channel is not None:
            if not channel.is_active:
                raise InvalidState(f"Channel {channel_id} is closed")
            max_length = channel.max_message_length
        if len(content) > max_length:
            raise ValidationError(f"Message exceeds {max_length} characters")

        account = self.db.get(Account, author_ref)
        if account is not None and account.is_suspended:
            raise PermissionDenied("Account is suspended from chat")

        message = ChatMessage(
            author_ref=author_ref,
            channel_id=channel_id,
            content=content,
            category="chat",
            severity="low",
            status=STATUS_SUBMITTED,
        )
        self.db.add(message)
        self.db.commit()
        logger.info("Chat message %s submitted to channel %s", message.id, channel_id)

        if self.scores_inline:
            self.request_scoring(message.id)
            self.db.refresh(message)
        return message

    def create_channel(
        self,
        creator_ref: str,
        channel_id: str,
        name: str,
        channel_type: str = "general",
        max_message_length: int | None = None,
    ) -> ChatChannel:
        """Register a channel with its own message length limit."""
        require_role(self.roles, creator_ref, action="create chat channels")
        channel_id = _clean(channel_id)
        name = _clean(name)
        if not channel_id or not name:
            raise ValidationError("Channel id and name are required")
        if max_message_length is None:
            max_message_length = self.config.chat_max_message_length
        if max_message_length < 1:
            raise ValidationError("Maximum message length must be positive")
        if self.db.get(ChatChannel, channel_id) is not None:
            raise InvalidState(f"Channel {channel_id} already exists")

        channel = ChatChannel(
            channel_id=channel_id,
            name=name,
            channel_type=channel_type,
            max_message_length=max_message_length,
            created_by=creator_ref,
        )
        self.db.add(channel)
        self.db.commit()
        logger.info("Chat channel %s created by %s", channel_id, creator_ref)
        return channel

    def _validate_report_fields(
        self,
        content: str,
        category: str,
        severity: str,
        latitude: float | None,
        longitude: float | None,
    ) -> None:
        if not content:
            raise ValidationError("Report content is required")
        if not category:
            raise ValidationError("Report category is required")
        if severity not in SEVERITIES:
            raise ValidationError(f"Severity must be one of: {', '.join(SEVERITIES)}")
        if latitude is not None and not -90 <= latitude <= 90:
            raise ValidationError("Latitude must be between -90 and 90")
        if longitude is not None and not -180 <= longitude <= 180:
            raise ValidationError("Longitude must be between -180 and 180")

    # ------------------------------------------------------------------
    # Automated scoring
    # ------------------------------------------------------------------

    def scorer_for(self, item: ModerationItem) -> ContentScorer:
        return self.chat_scorer if item.kind == KIND_CHAT_MESSAGE else self.report_scorer

    def request_scoring(self, item_id: str) -> Transition:
        """Score an item and apply the result.

        Safe to call any number of times: terminal items are left untouched and
        a scorer fault is routed to :meth:`record_scoring_failure`.
        """
        item = self.get_item(item_id)
        if item.is_terminal:
            return self._discard(item, "item already terminal")

        if item.status == STATUS_SUBMITTED:
            item.status = STATUS_SCORING
            self.db.commit()

        try:
            result = self.scorer_for(item).score(item.content, item.category)
        except Exception as exc:
            return self.record_scoring_failure(item_id, exc)
        return self.apply_score(item_id, result)

    def apply_score(self, item_id: str, result: ScoringResult) -> Transition:
        """Store a scoring result and apply the automated decision rule.

        Idempotent: a duplicate delivery recomputes the same target status, and
        a result arriving after the item became terminal is discarded.
        """
        item = self.consensus.lock_item(item_id)
        if item.is_terminal:
            self.db.rollback()
            return self._discard(item, "item already terminal")

        from_status = item.status
        first_scoring = from_status in UNSCORED_STATUSES
        item.score = result.score
        item.scoring_action = result.recommendation
        item.scoring_reasons = list(result.reasons)
        item.scored_at = utcnow()
        item.scoring_failed = False

        if isinstance(item, ChatMessage):
            to_status = self._chat_status(
                item_id, _CHAT_ACTION_STATUS.get(result.recommendation, STATUS_HIDDEN)
            )
            if first_scoring and result.recommendation in (ACTION_HIDE, ACTION_BLOCK):
                self._warn_author(item.author_ref)
        else:
            to_status = self._automated_report_status(result)
            if to_status == STATUS_COMMUNITY_REVIEW:
                self.consensus.open_tally(item)

        item.status = to_status
        if item.is_terminal:
            item.resolved_by = RESOLVED_AUTOMATED
        self.db.commit()

        transition = Transition(
            item_id=item_id,
            source=SOURCE_AUTOMATED,
            decision=result.recommendation,
            from_status=from_status,
            to_status=to_status,
            reasons=result.reasons,
            confidence=result.score,
        )
        self._record(transition)
        logger.info(
            "Scored %s %s: %.4f -> %s (%s)",
            item.kind,
            item_id,
            result.score,
            result.recommendation,
            to_status,
        )

        if first_scoring:
            if isinstance(item, Report) and result.score >= self.config.critical_report_score:
                self.escalate(critical_report_event(item_id, result.reasons))
            elif to_status == STATUS_BLOCKED:
                self.escalate(blocked_message_event(item_id, result.reasons))
        return transition

    def _chat_status(self, item_id: str, automated_status: str) -> str:
        """Never let an automated decision unhide a message the community hid."""
        if (
            automated_status == STATUS_ACTIVE
            and self.consensus.report_count(item_id) >= self.config.chat_report_hide_threshold
        ):
            return STATUS_HIDDEN
        return automated_status

    def _automated_report_status(self, result: ScoringResult) -> str:
        if (
            result.recommendation == RECOMMEND_APPROVE
            and result.score >= self.config.report_approve_threshold
        ):
            return STATUS_APPROVED
        if (
            result.recommendation == RECOMMEND_REJECT
            and result.score <= self.config.report_reject_threshold
        ):
            return STATUS_REJECTED
        return STATUS_COMMUNITY_REVIEW

    def record_scoring_failure(self, item_id: str, error: Exception) -> Transition:
        """Fail open after a scorer fault.

        Reports go to community review; chat messages stay visible and are
        flagged for a human to look at.
        """
        item = self.consensus.lock_item(item_id)
        if item.is_terminal:
            self.db.rollback()
            return self._discard(item, "item already terminal")

        from_status = item.status
        if isinstance(item, ChatMessage):
            to_status = self._chat_status(item_id, STATUS_ACTIVE)
        else:
            to_status = STATUS_COMMUNITY_REVIEW
            self.consensus.open_tally(item)
        item.status = to_status
        item.scoring_failed = True
        self.db.commit()

        reason = f"scoring failed: {type(error).__name__}"
        logger.warning(
            "Scoring failed for item %s, failing open to %s: %s",
            item_id,
            to_status,
            error,
        )
        transition = Transition(
            item_id=item_id,
            source=SOURCE_AUTOMATED,
            decision=DECISION_ERROR,
            from_status=from_status,
            to_status=to_status,
            reasons=(reason,),
        )
        self._record(transition)
        return transition

    def _warn_author(self, author_ref: str | None) -> None:
        if author_ref is None:
            return
        account = self.db.get(Account, author_ref)
        if account is None:
            logger.debug("No account for chat author %s; warning not recorded", author_ref)
            return
        account.warning_count += 1
        if (
            not account.is_suspended
            and account.warning_count >= self.config.chat_warning_suspend_threshold
        ):
            account.is_suspended = True
            logger.warning(
                "Account %s suspended from chat after %d warnings",
                author_ref,
                account.warning_count,
            )

    # ------------------------------------------------------------------
    # Community consensus
    # ------------------------------------------------------------------

    def cast_vote(self, item_id: str, voter_ref: str, direction: str) -> BallotResult:
        """Record one vote and apply the community rule when it fires."""
        item = self.get_item(item_id)
        if item.is_anonymous:
            require_role(self.roles, voter_ref, PRIVILEGED_ROLES, "vote on anonymous reports")

        try:
            outcome = self.consensus.cast_vote(item_id, voter_ref, direction)
        except ModerationError as exc:
            self.db.rollback()
            logger.info("Vote on item %s rejected: %s", item_id, exc)
            raise

        item = outcome.item
        transition = None
        if outcome.proposed_status is not None and outcome.proposed_status != item.status:
            transition = Transition(
                item_id=item_id,
                source=SOURCE_COMMUNITY,
                decision=DECISION_APPROVE,
                from_status=item.status,
                to_status=outcome.proposed_status,
                reasons=(
                    f"community vote: {outcome.tally.upvotes} up, "
                    f"{outcome.tally.downvotes} down",
                ),
            )
            item.status = outcome.proposed_status
            item.resolved_by = RESOLVED_COMMUNITY
        self.db.commit()

        if transition is not None:
            self._record(transition)
            logger.info("Item %s approved by community vote", item_id)
        return BallotResult(
            item_id=item_id,
            status=transition.to_status if transition else item.status,
            tally=outcome.tally,
            transition=transition,
        )

    def cast_report(
        self,
        item_id: str,
        reporter_ref: str,
        reason: str | None = None,
    ) -> BallotResult:
        """Record one report flag and hide the message once the threshold is reached."""
        try:
            outcome = self.consensus.cast_report(item_id, reporter_ref, _clean(reason) or None)
        except ModerationError as exc:
            self.db.rollback()
            logger.info("Report flag on item %s rejected: %s", item_id, exc)
            raise

        item = outcome.item
        transition = None
        if outcome.proposed_status is not None:
            transition = Transition(
                item_id=item_id,
                source=SOURCE_COMMUNITY,
                decision=ACTION_HIDE,
                from_status=item.status,
                to_status=outcome.proposed_status,
                reasons=(f"{outcome.tally.report_count} community reports",),
            )
            item.status = outcome.proposed_status
        self.db.commit()

        if transition is not None:
            self._record(transition)
            logger.info(
                "Chat message %s hidden after %d reports",
                item_id,
                outcome.tally.report_count,
            )
            self.escalate(community_flagged_event(item_id, outcome.tally.report_count, reason))
        return BallotResult(
            item_id=item_id,
            status=transition.to_status if transition else item.status,
            tally=outcome.tally,
            transition=transition,
        )

    # ------------------------------------------------------------------
    # Authority override
    # ------------------------------------------------------------------

    def authority_decide(
        self,
        item_id: str,
        reviewer_ref: str,
        decision: str,
        reason: str | None = None,
    ) -> Transition:
        """Force a terminal decision on a non-terminal item."""
        require_role(self.roles, reviewer_ref, PRIVILEGED_ROLES, "decide on moderated items")
        if decision not in AUTHORITY_DECISIONS:
            raise ValidationError(f"Decision must be one of: {', '.join(AUTHORITY_DECISIONS)}")

        item = self.consensus.lock_item(item_id)
        if item.is_terminal:
            self.db.rollback()
            raise AlreadyDecided(f"Item {item_id} is already {item.status}")

        if isinstance(item, ChatMessage):
            mapping = _CHAT_AUTHORITY_STATUS
        else:
            mapping = _REPORT_AUTHORITY_STATUS
        from_status = item.status
        to_status = mapping[decision]
        item.status = to_status
        item.authority_reviewer = reviewer_ref
        item.authority_decision = decision
        item.authority_reason = _clean(reason) or None
        item.authority_decided_at = utcnow()
        item.resolved_by = RESOLVED_AUTHORITY
        self.db.commit()

        transition = Transition(
            item_id=item_id,
            source=SOURCE_AUTHORITY,
            decision=decision,
            from_status=from_status,
            to_status=to_status,
            reasons=(item.authority_reason,) if item.authority_reason else (),
        )
        self._record(transition)
        logger.info(
            "Authority decision on %s: %s (%s -> %s)",
            item_id,
            decision,
            from_status,
            to_status,
        )
        return transition

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_item(self, item_id: str) -> ModerationItem:
        item = self.db.get(ModerationItem, item_id)
        if item is None:
            raise ItemNotFound(f"Item {item_id} not found")
        return item

    def lookup_status(self, item_id: str) -> ModerationItem:
        """Return the current item, including its tally when one exists."""
        return self.get_item(item_id)

    def get_audit_trail(self, item_id: str) -> list[AuditLogEntry]:
        """Return the chronological audit trail of an existing item."""
        self.get_item(item_id)
        return self.audit.trail(item_id)

    def list_items(
        self,
        kind: str | None = None,
        status: str | None = None,
        limit: int = 50,
        include_anonymous: bool = True,
    ) -> list[ModerationItem]:
        query = self.db.query(ModerationItem)
        if not include_anonymous:
            query = query.filter(ModerationItem.kind != KIND_ANONYMOUS_REPORT)
        if kind is not None:
            query = query.filter(ModerationItem.kind == kind)
        if status is not None:
            query = query.filter(ModerationItem.status == status)
        return query.order_by(ModerationItem.created_at.desc()).limit(limit).all()

    def list_channel_messages(self, channel_id: str, limit: int = 50) -> list[ChatMessage]:
        """Return the most recent visible messages of a channel, oldest first."""
        recent = (
            self.db.query(ChatMessage)
            .filter(
                ChatMessage.channel_id == channel_id,
                ChatMessage.status == STATUS_ACTIVE,
            )
            .order_by(ChatMessage.created_at.desc())
            .limit(limit)
            .all()
        )
        return list(reversed(recent))

    # ------------------------------------------------------------------
    # Secondary effects
    # ------------------------------------------------------------------

    def _discard(self, item: ModerationItem, why: str) -> Transition:
        logger.info("Discarding automated result for %s %s: %s", item.kind, item.id, why)
        return Transition(
            item_id=item.id,
            source=SOURCE_AUTOMATED,
            decision=DECISION_DISCARDED,
            from_status=item.status,
            to_status=item.status,
            discarded=True,
        )

    def _record(self, transition: Transition) -> None:
        self.audit.record(
            transition.item_id,
            transition.source,
            transition.decision,
            transition.reasons,
            transition.confidence,
            from_status=transition.from_status,
            to_status=transition.to_status,
        )

    def escalate(self, event: EscalationEvent) -> None:
        try:
            self.emitter.emit(event)
        except Exception:
            logger.exception("Escalation %s for item %s failed", event.kind, event.item_id)
