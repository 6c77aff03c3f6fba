"""Tests for the moderation pipeline state machine."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from civic_guard.models import AuditLogEntry, EscalationOutbound, ModerationItem
from civic_guard.models.audit import DECISION_ERROR, SOURCE_AUTOMATED, SOURCE_COMMUNITY
from civic_guard.services.errors import (
    AlreadyDecided,
    AlreadyVoted,
    InvalidState,
    ItemNotFound,
    PermissionDenied,
    ScoringFailure,
    ValidationError,
)
from civic_guard.services.escalation import (
    EVENT_BLOCKED_MESSAGE,
    EVENT_COMMUNITY_FLAGGED,
    EVENT_CRITICAL_REPORT,
    LoggingEscalationEmitter,
)
from civic_guard.services.pipeline import ModerationPipeline
from civic_guard.services.scoring import (
    ContentScorer,
    Lexicon,
    ScoringPolicy,
    ScoringResult,
    Thresholds,
)

REVIEW_TEXT = "Arvore caida bloqueando a rua principal do bairro"
OFFENSIVE_TEXT = "idiota imbecil lixo"


def _trail(db: Session, item_id: str) -> list[AuditLogEntry]:
    return (
        db.query(AuditLogEntry)
        .filter(AuditLogEntry.item_id == item_id)
        .order_by(AuditLogEntry.id)
        .all()
    )


def _escalations(db: Session, item_id: str) -> list[str]:
    return [
        row.event_kind
        for row in db.query(EscalationOutbound).filter(EscalationOutbound.item_id == item_id)
    ]


def test_critical_report_is_approved_without_votes(pipeline, citizen, db_session) -> None:
    report = pipeline.submit_report(
        citizen.actor_ref,
        "URGENTE: evacuação necessária, risco de vida",
        "landslide",
        severity="critical",
    )

    assert report.status == "approved"
    assert report.resolved_by == "automated"
    assert report.consensus is None
    [entry] = _trail(db_session, report.id)
    assert entry.source == SOURCE_AUTOMATED
    assert entry.decision == "approve"
    assert entry.from_status == "scoring"
    assert entry.to_status == "approved"
    assert _escalations(db_session, report.id) == [EVENT_CRITICAL_REPORT]


def test_suspicious_report_is_rejected(pipeline, citizen) -> None:
    report = pipeline.submit_report(citizen.actor_ref, "teste fake", "other")

    assert report.status == "rejected"
    assert report.score == 0.0
    assert report.is_terminal


def test_ambiguous_report_opens_zeroed_tally(review_report) -> None:
    assert review_report.status == "community_review"
    assert review_report.consensus is not None
    assert review_report.consensus.upvotes == 0
    assert review_report.consensus.downvotes == 0


def test_submit_report_validates_input(pipeline, citizen) -> None:
    with pytest.raises(ValidationError):
        pipeline.submit_report(citizen.actor_ref, "   ", "flood")
    with pytest.raises(ValidationError):
        pipeline.submit_report(citizen.actor_ref, REVIEW_TEXT, "flood", severity="extreme")
    with pytest.raises(ValidationError):
        pipeline.submit_report(citizen.actor_ref, REVIEW_TEXT, "flood", latitude=120.0)


def test_majority_upvotes_approve_report(pipeline, review_report, voters, db_session) -> None:
    directions = ["up", "up", "up", "down", "down"]
    results = [
        pipeline.cast_vote(review_report.id, voter.actor_ref, direction)
        for voter, direction in zip(voters, directions)
    ]

    assert [result.transition is not None for result in results] == [False] * 4 + [True]
    assert results[-1].status == "approved"
    db_session.refresh(review_report)
    assert review_report.status == "approved"
    assert review_report.resolved_by == "community"
    community = [e for e in _trail(db_session, review_report.id) if e.source == SOURCE_COMMUNITY]
    assert len(community) == 1
    assert community[0].to_status == "approved"


def test_downvote_majority_never_rejects(pipeline, review_report, voters, db_session) -> None:
    for voter, direction in zip(voters, ["up", "up", "down", "down", "down"]):
        result = pipeline.cast_vote(review_report.id, voter.actor_ref, direction)

    assert result.status == "community_review"
    assert result.tally.total_votes == 5
    db_session.refresh(review_report)
    assert review_report.status == "community_review"
    assert not review_report.is_terminal


def test_votes_rejected_outside_review(pipeline, citizen, voters) -> None:
    report = pipeline.submit_report(citizen.actor_ref, "teste fake", "other")

    with pytest.raises(InvalidState):
        pipeline.cast_vote(report.id, voters[0].actor_ref, "up")


def test_vote_on_missing_item(pipeline, voters) -> None:
    with pytest.raises(ItemNotFound):
        pipeline.cast_vote("0" * 32, voters[0].actor_ref, "up")


def test_authority_decision_is_absorbing(
    pipeline, review_report, civil_defense, voters, db_session
) -> None:
    transition = pipeline.authority_decide(
        review_report.id, civil_defense.actor_ref, "reject", "duplicate report"
    )

    assert transition.to_status == "rejected"
    db_session.refresh(review_report)
    assert review_report.authority_decision == "reject"
    assert review_report.authority_reviewer == civil_defense.actor_ref

    with pytest.raises(InvalidState):
        pipeline.cast_vote(review_report.id, voters[0].actor_ref, "up")
    with pytest.raises(AlreadyDecided):
        pipeline.authority_decide(review_report.id, civil_defense.actor_ref, "approve")

    discarded = pipeline.apply_score(
        review_report.id, ScoringResult(score=1.0, recommendation="approve", reasons=())
    )
    assert discarded.discarded
    db_session.refresh(review_report)
    assert review_report.status == "rejected"
    assert review_report.score == pytest.approx(0.6)


def test_authority_requires_privileged_role(pipeline, review_report, citizen) -> None:
    with pytest.raises(PermissionDenied):
        pipeline.authority_decide(review_report.id, citizen.actor_ref, "approve")


def test_authority_decision_value_is_validated(pipeline, review_report, admin) -> None:
    with pytest.raises(ValidationError):
        pipeline.authority_decide(review_report.id, admin.actor_ref, "maybe")


def test_authority_can_approve_hidden_chat(pipeline, citizen, admin, db_session) -> None:
    message = pipeline.submit_chat_message(citizen.actor_ref, "geral", "promoção na loja")
    assert message.status == "hidden"

    transition = pipeline.authority_decide(message.id, admin.actor_ref, "approve")

    assert transition.to_status == "active"
    db_session.refresh(message)
    assert message.is_terminal
    rescored = pipeline.request_scoring(message.id)
    assert rescored.discarded
    assert message.status == "active"


def test_apply_score_is_idempotent(pipeline, review_report, db_session) -> None:
    result = ScoringResult(score=0.6, recommendation="review", reasons=("detailed content",))

    first = pipeline.apply_score(review_report.id, result)
    second = pipeline.apply_score(review_report.id, result)

    assert first.to_status == second.to_status == "community_review"
    db_session.refresh(review_report)
    assert review_report.status == "community_review"
    assert review_report.scoring_reasons == ["detailed content"]


def test_rescore_keeps_existing_tally(pipeline, review_report, voters, db_session) -> None:
    pipeline.cast_vote(review_report.id, voters[0].actor_ref, "up")

    pipeline.request_scoring(review_report.id)

    db_session.refresh(review_report)
    assert review_report.consensus.upvotes == 1


def test_scorer_fault_fails_open_for_reports(db_session, citizen, mocker) -> None:
    pipeline = ModerationPipeline(db_session)
    mocker.patch.object(pipeline.report_scorer, "score", side_effect=ScoringFailure("boom"))

    report = pipeline.submit_report(citizen.actor_ref, REVIEW_TEXT, "other")

    assert report.status == "community_review"
    assert report.scoring_failed
    [entry] = _trail(db_session, report.id)
    assert entry.decision == DECISION_ERROR
    assert entry.reasons == ["scoring failed: ScoringFailure"]


def test_scorer_fault_fails_open_for_chat(db_session, citizen, mocker) -> None:
    pipeline = ModerationPipeline(db_session)
    mocker.patch.object(pipeline.chat_scorer, "score", side_effect=RuntimeError("down"))

    message = pipeline.submit_chat_message(citizen.actor_ref, "geral", OFFENSIVE_TEXT)

    assert message.status == "active"
    assert message.scoring_failed
    assert pipeline.audit.pending_review()[0].item_id == message.id


def test_blocked_chat_escalates_and_warns_author(pipeline, citizen, db_session) -> None:
    message = pipeline.submit_chat_message(citizen.actor_ref, "geral", OFFENSIVE_TEXT)

    assert message.status == "blocked"
    assert message.resolved_by == "automated"
    assert _escalations(db_session, message.id) == [EVENT_BLOCKED_MESSAGE]
    db_session.refresh(citizen)
    assert citizen.warning_count == 1


def test_repeat_offender_is_suspended(pipeline, citizen, db_session, test_settings) -> None:
    for _ in range(test_settings.chat_warning_suspend_threshold):
        pipeline.submit_chat_message(citizen.actor_ref, "geral", OFFENSIVE_TEXT)

    db_session.refresh(citizen)
    assert citizen.is_suspended
    with pytest.raises(PermissionDenied):
        pipeline.submit_chat_message(citizen.actor_ref, "geral", "bom dia a todos")


def test_chat_length_limit(pipeline, citizen, test_settings) -> None:
    with pytest.raises(ValidationError):
        pipeline.submit_chat_message(
            citizen.actor_ref, "geral", "a " * test_settings.chat_max_message_length
        )


def test_three_reports_hide_active_message(
    pipeline, active_message, voters, db_session
) -> None:
    assert active_message.status == "active"

    results = [
        pipeline.cast_report(active_message.id, voter.actor_ref, "spam")
        for voter in voters[:3]
    ]

    assert [r.status for r in results] == ["active", "active", "hidden"]
    db_session.refresh(active_message)
    assert active_message.status == "hidden"
    community = [e for e in _trail(db_session, active_message.id) if e.source == SOURCE_COMMUNITY]
    assert len(community) == 1
    assert community[0].decision == "hide"
    assert _escalations(db_session, active_message.id) == [EVENT_COMMUNITY_FLAGGED]

    pipeline.cast_report(active_message.id, voters[3].actor_ref)
    community = [e for e in _trail(db_session, active_message.id) if e.source == SOURCE_COMMUNITY]
    assert len(community) == 1


def test_reports_only_apply_to_chat(pipeline, review_report, voters) -> None:
    with pytest.raises(InvalidState):
        pipeline.cast_report(review_report.id, voters[0].actor_ref)


def test_emitter_failure_does_not_block_transition(db_session, citizen, mocker) -> None:
    emitter = mocker.Mock()
    emitter.emit.side_effect = RuntimeError("notification layer down")
    pipeline = ModerationPipeline(db_session, emitter=emitter)

    report = pipeline.submit_report(
        citizen.actor_ref, "URGENTE: evacuação necessária, risco de vida", "landslide"
    )

    assert report.status == "approved"
    emitter.emit.assert_called_once()


def test_logging_emitter_records_escalation(db_session, citizen, caplog) -> None:
    pipeline = ModerationPipeline(db_session, emitter=LoggingEscalationEmitter())

    with caplog.at_level("INFO", logger="civic_guard.services.escalation"):
        report = pipeline.submit_report(
            citizen.actor_ref, "URGENTE: evacuação necessária, risco de vida", "landslide"
        )

    assert f"Escalation critical_report for item {report.id}" in caplog.text
    assert db_session.query(EscalationOutbound).count() == 0


def test_every_item_is_terminal_or_one_decision_away(
    pipeline, citizen, admin, db_session
) -> None:
    pipeline.submit_report(citizen.actor_ref, REVIEW_TEXT, "other")
    pipeline.submit_report(citizen.actor_ref, "teste fake", "other")
    pipeline.submit_chat_message(citizen.actor_ref, "geral", "promoção na loja")
    pipeline.submit_chat_message(citizen.actor_ref, "geral", "bom dia a todos")

    for item in db_session.query(ModerationItem).all():
        if not item.is_terminal:
            pipeline.authority_decide(item.id, admin.actor_ref, "reject")

    db_session.expire_all()
    assert all(item.is_terminal for item in db_session.query(ModerationItem).all())


def test_channel_listing_shows_only_active_messages(pipeline, citizen) -> None:
    first = pipeline.submit_chat_message(citizen.actor_ref, "geral", "bom dia a todos")
    pipeline.submit_chat_message(citizen.actor_ref, "geral", "promoção na loja")
    third = pipeline.submit_chat_message(citizen.actor_ref, "geral", "a ponte foi liberada")
    pipeline.submit_chat_message(citizen.actor_ref, "outro", "boa tarde")

    listed = pipeline.list_channel_messages("geral")

    assert [message.id for message in listed] == [first.id, third.id]


def test_background_mode_defers_scoring(db_session, citizen, test_settings) -> None:
    test_settings.scoring_mode = "background"
    pipeline = ModerationPipeline(db_session, config=test_settings)

    report = pipeline.submit_report(citizen.actor_ref, REVIEW_TEXT, "other")

    assert report.status == "submitted"
    assert pipeline.request_scoring(report.id).to_status == "community_review"


def test_rescoring_keeps_community_hide(pipeline, active_message, voters, db_session) -> None:
    for voter in voters[:3]:
        pipeline.cast_report(active_message.id, voter.actor_ref, "spam")

    transition = pipeline.request_scoring(active_message.id)

    assert transition.decision == "allow"
    assert transition.to_status == "hidden"
    db_session.refresh(active_message)
    assert active_message.status == "hidden"


def test_late_first_score_keeps_community_hide(
    db_session, citizen, voters, test_settings
) -> None:
    test_settings.scoring_mode = "background"
    pipeline = ModerationPipeline(db_session, config=test_settings)
    message = pipeline.submit_chat_message(citizen.actor_ref, "geral", "bom dia a todos")
    for voter in voters[:3]:
        pipeline.cast_report(message.id, voter.actor_ref)

    pipeline.request_scoring(message.id)

    db_session.refresh(message)
    assert message.status == "hidden"


def test_scoring_fault_keeps_community_hide(
    pipeline, active_message, voters, db_session, mocker
) -> None:
    for voter in voters[:3]:
        pipeline.cast_report(active_message.id, voter.actor_ref)
    mocker.patch.object(pipeline.chat_scorer, "score", side_effect=ScoringFailure("down"))

    transition = pipeline.request_scoring(active_message.id)

    assert transition.to_status == "hidden"


def test_rescore_can_still_block_hidden_message(
    pipeline, active_message, voters, db_session
) -> None:
    for voter in voters[:3]:
        pipeline.cast_report(active_message.id, voter.actor_ref)

    pipeline.apply_score(active_message.id, ScoringResult(0.9, "block", ("hate_speech",)))

    db_session.refresh(active_message)
    assert active_message.status == "blocked"


def test_rejected_ballots_are_logged(pipeline, review_report, voters, caplog) -> None:
    pipeline.cast_vote(review_report.id, voters[0].actor_ref, "up")

    with caplog.at_level("INFO", logger="civic_guard.services.pipeline"):
        with pytest.raises(AlreadyVoted):
            pipeline.cast_vote(review_report.id, voters[0].actor_ref, "up")
        with pytest.raises(InvalidState):
            pipeline.cast_report(review_report.id, voters[1].actor_ref)

    assert f"Vote on item {review_report.id} rejected" in caplog.text
    assert f"Report flag on item {review_report.id} rejected" in caplog.text


def test_unknown_vote_direction_is_a_validation_error(pipeline, review_report, voters) -> None:
    with pytest.raises(ValidationError):
        pipeline.cast_vote(review_report.id, voters[0].actor_ref, "sideways")

    assert pipeline.lookup_status(review_report.id).consensus.upvotes == 0


def test_broken_scorer_policy_fails_open(db_session, citizen) -> None:
    policy = ScoringPolicy(
        channel="report",
        baseline=0.5,
        lexicons=(Lexicon("broken", ("rua",), "heavy"),),  # type: ignore[arg-type]
        thresholds=Thresholds(high=(), default="review"),
    )
    pipeline = ModerationPipeline(db_session, report_scorer=ContentScorer(policy))

    report = pipeline.submit_report(citizen.actor_ref, REVIEW_TEXT, "other")

    assert report.status == "community_review"
    [entry] = _trail(db_session, report.id)
    assert entry.reasons == ["scoring failed: ScoringFailure"]


def test_channel_limit_overrides_global_limit(pipeline, citizen, admin) -> None:
    channel = pipeline.create_channel(admin.actor_ref, "alertas", "Alertas", max_message_length=20)
    assert channel.created_by == admin.actor_ref

    with pytest.raises(ValidationError):
        pipeline.submit_chat_message(citizen.actor_ref, "alertas", "mensagem longa demais aqui")
    message = pipeline.submit_chat_message(citizen.actor_ref, "alertas", "tudo certo")
    assert message.status == "active"


def test_channel_creation_rules(pipeline, citizen, admin, db_session) -> None:
    with pytest.raises(PermissionDenied):
        pipeline.create_channel(citizen.actor_ref, "geral", "Geral")

    channel = pipeline.create_channel(admin.actor_ref, "geral", "Geral")
    assert channel.max_message_length == 500
    with pytest.raises(InvalidState):
        pipeline.create_channel(admin.actor_ref, "geral", "Outro")

    channel.is_active = False
    db_session.commit()
    with pytest.raises(InvalidState):
        pipeline.submit_chat_message(citizen.actor_ref, "geral", "alguém aí?")
