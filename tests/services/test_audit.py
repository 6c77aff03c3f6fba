"""Tests for the append-only audit log."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from civic_guard.models import AuditLogEntry
from civic_guard.services.audit import AuditLog, AuditMetrics
from civic_guard.services.pipeline import ModerationPipeline


def test_trail_is_chronological(pipeline, review_report, admin) -> None:
    pipeline.authority_decide(review_report.id, admin.actor_ref, "approve", "confirmed on site")

    trail = pipeline.get_audit_trail(review_report.id)

    assert [(entry.source, entry.to_status) for entry in trail] == [
        ("automated", "community_review"),
        ("authority", "approved"),
    ]
    assert trail[1].reasons == ["confirmed on site"]


def test_entries_carry_no_identity(pipeline, review_report) -> None:
    [entry] = pipeline.get_audit_trail(review_report.id)

    columns = set(AuditLogEntry.__table__.columns.keys())
    assert not columns & {"author_ref", "actor_ref", "voter_ref", "reviewer_ref"}
    assert entry.confidence == pytest.approx(0.6)


def test_entries_cannot_be_updated_or_deleted(pipeline, review_report, db_session) -> None:
    [entry] = pipeline.get_audit_trail(review_report.id)

    entry.decision = "approve"
    with pytest.raises(ValueError):
        db_session.flush()
    db_session.rollback()

    db_session.delete(entry)
    with pytest.raises(ValueError):
        db_session.flush()
    db_session.rollback()


def test_failed_write_is_reported_not_raised(mocker) -> None:
    db = mocker.Mock()
    db.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))
    metrics = AuditMetrics()
    hook = mocker.Mock()

    entry = AuditLog(db, metrics=metrics, on_failure=hook).record("item-1", "automated", "approve")

    assert entry is None
    db.rollback.assert_called_once()
    assert metrics.failed_writes == 1
    assert "disk full" in metrics.last_error
    hook.assert_called_once()
    assert hook.call_args.args[0] == "item-1"


def test_audit_failure_leaves_transition_committed(db_session, citizen, mocker) -> None:
    broken_db = mocker.Mock()
    broken_db.commit.side_effect = OperationalError("INSERT", {}, Exception("locked"))
    metrics = AuditMetrics()
    pipeline = ModerationPipeline(db_session, audit=AuditLog(broken_db, metrics=metrics))

    report = pipeline.submit_report(citizen.actor_ref, "teste fake", "other")

    assert report.status == "rejected"
    assert metrics.failed_writes == 1
    assert db_session.query(AuditLogEntry).count() == 0


def test_pending_review_lists_items_awaiting_humans(
    pipeline, review_report, citizen, admin
) -> None:
    pipeline.submit_report(citizen.actor_ref, "teste fake", "other")
    hidden = pipeline.submit_chat_message(citizen.actor_ref, "geral", "promoção na loja")
    pipeline.submit_chat_message(citizen.actor_ref, "geral", "bom dia a todos")

    pending = {entry.item_id for entry in pipeline.audit.pending_review()}
    assert pending == {review_report.id, hidden.id}

    pipeline.authority_decide(hidden.id, admin.actor_ref, "reject")
    pending = {entry.item_id for entry in pipeline.audit.pending_review()}
    assert pending == {review_report.id}


def test_successful_writes_are_counted(pipeline, audit_metrics, citizen) -> None:
    pipeline.submit_report(citizen.actor_ref, "teste fake", "other")

    assert audit_metrics.recorded_count == 1
    assert audit_metrics.failed_writes == 0
