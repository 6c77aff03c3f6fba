# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-civic-guard")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from civic_guard.core.security import create_access_token
from civic_guard.core.settings import Settings
from civic_guard.db.session import Base
from civic_guard.db.session import get_db as app_get_session
from civic_guard.main import app as fastapi_app
from civic_guard.models import Account, ChatMessage, Report
from civic_guard.models.account import (
    ROLE_ADMIN,
    ROLE_CITIZEN,
    ROLE_CIVIL_DEFENSE,
    ROLE_SYSTEM,
)
from civic_guard.services.audit import AuditLog, AuditMetrics
from civic_guard.services.pipeline import ModerationPipeline

TEST_DB_URL = "sqlite://"

# Scores 0.6 with the report policy, so it always lands in community review.
REVIEW_REPORT_TEXT = "Arvore caida bloqueando a rua principal do bairro"
CLEAN_CHAT_TEXT = "Alguém sabe se a ponte já foi liberada?"


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def test_settings() -> Settings:
    """Provide a fresh Settings instance tests may tweak freely."""
    return Settings()  # type: ignore[call-arg]


@pytest.fixture()
def audit_metrics() -> AuditMetrics:
    return AuditMetrics()


@pytest.fixture()
def pipeline(db_session: Session, audit_metrics: AuditMetrics) -> ModerationPipeline:
    """Pipeline with isolated audit metrics and the default outbox emitter."""
    return ModerationPipeline(db_session, audit=AuditLog(db_session, metrics=audit_metrics))


@pytest.fixture()
def make_account(db_session: Session) -> Callable[..., Account]:
    """Return a factory that persists accounts with a given role."""

    def _make(actor_ref: str, role: str = ROLE_CITIZEN) -> Account:
        account = Account(actor_ref=actor_ref, role=role, display_name=actor_ref.title())
        db_session.add(account)
        db_session.commit()
        return account

    return _make


@pytest.fixture()
def citizen(make_account: Callable[..., Account]) -> Account:
    return make_account("citizen-1")


@pytest.fixture()
def voters(make_account: Callable[..., Account]) -> list[Account]:
    """Five distinct citizen accounts."""
    return [make_account(f"voter-{index}") for index in range(1, 6)]


@pytest.fixture()
def civil_defense(make_account: Callable[..., Account]) -> Account:
    return make_account("defesa-1", ROLE_CIVIL_DEFENSE)


@pytest.fixture()
def admin(make_account: Callable[..., Account]) -> Account:
    return make_account("admin-1", ROLE_ADMIN)


@pytest.fixture()
def system_account(make_account: Callable[..., Account]) -> Account:
    return make_account("scoring-trigger", ROLE_SYSTEM)


def auth_headers(account: Account) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(account.actor_ref)}"}


@pytest.fixture()
def headers_for() -> Callable[[Account], dict[str, str]]:
    """Return a helper building bearer headers for any account."""
    return auth_headers


@pytest.fixture()
def citizen_headers(citizen: Account) -> dict[str, str]:
    """Return authorization headers for the primary citizen."""
    return auth_headers(citizen)


@pytest.fixture()
def authority_headers(civil_defense: Account) -> dict[str, str]:
    """Return authorization headers for a civil defense reviewer."""
    return auth_headers(civil_defense)


@pytest.fixture()
def admin_headers(admin: Account) -> dict[str, str]:
    return auth_headers(admin)


@pytest.fixture()
def review_report(pipeline: ModerationPipeline, citizen: Account) -> Report:
    """A report scored into community review."""
    return pipeline.submit_report(citizen.actor_ref, REVIEW_REPORT_TEXT, "other")


@pytest.fixture()
def active_message(pipeline: ModerationPipeline, citizen: Account) -> ChatMessage:
    """A chat message scored as allowed."""
    return pipeline.submit_chat_message(citizen.actor_ref, "bairro-centro", CLEAN_CHAT_TEXT)
