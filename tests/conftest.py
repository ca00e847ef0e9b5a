# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from typing import Any

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("KEY_CACHE_BACKEND", "memory")
os.environ.setdefault("KDF_ITERATIONS", "100000")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from litenotes.api.v1 import dependencies
from litenotes.core.errors import MailDeliveryError
from litenotes.db.session import Base
from litenotes.db.session import get_db as app_get_session
from litenotes.main import app as fastapi_app
from litenotes.models import User
from litenotes.services.key_cache import InMemoryKeyCache
from litenotes.services.mailer import OutboundMail
from litenotes.services.note_service import NoteService
from litenotes.services.rate_limit import LoginRateLimiter
from litenotes.services.user_service import AccountService

TEST_DB_URL = "sqlite://"
TEST_PASSWORD = "correct horse"


class FakeClock:
    """Manually advanced clock returning seconds as a float."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingMailSender:
    """Mail sender that keeps messages in memory, optionally failing."""

    def __init__(self) -> None:
        self.outbox: list[OutboundMail] = []
        self.fail = False

    def send(self, mail: OutboundMail) -> None:
        if self.fail:
            raise MailDeliveryError()
        self.outbox.append(mail)


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


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def key_cache(clock: FakeClock) -> InMemoryKeyCache:
    return InMemoryKeyCache(clock=clock)


@pytest.fixture()
def rate_limiter(clock: FakeClock) -> LoginRateLimiter:
    return LoginRateLimiter(max_attempts=4, lockout_seconds=300, clock=clock)


@pytest.fixture()
def mail_sender() -> RecordingMailSender:
    return RecordingMailSender()


@pytest.fixture()
def accounts(
    db_session: Session,
    key_cache: InMemoryKeyCache,
    rate_limiter: LoginRateLimiter,
    mail_sender: RecordingMailSender,
) -> AccountService:
    return AccountService(db_session, key_cache, rate_limiter, mail_sender)


@pytest.fixture()
def notes(db_session: Session, key_cache: InMemoryKeyCache) -> NoteService:
    return NoteService(db_session, key_cache)


@pytest.fixture()
def test_user(accounts: AccountService) -> User:
    """Create and return a registered user with key material."""
    return accounts.register("alice", TEST_PASSWORD, "alice@example.com")


@pytest.fixture()
def other_user(accounts: AccountService) -> User:
    """Create and return a second registered user."""
    return accounts.register("bob", "hunter2hunter2", "bob@example.com")


@pytest.fixture()
def logged_in_user(accounts: AccountService, test_user: User) -> User:
    """Log the primary user in so their data key is cached."""
    accounts.login(test_user.username, TEST_PASSWORD)
    return test_user


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    key_cache: InMemoryKeyCache,
    rate_limiter: LoginRateLimiter,
    mail_sender: RecordingMailSender,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    overrides: dict[Any, Any] = {
        app_get_session: _get_session_override,
        dependencies.get_key_cache_dep: lambda: key_cache,
        dependencies.get_rate_limiter_dep: lambda: rate_limiter,
        dependencies.get_mail_sender_dep: lambda: mail_sender,
    }
    app.dependency_overrides.update(overrides)
    try:
        yield
    finally:
        for dependency in overrides:
            app.dependency_overrides.pop(dependency, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers(client: TestClient, test_user: User) -> dict[str, str]:
    """Log the primary user in over HTTP and return bearer headers."""
    response = client.post(
        "/api/v1/auth/login",
        json={"username": test_user.username, "password": TEST_PASSWORD},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
