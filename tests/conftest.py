# tests/conftest.py
import os
import sys
from datetime import datetime, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(os.path.abspath("."))

from bookstore.auth import (
    AuthService,
    PasswordHasher,
    get_email_notifier,
    get_token_codec,
    registration_limiter,
)
from bookstore.catalog import BookRepository, get_books_collection
from bookstore.crud import UserRepository
from bookstore.database import Base, get_db, seed_roles
from bookstore.links import AuthLinkBuilder
from bookstore.tokens import AuthTokenCodec
from bookstore import models  # noqa: F401
from main import app


# DB (SQLite in-memory for tests)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_SECRET = "test-secret-key"
BASE_URL = "https://shop.example"
NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


class RecordingNotifier:
    """Collects outgoing emails instead of sending them."""

    def __init__(self):
        self.sent = []

    async def send_email_confirmation(self, to_email, link):
        self.sent.append(("email_confirmation", to_email, link))

    async def send_password_reset(self, to_email, link):
        self.sent.append(("password_reset", to_email, link))

    async def send_email_change_confirmation(self, to_email, link):
        self.sent.append(("email_change", to_email, link))

    async def send_account_deletion_confirmation(self, to_email, link):
        self.sent.append(("account_deletion", to_email, link))

    async def send_sensitive_change_confirmation(self, to_email, link):
        self.sent.append(("sensitive_change", to_email, link))


class FailingNotifier(RecordingNotifier):
    async def send_email_confirmation(self, to_email, link):
        raise ConnectionError("SMTP server unavailable")


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    seed_roles(session)
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def codec(clock):
    return AuthTokenCodec(TEST_SECRET, clock=clock)


@pytest.fixture()
def links():
    return AuthLinkBuilder(BASE_URL)


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def users(db_session):
    return UserRepository(db_session)


@pytest.fixture()
def auth_service(users, codec, links, notifier, clock):
    return AuthService(
        users=users,
        hasher=PasswordHasher(),
        tokens=codec,
        links=links,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture()
def books_collection():
    return mongomock.MongoClient()["bookstore"]["books"]


@pytest.fixture()
def book_repository(books_collection):
    return BookRepository(books_collection)


# Client fixture: override dependencies per test
@pytest.fixture()
def client(db_session, books_collection, notifier):
    def override_get_db():
        yield db_session

    # Tokens created by the API must validate against the real clock.
    api_codec = AuthTokenCodec(TEST_SECRET)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_books_collection] = lambda: books_collection
    app.dependency_overrides[get_email_notifier] = lambda: notifier
    app.dependency_overrides[get_token_codec] = lambda: api_codec
    app.dependency_overrides[registration_limiter] = lambda: None

    c = TestClient(app)
    try:
        yield c
    finally:
        app.dependency_overrides.clear()
