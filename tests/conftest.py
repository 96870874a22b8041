"""
Test configuration and fixtures for pytest.

This module provides shared fixtures used across all tests:
- Test database (SQLite in-memory for speed)
- Test client (FastAPI TestClient) wired to fake calendar OAuth
- Users, sessions and auth headers
- Credential store and token manager doubles
"""

from datetime import timedelta
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from authcore.db.base import Base
from authcore.db.session import get_db
from authcore.deps import get_oauth_connector, get_token_manager
from authcore.main import app
from authcore.models.user import Role, User
from authcore.services.credential_store import SqlCredentialStore
from authcore.services.oauth_connector import OAuthConnector
from authcore.services.oauth_state import OAuthStateStore
from authcore.services.token_manager import TokenManager
from tests.doubles import FakeProvider, MemoryCredentialStore, create_user, open_session


# ---------------------------------------------------------------------------
# TEST DATABASE SETUP
# ---------------------------------------------------------------------------
# StaticPool keeps the same in-memory connection across all sessions, so
# the credential store's own sessions see the same tables as the routes.

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ---------------------------------------------------------------------------
# DATABASE FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Create a fresh database for each test function.

    - Creates all tables
    - Yields a session for the test
    - Drops all tables after test (clean slate)
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# ---------------------------------------------------------------------------
# CALENDAR OAUTH FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def state_store() -> OAuthStateStore:
    return OAuthStateStore(ttl=timedelta(minutes=10))


@pytest.fixture
def connector(fake_provider: FakeProvider, state_store: OAuthStateStore) -> OAuthConnector:
    return OAuthConnector(provider=fake_provider, state_store=state_store)


@pytest.fixture
def memory_store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def token_manager(memory_store: MemoryCredentialStore, connector: OAuthConnector) -> TokenManager:
    """Token manager over the in-memory store, margin 60 seconds."""
    return TokenManager(store=memory_store, connector=connector, refresh_margin=timedelta(seconds=60))


@pytest.fixture
def credential_store(db: Session) -> SqlCredentialStore:
    """SQL store on the test database (tables exist once db has run)."""
    return SqlCredentialStore(TestingSessionLocal)


@pytest.fixture
def sql_token_manager(credential_store: SqlCredentialStore, connector: OAuthConnector) -> TokenManager:
    return TokenManager(store=credential_store, connector=connector, refresh_margin=timedelta(seconds=60))


# ---------------------------------------------------------------------------
# CLIENT FIXTURE
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function")
def client(
    db: Session,
    connector: OAuthConnector,
    sql_token_manager: TokenManager,
) -> Generator[TestClient, None, None]:
    """
    Create a test client with the test database and fake calendar OAuth.

    Credentials written by the app land in the SQL store; tests read them
    back through credential_store.get().
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_oauth_connector] = lambda: connector
    app.dependency_overrides[get_token_manager] = lambda: sql_token_manager

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# USER AND SESSION FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def test_user(db: Session) -> User:
    """User with email "test@example.com", password "testpassword", role "user"."""
    return create_user(db, "test@example.com")


@pytest.fixture
def admin_user(db: Session) -> User:
    return create_user(db, "admin@example.com", role=Role.ADMIN)


@pytest.fixture
def test_user_token(db: Session, test_user: User) -> str:
    return open_session(db, test_user)


@pytest.fixture
def auth_headers(test_user_token: str) -> dict:
    return {"Authorization": f"Bearer {test_user_token}"}


@pytest.fixture
def admin_headers(db: Session, admin_user: User) -> dict:
    return {"Authorization": f"Bearer {open_session(db, admin_user)}"}
