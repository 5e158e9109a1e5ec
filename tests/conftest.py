"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.models.group import Group  # noqa: F401
from app.models.session import UserSession  # noqa: F401
from app.models.user import User  # noqa: F401
from app.services.auth import AuthService


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="use_test_db")
def use_test_db_fixture(db_session: Session):
    """Point the session store and chat hub at the test database."""
    from app.services import hub as hub_module
    from app.services import sessions as sessions_module

    sessions_module._session_factory = lambda: db_session
    hub_module._session_factory = lambda: db_session
    yield db_session
    sessions_module._session_factory = None
    hub_module._session_factory = None


@pytest.fixture(name="client")
def client_fixture(use_test_db: Session):
    """Create a test client with overridden DB dependency and disabled rate limiting."""
    from app.rate_limit import limiter
    from main import app

    def override_get_db():
        try:
            yield use_test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session):
    """Create a test user and return its details (plaintext password included)."""
    user = AuthService().register(db_session, "Test User", "test@example.com", "password123", "password123")
    return {"user_id": user.id, "name": user.name, "email": user.email, "password": "password123"}


@pytest.fixture(name="logged_in")
def logged_in_fixture(client: TestClient, test_user: dict):
    """Log the test client in as the test user."""
    response = client.post(
        "/user/login",
        data={"email": test_user["email"], "password": test_user["password"]},
        follow_redirects=False,
    )
    assert response.status_code == 302
    return test_user
