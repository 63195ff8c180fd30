"""
Integration test fixtures. Overrides get_db for API tests with in-memory DB.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


@pytest.fixture
def session_factory():
    """In-memory engine shared across connections, plus a session factory bound to it."""
    import cybertrain.models  # noqa: F401
    from cybertrain.config import Base
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def override_get_db(session_factory):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    return _get_db


@pytest.fixture
def db_session(session_factory):
    """Session on the same in-memory database the API uses, for arranging test data."""
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def api_client(override_get_db):
    """FastAPI TestClient with in-memory DB override."""
    from fastapi.testclient import TestClient
    from cybertrain.api import app
    from cybertrain.config import get_db
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def login(api_client):
    """Log a user in on the shared client; the auth cookie is kept by the client."""

    def _login(user, password="Passw0rd"):
        api_client.cookies.clear()
        response = api_client.post("/auth/login", json={"email": user.email, "password": password})
        assert response.status_code == 200, response.text
        return api_client

    return _login
