# File: tests/conftest.py

"""
Shared fixtures.

Every test gets its own application wired to a fresh in-memory SQLite
database and a fresh metrics recorder.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update

from manga_api.core.config import Settings
from manga_api.db.init_db import init_db, seed_admin
from manga_api.db.session import build_engine, build_session_factory
from manga_api.main import create_application
from manga_api.models.base import utcnow
from manga_api.models.session import AuthSession
from manga_api.services.metrics import MetricsRecorder

ADMIN_API_KEY = "test-admin-key"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass-123"


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def settings(upload_dir):
    return Settings(
        environment="test",
        database_url="sqlite://",
        upload_base_path=str(upload_dir),
        admin_api_key=ADMIN_API_KEY,
    )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def metrics():
    return MetricsRecorder()


@pytest.fixture
def app(settings, engine, metrics):
    return create_application(settings, engine=engine, metrics=metrics)


@pytest.fixture
def client(app):
    return TestClient(app)


def register(client, email, password="pw123456", display_name=None):
    body = {"email": email, "password": password}
    if display_name is not None:
        body["display_name"] = display_name
    return client.post("/api/auth/register", json=body)


def login(client, email, password="pw123456"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(client):
    """Register + log in; returns (user_id, token)."""

    def _make(email, password="pw123456", display_name=None):
        resp = register(client, email, password, display_name)
        assert resp.status_code == 201, resp.text
        token = login(client, email, password).json()["token"]
        return resp.json()["user_id"], token

    return _make


@pytest.fixture
def admin_token(client, db):
    seed_admin(db, email=ADMIN_EMAIL, password=ADMIN_PASSWORD)
    resp = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


@pytest.fixture
def expire_token(session_factory):
    """Push a session's expiry into the past."""

    def _expire(token):
        with session_factory() as session:
            session.execute(
                update(AuthSession)
                .where(AuthSession.token == token)
                .values(expires_at=utcnow().replace(year=2000))
            )
            session.commit()

    return _expire
