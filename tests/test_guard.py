# File: tests/test_guard.py

from sqlalchemy import select

from manga_api.models.session import AuthSession
from manga_api.models.user import User

from conftest import ADMIN_API_KEY, bearer


def test_missing_token_is_rejected(client):
    resp = client.get("/api/users/me")
    assert resp.status_code == 401
    assert resp.json() == {"error": "No token provided"}


def test_non_bearer_authorization_is_ignored(client, make_user):
    _, token = make_user("alice@example.com")
    resp = client.get("/api/users/me", headers={"Authorization": f"Basic {token}"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "No token provided"


def test_bearer_header_authorizes(client, make_user):
    user_id, token = make_user("alice@example.com")
    resp = client.get("/api/users/me", headers=bearer(token))
    assert resp.status_code == 200
    assert resp.json()["user_id"] == user_id


def test_x_auth_token_header_authorizes(client, make_user):
    user_id, token = make_user("alice@example.com")
    resp = client.get("/api/users/me", headers={"x-auth-token": token})
    assert resp.status_code == 200
    assert resp.json()["user_id"] == user_id


def test_bearer_is_checked_before_x_auth_token(client, make_user):
    _, token = make_user("alice@example.com")
    resp = client.get(
        "/api/users/me",
        headers={**bearer("0" * 64), "x-auth-token": token},
    )
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid token"


def test_invalid_token(client):
    resp = client.get("/api/users/me", headers=bearer("nope"))
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid token"}


def test_expired_token_is_deleted_on_read(client, db, make_user, expire_token):
    _, token = make_user("alice@example.com")
    expire_token(token)

    resp = client.get("/api/users/me", headers=bearer(token))
    assert resp.status_code == 401
    assert resp.json() == {"error": "Token expired"}
    assert db.scalar(select(AuthSession).where(AuthSession.token == token)) is None

    # Second attempt no longer finds the session at all
    resp = client.get("/api/users/me", headers=bearer(token))
    assert resp.json() == {"error": "Invalid token"}


def test_deactivated_account_is_forbidden(client, db, make_user):
    user_id, token = make_user("alice@example.com")
    db.get(User, user_id).is_active = False
    db.commit()

    resp = client.get("/api/users/me", headers=bearer(token))
    assert resp.status_code == 403
    assert resp.json() == {"error": "Account is deactivated"}


def test_owner_can_read_own_profile(client, make_user):
    user_id, token = make_user("alice@example.com")
    resp = client.get(f"/api/users/{user_id}", headers=bearer(token))
    assert resp.status_code == 200


def test_non_admin_cannot_read_other_profile(client, make_user):
    _, alice_token = make_user("alice@example.com")
    bob_id, _ = make_user("bob@example.com")

    resp = client.get(f"/api/users/{bob_id}", headers=bearer(alice_token))
    assert resp.status_code == 403
    assert "You can only access your own resources" in resp.json()["error"]


def test_admin_can_read_any_profile(client, make_user, admin_token):
    bob_id, _ = make_user("bob@example.com")
    resp = client.get(f"/api/users/{bob_id}", headers=bearer(admin_token))
    assert resp.status_code == 200
    assert resp.json()["email"] == "bob@example.com"


def test_admin_route_rejects_regular_user(client, make_user):
    _, token = make_user("alice@example.com")
    resp = client.get("/api/users", headers=bearer(token))
    assert resp.status_code == 403
    assert resp.json()["error"] == "Unauthorized - Admin access required"


def test_admin_route_without_credentials(client):
    resp = client.get("/api/users")
    assert resp.status_code == 403


def test_admin_route_accepts_admin_session(client, admin_token):
    resp = client.get("/api/users", headers=bearer(admin_token))
    assert resp.status_code == 200


def test_admin_route_accepts_api_key(client, make_user):
    make_user("alice@example.com")
    resp = client.get("/api/users", headers={"x-api-key": ADMIN_API_KEY})
    assert resp.status_code == 200
    assert [u["email"] for u in resp.json()] == ["alice@example.com"]


def test_admin_route_rejects_wrong_api_key(client):
    resp = client.get("/api/users", headers={"x-api-key": "guess"})
    assert resp.status_code == 403


def test_api_key_fallback_disabled_when_unconfigured(settings, engine, metrics):
    from fastapi.testclient import TestClient

    from manga_api.main import create_application

    app = create_application(
        settings.model_copy(update={"admin_api_key": None}), engine=engine, metrics=metrics
    )
    resp = TestClient(app).get("/api/users", headers={"x-api-key": ""})
    assert resp.status_code == 403
