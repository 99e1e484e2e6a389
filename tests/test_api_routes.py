"""
tests/test_api_routes.py -- Integration tests for the /api/v1/auth routes.

Every test runs against a fresh app (harness fixture) through the real ASGI
stack: SessionMiddleware, guards, exception handlers and cookie handling are
all exercised. The client's cookie jar carries the session between requests.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from auth.models import User
from auth.passwords import CredentialHasher
from core.config import PasswordScheme
from tests.conftest import ADMIN_PASSWORD, Harness, login, register


def _set_cookie_header(resp) -> str:
    return "; ".join(v for k, v in resp.headers.multi_items() if k.lower() == "set-cookie")


class TestRegister:
    def test_register_sets_cookie_and_returns_user(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/register", json={"username": "alice", "password": "secret1"})
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["message"] == "User registered successfully"
        assert data["user"]["username"] == "alice"
        assert data["user"]["role"] == "user"
        assert "password" not in resp.text

        cookie = _set_cookie_header(resp)
        assert "sessionId=" in cookie
        assert "httponly" in cookie.lower()
        assert "samesite=strict" in cookie.lower()
        assert resp.headers["cache-control"] == "no-store"

    def test_registered_user_is_logged_in(self, client: TestClient) -> None:
        register(client, "alice")
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["username"] == "alice"

    def test_validation_errors_are_all_reported(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/auth/register",
            json={"username": "al", "password": "123", "email": "nope"},
        )
        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "validation_error"
        assert error["errors"] == [
            "Username must be at least 3 characters long",
            "Password must be at least 6 characters long",
            "Invalid email format",
        ]
        assert "sessionId" not in _set_cookie_header(resp)

    def test_empty_body_reports_missing_fields(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/register", json={})
        assert resp.status_code == 400
        assert len(resp.json()["error"]["errors"]) == 2

    def test_duplicate_username(self, client: TestClient) -> None:
        register(client, "alice")
        resp = client.post("/api/v1/auth/register", json={"username": "alice", "password": "other12"})
        assert resp.status_code == 400
        assert resp.json()["error"]["errors"] == ["Username already exists"]

    def test_role_cannot_be_chosen_at_registration(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/auth/register",
            json={"username": "mallory", "password": "secret1", "role": "admin"},
        )
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "user"

    def test_malformed_json_is_422(self, client: TestClient) -> None:
        resp = client.post(
            "/api/v1/auth/register",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestLogin:
    def test_admin_login(self, harness: Harness) -> None:
        data = login(harness.client, "admin", ADMIN_PASSWORD)
        assert data["message"] == "Login successful"
        assert data["user"] == {"id": harness.admin_id, "username": "admin", "role": "admin"}

    def test_wrong_password_and_unknown_user_look_the_same(self, client: TestClient) -> None:
        register(client, "alice")
        client.cookies.clear()
        wrong = client.post("/api/v1/auth/login", json={"username": "alice", "password": "nope123"})
        unknown = client.post("/api/v1/auth/login", json={"username": "ghost", "password": "nope123"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "invalid_credentials"

    def test_failed_login_sets_no_cookie(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/login", json={"username": "ghost", "password": "nope123"})
        assert "sessionId" not in _set_cookie_header(resp)


class TestSessionLifecycle:
    def test_alice_scenario(self, harness: Harness) -> None:
        """register -> me -> logout -> me(401) -> wrong login -> login -> me."""
        client = harness.client
        registered = register(client, "alice", "secret1", email="alice@example.com")
        assert client.get("/api/v1/auth/me").json()["role"] == "user"

        resp = client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Logout successful"}
        assert client.get("/api/v1/auth/me").status_code == 401

        wrong = client.post("/api/v1/auth/login", json={"username": "alice", "password": "wrong"})
        assert wrong.status_code == 401
        assert wrong.json()["error"]["code"] == "invalid_credentials"
        assert client.get("/api/v1/auth/me").status_code == 401

        logged_in = login(client, "alice", "secret1")
        assert logged_in["user"]["id"] == registered["user"]["id"]
        me = client.get("/api/v1/auth/me").json()
        assert me["username"] == "alice"
        assert me["user_id"] == registered["user"]["id"]

    def test_legacy_account_with_long_password_can_log_in(self, harness: Harness) -> None:
        long_password = "p" * 80
        legacy_record = CredentialHasher(PasswordScheme.pbkdf2_sha512).hash(long_password)
        harness.user_store.create_user(User(username="old", hashed_password=legacy_record))

        body = login(harness.client, "old", long_password)

        assert body["user"]["username"] == "old"
        assert harness.client.get("/api/v1/auth/me").status_code == 200

    def test_logged_out_cookie_is_dead_server_side(self, harness: Harness) -> None:
        client = harness.client
        login(client, "admin", ADMIN_PASSWORD)
        cookie = client.cookies.get("sessionId")
        assert len(harness.session_store) == 1

        client.post("/api/v1/auth/logout")
        assert len(harness.session_store) == 0

        client.cookies.set("sessionId", cookie)
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthenticated"

    def test_logout_without_session_is_200(self, client: TestClient) -> None:
        assert client.post("/api/v1/auth/logout").status_code == 200

    def test_forged_cookie_is_anonymous(self, harness: Harness) -> None:
        client = harness.client
        login(client, "admin", ADMIN_PASSWORD)
        session_id = client.cookies.get("sessionId").split(".")[0]
        client.cookies.clear()
        client.cookies.set("sessionId", f"{session_id}.{'0' * 64}")
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_garbage_cookie_is_anonymous(self, client: TestClient) -> None:
        client.cookies.set("sessionId", "garbage")
        assert client.get("/api/v1/auth/me").status_code == 401

    def test_expired_session_is_anonymous(self, harness: Harness, monkeypatch) -> None:
        client = harness.client
        login(client, "admin", ADMIN_PASSWORD)
        store = harness.session_store
        original = store._clock
        monkeypatch.setattr(store, "_clock", lambda: original() + 10 * 86_400)
        assert client.get("/api/v1/auth/me").status_code == 401
        assert len(store) == 0


class TestListUsers:
    def test_admin_sees_users_newest_first_without_hashes(self, harness: Harness) -> None:
        client = harness.client
        register(client, "first")
        register(client, "second", email="Second@Example.com")
        client.cookies.clear()
        login(client, "admin", ADMIN_PASSWORD)

        resp = client.get("/api/v1/auth/users")
        assert resp.status_code == 200
        users = resp.json()
        assert [u["username"] for u in users] == ["second", "first", "admin"]
        assert users[0]["email"] == "second@example.com"
        for user in users:
            assert "hashed_password" not in user
            assert "password" not in user

    def test_regular_user_forbidden(self, client: TestClient) -> None:
        register(client, "alice")
        resp = client.get("/api/v1/auth/users")
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_anonymous_unauthenticated(self, client: TestClient) -> None:
        resp = client.get("/api/v1/auth/users")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthenticated"


def test_login_is_rate_limited(client: TestClient, monkeypatch) -> None:
    """The 11th login attempt inside a minute is refused with 429 + Retry-After."""
    from api.limiter import limiter

    monkeypatch.setattr(limiter, "enabled", True)
    limiter.reset()
    try:
        responses = [
            client.post("/api/v1/auth/login", json={"username": "ghost", "password": "nope123"}) for _ in range(11)
        ]
    finally:
        limiter.reset()

    assert responses[0].status_code == 401
    assert responses[-1].status_code == 429
    assert responses[-1].json()["error"]["code"] == "rate_limited"
    assert "retry-after" in responses[-1].headers
