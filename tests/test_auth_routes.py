from __future__ import annotations

from fastapi.testclient import TestClient

from tests._helpers.auth import PASSWORD, bearer, login_user, register_user
from webapp_auth.api.models import AuthStore


def test_register_returns_user_and_tokens(client: TestClient, store: AuthStore) -> None:
    data = register_user(client, email="new@example.com")
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["name"] == "Test User"
    assert "password_hash" not in data["user"]
    assert data["accessToken"] and data["refreshToken"]
    user_id = data["user"]["id"]
    assert [a.action for a in store.list_audit_logs(user_id=user_id)] == ["USER_REGISTERED"]
    assert len(store.list_active_sessions(user_id)) == 1


def test_register_duplicate_email(client: TestClient) -> None:
    register_user(client)
    r = client.post(
        "/api/auth/register",
        json={"name": "Other", "email": "USER@example.com", "password": PASSWORD},
    )
    assert r.status_code == 400
    assert r.json() == {"status": "error", "message": "User with this email already exists"}


def test_register_weak_password(client: TestClient) -> None:
    r = client.post(
        "/api/auth/register",
        json={"name": "Weak", "email": "weak@example.com", "password": "password"},
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Password must contain at least one uppercase letter"


def test_register_validation_errors(client: TestClient) -> None:
    r = client.post(
        "/api/auth/register",
        json={"name": "X", "email": "not-an-email", "password": PASSWORD},
    )
    assert r.status_code == 400
    body = r.json()
    assert body["status"] == "error"
    assert body["message"] == "Validation error"
    fields = {e["field"] for e in body["errors"]}
    assert {"name", "email"} <= fields

    r = client.post(
        "/api/auth/register",
        json={
            "name": "Mismatch",
            "email": "m@example.com",
            "password": PASSWORD,
            "confirmPassword": PASSWORD + "x",
        },
    )
    assert r.status_code == 400
    assert any(e["message"] == "Passwords do not match" for e in r.json()["errors"])


def test_login(client: TestClient, store: AuthStore) -> None:
    reg = register_user(client)
    data = login_user(client)
    assert data["user"]["id"] == reg["user"]["id"]
    assert data["refreshToken"] != reg["refreshToken"]
    assert len(store.list_active_sessions(reg["user"]["id"])) == 2
    assert store.list_audit_logs(action="USER_LOGIN")[0].user_id == reg["user"]["id"]


def test_login_failures_share_message(client: TestClient) -> None:
    register_user(client)
    wrong = client.post("/api/auth/login", json={"email": "user@example.com", "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    for r in (wrong, unknown):
        assert r.status_code == 401
        assert r.json() == {"status": "error", "message": "Invalid email or password"}


def test_refresh_rotates_and_detects_replay(client: TestClient) -> None:
    data = register_user(client)
    r1 = client.post("/api/auth/refresh", json={"refreshToken": data["refreshToken"]})
    assert r1.status_code == 200, r1.text
    new = r1.json()["data"]
    assert set(new) == {"accessToken", "refreshToken"}
    assert new["refreshToken"] != data["refreshToken"]
    assert client.get("/api/users/me", headers=bearer(new["accessToken"])).status_code == 200

    replay = client.post("/api/auth/refresh", json={"refreshToken": data["refreshToken"]})
    assert replay.status_code == 401
    assert replay.json() == {"status": "error", "message": "Invalid or expired refresh token"}

    # The replay ended the rotated session too.
    r2 = client.post("/api/auth/refresh", json={"refreshToken": new["refreshToken"]})
    assert r2.status_code == 401


def test_refresh_rejects_access_token_and_garbage(client: TestClient) -> None:
    data = register_user(client)
    for tok in (data["accessToken"], "garbage"):
        r = client.post("/api/auth/refresh", json={"refreshToken": tok})
        assert r.status_code == 401
        assert r.json()["message"] == "Invalid or expired refresh token"
    r = client.post("/api/auth/refresh", json={})
    assert r.status_code == 400


def test_logout_revokes_only_that_session(client: TestClient, store: AuthStore) -> None:
    a = register_user(client)
    b = login_user(client)
    r = client.post(
        "/api/auth/logout",
        json={"refreshToken": a["refreshToken"]},
        headers=bearer(a["accessToken"]),
    )
    assert r.status_code == 200
    assert r.json() == {"status": "success", "message": "Logged out successfully"}
    assert client.post("/api/auth/refresh", json={"refreshToken": a["refreshToken"]}).status_code == 401
    assert client.post("/api/auth/refresh", json={"refreshToken": b["refreshToken"]}).status_code == 200
    assert store.list_audit_logs(action="USER_LOGOUT")[0].user_id == a["user"]["id"]


def test_logout_requires_access_token(client: TestClient) -> None:
    data = register_user(client)
    r = client.post("/api/auth/logout", json={"refreshToken": data["refreshToken"]})
    assert r.status_code == 401
    assert r.json() == {"status": "error", "message": "No token provided"}


def test_logout_cannot_revoke_other_users_session(client: TestClient) -> None:
    alice = register_user(client, email="alice@example.com")
    bob = register_user(client, email="bob@example.com")
    r = client.post(
        "/api/auth/logout",
        json={"refreshToken": bob["refreshToken"]},
        headers=bearer(alice["accessToken"]),
    )
    assert r.status_code == 200
    assert client.post("/api/auth/refresh", json={"refreshToken": bob["refreshToken"]}).status_code == 200


def test_change_password_ends_all_sessions(client: TestClient, store: AuthStore) -> None:
    data = register_user(client)
    other = login_user(client)
    headers = bearer(data["accessToken"])

    bad = client.post(
        "/api/auth/change-password",
        json={"currentPassword": "wrong", "newPassword": "N3w-passw0rd!"},
        headers=headers,
    )
    assert bad.status_code == 401
    assert bad.json()["message"] == "Current password is incorrect"

    weak = client.post(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "short"},
        headers=headers,
    )
    assert weak.status_code == 400

    ok = client.post(
        "/api/auth/change-password",
        json={"currentPassword": PASSWORD, "newPassword": "N3w-passw0rd!", "confirmPassword": "N3w-passw0rd!"},
        headers=headers,
    )
    assert ok.status_code == 200
    assert ok.json()["message"] == "Password changed successfully. Please login again."

    for tok in (data["refreshToken"], other["refreshToken"]):
        assert client.post("/api/auth/refresh", json={"refreshToken": tok}).status_code == 401
    assert client.post("/api/auth/login", json={"email": "user@example.com", "password": PASSWORD}).status_code == 401
    login_user(client, password="N3w-passw0rd!")
    assert store.list_audit_logs(action="PASSWORD_CHANGED")


def test_forgot_password_does_not_enumerate(client: TestClient, store: AuthStore) -> None:
    data = register_user(client)
    known = client.post("/api/auth/forgot-password", json={"email": "user@example.com"})
    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json() == {
        "status": "success",
        "message": "If the email exists, a password reset link has been sent",
    }
    logs = store.list_audit_logs(action="PASSWORD_RESET_REQUESTED")
    assert [a.user_id for a in logs] == [data["user"]["id"]]


def test_reset_password_checks_strength(client: TestClient) -> None:
    weak = client.post("/api/auth/reset-password", json={"token": "t", "password": "weak"})
    assert weak.status_code == 400
    assert weak.json()["message"] == "Password must be at least 8 characters long"
    ok = client.post("/api/auth/reset-password", json={"token": "t", "password": PASSWORD})
    assert ok.status_code == 200
    assert ok.json()["message"] == "Password has been reset successfully"


def test_sessions_listing(client: TestClient) -> None:
    data = register_user(client, email="s@example.com")
    login_user(client, email="s@example.com")
    r = client.get("/api/auth/sessions", headers=bearer(data["accessToken"]))
    assert r.status_code == 200
    sessions = r.json()["data"]["sessions"]
    assert len(sessions) == 2
    text = r.text
    assert data["refreshToken"] not in text
    assert set(sessions[0]) == {"id", "createdAt", "expiresAt", "createdIp", "userAgent"}
