from __future__ import annotations

from typing import Any

from fastapi.testclient import TestClient

PASSWORD = "Sup3r-secret!"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register_user(
    client: TestClient,
    *,
    name: str = "Test User",
    email: str = "user@example.com",
    password: str = PASSWORD,
) -> dict[str, Any]:
    r = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password, "confirmPassword": password},
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]


def login_user(
    client: TestClient, *, email: str = "user@example.com", password: str = PASSWORD
) -> dict[str, Any]:
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["data"]
