from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from webapp_auth.client.api import ApiClient


@dataclass(frozen=True, slots=True)
class AuthResult:
    user: dict[str, Any]
    access_token: str
    refresh_token: str

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "AuthResult":
        return cls(
            user=dict(data.get("user") or {}),
            access_token=str(data["accessToken"]),
            refresh_token=str(data["refreshToken"]),
        )


class AuthService:
    def __init__(self, api: ApiClient) -> None:
        self.api = api

    def login(self, email: str, password: str) -> AuthResult:
        body = self.api.post("/auth/login", {"email": email, "password": password})
        return AuthResult.from_payload(body["data"])

    def register(
        self, name: str, email: str, password: str, confirm_password: str | None = None
    ) -> AuthResult:
        payload: dict[str, Any] = {"name": name, "email": email, "password": password}
        if confirm_password is not None:
            payload["confirmPassword"] = confirm_password
        body = self.api.post("/auth/register", payload)
        return AuthResult.from_payload(body["data"])

    def logout(self, refresh_token: str | None = None) -> None:
        self.api.post("/auth/logout", {"refreshToken": refresh_token})

    def change_password(
        self, current_password: str, new_password: str, confirm_password: str | None = None
    ) -> str:
        payload = {"currentPassword": current_password, "newPassword": new_password}
        if confirm_password is not None:
            payload["confirmPassword"] = confirm_password
        return str(self.api.post("/auth/change-password", payload).get("message") or "")

    def forgot_password(self, email: str) -> str:
        return str(self.api.post("/auth/forgot-password", {"email": email}).get("message") or "")

    def list_sessions(self) -> list[dict[str, Any]]:
        return list(self.api.get("/auth/sessions")["data"]["sessions"])


class UserService:
    def __init__(self, api: ApiClient) -> None:
        self.api = api

    def get_current_user(self) -> dict[str, Any]:
        return dict(self.api.get("/users/me")["data"]["user"])

    def update_user(self, **changes: Any) -> dict[str, Any]:
        return dict(self.api.put("/users/me", changes)["data"]["user"])

    def delete_user(self) -> None:
        self.api.delete("/users/me")
