from __future__ import annotations

from typing import Any

import httpx

from webapp_auth.client.api import ApiClient, ApiError
from webapp_auth.client.interceptor import SessionExpiredError
from webapp_auth.client.services import AuthService, UserService
from webapp_auth.utils.log import logger


class AuthSession:
    """
    Client-side login state: the signed-in user plus the tokens in the client's storage.
    """

    def __init__(self, api: ApiClient) -> None:
        self.api = api
        self.auth = AuthService(api)
        self.users = UserService(api)
        self.user: dict[str, Any] | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def check_auth(self) -> dict[str, Any] | None:
        """
        Restore a previous login from stored tokens. Stale tokens are dropped.
        """
        if not self.api.storage.get_access_token():
            self.user = None
            return None
        try:
            self.user = self.users.get_current_user()
        except (ApiError, SessionExpiredError) as ex:
            logger.info("client_check_auth_failed", error=str(ex))
            self.api.storage.clear()
            self.user = None
        return self.user

    def login(self, email: str, password: str) -> dict[str, Any]:
        res = self.auth.login(email, password)
        self.api.storage.set_tokens(res.access_token, res.refresh_token)
        self.user = res.user
        return res.user

    def register(
        self, name: str, email: str, password: str, confirm_password: str | None = None
    ) -> dict[str, Any]:
        res = self.auth.register(name, email, password, confirm_password)
        self.api.storage.set_tokens(res.access_token, res.refresh_token)
        self.user = res.user
        return res.user

    def logout(self) -> None:
        refresh = self.api.storage.get_refresh_token()
        try:
            self.auth.logout(refresh)
        except (ApiError, SessionExpiredError, httpx.HTTPError) as ex:
            # Local state is cleared regardless of the server's answer.
            logger.info("client_logout_failed", error=str(ex))
        self.api.storage.clear()
        self.user = None

    def refresh_user(self) -> dict[str, Any]:
        self.user = self.users.get_current_user()
        return self.user
