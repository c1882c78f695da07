"""
Silent token refresh for httpx clients.

`RefreshingAuth` attaches the stored access token to every request. When the server answers
401 it exchanges the stored refresh token at `refresh_url`, stores the new pair and resends
the original request once, marked with `X-Retry: true`. If the refresh itself is rejected
the stored tokens are dropped, `on_session_expired` is called and `SessionExpiredError`
is raised to the caller.

Refreshes are serialized per auth instance: a request that fails with a token some other
request has already replaced is retried with the stored token instead of refreshing again.
Refresh tokens are single-use on the server, so two parallel refreshes with the same token
would end the whole session.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncGenerator, Callable, Generator

import httpx

from webapp_auth.client.storage import TokenStorage
from webapp_auth.utils.log import logger

RETRY_HEADER = "X-Retry"


class SessionExpiredError(Exception):
    """The refresh token was rejected; the user has to sign in again."""

    def __init__(self, message: str = "Session expired", *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RefreshingAuth(httpx.Auth):
    def __init__(
        self,
        storage: TokenStorage,
        *,
        refresh_url: str,
        on_session_expired: Callable[[], None] | None = None,
    ) -> None:
        self.storage = storage
        self.refresh_url = str(refresh_url)
        self.on_session_expired = on_session_expired
        self._sync_lock = threading.RLock()
        self._async_lock: asyncio.Lock | None = None

    # --- request side ---

    def _authorize(self, request: httpx.Request) -> str | None:
        token = self.storage.get_access_token()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        return token

    # --- response side ---

    def _wants_refresh(self, request: httpx.Request, response: httpx.Response) -> bool:
        if response.status_code != 401:
            return False
        if request.headers.get(RETRY_HEADER):
            return False
        return bool(self.storage.get_refresh_token())

    def _already_rotated(self, sent: str | None) -> str | None:
        current = self.storage.get_access_token()
        if current and current != sent:
            return current
        return None

    def _refresh_request(self) -> httpx.Request:
        return httpx.Request(
            "POST",
            self.refresh_url,
            json={"refreshToken": self.storage.get_refresh_token()},
        )

    def _accept_refresh(self, response: httpx.Response) -> str:
        if response.is_success:
            try:
                data = response.json().get("data") or {}
                access = str(data["accessToken"])
                refresh = str(data["refreshToken"])
            except (ValueError, KeyError, TypeError, AttributeError):
                access = refresh = ""
            if access and refresh:
                self.storage.set_tokens(access, refresh)
                logger.info("client_token_refreshed")
                return access
        raise self._expire(response.status_code)

    def _expire(self, status_code: int) -> SessionExpiredError:
        self.storage.clear()
        logger.info("client_session_expired", status=status_code)
        if self.on_session_expired is not None:
            self.on_session_expired()
        return SessionExpiredError(status_code=status_code)

    def _retry(self, request: httpx.Request, token: str) -> httpx.Request:
        request.headers["Authorization"] = f"Bearer {token}"
        request.headers[RETRY_HEADER] = "true"
        return request

    # --- flows ---

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        sent = self._authorize(request)
        response = yield request
        if not self._wants_refresh(request, response):
            return
        with self._sync_lock:
            token = self._already_rotated(sent)
            if token is None and not self.storage.get_refresh_token():
                # An earlier refresh failed and cleared the session.
                return
            if token is None:
                refresh_response = yield self._refresh_request()
                refresh_response.read()
                token = self._accept_refresh(refresh_response)
        yield self._retry(request, token)

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        if self._async_lock is None:
            self._async_lock = asyncio.Lock()
        sent = self._authorize(request)
        response = yield request
        if not self._wants_refresh(request, response):
            return
        async with self._async_lock:
            token = self._already_rotated(sent)
            if token is None and not self.storage.get_refresh_token():
                # An earlier refresh failed and cleared the session.
                return
            if token is None:
                refresh_response = yield self._refresh_request()
                await refresh_response.aread()
                token = self._accept_refresh(refresh_response)
        yield self._retry(request, token)
