from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from webapp_auth.client.interceptor import RefreshingAuth
from webapp_auth.client.storage import MemoryTokenStorage, TokenStorage

DEFAULT_BASE_URL = "http://localhost:3000"


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = int(status_code)
        self.message = str(message)
        self.errors = list(errors or [])

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        message = response.reason_phrase or "Request failed"
        errors: list[dict[str, Any]] = []
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = str(body.get("message") or message)
            if isinstance(body.get("errors"), list):
                errors = [e for e in body["errors"] if isinstance(e, dict)]
        return cls(response.status_code, message, errors)


class ApiClient:
    """
    JSON client for `<base_url>/api` with bearer auth and silent refresh.

    Pass `http` to reuse an existing `httpx.Client` (e.g. a test client); it is then not
    closed by `close()`.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        storage: TokenStorage | None = None,
        on_session_expired: Callable[[], None] | None = None,
        timeout: float = 10.0,
        http: httpx.Client | None = None,
    ) -> None:
        self.storage: TokenStorage = storage if storage is not None else MemoryTokenStorage()
        self._owns_http = http is None
        self._http = http if http is not None else httpx.Client(base_url=base_url, timeout=timeout)
        self.api_url = str(self._http.base_url).rstrip("/") + "/api"
        self.auth = RefreshingAuth(
            self.storage,
            refresh_url=f"{self.api_url}/auth/refresh",
            on_session_expired=on_session_expired,
        )

    def request(self, method: str, path: str, *, json: Any = None) -> dict[str, Any]:
        resp = self._http.request(
            method,
            f"{self.api_url}{path}",
            json=json,
            headers={"Content-Type": "application/json"},
            auth=self.auth,
        )
        if resp.is_error:
            raise ApiError.from_response(resp)
        if not resp.content:
            return {}
        body = resp.json()
        return body if isinstance(body, dict) else {"data": body}

    def get(self, path: str) -> dict[str, Any]:
        return self.request("GET", path)

    def post(self, path: str, json: Any = None) -> dict[str, Any]:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Any = None) -> dict[str, Any]:
        return self.request("PUT", path, json=json)

    def delete(self, path: str) -> dict[str, Any]:
        return self.request("DELETE", path)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
