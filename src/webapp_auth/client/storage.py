from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenStorage(Protocol):
    def get_access_token(self) -> str | None: ...

    def get_refresh_token(self) -> str | None: ...

    def set_tokens(self, access_token: str, refresh_token: str) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStorage:
    def __init__(self, access_token: str | None = None, refresh_token: str | None = None) -> None:
        self._lock = threading.Lock()
        self._access = access_token
        self._refresh = refresh_token

    def get_access_token(self) -> str | None:
        with self._lock:
            return self._access

    def get_refresh_token(self) -> str | None:
        with self._lock:
            return self._refresh

    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        with self._lock:
            self._access = str(access_token)
            self._refresh = str(refresh_token)

    def clear(self) -> None:
        with self._lock:
            self._access = None
            self._refresh = None


class FileTokenStorage:
    """
    Tokens persisted as JSON (`{"accessToken": ..., "refreshToken": ...}`), owner-only permissions.
    A missing or unreadable file means "logged out".
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def get_access_token(self) -> str | None:
        with self._lock:
            return self._load().get("accessToken") or None

    def get_refresh_token(self) -> str | None:
        with self._lock:
            return self._load().get("refreshToken") or None

    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        payload = json.dumps({"accessToken": str(access_token), "refreshToken": str(refresh_token)})
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(payload, encoding="utf-8")
            os.chmod(tmp, 0o600)
            tmp.replace(self.path)

    def clear(self) -> None:
        with self._lock:
            self.path.unlink(missing_ok=True)
