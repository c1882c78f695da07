"""
Python client for the webapp-auth API (bearer tokens with silent refresh).
"""

from __future__ import annotations

from .api import ApiClient, ApiError
from .interceptor import RETRY_HEADER, RefreshingAuth, SessionExpiredError
from .services import AuthResult, AuthService, UserService
from .session import AuthSession
from .storage import FileTokenStorage, MemoryTokenStorage, TokenStorage

__all__ = [
    "ApiClient",
    "ApiError",
    "AuthResult",
    "AuthService",
    "AuthSession",
    "FileTokenStorage",
    "MemoryTokenStorage",
    "RETRY_HEADER",
    "RefreshingAuth",
    "SessionExpiredError",
    "TokenStorage",
    "UserService",
]
