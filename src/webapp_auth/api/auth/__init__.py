"""
Session authentication.

The server wires auth via:
- short-lived JWT access tokens (HS256, `JWT_SECRET`)
- rotating refresh tokens (HS256, `JWT_REFRESH_SECRET`) stored server-side (AuthStore)
- single-use refresh: replaying a rotated token revokes every session of the user
"""

from __future__ import annotations

from .passwords import validate_password_strength
from .refresh_tokens import (
    RefreshTokenError,
    RotateResult,
    issue_session,
    revoke_all_sessions,
    revoke_session_best_effort,
    rotate_session,
)

__all__ = [
    "RefreshTokenError",
    "RotateResult",
    "issue_session",
    "rotate_session",
    "revoke_session_best_effort",
    "revoke_all_sessions",
    "validate_password_strength",
]
