from __future__ import annotations

import re

MIN_LENGTH = 8

_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"\d"), "Password must contain at least one number"),
    (re.compile(r"[^A-Za-z0-9]"), "Password must contain at least one special character"),
]


def validate_password_strength(password: str) -> tuple[bool, str | None]:
    """
    Returns (ok, message). The message names the first rule the password breaks.
    """
    pw = str(password or "")
    if len(pw) < MIN_LENGTH:
        return False, f"Password must be at least {MIN_LENGTH} characters long"
    for pattern, message in _RULES:
        if not pattern.search(pw):
            return False, message
    return True, None
