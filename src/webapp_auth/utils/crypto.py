from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import Argon2Error, InvalidHashError


def random_id(prefix: str = "", n: int = 24) -> str:
    # URL-safe token without padding.
    return f"{prefix}{secrets.token_urlsafe(n)}"


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class PasswordHasher:
    """
    Thin wrapper around argon2-cffi PasswordHasher.
    """

    time_cost: int = 2
    memory_cost: int = 19456
    parallelism: int = 1

    def _impl(self) -> _Argon2Hasher:
        return _Argon2Hasher(
            time_cost=self.time_cost, memory_cost=self.memory_cost, parallelism=self.parallelism
        )

    def hash(self, password: str) -> str:
        return self._impl().hash(password)

    def verify(self, hashed: str, password: str) -> bool:
        if not hashed:
            return False
        try:
            return bool(self._impl().verify(hashed, password))
        except (Argon2Error, InvalidHashError):
            return False
