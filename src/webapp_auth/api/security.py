from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import jwt
from fastapi import Request

from webapp_auth.config import get_settings
from webapp_auth.utils.crypto import random_id

ACCESS = "access"
REFRESH = "refresh"


class TokenError(ValueError):
    """Token is empty, malformed, badly signed, expired or of the wrong type."""


@dataclass(frozen=True, slots=True)
class TokenClaims:
    sub: str
    email: str
    typ: str
    iat: int
    exp: int
    jti: str | None = None

    @property
    def user_id(self) -> str:
        return self.sub


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def as_payload(self) -> dict[str, str]:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}


def _secret_for(typ: str) -> str:
    s = get_settings()
    if typ == REFRESH:
        return s.jwt_refresh_secret.get_secret_value()
    return s.jwt_secret.get_secret_value()


def _encode(payload: dict[str, Any], typ: str) -> str:
    return jwt.encode(payload, _secret_for(typ), algorithm=get_settings().jwt_alg)


def create_access_token(*, user_id: str, email: str) -> str:
    s = get_settings()
    now = int(time.time())
    payload: dict[str, Any] = {
        "typ": ACCESS,
        "sub": str(user_id),
        "email": str(email),
        "iat": now,
        "exp": now + int(s.access_token_seconds),
    }
    return _encode(payload, ACCESS)


def create_refresh_token(*, user_id: str, email: str) -> str:
    s = get_settings()
    now = int(time.time())
    payload: dict[str, Any] = {
        "typ": REFRESH,
        "sub": str(user_id),
        "email": str(email),
        "iat": now,
        "exp": now + int(s.refresh_token_seconds),
        "jti": random_id("r_", 16),
    }
    return _encode(payload, REFRESH)


def decode_token(token: str, *, expected_typ: str) -> TokenClaims:
    if not token or not isinstance(token, str):
        raise TokenError("empty token")
    s = get_settings()
    try:
        data = jwt.decode(
            token,
            _secret_for(expected_typ),
            algorithms=[s.jwt_alg],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError as ex:
        raise TokenError("token expired") from ex
    except jwt.PyJWTError as ex:
        raise TokenError("invalid token") from ex
    if not isinstance(data, dict) or data.get("typ") != expected_typ:
        raise TokenError("invalid token type")
    sub = str(data.get("sub") or "")
    if not sub:
        raise TokenError("invalid token subject")
    jti = data.get("jti")
    if expected_typ == REFRESH and not jti:
        raise TokenError("refresh token missing jti")
    return TokenClaims(
        sub=sub,
        email=str(data.get("email") or ""),
        typ=str(data["typ"]),
        iat=int(data["iat"]),
        exp=int(data["exp"]),
        jti=(str(jti) if jti else None),
    )


def verify_access_token(token: str) -> TokenClaims:
    return decode_token(token, expected_typ=ACCESS)


def verify_refresh_token(token: str) -> TokenClaims:
    return decode_token(token, expected_typ=REFRESH)


def extract_bearer(request: Request) -> str | None:
    # Scheme match is case-sensitive: "Bearer <token>".
    auth = request.headers.get("authorization") or ""
    if not auth.startswith("Bearer "):
        return None
    return auth[len("Bearer ") :].strip() or None
