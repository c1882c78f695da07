from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request

from webapp_auth.api.errors import AppError
from webapp_auth.api.models import AuthStore, User
from webapp_auth.api.security import TokenClaims, TokenError, extract_bearer, verify_access_token
from webapp_auth.config import get_settings
from webapp_auth.utils.log import logger, set_user_id
from webapp_auth.utils.ratelimit import RateLimiter

TOO_MANY_REQUESTS = "Too many requests, please try again later"


@dataclass(frozen=True, slots=True)
class Identity:
    user: User
    claims: TokenClaims

    @property
    def user_id(self) -> str:
        return self.user.id


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent") or None


def get_store(request: Request) -> AuthStore:
    store = getattr(request.app.state, "auth_store", None)
    if store is None:
        raise AppError(500, "Auth store not initialized")
    return store


def get_limiter(request: Request) -> RateLimiter:
    rl = getattr(request.app.state, "rate_limiter", None)
    if rl is None:
        rl = RateLimiter()
        request.app.state.rate_limiter = rl
    return rl


def current_identity(request: Request, store: AuthStore = Depends(get_store)) -> Identity:
    token = extract_bearer(request)
    if not token:
        raise AppError(401, "No token provided")
    try:
        claims = verify_access_token(token)
    except TokenError as ex:
        logger.info("access_token_rejected", reason=str(ex), path=request.url.path)
        raise AppError(401, "Invalid or expired token") from None
    user = store.get_user(claims.sub)
    if user is None:
        raise AppError(401, "User not found")
    set_user_id(user.id)
    return Identity(user=user, claims=claims)


def _check(request: Request, rl: RateLimiter, *, bucket: str, limit: int, window_ms: int) -> None:
    ip = client_ip(request)
    per_seconds = max(1, int(window_ms) // 1000)
    if not rl.allow(f"{bucket}:{ip}", limit=int(limit), per_seconds=per_seconds):
        logger.warning("rate_limited", bucket=bucket, ip=ip, path=request.url.path)
        raise AppError(429, TOO_MANY_REQUESTS)


def api_rate_limit(request: Request, rl: RateLimiter = Depends(get_limiter)) -> None:
    s = get_settings()
    _check(
        request,
        rl,
        bucket="api",
        limit=s.rate_limit_max_requests,
        window_ms=s.rate_limit_window_ms,
    )


def auth_rate_limit(request: Request, rl: RateLimiter = Depends(get_limiter)) -> None:
    s = get_settings()
    _check(
        request,
        rl,
        bucket="auth",
        limit=s.auth_rate_limit_max_requests,
        window_ms=s.auth_rate_limit_window_ms,
    )
