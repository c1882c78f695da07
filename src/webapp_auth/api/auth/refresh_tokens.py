from __future__ import annotations

from dataclasses import dataclass

from webapp_auth.api.models import AuthStore, User, now_ts
from webapp_auth.api.security import (
    TokenError,
    TokenPair,
    create_access_token,
    create_refresh_token,
    verify_refresh_token,
)
from webapp_auth.utils.crypto import sha256_hex
from webapp_auth.utils.log import logger


class RefreshTokenError(RuntimeError):
    pass


def _hash_token(token: str) -> str:
    # Refresh tokens are still JWT-signed; the hash is what we keep server-side.
    return sha256_hex(token)


def _store_refresh_token(
    *,
    store: AuthStore,
    user: User,
    created_ip: str | None,
    user_agent: str | None,
) -> tuple[str, str]:
    tok = create_refresh_token(user_id=user.id, email=user.email)
    claims = verify_refresh_token(tok)
    jti = str(claims.jti)
    store.put_session(
        jti=jti,
        user_id=user.id,
        token_hash=_hash_token(tok),
        created_at=now_ts(),
        expires_at=claims.exp,
        created_ip=created_ip,
        user_agent=user_agent,
    )
    return tok, jti


def issue_session(
    *,
    store: AuthStore,
    user: User,
    created_ip: str | None = None,
    user_agent: str | None = None,
) -> TokenPair:
    """
    Start a new login: mint an access token and a stored refresh token.
    """
    refresh, jti = _store_refresh_token(
        store=store, user=user, created_ip=created_ip, user_agent=user_agent
    )
    logger.info("session_issued", user_id=user.id, jti=jti)
    return TokenPair(
        access_token=create_access_token(user_id=user.id, email=user.email),
        refresh_token=refresh,
    )


@dataclass(frozen=True, slots=True)
class RotateResult:
    user: User
    tokens: TokenPair
    old_jti: str
    new_jti: str


def rotate_session(
    *,
    store: AuthStore,
    refresh_token: str,
    used_ip: str | None = None,
    user_agent: str | None = None,
) -> RotateResult:
    """
    Exchange a refresh token for a new pair. Each refresh token is single-use:
    presenting an already-rotated token is treated as theft and ends every session of that user.
    """
    try:
        claims = verify_refresh_token(refresh_token)
    except TokenError as ex:
        raise RefreshTokenError(f"invalid refresh token ({ex})") from ex
    jti = str(claims.jti or "")
    sub = claims.sub

    rec = store.get_session(jti)
    if rec is None:
        raise RefreshTokenError("unknown refresh token")

    if rec.revoked:
        if rec.rotated:
            n = store.revoke_user_sessions(rec.user_id)
            logger.warning("refresh_token_replay", user_id=rec.user_id, jti=jti, revoked=n)
            raise RefreshTokenError("refresh token replay detected; all sessions revoked")
        raise RefreshTokenError("refresh token revoked")

    if rec.token_hash != _hash_token(refresh_token) or rec.user_id != sub:
        n = store.revoke_user_sessions(rec.user_id)
        logger.warning("refresh_token_mismatch", user_id=rec.user_id, jti=jti, revoked=n)
        raise RefreshTokenError("refresh token mismatch; all sessions revoked")

    if rec.is_expired():
        store.revoke_session(jti)
        raise RefreshTokenError("refresh token expired")

    user = store.get_user(rec.user_id)
    if user is None:
        store.revoke_session(jti)
        raise RefreshTokenError("unknown user")

    new_refresh, new_jti = _store_refresh_token(
        store=store, user=user, created_ip=used_ip, user_agent=user_agent
    )
    if not store.mark_rotated(old_jti=jti, new_jti=new_jti):
        # Lost a race with a concurrent refresh (or logout) of the same token.
        store.revoke_session(new_jti)
        n = store.revoke_user_sessions(user.id)
        logger.warning("refresh_token_race", user_id=user.id, jti=jti, revoked=n)
        raise RefreshTokenError("refresh token already used; all sessions revoked")

    logger.info("session_rotated", user_id=user.id, old_jti=jti, new_jti=new_jti)
    return RotateResult(
        user=user,
        tokens=TokenPair(
            access_token=create_access_token(user_id=user.id, email=user.email),
            refresh_token=new_refresh,
        ),
        old_jti=jti,
        new_jti=new_jti,
    )


def revoke_session_best_effort(
    *, store: AuthStore, refresh_token: str, user_id: str | None = None
) -> bool:
    """
    Logout: revoke the session behind `refresh_token` (only if it belongs to `user_id` when given).
    Unknown, foreign or malformed tokens are ignored.
    """
    try:
        claims = verify_refresh_token(refresh_token)
    except TokenError:
        return False
    if user_id is not None and claims.sub != str(user_id):
        return False
    n = store.revoke_session(str(claims.jti), user_id=user_id)
    if n:
        logger.info("session_revoked", user_id=claims.sub, jti=claims.jti)
    return n > 0


def revoke_all_sessions(*, store: AuthStore, user_id: str) -> int:
    n = store.revoke_user_sessions(user_id)
    logger.info("sessions_revoked_all", user_id=user_id, revoked=n)
    return n
