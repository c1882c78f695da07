from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Request, status

from webapp_auth.api.auth.passwords import validate_password_strength
from webapp_auth.api.auth.refresh_tokens import (
    RefreshTokenError,
    issue_session,
    revoke_all_sessions,
    revoke_session_best_effort,
    rotate_session,
)
from webapp_auth.api.deps import (
    Identity,
    auth_rate_limit,
    client_ip,
    current_identity,
    get_store,
    user_agent,
)
from webapp_auth.api.errors import AppError
from webapp_auth.api.middleware import audit_event
from webapp_auth.api.models import AuthStore, DuplicateEmailError, User, iso_ts, now_ts
from webapp_auth.api.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from webapp_auth.api.security import TokenPair
from webapp_auth.utils.crypto import PasswordHasher
from webapp_auth.utils.log import logger

router = APIRouter(prefix="/auth", tags=["auth"])

_hasher = PasswordHasher()

USER_EXISTS = "User with this email already exists"
INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH = "Invalid or expired refresh token"
RESET_REQUESTED = "If the email exists, a password reset link has been sent"


def _require_strong(password: str) -> None:
    ok, message = validate_password_strength(password)
    if not ok:
        raise AppError(400, str(message))


def _auth_payload(user: User, tokens: TokenPair) -> dict[str, Any]:
    return {"status": "success", "data": {"user": user.public_dict(), **tokens.as_payload()}}


@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(auth_rate_limit)])
async def register(
    body: RegisterRequest, request: Request, store: AuthStore = Depends(get_store)
) -> dict[str, Any]:
    _require_strong(body.password)
    email = str(body.email)
    if store.get_user_by_email(email) is not None:
        raise AppError(400, USER_EXISTS)

    ts = now_ts()
    try:
        user = store.create_user(
            User(
                id=str(uuid.uuid4()),
                name=body.name.strip(),
                email=email,
                password_hash=_hasher.hash(body.password),
                avatar=None,
                created_at=ts,
                updated_at=ts,
            )
        )
    except DuplicateEmailError:
        raise AppError(400, USER_EXISTS) from None

    tokens = issue_session(
        store=store, user=user, created_ip=client_ip(request), user_agent=user_agent(request)
    )
    audit_event("USER_REGISTERED", request=request, store=store, user_id=user.id)
    return _auth_payload(user, tokens)


@router.post("/login", dependencies=[Depends(auth_rate_limit)])
async def login(
    body: LoginRequest, request: Request, store: AuthStore = Depends(get_store)
) -> dict[str, Any]:
    user = store.get_user_by_email(str(body.email))
    # Same message for unknown email and wrong password.
    if user is None or not _hasher.verify(user.password_hash, body.password):
        logger.info("login_failed", ip=client_ip(request))
        raise AppError(401, INVALID_CREDENTIALS)

    tokens = issue_session(
        store=store, user=user, created_ip=client_ip(request), user_agent=user_agent(request)
    )
    audit_event("USER_LOGIN", request=request, store=store, user_id=user.id)
    return _auth_payload(user, tokens)


@router.post("/logout")
async def logout(
    request: Request,
    body: LogoutRequest | None = None,
    ident: Identity = Depends(current_identity),
    store: AuthStore = Depends(get_store),
) -> dict[str, Any]:
    if body is not None and body.refresh_token:
        revoke_session_best_effort(
            store=store, refresh_token=body.refresh_token, user_id=ident.user_id
        )
    audit_event("USER_LOGOUT", request=request, store=store, user_id=ident.user_id)
    return {"status": "success", "message": "Logged out successfully"}


@router.post("/refresh")
async def refresh(
    body: RefreshRequest, request: Request, store: AuthStore = Depends(get_store)
) -> dict[str, Any]:
    try:
        res = rotate_session(
            store=store,
            refresh_token=body.refresh_token,
            used_ip=client_ip(request),
            user_agent=user_agent(request),
        )
    except RefreshTokenError as ex:
        logger.info("refresh_rejected", reason=str(ex))
        raise AppError(401, INVALID_REFRESH) from None
    return {"status": "success", "data": res.tokens.as_payload()}


@router.post("/forgot-password", dependencies=[Depends(auth_rate_limit)])
async def forgot_password(
    body: ForgotPasswordRequest, request: Request, store: AuthStore = Depends(get_store)
) -> dict[str, Any]:
    user = store.get_user_by_email(str(body.email))
    if user is not None:
        # No mail transport: the request is only recorded.
        audit_event("PASSWORD_RESET_REQUESTED", request=request, store=store, user_id=user.id)
    return {"status": "success", "message": RESET_REQUESTED}


@router.post("/reset-password", dependencies=[Depends(auth_rate_limit)])
async def reset_password(body: ResetPasswordRequest) -> dict[str, Any]:
    # Reset tokens are not issued yet; only the new password is checked.
    _require_strong(body.password)
    return {"status": "success", "message": "Password has been reset successfully"}


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    ident: Identity = Depends(current_identity),
    store: AuthStore = Depends(get_store),
) -> dict[str, Any]:
    user = store.get_user(ident.user_id)
    if user is None:
        raise AppError(404, "User not found")
    if not _hasher.verify(user.password_hash, body.current_password):
        raise AppError(401, "Current password is incorrect")
    _require_strong(body.new_password)

    store.set_password_hash(user.id, _hasher.hash(body.new_password))
    revoke_all_sessions(store=store, user_id=user.id)
    audit_event("PASSWORD_CHANGED", request=request, store=store, user_id=user.id)
    return {"status": "success", "message": "Password changed successfully. Please login again."}


@router.get("/sessions")
async def list_sessions(
    ident: Identity = Depends(current_identity), store: AuthStore = Depends(get_store)
) -> dict[str, Any]:
    items = [
        {
            "id": s.jti,
            "createdAt": iso_ts(s.created_at),
            "expiresAt": iso_ts(s.expires_at),
            "createdIp": s.created_ip,
            "userAgent": s.user_agent,
        }
        for s in store.list_active_sessions(ident.user_id)
    ]
    return {"status": "success", "data": {"sessions": items}}
