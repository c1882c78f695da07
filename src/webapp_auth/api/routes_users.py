from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from webapp_auth.api.deps import Identity, current_identity, get_store
from webapp_auth.api.errors import AppError
from webapp_auth.api.middleware import audit_event
from webapp_auth.api.models import AuthStore, DuplicateEmailError
from webapp_auth.api.schemas import UpdateUserRequest

router = APIRouter(prefix="/users", tags=["users"])

EMAIL_IN_USE = "Email is already in use"


@router.get("/me")
async def get_me(
    ident: Identity = Depends(current_identity), store: AuthStore = Depends(get_store)
) -> dict[str, Any]:
    user = store.get_user(ident.user_id)
    if user is None:
        raise AppError(404, "User not found")
    return {"status": "success", "data": {"user": user.public_dict()}}


@router.put("/me")
async def update_me(
    body: UpdateUserRequest,
    request: Request,
    ident: Identity = Depends(current_identity),
    store: AuthStore = Depends(get_store),
) -> dict[str, Any]:
    changes = body.model_dump(exclude_unset=True)
    email = str(body.email) if body.email is not None else None
    if email is not None:
        other = store.get_user_by_email(email)
        if other is not None and other.id != ident.user_id:
            raise AppError(400, EMAIL_IN_USE)
    if "email" in changes:
        changes["email"] = email

    try:
        user = store.update_user(
            ident.user_id,
            name=(body.name.strip() if body.name is not None else None),
            email=email,
            avatar=body.avatar,
            clear_avatar=("avatar" in changes and body.avatar is None),
        )
    except DuplicateEmailError:
        raise AppError(400, EMAIL_IN_USE) from None
    if user is None:
        raise AppError(404, "User not found")

    audit_event(
        "USER_UPDATED",
        request=request,
        store=store,
        user_id=user.id,
        resource="user",
        details=changes,
    )
    return {"status": "success", "data": {"user": user.public_dict()}}


@router.delete("/me")
async def delete_me(
    request: Request,
    ident: Identity = Depends(current_identity),
    store: AuthStore = Depends(get_store),
) -> dict[str, Any]:
    if not store.delete_user(ident.user_id):
        raise AppError(404, "User not found")
    # The row is gone, so the audit entry is kept without a user reference.
    audit_event(
        "USER_DELETED",
        request=request,
        store=store,
        user_id=None,
        resource="user",
        details={"deletedUserId": ident.user_id},
    )
    return {"status": "success", "message": "User account deleted successfully"}
