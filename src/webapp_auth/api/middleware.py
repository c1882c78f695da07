from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from typing import Any

from fastapi import Request, Response

from webapp_auth.api.models import AuthStore
from webapp_auth.utils.log import logger, safe_log_data, set_request_id, set_user_id


def _new_request_id() -> str:
    return uuid.uuid4().hex


async def request_context_middleware(
    request: Request, call_next: Callable[[Request], Any]
) -> Response:
    """
    Request-scoped context:
    - Inject X-Request-ID if absent
    - Put request_id/user_id into contextvars so all logs get correlation fields
    - One access log line per request
    """
    rid = request.headers.get("x-request-id") or _new_request_id()
    set_request_id(rid)
    set_user_id(None)
    request.state.request_id = rid
    t0 = time.perf_counter()
    status = 500
    try:
        resp = await call_next(request)
        status = resp.status_code
        resp.headers.setdefault("x-request-id", rid)
        return resp
    finally:
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status=status,
            duration_ms=round((time.perf_counter() - t0) * 1000.0, 2),
        )
        set_request_id(None)
        set_user_id(None)


def audit_event(
    action: str,
    *,
    request: Request,
    store: AuthStore,
    user_id: str | None,
    resource: str = "auth",
    details: dict[str, Any] | None = None,
) -> None:
    """
    Persist an audit row (action, resource, ip, user agent) and mirror it to the log.
    """
    ip = request.client.host if request.client else None
    ua = request.headers.get("user-agent") or None
    meta = safe_log_data(details) if details else None
    store.add_audit_log(
        action=action,
        resource=resource,
        user_id=user_id,
        details=meta,
        ip_address=ip,
        user_agent=ua,
    )
    logger.info(
        "audit",
        action=action,
        resource=resource,
        audit_user_id=user_id,
        details=meta,
    )
