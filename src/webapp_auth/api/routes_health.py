from __future__ import annotations

import sqlite3
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from webapp_auth.config import get_settings
from webapp_auth.utils.log import logger

router = APIRouter(tags=["health"])

_STARTED = time.monotonic()


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """
    Liveness plus a database round-trip. 503 when the store is unreachable.
    """
    connected = False
    store = getattr(request.app.state, "auth_store", None)
    if store is not None:
        try:
            connected = bool(store.ping())
        except sqlite3.Error as ex:
            logger.warning("health_db_error", error=str(ex))
    data: dict[str, Any] = {
        "service": get_settings().service_name,
        "uptime": round(time.monotonic() - _STARTED, 3),
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "database": "connected" if connected else "disconnected",
    }
    if connected:
        return JSONResponse(status_code=200, content={"status": "success", "data": data})
    return JSONResponse(status_code=503, content={"status": "error", "data": data})
