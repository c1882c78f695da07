"""
Error envelope for the API.

Every failure renders as `{"status": "error", "message": ...}`; validation failures add
an `errors` list of `{"field", "message"}`. Handlers are registered on the app by
`register_error_handlers`.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from webapp_auth.config import get_settings
from webapp_auth.utils.log import logger


class AppError(Exception):
    def __init__(self, status_code: int, message: str, *, headers: dict[str, str] | None = None):
        super().__init__(message)
        self.status_code = int(status_code)
        self.message = str(message)
        self.headers = headers


def error_body(message: str, errors: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"status": "error", "message": message}
    if errors is not None:
        body["errors"] = errors
    return body


def _field_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        msg = str(err.get("msg") or "Invalid value")
        # pydantic prefixes custom validator messages
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, ") :]
        out.append({"field": ".".join(loc), "message": msg})
    return out


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("app_error", status=exc.status_code, error=exc.message, path=request.url.path)
        return JSONResponse(
            status_code=exc.status_code, content=error_body(exc.message), headers=exc.headers
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = _field_errors(exc)
        logger.info("validation_error", path=request.url.path, fields=[e["field"] for e in errors])
        return JSONResponse(status_code=400, content=error_body("Validation error", errors))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = str(exc.detail)
        if exc.status_code == 404 and message == "Not Found":
            message = "Route not found"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_exception", path=request.url.path, error_type=type(exc).__name__)
        message = "Internal server error" if get_settings().is_production else (str(exc) or "Internal server error")
        return JSONResponse(status_code=500, content=error_body(message))
