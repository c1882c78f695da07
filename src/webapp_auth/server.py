from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from webapp_auth.api.auth.passwords import validate_password_strength
from webapp_auth.api.deps import api_rate_limit
from webapp_auth.api.errors import register_error_handlers
from webapp_auth.api.middleware import request_context_middleware
from webapp_auth.api.models import AuthStore, User, now_ts
from webapp_auth.api.routes_auth import router as auth_router
from webapp_auth.api.routes_health import router as health_router
from webapp_auth.api.routes_users import router as users_router
from webapp_auth.config import Settings, get_settings
from webapp_auth.utils.crypto import PasswordHasher
from webapp_auth.utils.log import configure_logging, logger
from webapp_auth.utils.ratelimit import RateLimiter


def _bootstrap_admin(store: AuthStore, s: Settings) -> None:
    if not (s.admin_email and s.admin_password):
        return
    email = str(s.admin_email).strip()
    if store.get_user_by_email(email) is not None:
        return
    password = s.admin_password.get_secret_value()
    ok, message = validate_password_strength(password)
    if not ok:
        logger.warning("admin_bootstrap_skipped", reason=message)
        return
    ts = now_ts()
    store.create_user(
        User(
            id=str(uuid.uuid4()),
            name="Admin",
            email=email,
            password_hash=PasswordHasher().hash(password),
            avatar=None,
            created_at=ts,
            updated_at=ts,
        )
    )
    logger.info("admin_bootstrapped", email=email)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    s = get_settings()

    auth_store = AuthStore(s.auth_db_path())
    app.state.auth_store = auth_store
    app.state.rate_limiter = RateLimiter()

    _bootstrap_admin(auth_store, s)
    pruned = auth_store.prune_expired_sessions()
    logger.info(
        "server_started",
        service=s.service_name,
        env=s.app_env,
        db=str(auth_store.db_path),
        pruned_sessions=pruned,
    )
    yield
    logger.info("server_stopped", service=s.service_name)


def create_app() -> FastAPI:
    s = get_settings()
    app = FastAPI(title=s.service_name, lifespan=lifespan)

    # Only configured origins; credentials on for browser clients.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=s.cors_origin_list(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-Retry"],
    )
    app.middleware("http")(request_context_middleware)
    register_error_handlers(app)

    # Health stays outside the general limiter.
    app.include_router(health_router, prefix="/api")
    api = APIRouter(prefix="/api", dependencies=[Depends(api_rate_limit)])
    api.include_router(auth_router)
    api.include_router(users_router)
    app.include_router(api)
    return app
