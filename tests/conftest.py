from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from webapp_auth.config import get_settings


@pytest.fixture(autouse=True)
def _test_env(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    root = tmp_path_factory.mktemp("auth_test")
    (root / "logs").mkdir(parents=True, exist_ok=True)
    (root / "_state").mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("APP_ROOT", str(root))
    monkeypatch.setenv("STATE_DIR", str(root / "_state"))
    monkeypatch.setenv("LOG_DIR", str(root / "logs"))
    monkeypatch.setenv("JWT_SECRET", "test-access-secret-Abc123!-0123456789")
    monkeypatch.setenv("JWT_REFRESH_SECRET", "test-refresh-secret-Xyz789!-0123456789")
    # Many logins per test module share the TestClient peer address.
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "100000")
    monkeypatch.setenv("AUTH_RATE_LIMIT_MAX_REQUESTS", "100000")
    for name in ("ADMIN_EMAIL", "ADMIN_PASSWORD", "STRICT_SECRETS", "CORS_ORIGIN"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def app() -> FastAPI:
    from webapp_auth.server import create_app

    return create_app()


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def store(client: TestClient):
    return client.app.state.auth_store
