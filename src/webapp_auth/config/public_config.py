from __future__ import annotations

import os
import re
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str | int) -> int:
    """
    Parse a token lifetime such as "15m", "1h", "7d" or a bare number of seconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, int):
        if value <= 0:
            raise ValueError(f"duration must be positive, got {value}")
        return value
    m = _DURATION_RE.match(str(value or ""))
    if not m:
        raise ValueError(f"invalid duration: {value!r} (expected e.g. 30s, 15m, 1h, 7d)")
    seconds = int(m.group(1)) * _UNIT_SECONDS[m.group(2).lower()]
    if seconds <= 0:
        raise ValueError(f"duration must be positive, got {value!r}")
    return seconds


def _default_app_root() -> Path:
    env = os.environ.get("APP_ROOT")
    if env:
        return Path(env).resolve()
    return Path.cwd().resolve()


class PublicConfig(BaseSettings):
    """
    Non-sensitive config with safe defaults.

    Loaded from (in order):
      - process env
      - optional `.env` file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="development", alias="APP_ENV")
    service_name: str = Field(default="webapp-template-api", alias="SERVICE_NAME")

    # --- server ---
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")

    # --- paths ---
    app_root: Path = Field(default_factory=_default_app_root, alias="APP_ROOT")
    # Runtime-only state (auth DB + lock). If unset, defaults to "<APP_ROOT>/_state".
    state_dir: Path | None = Field(default=None, alias="STATE_DIR")
    auth_db_name: str = Field(default="auth.db", alias="AUTH_DB_NAME")
    log_dir: Path = Field(
        default_factory=lambda: (Path.cwd() / "logs").resolve(), alias="LOG_DIR"
    )

    # --- logging ---
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, alias="LOG_MAX_BYTES")
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")

    # --- tokens (lifetimes in jsonwebtoken-style strings) ---
    jwt_alg: str = Field(default="HS256", alias="JWT_ALG")
    jwt_expires_in: str = Field(default="1h", alias="JWT_EXPIRES_IN")
    jwt_refresh_expires_in: str = Field(default="7d", alias="JWT_REFRESH_EXPIRES_IN")

    # --- http ---
    cors_origin: str = Field(default="http://localhost:5173", alias="CORS_ORIGIN")
    rate_limit_window_ms: int = Field(default=900_000, alias="RATE_LIMIT_WINDOW_MS")
    rate_limit_max_requests: int = Field(default=100, alias="RATE_LIMIT_MAX_REQUESTS")
    auth_rate_limit_window_ms: int = Field(default=900_000, alias="AUTH_RATE_LIMIT_WINDOW_MS")
    auth_rate_limit_max_requests: int = Field(default=10, alias="AUTH_RATE_LIMIT_MAX_REQUESTS")

    @field_validator("app_env")
    @classmethod
    def _check_env(cls, v: str) -> str:
        v = str(v or "").strip().lower()
        if v == "prod":
            v = "production"
        if v not in {"development", "production", "test"}:
            raise ValueError("APP_ENV must be one of: development, production, test")
        return v

    @field_validator("jwt_expires_in", "jwt_refresh_expires_in")
    @classmethod
    def _check_duration(cls, v: str) -> str:
        parse_duration(v)
        return str(v).strip()

    @field_validator(
        "rate_limit_window_ms",
        "rate_limit_max_requests",
        "auth_rate_limit_window_ms",
        "auth_rate_limit_max_requests",
    )
    @classmethod
    def _check_positive(cls, v: int) -> int:
        if int(v) <= 0:
            raise ValueError("rate limit values must be positive")
        return int(v)

    @property
    def access_token_seconds(self) -> int:
        return parse_duration(self.jwt_expires_in)

    @property
    def refresh_token_seconds(self) -> int:
        return parse_duration(self.jwt_refresh_expires_in)

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in (self.cors_origin or "").split(",") if o.strip()]

    def resolved_state_dir(self) -> Path:
        return Path(self.state_dir or (Path(self.app_root) / "_state")).resolve()

    def auth_db_path(self) -> Path:
        return self.resolved_state_dir() / str(self.auth_db_name or "auth.db")
