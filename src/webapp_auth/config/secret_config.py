from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class SecretConfig(BaseSettings):
    """
    Sensitive config.

    This module is safe to commit: it contains *no* secrets, only loading logic.
    Real secret values should come from:
      - environment variables (preferred in production)
      - optional local `.env.secrets` file (developer convenience)
    """

    model_config = SettingsConfigDict(
        env_file=".env.secrets",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Access and refresh tokens are signed with different keys.
    jwt_secret: SecretStr = Field(default=SecretStr("dev-insecure-jwt-secret"), alias="JWT_SECRET")
    jwt_refresh_secret: SecretStr = Field(
        default=SecretStr("dev-insecure-jwt-refresh-secret"), alias="JWT_REFRESH_SECRET"
    )

    # optional admin bootstrap
    admin_email: str | None = Field(default=None, alias="ADMIN_EMAIL")
    admin_password: SecretStr | None = Field(default=None, alias="ADMIN_PASSWORD")
