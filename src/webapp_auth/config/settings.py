from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from pydantic import SecretStr, ValidationError

from .public_config import PublicConfig
from .secret_config import SecretConfig

DEV_JWT_SECRET = "dev-insecure-jwt-secret"
DEV_JWT_REFRESH_SECRET = "dev-insecure-jwt-refresh-secret"


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Merged settings view (dot-access).

    Precedence:
      - secrets override public when names overlap
    """

    public: PublicConfig
    secret: SecretConfig

    def __getattr__(self, name: str) -> Any:
        if hasattr(self.secret, name):
            return getattr(self.secret, name)
        return getattr(self.public, name)

    def cors_origin_list(self) -> list[str]:
        return self.public.cors_origin_list()


def _secret_value(secret: SecretStr | None) -> str:
    if secret is None:
        return ""
    return str(secret.get_secret_value() or "")


def _is_strong_secret(value: str) -> bool:
    v = str(value or "")
    if len(v) < 24:
        return False
    has_lower = any(c.islower() for c in v)
    has_upper = any(c.isupper() for c in v)
    has_digit = any(c.isdigit() for c in v)
    has_symbol = any(not c.isalnum() for c in v)
    classes = sum([has_lower, has_upper, has_digit, has_symbol])
    if len(v) >= 32 and classes >= 2:
        return True
    return classes >= 3


def _validate_secrets(s: Settings) -> None:
    """
    Weak secrets only warn in development/test; production (or STRICT_SECRETS=1) fails fast.
    """
    strict = bool(int(os.environ.get("STRICT_SECRETS", "0") or "0"))
    prod = s.public.is_production

    weak: list[str] = []
    access = _secret_value(s.secret.jwt_secret)
    refresh = _secret_value(s.secret.jwt_refresh_secret)
    if access == DEV_JWT_SECRET:
        weak.append("JWT_SECRET")
    if refresh == DEV_JWT_REFRESH_SECRET:
        weak.append("JWT_REFRESH_SECRET")
    if prod:
        if not _is_strong_secret(access):
            weak.append("JWT_SECRET")
        if not _is_strong_secret(refresh):
            weak.append("JWT_REFRESH_SECRET")
        if access and access == refresh:
            weak.append("JWT_REFRESH_SECRET")
        for origin in s.public.cors_origin_list():
            if "*" in origin:
                weak.append("CORS_ORIGIN")
                break

    apw = _secret_value(s.secret.admin_password)
    if apw and apw.strip().lower() in {"change-me", "admin", "adminpass", "password", "123456"}:
        weak.append("ADMIN_PASSWORD")

    if weak:
        if prod or strict:
            raise ConfigError(
                "Unsafe security configuration detected: "
                + ", ".join(sorted(set(weak)))
                + ". Set them via environment variables or `.env.secrets`."
            )
        logging.getLogger("webapp_auth").warning(
            "weak_secrets_detected",
            extra={"weak": sorted(set(weak)), "strict_secrets": strict, "production": prod},
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    try:
        s = Settings(public=PublicConfig(), secret=SecretConfig())
    except ValidationError as ex:
        raise ConfigError(f"Invalid configuration: {ex}") from ex
    _validate_secrets(s)
    return s


def get_safe_config_report() -> dict[str, Any]:
    """
    Deterministic, non-sensitive config report.

    - Public values are included (paths are stringified)
    - Secret values are NEVER included; only SET/UNSET markers
    """
    s = get_settings()

    pub: dict[str, Any] = {}
    for k, v in s.public.model_dump().items():
        pub[k] = str(v) if hasattr(v, "__fspath__") else v

    sec: dict[str, str] = {}
    for k in sorted(type(s.secret).model_fields.keys()):
        v = getattr(s.secret, k, None)
        if v is None:
            sec[k] = "UNSET"
        elif isinstance(v, SecretStr):
            sec[k] = "SET" if v.get_secret_value() else "UNSET"
        else:
            sec[k] = "SET" if str(v).strip() else "UNSET"

    return {"public": pub, "secrets": sec}
