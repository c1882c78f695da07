"""
Settings for the auth API.

  - `public_config.py` (non-sensitive defaults)
  - `secret_config.py` (secrets loaded from env / `.env.secrets`)
  - `settings.py` merges both and exposes `get_settings()`
"""

from __future__ import annotations

from .public_config import parse_duration
from .settings import ConfigError, Settings, get_safe_config_report, get_settings

__all__ = ["ConfigError", "Settings", "get_settings", "get_safe_config_report", "parse_duration"]
