"""Environment-driven settings for the portal.

Values are read once from the process environment (and an optional ``.env``
file next to the project) and cached. Tests call ``get_settings.cache_clear()``
after patching the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv


PROJECT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _get_bool_env(key: str, default: bool = False) -> bool:
    val = os.environ.get(key, "").strip().lower()
    if not val:
        return default
    return val in {"1", "true", "yes", "on"}


def _get_float_env(key: str, default: float) -> float:
    val = os.environ.get(key, "").strip()
    if not val:
        return default
    try:
        return float(val)
    except (ValueError, TypeError):
        return default


def _get_str_env(key: str, default: str = "") -> str:
    val = os.environ.get(key, "").strip()
    return val or default


def _get_list_env(key: str, default: List[str]) -> List[str]:
    val = os.environ.get(key, "").strip()
    if not val:
        return list(default)
    return [part.strip() for part in val.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    admin_user: str = "admin"
    admin_password: str = "admin123"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    seed_demo_data: bool = True
    max_upload_mb: float = 10.0
    session_ttl_minutes: float = 480.0

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)

    @property
    def session_ttl_seconds(self) -> float:
        return self.session_ttl_minutes * 60


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv(PROJECT_DIR / ".env", override=False)
    return Settings(
        admin_user=_get_str_env("PORTAL_ADMIN_USER", "admin"),
        admin_password=_get_str_env("PORTAL_ADMIN_PASSWORD", "admin123"),
        log_level=_get_str_env("PORTAL_LOG_LEVEL", "INFO").upper(),
        cors_origins=_get_list_env("PORTAL_CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
        seed_demo_data=_get_bool_env("PORTAL_SEED_DEMO_DATA", True),
        max_upload_mb=_get_float_env("PORTAL_MAX_UPLOAD_MB", 10.0),
        session_ttl_minutes=_get_float_env("PORTAL_SESSION_TTL_MINUTES", 480.0),
    )


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(level)
