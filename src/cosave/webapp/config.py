"""Configuration values for the CoSave web service."""
from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


SQLITE_FILE_NAME = os.environ.get("COSAVE_SQLITE", "cosave.db")
TOKEN_SECRET = os.environ.get("COSAVE_TOKEN_SECRET", "change-this-token-secret")
TOKEN_TTL = timedelta(hours=int(os.environ.get("COSAVE_TOKEN_TTL_HOURS", str(7 * 24))))
LOGIN_MAX_ATTEMPTS = int(os.environ.get("COSAVE_LOGIN_MAX_ATTEMPTS", "5"))
LOGIN_LOCKOUT_MINUTES = int(os.environ.get("COSAVE_LOGIN_LOCKOUT_MINUTES", "15"))
API_PREFIX = os.environ.get("COSAVE_API_PREFIX", "/api")
CORS_ORIGINS = [origin.strip() for origin in os.environ.get("COSAVE_CORS_ORIGINS", "*").split(",") if origin.strip()]

SMTP_HOST: Optional[str] = os.environ.get("COSAVE_SMTP_HOST") or None
SMTP_PORT = int(os.environ.get("COSAVE_SMTP_PORT", "587"))
SMTP_USERNAME: Optional[str] = os.environ.get("COSAVE_SMTP_USERNAME") or None
SMTP_PASSWORD: Optional[str] = os.environ.get("COSAVE_SMTP_PASSWORD") or None
SMTP_USE_TLS = _env_bool("COSAVE_SMTP_TLS", True)
MAIL_FROM = os.environ.get("COSAVE_MAIL_FROM", "no-reply@cosave.local")

_log_path = os.environ.get("COSAVE_LOG_PATH")
LOG_PATH: Optional[Path] = Path(_log_path) if _log_path else None

__all__ = [
    "API_PREFIX",
    "CORS_ORIGINS",
    "LOGIN_LOCKOUT_MINUTES",
    "LOGIN_MAX_ATTEMPTS",
    "LOG_PATH",
    "MAIL_FROM",
    "SMTP_HOST",
    "SMTP_PASSWORD",
    "SMTP_PORT",
    "SMTP_USERNAME",
    "SMTP_USE_TLS",
    "SQLITE_FILE_NAME",
    "TOKEN_SECRET",
    "TOKEN_TTL",
]
