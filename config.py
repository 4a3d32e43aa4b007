from __future__ import annotations

import os
import logging
import pathlib

from typing import Callable, TypeVar
from urllib.parse import quote_plus
from dotenv import load_dotenv

T = TypeVar("T")
_log = logging.getLogger("config")


def env(name: str, default: str | None = None, *, strip: bool = True) -> str | None:
    v = os.getenv(name, default)
    if v is None:
        return None
    return v.strip() if strip else v
def _env_cast(name: str, cast: Callable[[str], T], default: T | None) -> T | None:
    # unset, empty or unparsable all fall back to the default
    v = env(name)
    if not v:
        return default
    try:
        return cast(v)
    except ValueError:
        _log.warning("%s=%r is not a valid %s; using %r", name, v, cast.__name__, default)
        return default
def env_int(name: str, default: int | None = None) -> int | None:
    return _env_cast(name, int, default)
def env_float(name: str, default: float | None = None) -> float | None:
    return _env_cast(name, float, default)
def env_list(name: str) -> list[str]:
    raw = env(name, "")
    if not raw:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]

def build_async_dsn(user: str, password: str, host: str, port: int, db: str) -> str:
    return (
        f"postgresql+asyncpg://{quote_plus(user)}:{quote_plus(password)}"
        f"@{host}:{port}/{quote_plus(db)}"
    )

load_dotenv()

ENVIRONMENT = (env("ENVIRONMENT", "production") or "production").lower()
IS_DEVELOPMENT = ENVIRONMENT == "development"

POSTGRES_USER     = env("POSTGRES_USER", "postgres") or "postgres"
POSTGRES_PASSWORD = env("POSTGRES_PASSWORD", "") or ""
POSTGRES_DB       = env("POSTGRES_DB", "prizedesk") or "prizedesk"
POSTGRES_HOST     = env("POSTGRES_HOST", "localhost") or "localhost"
POSTGRES_PORT     = env_int("POSTGRES_PORT", 5432) or 5432

ASYNC_DATABASE_URL = env("DATABASE_URL") or build_async_dsn(POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_PORT, POSTGRES_DB)

BASE_DIR = pathlib.Path(__file__).resolve().parent
LOGS_DIR = BASE_DIR / "logs"

API_PREFIX = "/api/v1"
ALLOWED_ORIGINS = env_list("ALLOWED_ORIGINS") or ["http://localhost:5173", "http://127.0.0.1:5173"]

# bearer tokens come from the external identity provider
JWT_SECRET     = env("JWT_SECRET", "") or ""
JWT_ALGORITHMS = env_list("JWT_ALGORITHMS") or ["HS256"]
JWT_AUDIENCE   = env("JWT_AUDIENCE", None) or None
ADMIN_ROLE     = env("ADMIN_ROLE", "admin") or "admin"

OTP_TTL_MINUTES  = env_int("OTP_TTL_MINUTES", 5) or 5
OTP_MAX_ATTEMPTS = env_int("OTP_MAX_ATTEMPTS", 3) or 3
OTP_DIGITS       = env_int("OTP_DIGITS", 6) or 6

DEFAULT_PHONE_REGION = env("DEFAULT_PHONE_REGION", "ZA") or "ZA"

SMS_GATEWAY_URL   = env("SMS_GATEWAY_URL", "") or ""
SMS_GATEWAY_TOKEN = env("SMS_GATEWAY_TOKEN", "") or ""
SMS_SENDER_ID     = env("SMS_SENDER_ID", "PRIZES") or "PRIZES"
SMS_TIMEOUT       = env_float("SMS_TIMEOUT", 10.0) or 10.0

# link sent with award notifications; empty means no link
REDEMPTION_PORTAL_URL = env("REDEMPTION_PORTAL_URL", "") or ""


if not JWT_SECRET: _log.warning("JWT_SECRET is empty; admin routes will reject every token.")
if not SMS_GATEWAY_URL: _log.warning("SMS_GATEWAY_URL is empty; SMS messages will only be logged.")
