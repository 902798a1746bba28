"""Centralized configuration for the Gutshof assistant backend.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/gutshof-assistant/<VARIABLE_NAME>``.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_SSM_PREFIX = "/gutshof-assistant"

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or the lookup fails.
    Errors are logged but never raised so that local-dev fallback still
    works.
    """
    try:
        import boto3  # noqa: PLC0415 (lazy, only needed on AWS)

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"{_SSM_PREFIX}/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _lookup(name: str) -> str | None:
    value = (os.getenv(name) or "").strip()
    if value and not value.startswith("your_"):
        return value
    if _ON_AWS:
        return _get_ssm_parameter(name)
    return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = _lookup(name)
    if value:
        return value
    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store {_SSM_PREFIX}/{name} (AWS)."
    )


def _optional_env(name: str) -> str:
    """Like ``_require_env`` but returns ``""`` when the value is absent."""
    return _lookup(name) or ""


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ── Environment ─────────────────────────────────────────────────────
ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").strip().lower()
IS_PRODUCTION: bool = ENVIRONMENT == "production"

# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-haiku-4-5")

# ── Calendly ────────────────────────────────────────────────────────
# Without a token the availability lookup is skipped entirely.
CALENDLY_API_TOKEN: str = _optional_env("CALENDLY_API_TOKEN")
CALENDLY_BASE_URL: str = "https://api.calendly.com"
CALENDLY_URL: str = (
    os.getenv("CALENDLY_URL") or "https://calendly.com/stefanvanthoogt/30min"
).strip()

AVAILABILITY_TTL_SECONDS: int = 5 * 60
AVAILABILITY_WINDOW_DAYS: int = 7
EVENT_TYPE_SLUG_MARKER: str = "30min"
BOOKING_TIMEZONE: str = "Europe/Berlin"
BOOKING_WEEKDAY: int = 3  # Thursday (Monday == 0)
MAX_AVAILABLE_SLOTS: int = int(os.getenv("MAX_AVAILABLE_SLOTS", "30"))

# ── Scraped website content ─────────────────────────────────────────
SOURCE_URLS: list[str] = [
    "https://hof.mellow.studio/",
    "https://hof.mellow.studio/kontakt",
    "https://hof.mellow.studio/foodbuudy",
    "https://www.gutshof-gin.de/",
    "https://www.gutshof-gin.de/collections/gin",
]
CONTENT_TTL_SECONDS: int = 24 * 60 * 60
SCRAPE_TIMEOUT_SECONDS: float = 10.0
CONTENT_EXCERPT_CHARS: int = int(os.getenv("CONTENT_EXCERPT_CHARS", "2000"))
WARMUP_ON_STARTUP: bool = _env_flag("WARMUP_ON_STARTUP", True)

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("PORT", "3000"))

PRODUCTION_ORIGINS: list[str] = [
    "https://hof.mellow.studio",
    "https://www.hof.mellow.studio",
    "https://www.gutshof-gin.de",
    "https://gutshof-gin.de",
    "https://hof-theta-beryl.vercel.app",
]
LOCAL_DEV_ORIGIN = "http://localhost:3000"


def build_cors_origins(raw: str | None, *, production: bool) -> list[str]:
    """Return the allowed CORS origins.

    ``raw`` is a comma-separated override; when empty the production site
    origins are used.  The local dev origin is only ever added outside
    production.
    """
    if raw and raw.strip():
        origins = [o.strip() for o in raw.split(",") if o.strip()]
    else:
        origins = list(PRODUCTION_ORIGINS)
    if production:
        return [o for o in origins if o != LOCAL_DEV_ORIGIN]
    if LOCAL_DEV_ORIGIN not in origins:
        origins.append(LOCAL_DEV_ORIGIN)
    return origins


CORS_ORIGINS: list[str] = build_cors_origins(
    os.getenv("CORS_ORIGINS"), production=IS_PRODUCTION,
)
