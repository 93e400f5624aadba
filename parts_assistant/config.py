"""Centralized configuration for the parts support assistant.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/parts-assistant/<VARIABLE_NAME>``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))
_REPO_ROOT = Path(__file__).resolve().parent.parent


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` when the parameter is absent or boto3 cannot reach
    AWS, so local development keeps working off ``.env``.
    """
    try:
        import boto3  # noqa: PLC0415 (lazy import, only needed on AWS)

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/parts-assistant/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _get_env(name: str, default: str | None = None) -> str | None:
    """Return a config value from env-var, then SSM (on AWS), then *default*."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value
    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value
    return default


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = _get_env(name)
    if value:
        return value
    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /parts-assistant/{name} (AWS)."
    )


# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-haiku-4-5")
EXTRACTOR_MODEL_NAME: str = os.getenv("EXTRACTOR_MODEL_NAME", "claude-haiku-4-5")

# "keyword" (deterministic matcher) or "llm" (schema-constrained extraction)
EXTRACTOR_BACKEND: str = os.getenv("EXTRACTOR_BACKEND", "keyword").lower()

# ── Catalog ─────────────────────────────────────────────────────────
CATALOG_PATH: Path = Path(os.getenv("CATALOG_PATH", str(_REPO_ROOT / "data" / "parts.json")))

# ── Email delivery ──────────────────────────────────────────────────
EMAIL_API_URL: str = os.getenv("EMAIL_API_URL", "https://api.resend.com")
EMAIL_API_KEY: str | None = _get_env("EMAIL_API_KEY")
EMAIL_FROM: str = os.getenv("EMAIL_FROM", "PartSelect Support <support@partselect.example>")

# ── Sessions ────────────────────────────────────────────────────────
SESSION_MAX_COUNT: int = int(os.getenv("SESSION_MAX_COUNT", "1000"))
SESSION_TTL_SECONDS: float = float(os.getenv("SESSION_TTL_SECONDS", "3600"))

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
