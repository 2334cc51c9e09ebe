"""Runtime settings for the authoring console.

Read from the environment (the API loads `.env` first). Numeric settings
are clamped to sane ranges instead of rejected, matching how the rest of
the codebase treats operator-supplied limits.
"""

import logging
import os
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_API_URL = "http://localhost:8080"
DEFAULT_GENERATION_TIMEOUT = 300
DEFAULT_MAX_RETRIES = 3
DEFAULT_CONNECT_TIMEOUT = 10
DEFAULT_READ_TIMEOUT = 120
DEFAULT_LOG_FILE = "/tmp/authoring-console.log"


def _int_env(name: str, default: int, low: int, high: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %d", name, raw, default)
        return default
    return max(low, min(high, value))


class AuthoringSettings(BaseModel):
    content_api_url: str = DEFAULT_CONTENT_API_URL
    content_api_token: Optional[str] = None
    generation_timeout_seconds: int = DEFAULT_GENERATION_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    read_timeout: int = DEFAULT_READ_TIMEOUT
    log_file: str = DEFAULT_LOG_FILE

    @classmethod
    def from_env(cls) -> "AuthoringSettings":
        return cls(
            content_api_url=os.getenv("CONTENT_API_URL", DEFAULT_CONTENT_API_URL).rstrip("/"),
            content_api_token=os.getenv("CONTENT_API_TOKEN") or None,
            generation_timeout_seconds=_int_env(
                "GENERATION_TIMEOUT_SECONDS", DEFAULT_GENERATION_TIMEOUT, 1, 1800
            ),
            max_retries=_int_env("CONTENT_API_MAX_RETRIES", DEFAULT_MAX_RETRIES, 0, 10),
            connect_timeout=_int_env("CONTENT_API_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT, 1, 120),
            read_timeout=_int_env("CONTENT_API_READ_TIMEOUT", DEFAULT_READ_TIMEOUT, 1, 1800),
            log_file=os.getenv("AUTHORING_LOG_FILE") or DEFAULT_LOG_FILE,
        )
