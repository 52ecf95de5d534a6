"""
Server settings read from the environment (and a .env file, if present).

Lower bounds on retry and rate-limit values mirror what the service has
always enforced, so a typo in the environment cannot disable backoff.
"""

import os
from typing import Mapping, Optional
from urllib.parse import urlsplit

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from lib.key_rotator import collect_api_keys

load_dotenv(override=False)


def _int_env(environ: Mapping[str, str], key: str, default: int, minimum: Optional[int] = None) -> int:
    raw = environ.get(key)
    try:
        value = int(float(raw)) if raw not in (None, "") else default
    except (ValueError, OverflowError):
        value = default
    if minimum is not None:
        value = max(minimum, value)
    return value


def _first(environ: Mapping[str, str], *keys: str) -> Optional[str]:
    """Return the value of the first environment variable found in keys."""
    for key in keys:
        val = environ.get(key)
        if val:
            return val
    return None


def normalize_origin(value: Optional[str]) -> Optional[str]:
    """scheme://host[:port] for a URL, '*' as-is, trailing slashes trimmed otherwise."""
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    if trimmed == "*":
        return "*"
    parsed = urlsplit(trimmed)
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return trimmed.rstrip("/")


def parse_allowed_origins(raw: Optional[str]) -> list[str]:
    origins = (normalize_origin(part) for part in (raw or "").split(","))
    return [origin for origin in origins if origin]


class Settings(BaseModel):
    port: int = 4000
    model: str = "gemini-2.5-pro"
    max_exercises: int = Field(30, ge=1)
    api_keys: list[str] = Field(default_factory=list)
    max_retries: int = Field(3, ge=1)
    retry_base_delay_ms: int = Field(1000, ge=0)
    max_requests_per_interval: int = Field(2, ge=1)
    request_interval_ms: int = Field(60000, ge=1)
    rate_limit_database_url: Optional[str] = None
    allowed_origins: list[str] = Field(default_factory=list)
    request_timeout_s: float = Field(60.0, gt=0)

    @property
    def origin_check_enabled(self) -> bool:
        return bool(self.allowed_origins) and "*" not in self.allowed_origins

    def is_origin_allowed(self, origin: Optional[str]) -> bool:
        """Requests without an Origin header always pass."""
        if not origin or not self.origin_check_enabled:
            return True
        return normalize_origin(origin) in self.allowed_origins

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ
        return cls(
            port=_int_env(environ, "PORT", 4000),
            model=environ.get("GEMINI_MODEL") or "gemini-2.5-pro",
            max_exercises=_int_env(environ, "MAX_EXERCISES", 30, minimum=1),
            api_keys=collect_api_keys(environ),
            max_retries=_int_env(environ, "GEMINI_MAX_RETRIES", 3, minimum=1),
            retry_base_delay_ms=_int_env(environ, "GEMINI_RETRY_BASE_DELAY_MS", 1000, minimum=250),
            max_requests_per_interval=_int_env(environ, "GEMINI_MAX_REQUESTS_PER_MINUTE", 2, minimum=1),
            request_interval_ms=_int_env(environ, "GEMINI_REQUEST_INTERVAL_MS", 60000, minimum=1000),
            rate_limit_database_url=_first(environ, "RATE_LIMIT_DATABASE_URL", "DATABASE_URL"),
            allowed_origins=parse_allowed_origins(environ.get("ALLOWED_ORIGINS")),
            request_timeout_s=float(_int_env(environ, "GEMINI_REQUEST_TIMEOUT_S", 60, minimum=1)),
        )
