# Telerivet REST Client
# File: config.py
# Version: v3

"""Configuration loading for the Telerivet REST client."""

from __future__ import annotations

from dataclasses import dataclass, fields
from dataclasses import replace as _dataclass_replace
import os

DEFAULT_API_URL = "https://api.telerivet.com/v1"

# Server-enforced upper bound for list endpoints.
MAX_PAGE_SIZE = 200


def _parse_bool_env(name: str, default: bool = False) -> bool:
    """Parse a boolean-like environment variable.

    Accepts 1/0, true/false, yes/no, on/off (case-insensitive).
    """
    val = os.getenv(name)
    if val is None or not str(val).strip():
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _parse_int_env(
    name: str,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    """Parse an int environment variable with clamping and safe fallback."""
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        value = int(default)
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = int(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value

    return value


def _parse_float_env(
    name: str,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    """Float counterpart of _parse_int_env."""
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        value = float(default)
    else:
        try:
            value = float(str(raw).strip())
        except ValueError:
            value = float(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value

    return value


def _env_or_none(name: str) -> str | None:
    val = os.getenv(name)
    if val is None or not val.strip():
        return None
    return val.strip()


@dataclass(frozen=True)
class ClientConfig:
    """Settings shared, read-only, by everything a client constructs.

    Network:
    - api_url / timeout / TLS (ca_bundle, verify_tls)

    Retry policy:
    - retries: extra attempts for retryable failures (5xx always,
      network errors only for idempotent requests)
    - exponential backoff starting at retry_backoff_seconds, capped

    Listing:
    - default_page_size used by cursors when the query gives none
    """

    api_key: str | None = None
    api_url: str = DEFAULT_API_URL
    timeout: float = 30.0

    retries: int = 2
    retry_backoff_seconds: float = 0.5
    retry_backoff_cap_seconds: float = 8.0
    retry_non_idempotent: bool = False

    ca_bundle: str | None = None
    verify_tls: bool = True

    default_page_size: int = 50
    max_page_size: int = MAX_PAGE_SIZE

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Create configuration from environment variables."""
        api_key = _env_or_none("TELERIVET_API_KEY")
        api_url = _env_or_none("TELERIVET_API_URL") or DEFAULT_API_URL
        ca_bundle = _env_or_none("TELERIVET_CA_BUNDLE")

        timeout = _parse_float_env(
            "TELERIVET_TIMEOUT_SECONDS", default=30.0, min_value=1.0, max_value=600.0
        )
        retries = _parse_int_env(
            "TELERIVET_MAX_RETRIES", default=2, min_value=0, max_value=10
        )
        retry_backoff_seconds = _parse_float_env(
            "TELERIVET_RETRY_BACKOFF_SECONDS", default=0.5, min_value=0.0, max_value=60.0
        )
        retry_non_idempotent = _parse_bool_env(
            "TELERIVET_RETRY_NON_IDEMPOTENT", default=False
        )
        verify_tls = _parse_bool_env("TELERIVET_VERIFY_TLS", default=True)

        default_page_size = _parse_int_env(
            "TELERIVET_PAGE_SIZE", default=50, min_value=1, max_value=MAX_PAGE_SIZE
        )

        return cls(
            api_key=api_key,
            api_url=api_url,
            timeout=timeout,
            retries=retries,
            retry_backoff_seconds=retry_backoff_seconds,
            retry_non_idempotent=retry_non_idempotent,
            ca_bundle=ca_bundle,
            verify_tls=verify_tls,
            default_page_size=default_page_size,
        )

    def replace(self, **overrides) -> "ClientConfig":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown config option(s): {', '.join(sorted(unknown))}")

        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return _dataclass_replace(self, **changes)

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")
