# Telerivet REST Client
# File: __init__.py
# Version: v2

"""Async client engine for the Telerivet REST API."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version


def _resolve_version() -> str:
    """Resolve installed distribution version.

    Uses Python package metadata so __version__ stays aligned with pyproject.toml.
    Falls back to a reasonable default when running from source without an
    installed distribution.
    """
    try:
        return version("telerivet-rest-client")
    except PackageNotFoundError:
        return "0.1.0"


__version__ = _resolve_version()

from .client import TelerivetClient  # noqa: E402
from .config import ClientConfig  # noqa: E402
from .cursor import Cursor  # noqa: E402
from .entity import ABSENT, CustomVars, Entity  # noqa: E402
from .errors import (  # noqa: E402
    APIError,
    ConfigurationError,
    CursorStateError,
    InvalidParameterError,
    NotFoundError,
    ProtocolError,
    RateLimitedError,
    ServerError,
    StaleEntityError,
    TelerivetError,
    TransportError,
)
from .resources import ResourceType, get_resource_type  # noqa: E402

__all__ = [
    "ABSENT",
    "APIError",
    "ClientConfig",
    "ConfigurationError",
    "Cursor",
    "CursorStateError",
    "CustomVars",
    "Entity",
    "InvalidParameterError",
    "NotFoundError",
    "ProtocolError",
    "RateLimitedError",
    "ResourceType",
    "ServerError",
    "StaleEntityError",
    "TelerivetClient",
    "TelerivetError",
    "TransportError",
    "__version__",
    "get_resource_type",
]
