# Telerivet REST Client
# File: errors.py
# Version: v2

"""Typed errors raised by the Telerivet client.

Callers branch on the exception class (and ``APIError.code``), never on
the message text:

- TransportError: the request never produced an HTTP response
- ServerError: HTTP 5xx after retries were exhausted
- APIError: HTTP 4xx with the server's structured error
- ProtocolError: a success response whose body could not be understood
- StaleEntityError: the entity was deleted through this client
- CursorStateError: a cursor was reconfigured after paging started
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TelerivetError(Exception):
    """Base class for all client errors.

    ``method`` and ``path`` identify the request that failed, when there
    was one.
    """

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        path: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.method = method
        self.path = path

    def __str__(self) -> str:
        if self.method and self.path:
            return f"{self.message} ({self.method} {self.path})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Small JSON-friendly error shape."""
        result: Dict[str, Any] = {
            "type": type(self).__name__,
            "message": self.message,
        }
        if self.method:
            result["method"] = self.method
        if self.path:
            result["path"] = self.path
        return result


class ConfigurationError(TelerivetError):
    """Required configuration (e.g. the API key) is missing or invalid."""


class TransportError(TelerivetError):
    """DNS, TLS, connect, read/write, timeout or reset failures."""


class ServerError(TelerivetError):
    """HTTP 5xx response."""

    def __init__(
        self,
        message: str,
        status: int,
        method: Optional[str] = None,
        path: Optional[str] = None,
        body_preview: str = "",
    ) -> None:
        super().__init__(message, method=method, path=path)
        self.status = status
        self.body_preview = body_preview

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["status"] = self.status
        return result


class APIError(TelerivetError):
    """HTTP 4xx response carrying the server's ``error`` object.

    ``code`` and ``message`` are copied verbatim from the response body;
    ``param`` names the offending request parameter when the server
    reports one.
    """

    def __init__(
        self,
        message: str,
        status: int,
        code: Optional[str] = None,
        param: Optional[str] = None,
        method: Optional[str] = None,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, method=method, path=path)
        self.status = status
        self.code = code
        self.param = param
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["status"] = self.status
        if self.code:
            result["code"] = self.code
        if self.param:
            result["param"] = self.param
        return result


class NotFoundError(APIError):
    """The server reported ``not_found``."""


class InvalidParameterError(APIError):
    """The server reported ``invalid_param``; see ``param``."""


class RateLimitedError(APIError):
    """HTTP 429."""


class ProtocolError(TelerivetError):
    """A 2xx response whose body does not match the expected contract."""


class StaleEntityError(TelerivetError):
    """Operation attempted on an entity whose resource was deleted."""


class CursorStateError(TelerivetError):
    """Cursor configuration changed after the first page was fetched."""


_API_ERRORS_BY_CODE = {
    "not_found": NotFoundError,
    "invalid_param": InvalidParameterError,
}


def api_error_class(status: int, code: Optional[str]) -> type[APIError]:
    """Pick the most specific APIError subclass for a 4xx response."""
    if code and code in _API_ERRORS_BY_CODE:
        return _API_ERRORS_BY_CODE[code]
    if status == 404:
        return NotFoundError
    if status == 429:
        return RateLimitedError
    return APIError
