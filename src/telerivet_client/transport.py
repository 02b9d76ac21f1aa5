# Telerivet REST Client
# File: transport.py
# Version: v6
"""One authenticated request/response exchange with the Telerivet API.

Implements:

- HTTP Basic auth (API key as username, empty password)
- JSON request bodies and bracketed query strings
- bounded retries with exponential backoff
- mapping of httpx failures and HTTP statuses to typed errors
"""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, List, Optional, Tuple

import httpx
from httpx import RequestError

from . import __version__
from .auth import ApiKeyAuth
from .config import ClientConfig
from .errors import (
    ProtocolError,
    ServerError,
    TransportError,
    api_error_class,
)

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ("GET", "POST", "DELETE")
IDEMPOTENT_METHODS = ("GET",)


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def encode_query_params(
    params: Mapping[str, Any],
    prefix: Optional[str] = None,
) -> List[Tuple[str, str]]:
    """Flatten a (possibly nested) mapping into query-string pairs.

    Nested mappings become bracketed keys, e.g.
    ``{"vars": {"email": {"exists": True}}}`` -> ``vars[email][exists]=1``.
    Lists repeat the key; ``None`` values are dropped.
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            pairs.extend(encode_query_params(value, name))
        elif isinstance(value, (list, tuple)):
            pairs.extend((name, _scalar(item)) for item in value if item is not None)
        else:
            pairs.append((name, _scalar(value)))
    return pairs


class Transport:
    """Stateless request executor shared by every entity and cursor.

    ``http_transport`` lets callers (mostly tests) plug in an
    ``httpx.MockTransport``; ``sleep`` is the coroutine used between
    retries.
    """

    def __init__(
        self,
        config: ClientConfig,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.auth = ApiKeyAuth(config=config)
        self._http_transport = http_transport
        self._sleep = sleep
        self._ssl_context: Optional[ssl.SSLContext] = None

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.config.base_url}{path}"

    def _headers(self) -> dict:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": f"telerivet-rest-client/{__version__}",
        }
        headers.update(self.auth.headers())
        return headers

    def _verify(self) -> ssl.SSLContext | bool:
        if self.config.ca_bundle:
            if self._ssl_context is None:
                self._ssl_context = ssl.create_default_context(
                    cafile=self.config.ca_bundle
                )
            return self._ssl_context
        return self.config.verify_tls

    def _client_kwargs(self) -> dict:
        kwargs: dict = {"timeout": httpx.Timeout(self.config.timeout)}
        if self._http_transport is not None:
            kwargs["transport"] = self._http_transport
        else:
            kwargs["verify"] = self._verify()
        return kwargs

    # ------------------------------------------------------------------
    # Retry policy
    # ------------------------------------------------------------------

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        delay = self.config.retry_backoff_seconds * (2 ** attempt)
        return min(self.config.retry_backoff_cap_seconds, delay)

    def _retry_network_errors(self, method: str, idempotent: Optional[bool]) -> bool:
        if idempotent is not None:
            return idempotent
        if method in IDEMPOTENT_METHODS:
            return True
        return self.config.retry_non_idempotent

    async def _wait_before_retry(
        self, attempt: int, attempts: int, method: str, path: str, reason: str
    ) -> None:
        delay = self.backoff_delay(attempt)
        logger.warning(
            "Retrying %s %s in %.2fs (attempt %d of %d): %s",
            method,
            path,
            delay,
            attempt + 2,
            attempts,
            reason,
        )
        await self._sleep(delay)

    # ------------------------------------------------------------------
    # Exchange
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        idempotent: Optional[bool] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        ``params`` is the query string for GET/DELETE and the JSON body for
        POST. ``idempotent`` overrides whether network errors may be
        retried (by default only GET is).

        5xx responses are retried for every method unless ``idempotent`` is
        explicitly False. A retried POST may have been applied by the server
        the first time; callers whose POST must not repeat (sending
        messages) pass ``idempotent=False``.
        """
        verb = method.upper()
        if verb not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method!r}")

        url = self.build_url(path)
        headers = self._headers()

        query: Optional[List[Tuple[str, str]]] = None
        body: Optional[bytes] = None
        if params is not None:
            if verb == "POST":
                body = json.dumps(params).encode("utf-8")
            else:
                query = encode_query_params(params) or None

        attempts = 1 + max(0, int(self.config.retries))
        retry_network = self._retry_network_errors(verb, idempotent)
        retry_server = idempotent is not False

        async with httpx.AsyncClient(**self._client_kwargs()) as http_client:
            for attempt in range(attempts):
                is_last = attempt == attempts - 1
                logger.debug("%s %s (attempt %d)", verb, url, attempt + 1)

                try:
                    response = await http_client.request(
                        verb, url, params=query, content=body, headers=headers
                    )
                except RequestError as exc:
                    if retry_network and not is_last:
                        await self._wait_before_retry(
                            attempt, attempts, verb, path, repr(exc)
                        )
                        continue
                    raise TransportError(
                        f"Error calling Telerivet API: {exc!r}",
                        method=verb,
                        path=path,
                    ) from exc

                status = response.status_code
                logger.debug("%s %s -> HTTP %d", verb, url, status)

                if status >= 500:
                    if retry_server and not is_last:
                        await self._wait_before_retry(
                            attempt, attempts, verb, path, f"HTTP {status}"
                        )
                        continue
                    raise ServerError(
                        f"Telerivet API returned HTTP {status}",
                        status=status,
                        method=verb,
                        path=path,
                        body_preview=response.text[:500],
                    )

                if status >= 400:
                    raise self._api_error(response, verb, path)

                if status < 200 or status >= 300:
                    raise ProtocolError(
                        f"Unexpected HTTP status {status}",
                        method=verb,
                        path=path,
                    )

                return self._decode_success(response, verb, path)

        # attempts is always >= 1, so the loop either returns or raises.
        raise AssertionError("unreachable")

    # ------------------------------------------------------------------
    # Response decoding
    # ------------------------------------------------------------------

    @staticmethod
    def _decode_success(response: httpx.Response, method: str, path: str) -> Any:
        text = response.text
        if not text or not text.strip():
            return {}

        content_type = response.headers.get("content-type", "").lower()
        try:
            return json.loads(text)
        except ValueError as exc:
            if "json" in content_type:
                raise ProtocolError(
                    f"Invalid JSON in response body: {exc}",
                    method=method,
                    path=path,
                ) from exc
            logger.debug(
                "Ignoring non-JSON %s body from %s %s", content_type or "untyped", method, path
            )
            return {}

    @staticmethod
    def _api_error(response: httpx.Response, method: str, path: str):
        status = response.status_code

        try:
            payload = response.json()
        except ValueError:
            payload = None

        error = payload.get("error") if isinstance(payload, dict) else None

        code = None
        message = None
        param = None
        if isinstance(error, dict):
            code = error.get("code")
            message = error.get("message")
            param = error.get("param")
        elif isinstance(error, str):
            message = error

        if not message:
            snippet = response.text[:500]
            message = f"HTTP {status}" + (f": {snippet}" if snippet else "")

        error_cls = api_error_class(status, code)
        return error_cls(
            message,
            status=status,
            code=code,
            param=param,
            method=method,
            path=path,
            details=payload if isinstance(payload, dict) else None,
        )
