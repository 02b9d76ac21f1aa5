# Telerivet REST Client
# File: tests/conftest.py
# Version: v2

"""Shared fixtures: a scripted fake Telerivet server behind httpx.MockTransport.

Nothing here talks to the real API. Each test queues the responses it
expects, in order, and inspects ``server.requests`` afterwards.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from telerivet_client import ClientConfig, TelerivetClient

API_URL = "https://api.test.local/v1"


class FakeServer:
    """Replays queued responses and records every request it receives."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._script: List[Callable[[httpx.Request], httpx.Response]] = []

    # -- scripting -------------------------------------------------------

    def reply(self, status: int = 200, body: Any = None, **kwargs: Any) -> "FakeServer":
        if body is None:
            self._script.append(lambda request: httpx.Response(status, **kwargs))
        else:
            self._script.append(lambda request: httpx.Response(status, json=body, **kwargs))
        return self

    def fail(self, exc_type: type = httpx.ConnectError, message: str = "boom") -> "FakeServer":
        def raise_error(request: httpx.Request) -> httpx.Response:
            raise exc_type(message, request=request)

        self._script.append(raise_error)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._script:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        return self._script.pop(0)(request)

    # -- inspection ------------------------------------------------------

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def last(self) -> httpx.Request:
        return self.requests[-1]

    @staticmethod
    def body(request: httpx.Request) -> Dict[str, Any]:
        return json.loads(request.content.decode("utf-8"))

    @staticmethod
    def params(request: httpx.Request) -> Dict[str, str]:
        return dict(request.url.params)

    @staticmethod
    def path(request: httpx.Request) -> str:
        return request.url.path


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def make_client(server: FakeServer) -> Callable[..., TelerivetClient]:
    """Factory for clients wired to the fake server.

    Keyword arguments override ClientConfig fields; backoff defaults to
    zero so retry tests do not sleep.
    """

    def factory(api_key: Optional[str] = "test-key", **overrides: Any) -> TelerivetClient:
        settings: Dict[str, Any] = {
            "api_url": API_URL,
            "retries": 2,
            "retry_backoff_seconds": 0.0,
        }
        settings.update(overrides)
        config = ClientConfig(api_key=api_key, **settings)
        return TelerivetClient(
            config=config,
            http_transport=httpx.MockTransport(server.handler),
        )

    return factory


@pytest.fixture
def client(make_client) -> TelerivetClient:
    return make_client()
