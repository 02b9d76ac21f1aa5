# Telerivet REST Client
# File: tests/test_transport.py
# Version: v3

"""Transport behaviour: auth, encoding, retries and error mapping."""

from __future__ import annotations

import base64
from typing import List

import httpx
import pytest

from telerivet_client import (
    APIError,
    ClientConfig,
    ConfigurationError,
    InvalidParameterError,
    NotFoundError,
    ProtocolError,
    RateLimitedError,
    ServerError,
    TransportError,
)
from telerivet_client.transport import Transport, encode_query_params

from .conftest import API_URL


# ---------------------------------------------------------------------------
# Encoding & auth
# ---------------------------------------------------------------------------


def test_encode_query_params_flattens_modifiers() -> None:
    pairs = encode_query_params(
        {
            "name": {"prefix": "Jo"},
            "vars": {"email": {"exists": True}},
            "send_blocked": False,
            "label_ids": ["LB1", "LB2"],
            "sort": None,
            "page_size": 50,
        }
    )

    assert pairs == [
        ("name[prefix]", "Jo"),
        ("vars[email][exists]", "1"),
        ("send_blocked", "0"),
        ("label_ids", "LB1"),
        ("label_ids", "LB2"),
        ("page_size", "50"),
    ]


@pytest.mark.asyncio
async def test_every_request_uses_basic_auth_with_empty_password(server, client) -> None:
    server.reply(200, {"id": "PJ1"})

    await client.request("GET", "/projects/PJ1")

    request = server.last()
    expected = base64.b64encode(b"test-key:").decode("ascii")
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["User-Agent"].startswith("telerivet-rest-client/")
    assert str(request.url) == f"{API_URL}/projects/PJ1"


@pytest.mark.asyncio
async def test_get_sends_params_as_query_string(server, client) -> None:
    server.reply(200, {"data": []})

    await client.request(
        "get", "/projects/PJ1/contacts", {"name": {"prefix": "Jo"}, "sort_dir": "desc"}
    )

    request = server.last()
    assert request.method == "GET"
    assert server.params(request) == {"name[prefix]": "Jo", "sort_dir": "desc"}
    assert request.content == b""


@pytest.mark.asyncio
async def test_post_sends_params_as_json_body(server, client) -> None:
    server.reply(200, {"id": "CT1"})

    result = await client.request("POST", "/projects/PJ1/contacts", {"name": "Ann"})

    assert result == {"id": "CT1"}
    request = server.last()
    assert request.method == "POST"
    assert server.body(request) == {"name": "Ann"}
    assert server.params(request) == {}


@pytest.mark.asyncio
async def test_unsupported_method_is_rejected_before_any_io(server, client) -> None:
    with pytest.raises(ValueError):
        await client.request("PATCH", "/projects/PJ1")
    assert server.call_count == 0


@pytest.mark.asyncio
async def test_missing_api_key_raises_configuration_error(server, make_client) -> None:
    client = make_client(api_key=None)

    with pytest.raises(ConfigurationError):
        await client.request("GET", "/projects/PJ1")
    assert server.call_count == 0


# ---------------------------------------------------------------------------
# Success bodies
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_empty_success_body_is_empty_object(server, client) -> None:
    server.reply(204)

    assert await client.request("DELETE", "/projects/PJ1/scheduled/SC1") == {}


@pytest.mark.asyncio
async def test_non_json_success_body_is_empty_object(server, client) -> None:
    server.reply(200, content=b"OK", headers={"Content-Type": "text/plain"})

    assert await client.request("POST", "/projects/PJ1/messages/send") == {}


@pytest.mark.asyncio
async def test_malformed_json_success_body_is_protocol_error(server, client) -> None:
    server.reply(200, content=b"{not json", headers={"Content-Type": "application/json"})

    with pytest.raises(ProtocolError) as excinfo:
        await client.request("GET", "/projects/PJ1")

    assert excinfo.value.method == "GET"
    assert excinfo.value.path == "/projects/PJ1"
    assert server.call_count == 1


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_not_found_carries_server_code_and_message(server, client) -> None:
    server.reply(
        404,
        {"error": {"code": "not_found", "message": "Contact CT9 not found"}},
    )

    with pytest.raises(NotFoundError) as excinfo:
        await client.request("GET", "/projects/PJ1/contacts/CT9")

    err = excinfo.value
    assert err.code == "not_found"
    assert err.message == "Contact CT9 not found"
    assert err.status == 404
    assert err.method == "GET"
    assert err.path == "/projects/PJ1/contacts/CT9"
    assert server.call_count == 1


@pytest.mark.asyncio
async def test_invalid_param_exposes_param_name(server, client) -> None:
    server.reply(
        400,
        {
            "error": {
                "code": "invalid_param",
                "message": "Invalid phone number",
                "param": "to_number",
            }
        },
    )

    with pytest.raises(InvalidParameterError) as excinfo:
        await client.request("POST", "/projects/PJ1/messages/send", {"to_number": "x"})

    assert excinfo.value.param == "to_number"
    assert excinfo.value.to_dict()["code"] == "invalid_param"


@pytest.mark.asyncio
async def test_unstructured_4xx_is_plain_api_error(server, client) -> None:
    server.reply(401, content=b"Unauthorized", headers={"Content-Type": "text/plain"})

    with pytest.raises(APIError) as excinfo:
        await client.request("GET", "/projects")

    assert type(excinfo.value) is APIError
    assert excinfo.value.code is None
    assert excinfo.value.status == 401


@pytest.mark.asyncio
async def test_rate_limit_is_not_retried(server, client) -> None:
    server.reply(429, {"error": {"code": "rate_limited", "message": "Slow down"}})

    with pytest.raises(RateLimitedError):
        await client.request("GET", "/projects/PJ1")
    assert server.call_count == 1


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_transient_server_error_is_retried(server, client) -> None:
    server.reply(503, {"error": {"code": "unavailable", "message": "busy"}})
    server.reply(200, {"id": "w1", "name": "Foo"})

    result = await client.request("GET", "/widgets/w1")

    assert result == {"id": "w1", "name": "Foo"}
    assert server.call_count == 2


@pytest.mark.asyncio
async def test_server_error_after_retries_are_exhausted(server, make_client) -> None:
    client = make_client(retries=1)
    server.reply(500).reply(502, content=b"bad gateway")

    with pytest.raises(ServerError) as excinfo:
        await client.request("POST", "/projects/PJ1/contacts", {"name": "Ann"})

    assert excinfo.value.status == 502
    assert excinfo.value.body_preview == "bad gateway"
    assert server.call_count == 2


@pytest.mark.asyncio
async def test_network_error_on_get_is_retried(server, client) -> None:
    server.fail(httpx.ConnectError)
    server.reply(200, {"id": "PJ1"})

    assert await client.request("GET", "/projects/PJ1") == {"id": "PJ1"}
    assert server.call_count == 2


@pytest.mark.asyncio
async def test_network_error_on_post_is_not_retried(server, client) -> None:
    server.fail(httpx.ReadError)

    with pytest.raises(TransportError) as excinfo:
        await client.request("POST", "/projects/PJ1/messages/send", {"content": "hi"})

    assert isinstance(excinfo.value.__cause__, httpx.ReadError)
    assert excinfo.value.method == "POST"
    assert server.call_count == 1


@pytest.mark.asyncio
async def test_post_network_error_retried_when_caller_opts_in(server, client) -> None:
    server.fail(httpx.ConnectError)
    server.reply(200, {"id": "MS1"})

    result = await client.request(
        "POST", "/projects/PJ1/messages/send", {"content": "hi"}, idempotent=True
    )

    assert result == {"id": "MS1"}
    assert server.call_count == 2


@pytest.mark.asyncio
async def test_server_error_on_non_idempotent_post_is_not_retried(server, client) -> None:
    server.reply(504)
    server.reply(200, {"id": "MS1"})

    with pytest.raises(ServerError) as excinfo:
        await client.request(
            "POST", "/projects/PJ1/messages/send", {"content": "hi"}, idempotent=False
        )

    assert excinfo.value.status == 504
    assert server.call_count == 1


@pytest.mark.asyncio
async def test_timeout_surfaces_as_transport_error(server, make_client) -> None:
    client = make_client(retries=0)
    server.fail(httpx.ReadTimeout, "timed out")

    with pytest.raises(TransportError):
        await client.request("GET", "/projects/PJ1")
    assert server.call_count == 1


@pytest.mark.asyncio
async def test_backoff_grows_exponentially_up_to_cap(server) -> None:
    delays: List[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    config = ClientConfig(
        api_key="k",
        api_url=API_URL,
        retries=4,
        retry_backoff_seconds=0.5,
        retry_backoff_cap_seconds=1.5,
    )
    transport = Transport(
        config, http_transport=httpx.MockTransport(server.handler), sleep=fake_sleep
    )
    for _ in range(4):
        server.reply(503)
    server.reply(200, {"ok": True})

    assert await transport.request("GET", "/projects") == {"ok": True}
    assert delays == [0.5, 1.0, 1.5, 1.5]
