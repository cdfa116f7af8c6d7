"""
EndpointPicker filter tests.

Cover preconditions, decision handling, degrade-safe behaviour on transport
failures, and what is forwarded to the picker and to the internal location.
"""

import logging
from unittest.mock import AsyncMock, call

import httpx
import pytest
import respx

from services.inference_router.core.epp import (
    ENDPOINT_HEADER,
    SHIM_URI,
    EndpointResolver,
    build_epp_headers,
    serialize_args,
)
from services.inference_router.core.exceptions import (
    EndpointResolutionError,
    MissingInternalPathError,
    MissingRoutingVariablesError,
)

ENDPOINT = "10.0.0.1:8080"


def _client_returning(response):
    client = AsyncMock(spec=httpx.AsyncClient)
    client.request.return_value = response
    return client


# ===========================================
# Preconditions
# ===========================================


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"epp_host": None},
        {"epp_port": None},
        {"epp_host": ""},
        {"epp_host": None, "epp_port": None},
    ],
)
async def test_missing_host_or_port_fails_fast(make_context, overrides):
    client = AsyncMock(spec=httpx.AsyncClient)
    forward = AsyncMock()
    ctx = make_context(**overrides)

    with pytest.raises(MissingRoutingVariablesError, match="Missing required variables"):
        await EndpointResolver(client).resolve(ctx, forward)

    client.request.assert_not_called()
    forward.assert_not_called()


@pytest.mark.asyncio
async def test_missing_internal_path_fails_fast(make_context):
    client = AsyncMock(spec=httpx.AsyncClient)
    forward = AsyncMock()
    ctx = make_context(epp_internal_path=None)

    with pytest.raises(MissingInternalPathError, match="Missing required variable: epp_internal_path"):
        await EndpointResolver(client).resolve(ctx, forward)

    client.request.assert_not_called()
    forward.assert_not_called()


@pytest.mark.asyncio
async def test_host_port_checked_before_internal_path(make_context):
    """Both missing: the host/port error wins and the messages differ."""
    ctx = make_context(epp_host=None, epp_internal_path="")

    with pytest.raises(EndpointResolutionError) as exc_info:
        await EndpointResolver(AsyncMock(spec=httpx.AsyncClient)).resolve(ctx, AsyncMock())

    assert isinstance(exc_info.value, MissingRoutingVariablesError)
    assert str(exc_info.value) != str(MissingInternalPathError())


# ===========================================
# Decision handling
# ===========================================


@pytest.mark.asyncio
async def test_sets_endpoint_and_logs_on_200_with_header(make_context, caplog):
    caplog.set_level(logging.INFO, logger="inference_router.epp")
    client = _client_returning(httpx.Response(200, headers={ENDPOINT_HEADER: ENDPOINT}))
    forward = AsyncMock()
    ctx = make_context()

    result = await EndpointResolver(client).resolve(ctx, forward)

    assert ctx.inference_workload_endpoint == ENDPOINT
    assert result.resolved is True
    assert result.endpoint == ENDPOINT
    assert result.status_code == 200
    assert result.error is None
    forward.assert_awaited_once_with("/foo")

    info = [r for r in caplog.records if r.levelno == logging.INFO]
    assert any(ENDPOINT in r.getMessage() for r in info)


@pytest.mark.asyncio
async def test_logs_error_and_continues_on_non_200(make_context, caplog):
    caplog.set_level(logging.INFO, logger="inference_router.epp")
    client = _client_returning(httpx.Response(404, text="fail"))
    forward = AsyncMock()
    ctx = make_context()

    result = await EndpointResolver(client).resolve(ctx, forward)

    assert ctx.inference_workload_endpoint is None
    assert result.resolved is False
    assert result.status_code == 404
    forward.assert_awaited_once_with("/foo")

    errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "could not get specific inference endpoint" in errors[0]
    assert "404" in errors[0]
    assert "fail" in errors[0]


@pytest.mark.asyncio
@pytest.mark.parametrize("header_value", [None, ""])
async def test_200_without_endpoint_header_is_not_a_decision(make_context, caplog, header_value):
    caplog.set_level(logging.ERROR, logger="inference_router.epp")
    headers = {} if header_value is None else {ENDPOINT_HEADER: header_value}
    client = _client_returning(httpx.Response(200, headers=headers, text="no endpoints"))
    forward = AsyncMock()
    ctx = make_context()

    await EndpointResolver(client).resolve(ctx, forward)

    assert ctx.inference_workload_endpoint is None
    forward.assert_awaited_once_with("/foo")
    assert any("no endpoints" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_non_200_with_endpoint_header_is_ignored(make_context):
    client = _client_returning(httpx.Response(503, headers={ENDPOINT_HEADER: ENDPOINT}))
    ctx = make_context()

    await EndpointResolver(client).resolve(ctx, AsyncMock())

    assert ctx.inference_workload_endpoint is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        httpx.ConnectError("network fail"),
        httpx.ReadTimeout("network fail"),
        httpx.RemoteProtocolError("network fail"),
    ],
)
async def test_logs_error_and_continues_on_transport_failure(make_context, caplog, error):
    caplog.set_level(logging.ERROR, logger="inference_router.epp")
    client = AsyncMock(spec=httpx.AsyncClient)
    client.request.side_effect = error
    forward = AsyncMock()
    ctx = make_context()

    result = await EndpointResolver(client).resolve(ctx, forward)

    assert ctx.inference_workload_endpoint is None
    assert result.status_code is None
    assert result.error == "network fail"
    forward.assert_awaited_once_with("/foo")

    messages = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
    assert any("Error contacting EndpointPicker" in m and "network fail" in m for m in messages)


@pytest.mark.asyncio
async def test_forward_runs_after_query_settled(make_context):
    order = []

    async def fake_request(*args, **kwargs):
        order.append("query")
        return httpx.Response(200, headers={ENDPOINT_HEADER: ENDPOINT})

    async def forward(path):
        order.append(("forward", path))

    client = AsyncMock(spec=httpx.AsyncClient)
    client.request.side_effect = fake_request

    await EndpointResolver(client).resolve(make_context(), forward)

    assert order == ["query", ("forward", "/foo")]


# ===========================================
# Query string and headers
# ===========================================


@pytest.mark.asyncio
async def test_preserves_args_in_internal_redirect(make_context):
    client = _client_returning(httpx.Response(200, headers={ENDPOINT_HEADER: ENDPOINT}))
    forward = AsyncMock()
    ctx = make_context(args={"a": "1", "b": "2"})

    result = await EndpointResolver(client).resolve(ctx, forward)

    forward.assert_awaited_once_with("/foo?a=1&b=2")
    assert result.redirect_path == "/foo?a=1&b=2"


@pytest.mark.asyncio
async def test_preserves_args_when_decision_failed(make_context):
    client = AsyncMock(spec=httpx.AsyncClient)
    client.request.side_effect = httpx.ConnectError("refused")
    forward = AsyncMock()

    await EndpointResolver(client).resolve(make_context(args={"model": "llama"}), forward)

    forward.assert_awaited_once_with("/foo?model=llama")


@pytest.mark.asyncio
@respx.mock
async def test_forwards_all_headers_including_test_headers(make_context):
    route = respx.post(host="127.0.0.1", port=54800).mock(
        return_value=httpx.Response(200, headers={ENDPOINT_HEADER: ENDPOINT})
    )
    ctx = make_context(
        headers={
            "test-epp-endpoint-selection": "10.0.0.1:8080,10.0.0.2:8080",
            "content-type": "application/json",
        },
        body=b'{"model": "llama", "prompt": "hi"}',
    )

    async with httpx.AsyncClient() as client:
        await EndpointResolver(client).resolve(ctx, AsyncMock())

    assert route.called
    sent = route.calls.last.request
    assert sent.method == "POST"
    assert sent.headers["test-epp-endpoint-selection"] == "10.0.0.1:8080,10.0.0.2:8080"
    assert sent.headers["content-type"] == "application/json"
    assert sent.headers["X-EPP-Host"] == "host"
    assert sent.headers["X-EPP-Port"] == "1234"
    assert sent.content == b'{"model": "llama", "prompt": "hi"}'


@pytest.mark.asyncio
async def test_query_uses_inbound_method_and_configured_shim(make_context):
    client = _client_returning(httpx.Response(200, headers={ENDPOINT_HEADER: ENDPOINT}))
    ctx = make_context(method="GET", body=b"")

    await EndpointResolver(client, shim_uri="http://127.0.0.1:9999").resolve(ctx, AsyncMock())

    client.request.assert_awaited_once()
    args, kwargs = client.request.call_args
    assert args == ("GET", "http://127.0.0.1:9999")
    assert kwargs["content"] == b""
    assert "timeout" not in kwargs


def test_default_shim_address():
    resolver = EndpointResolver(AsyncMock(spec=httpx.AsyncClient))
    assert resolver.shim_uri == SHIM_URI == "http://127.0.0.1:54800"


def test_build_epp_headers_overlays_without_dropping(make_context):
    ctx = make_context(headers={"x-custom": "1", "x-epp-host": "spoofed"})

    headers = build_epp_headers(ctx)

    assert headers == [
        (b"x-custom", b"1"),
        (b"X-EPP-Host", b"host"),
        (b"X-EPP-Port", b"1234"),
    ]
    assert ctx.headers == [("x-custom", "1"), ("x-epp-host", "spoofed")]


@pytest.mark.asyncio
@respx.mock
async def test_non_ascii_header_reaches_picker_byte_exact(make_context):
    route = respx.post(host="127.0.0.1", port=54800).mock(
        return_value=httpx.Response(200, headers={ENDPOINT_HEADER: ENDPOINT})
    )
    forward = AsyncMock()
    # UTF-8 bytes of "café" as Starlette decodes them (latin-1).
    ctx = make_context(headers={"x-user": "caf\xc3\xa9"})

    async with httpx.AsyncClient() as client:
        result = await EndpointResolver(client).resolve(ctx, forward)

    assert (b"x-user", b"caf\xc3\xa9") in route.calls.last.request.headers.raw
    assert result.endpoint == ENDPOINT
    forward.assert_awaited_once_with("/foo")


@pytest.mark.asyncio
@respx.mock
async def test_repeated_headers_are_forwarded_in_order(make_context):
    route = respx.post(host="127.0.0.1", port=54800).mock(
        return_value=httpx.Response(200, headers={ENDPOINT_HEADER: ENDPOINT})
    )
    ctx = make_context(headers=[("x-tag", "a"), ("accept", "*/*"), ("x-tag", "b")])

    async with httpx.AsyncClient() as client:
        await EndpointResolver(client).resolve(ctx, AsyncMock())

    assert route.calls.last.request.headers.get_list("x-tag") == ["a", "b"]


@pytest.mark.parametrize(
    "args, expected",
    [
        ({}, ""),
        ({"a": "1", "b": "2"}, "a=1&b=2"),
        ({"a": ["1", "2"]}, "a=1&a=2"),
        ({"q": "hello world"}, "q=hello%20world"),
        ({"empty": ""}, "empty="),
    ],
)
def test_serialize_args(args, expected):
    assert serialize_args(args) == expected


# ===========================================
# Idempotence
# ===========================================


@pytest.mark.asyncio
async def test_resolving_twice_gives_same_outcome(make_context, caplog):
    caplog.set_level(logging.INFO, logger="inference_router.epp")
    client = _client_returning(httpx.Response(200, headers={ENDPOINT_HEADER: ENDPOINT}))
    forward = AsyncMock()
    ctx = make_context(args={"a": "1"})
    resolver = EndpointResolver(client)

    first = await resolver.resolve(ctx, forward)
    first_logs = [r.getMessage() for r in caplog.records]
    caplog.clear()
    second = await resolver.resolve(ctx, forward)
    second_logs = [r.getMessage() for r in caplog.records]

    assert first == second
    assert first_logs == second_logs
    assert forward.await_args_list == [call("/foo?a=1"), call("/foo?a=1")]


@pytest.mark.asyncio
async def test_stale_endpoint_cleared_when_second_decision_fails(make_context):
    client = AsyncMock(spec=httpx.AsyncClient)
    client.request.side_effect = [
        httpx.Response(200, headers={ENDPOINT_HEADER: ENDPOINT}),
        httpx.ConnectError("refused"),
    ]
    ctx = make_context()
    resolver = EndpointResolver(client)

    await resolver.resolve(ctx, AsyncMock())
    assert ctx.inference_workload_endpoint == ENDPOINT

    await resolver.resolve(ctx, AsyncMock())
    assert ctx.inference_workload_endpoint is None
