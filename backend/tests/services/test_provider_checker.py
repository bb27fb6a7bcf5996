"""
ProviderChecker 测试

使用 httpx.MockTransport 模拟上游，使用可控时钟模拟耗时：
- 2xx 且 ≤ 6000ms → operational；> 6000ms → degraded
- 非 2xx → failed，message 取 error.message
- 超时 / 网络错误 / 空响应 → failed
"""
import asyncio
import json

import httpx
import pytest

from status_monitor.schemas import HealthStatus, ProviderConfig
from status_monitor.services.providers.checker import ProviderChecker, extract_error_message

OPENAI_STREAM = (
    b'data: {"choices": [{"delta": {"content": "pong"}}]}\n\n'
    b"data: [DONE]\n\n"
)


def _config(**overrides) -> ProviderConfig:
    data = {
        "id": "a",
        "name": "OpenAI",
        "type": "openai",
        "model": "gpt-4o-mini",
        "endpoint": "https://api.example.com/v1/chat/completions",
        "api_key": "sk-test",
    }
    data.update(overrides)
    return ProviderConfig(**data)


def _clock(*values: float):
    it = iter(values)
    return lambda: next(it)


def _checker(handler, *, clock=None, timeout_seconds: float = 15.0) -> ProviderChecker:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    kwargs = {"timeout_seconds": timeout_seconds, "degraded_threshold_ms": 6000}
    if clock is not None:
        kwargs["clock"] = clock
    return ProviderChecker(client, **kwargs)


@pytest.mark.asyncio
async def test_fast_stream_is_operational():
    """3000ms 完成流式响应 → operational"""
    checker = _checker(lambda request: httpx.Response(200, content=OPENAI_STREAM), clock=_clock(0.0, 3.0))
    result = await checker.check(_config())

    assert result.status is HealthStatus.OPERATIONAL
    assert result.latency_ms == 3000
    assert result.message == "stream ok (3000ms)"
    assert result.id == "a"
    assert result.endpoint == "https://api.example.com/v1/chat/completions"


@pytest.mark.asyncio
async def test_slow_stream_is_degraded():
    """6500ms 完成 → degraded，仍视为成功响应"""
    checker = _checker(lambda request: httpx.Response(200, content=OPENAI_STREAM), clock=_clock(0.0, 6.5))
    result = await checker.check(_config())

    assert result.status is HealthStatus.DEGRADED
    assert result.latency_ms == 6500
    assert result.message == "slow response (6500ms)"


@pytest.mark.asyncio
async def test_threshold_boundary_is_operational():
    checker = _checker(lambda request: httpx.Response(200, content=OPENAI_STREAM), clock=_clock(0.0, 6.0))
    result = await checker.check(_config())
    assert result.status is HealthStatus.OPERATIONAL


@pytest.mark.asyncio
async def test_rate_limited_response_fails_with_error_message():
    """429 → failed，message 来自 error.message，latency 为收到错误的耗时"""
    body = json.dumps({"error": {"message": "Rate limit exceeded", "type": "rate_limit"}})
    checker = _checker(lambda request: httpx.Response(429, content=body), clock=_clock(0.0, 0.25))
    result = await checker.check(_config())

    assert result.status is HealthStatus.FAILED
    assert result.message == "Rate limit exceeded"
    assert result.latency_ms == 250


@pytest.mark.asyncio
async def test_transport_timeout_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    result = await _checker(handler).check(_config())
    assert result.status is HealthStatus.FAILED
    assert result.message == "request timed out"
    assert result.latency_ms is None


@pytest.mark.asyncio
async def test_slow_upstream_is_aborted_by_timeout():
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, content=OPENAI_STREAM)

    result = await _checker(handler, timeout_seconds=0.05).check(_config())
    assert result.status is HealthStatus.FAILED
    assert result.message == "request timed out"


@pytest.mark.asyncio
async def test_network_error_is_captured():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await _checker(handler).check(_config())
    assert result.status is HealthStatus.FAILED
    assert result.message == "connection refused"
    assert result.latency_ms is None


@pytest.mark.asyncio
async def test_empty_body_fails():
    result = await _checker(lambda request: httpx.Response(200, content=b"")).check(_config())
    assert result.status is HealthStatus.FAILED
    assert result.message == "empty response body"


@pytest.mark.asyncio
async def test_openai_request_shape():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["custom"] = request.headers.get("x-custom")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, content=OPENAI_STREAM)

    config = _config(endpoint="https://gw.example.com", request_headers={"X-Custom": "1"})
    result = await _checker(handler).check(config)

    assert result.status in (HealthStatus.OPERATIONAL, HealthStatus.DEGRADED)
    assert seen["url"] == "https://gw.example.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["custom"] == "1"
    assert seen["body"]["stream"] is True
    assert seen["body"]["max_tokens"] == 1


@pytest.mark.asyncio
async def test_anthropic_request_and_stream():
    seen: dict = {}
    stream = (
        b'data: {"type": "message_start"}\n\n'
        b'data: {"type": "content_block_delta", "delta": {"text": "pong"}}\n\n'
        b'data: {"type": "message_stop"}\n\n'
    )

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-api-key")
        seen["version"] = request.headers.get("anthropic-version")
        return httpx.Response(200, content=stream)

    config = _config(type="anthropic", name="Claude", endpoint="https://api.anthropic.com", model="claude-3-haiku")
    result = await _checker(handler, clock=_clock(0.0, 1.2)).check(config)

    assert result.status is HealthStatus.OPERATIONAL
    assert seen["url"] == "https://api.anthropic.com/v1/messages"
    assert seen["key"] == "sk-test"
    assert seen["version"] == "2023-06-01"


@pytest.mark.asyncio
async def test_gemini_key_goes_to_query_and_not_to_endpoint():
    seen: dict = {}
    stream = json.dumps({"candidates": [{"content": {"parts": [{"text": "pong"}]}}]}).encode()

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, content=stream)

    config = _config(type="gemini", name="Gemini", endpoint=None, model="gemini-1.5-flash")
    result = await _checker(handler, clock=_clock(0.0, 0.8)).check(config)

    assert result.status is HealthStatus.OPERATIONAL
    assert seen["url"].path == "/v1beta/models/gemini-1.5-flash:streamGenerateContent"
    assert seen["url"].params["key"] == "sk-test"
    assert "sk-test" not in result.endpoint


def test_gemini_request_keeps_gateway_query_and_replaces_key():
    from status_monitor.services.providers.gemini import GeminiAdapter

    config = _config(
        type="gemini",
        name="Gemini",
        endpoint="https://proxy.example.com/v1beta/models/m:generateContent?alt=sse&api-version=2&key=stale",
        model="m",
    )
    url = httpx.URL(GeminiAdapter().build_request(config).url)

    assert url.host == "proxy.example.com"
    assert url.path == "/v1beta/models/m:streamGenerateContent"
    assert url.params["alt"] == "sse"
    assert url.params["api-version"] == "2"
    assert url.params.get_list("key") == ["sk-test"]


@pytest.mark.parametrize(
    "body, status_code, expected",
    [
        ('{"error": {"message": "bad key"}}', 401, "bad key"),
        ('{"error": "quota"}', 403, "quota"),
        ('{"message": "overloaded"}', 529, "overloaded"),
        ('{"detail": "x"}', 500, '{"detail": "x"}'),
        ("<html>gateway</html>", 502, "<html>gateway</html>"),
        ("", 503, "HTTP 503"),
    ],
)
def test_extract_error_message(body, status_code, expected):
    assert extract_error_message(body, status_code) == expected


def test_extract_error_message_truncates_raw_body():
    assert len(extract_error_message("x" * 1000, 500)) == 280
