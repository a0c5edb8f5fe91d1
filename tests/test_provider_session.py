import json

import httpx
import pytest

from arogya_sahayak.errors import (
    AuthenticationError,
    BillingLimitError,
    ConfigurationError,
    EmptyCompletionError,
    RateLimitError,
    UpstreamConnectionError,
    UpstreamStatusError,
    UpstreamUnavailableError,
)
from arogya_sahayak.providers import ProviderDescriptor, ProviderSession

OPENROUTER = ProviderDescriptor(
    name="openrouter",
    endpoint="https://openrouter.test/api/v1/chat/completions",
    is_free_tier=True,
    extra_headers={"HTTP-Referer": "https://arogya.test", "X-Title": "Arogya Sahayak"},
)

GEMINI = ProviderDescriptor(
    name="gemini",
    endpoint="https://gemini.test/v1beta/models/{model}:generateContent",
    auth_scheme="query-key",
    request_shape="gemini",
)


def _mock_transport(handler):
    return httpx.MockTransport(handler)


def _session(handler, descriptor=OPENROUTER, api_key="k"):
    client = httpx.AsyncClient(transport=_mock_transport(handler))
    return ProviderSession(descriptor, api_key, client=client, daily_quota_marker="free-models-per-day"), client


@pytest.mark.asyncio
async def test_send_openai_chat_success_builds_payload_and_headers():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer k"
        assert request.headers["http-referer"] == "https://arogya.test"
        assert request.headers["x-title"] == "Arogya Sahayak"

        body = json.loads(request.content.decode("utf-8"))
        assert body["model"] == "m1"
        assert body["messages"][0] == {"role": "system", "content": "Be kind."}
        assert body["messages"][1] == {"role": "user", "content": "hi"}
        assert body["messages"][2] == {"role": "assistant", "content": "hello"}
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 1000

        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "ok"}}]})

    s, client = _session(handler)
    try:
        out = await s.send(
            model="m1",
            messages=[{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
            system_instruction="Be kind.",
            temperature=0.7,
            max_tokens=1000,
        )
        assert out == "ok"
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_send_missing_key_raises_without_request():
    calls = {"n": 0}

    def handler(_: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(200)

    s, client = _session(handler, api_key=None)
    try:
        assert s.configured is False
        with pytest.raises(AuthenticationError):
            await s.send(model="m1", messages=[{"role": "user", "content": "hi"}])
        assert calls["n"] == 0
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_send_402_raises_billing_limit_error():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"error": {"message": "Insufficient credits"}})

    s, client = _session(handler)
    try:
        with pytest.raises(BillingLimitError):
            await s.send(model="m1", messages=[{"role": "user", "content": "hi"}])
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_send_429_with_daily_marker_is_daily_quota():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "Rate limit exceeded: free-models-per-day"}})

    s, client = _session(handler)
    try:
        with pytest.raises(RateLimitError) as exc:
            await s.send(model="m1", messages=[{"role": "user", "content": "hi"}])
        assert exc.value.daily_quota is True
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_send_429_without_marker_is_transient_with_retry_after():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"retry-after": "12"}, json={"error": {"message": "slow down"}})

    s, client = _session(handler)
    try:
        with pytest.raises(RateLimitError) as exc:
            await s.send(model="m1", messages=[{"role": "user", "content": "hi"}])
        assert exc.value.daily_quota is False
        assert exc.value.retry_after_seconds == 12
    finally:
        await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [502, 503])
async def test_send_502_503_raise_upstream_unavailable(status):
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="bad gateway")

    s, client = _session(handler)
    try:
        with pytest.raises(UpstreamUnavailableError) as exc:
            await s.send(model="m1", messages=[{"role": "user", "content": "hi"}])
        assert exc.value.status_code == status
    finally:
        await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 404, 500])
async def test_send_other_errors_raise_status_error(status):
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": {"message": "nope"}})

    s, client = _session(handler)
    try:
        with pytest.raises(UpstreamStatusError) as exc:
            await s.send(model="m1", messages=[{"role": "user", "content": "hi"}])
        assert not isinstance(exc.value, UpstreamUnavailableError)
        assert exc.value.status_code == status
    finally:
        await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json={"choices": [{"message": {"content": "   "}}]}),
        httpx.Response(200, json={"choices": [{"message": {}}]}),
        httpx.Response(200, text="<html>not json</html>"),
    ],
)
async def test_send_success_without_text_raises_empty_completion(response):
    def handler(_: httpx.Request) -> httpx.Response:
        return response

    s, client = _session(handler)
    try:
        with pytest.raises(EmptyCompletionError):
            await s.send(model="m1", messages=[{"role": "user", "content": "hi"}])
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_send_transport_error_raises_connection_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    s, client = _session(handler)
    try:
        with pytest.raises(UpstreamConnectionError):
            await s.send(model="m1", messages=[{"role": "user", "content": "hi"}])
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_send_gemini_shape_maps_roles_system_and_query_key():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
        assert request.url.params.get("key") == "k"
        assert "authorization" not in request.headers

        body = json.loads(request.content.decode("utf-8"))
        assert body["systemInstruction"]["parts"][0]["text"] == "Be kind."
        assert body["contents"][0] == {"role": "user", "parts": [{"text": "hi"}]}
        assert body["contents"][1] == {"role": "model", "parts": [{"text": "hello"}]}
        assert body["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 50}
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "namaste"}]}}]})

    s, client = _session(handler, descriptor=GEMINI)
    try:
        out = await s.send(
            model="gemini-1.5-flash",
            messages=[{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
            system_instruction="Be kind.",
            temperature=0.2,
            max_tokens=50,
        )
        assert out == "namaste"
    finally:
        await client.aclose()


def test_descriptor_rejects_unknown_shape_and_auth():
    with pytest.raises(ConfigurationError):
        ProviderDescriptor(name="x", endpoint="https://x.test", request_shape="soap")
    with pytest.raises(ConfigurationError):
        ProviderDescriptor(name="x", endpoint="https://x.test", auth_scheme="basic")
