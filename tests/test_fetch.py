import json
from typing import List

import httpx
import pytest
import respx

from globeassist.dispatcher import RateLimitedDispatcher
from globeassist.errors import (
    ConfigurationError,
    FatalProviderError,
    MalformedResponse,
    ProviderExhaustedError,
)
from globeassist.fetch import ResilientClient, api_key_header_auth, parse_reset_time
from globeassist.key_pool import KeyPool
from globeassist.providers import ChatClient, SearchClient

BASE_URL = "https://openrouter.example.test/api/v1"
COMPLETIONS = f"{BASE_URL}/chat/completions"
NOW = 1_700_000_000.0


class Sleeps:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_client(http_client, keys=("k1", "k2"), max_retries=2, sleep=None, **kwargs):
    pool = KeyPool("openrouter", list(keys), clock=lambda: NOW)
    dispatcher = RateLimitedDispatcher("openrouter", 0.0)
    client = ResilientClient(
        "openrouter",
        http_client,
        pool,
        dispatcher,
        max_retries=max_retries,
        clock=lambda: NOW,
        sleep=sleep or Sleeps(),
        **kwargs,
    )
    return client, pool


def completion(text: str) -> dict:
    return {"choices": [{"message": {"content": text}}]}


def recording(responses: List[httpx.Response], captured: List[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return responses.pop(0)

    return handler


@pytest.mark.asyncio
@respx.mock
async def test_successful_post_uses_bearer_key():
    captured: List[httpx.Request] = []
    respx.post(COMPLETIONS).mock(
        side_effect=recording([httpx.Response(200, json={"ok": True})], captured)
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, pool = make_client(http_client, extra_headers={"X-Title": "Resume Parser"})
        data = await client.post_json("/chat/completions", {"model": "m"})

    assert data == {"ok": True}
    assert captured[0].headers["authorization"] == "Bearer k1"
    assert captured[0].headers["x-title"] == "Resume Parser"
    assert pool.pool.keys["key_1"].last_used is not None


@pytest.mark.asyncio
@respx.mock
async def test_429_rotates_to_next_key_with_default_cooldown():
    captured: List[httpx.Request] = []
    respx.post(COMPLETIONS).mock(
        side_effect=recording(
            [
                httpx.Response(429, json={"error": {"message": "Rate limit exceeded"}}),
                httpx.Response(200, json={"ok": True}),
            ],
            captured,
        )
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, pool = make_client(http_client)
        data = await client.post_json("/chat/completions", {})

    assert data == {"ok": True}
    assert captured[0].headers["authorization"] == "Bearer k1"
    assert captured[1].headers["authorization"] == "Bearer k2"
    assert pool.pool.keys["key_1"].cooldown_until == NOW + 60
    assert pool.pool.keys["key_1"].rate_limit_hits == 1


@pytest.mark.asyncio
@respx.mock
async def test_429_reset_from_error_metadata():
    reset_ms = int((NOW + 120) * 1000)
    respx.post(COMPLETIONS).mock(
        side_effect=[
            httpx.Response(
                429,
                json={
                    "error": {
                        "message": "Rate limit exceeded",
                        "metadata": {"headers": {"X-RateLimit-Reset": str(reset_ms)}},
                    }
                },
            ),
            httpx.Response(200, json={"ok": True}),
        ]
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, pool = make_client(http_client)
        await client.post_json("/chat/completions", {})

    assert pool.pool.keys["key_1"].cooldown_until == pytest.approx(NOW + 120)


def test_parse_reset_time_headers():
    header_reset = httpx.Response(429, headers={"X-RateLimit-Reset": str(int(NOW + 30))})
    retry_after = httpx.Response(429, headers={"Retry-After": "15"})
    nothing = httpx.Response(429, text="slow down")

    assert parse_reset_time(header_reset, NOW) == NOW + 30
    assert parse_reset_time(retry_after, NOW) == NOW + 15
    assert parse_reset_time(nothing, NOW) is None


@pytest.mark.asyncio
@respx.mock
async def test_503_retries_same_key_with_backoff():
    captured: List[httpx.Request] = []
    respx.post(COMPLETIONS).mock(
        side_effect=recording(
            [httpx.Response(503, text="overloaded"), httpx.Response(200, json={"ok": True})],
            captured,
        )
    )
    sleeps = Sleeps()

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, pool = make_client(http_client, sleep=sleeps, backoff_base_seconds=1.0)
        data = await client.post_json("/chat/completions", {})

    assert data == {"ok": True}
    assert [r.headers["authorization"] for r in captured] == ["Bearer k1", "Bearer k1"]
    assert len(sleeps.calls) == 1
    assert 1.0 <= sleeps.calls[0] <= 1.5
    assert pool.pool.keys["key_1"].consecutive_failures == 0


@pytest.mark.asyncio
@respx.mock
async def test_timeout_is_retryable():
    respx.post(COMPLETIONS).mock(
        side_effect=[httpx.ReadTimeout("slow"), httpx.Response(200, json={"ok": True})]
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, _ = make_client(http_client)
        assert await client.post_json("/chat/completions", {}) == {"ok": True}


@pytest.mark.asyncio
@respx.mock
async def test_fatal_status_raises_immediately():
    route = respx.post(COMPLETIONS).mock(
        return_value=httpx.Response(400, json={"error": {"message": "bad model"}})
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, _ = make_client(http_client)
        with pytest.raises(FatalProviderError) as excinfo:
            await client.post_json("/chat/completions", {})

    assert route.call_count == 1
    assert excinfo.value.status_code == 502


@pytest.mark.asyncio
@respx.mock
async def test_all_keys_exhausted():
    route = respx.post(COMPLETIONS).mock(
        return_value=httpx.Response(429, json={"error": {"message": "Rate limit"}})
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, pool = make_client(http_client)
        with pytest.raises(ProviderExhaustedError) as excinfo:
            await client.post_json("/chat/completions", {})

    assert route.call_count == 2
    assert excinfo.value.status_code == 429
    assert pool.get_status()["cooling_down_keys"] == 2


@pytest.mark.asyncio
@respx.mock
async def test_502_is_retried_on_the_same_key():
    captured: List[httpx.Request] = []
    respx.post(COMPLETIONS).mock(
        side_effect=recording(
            [httpx.Response(502, text="bad gateway"), httpx.Response(200, json={"ok": True})],
            captured,
        )
    )
    sleeps = Sleeps()

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, _ = make_client(http_client, sleep=sleeps, backoff_base_seconds=2.0)
        data = await client.post_json("/chat/completions", {})

    assert data == {"ok": True}
    assert [r.headers["authorization"] for r in captured] == ["Bearer k1", "Bearer k1"]
    assert len(sleeps.calls) == 1
    assert 2.0 <= sleeps.calls[0] <= 3.0


@pytest.mark.asyncio
@respx.mock
async def test_short_cooldown_is_waited_out():
    captured: List[httpx.Request] = []
    respx.post(COMPLETIONS).mock(
        side_effect=recording([httpx.Response(200, json={"ok": True})], captured)
    )
    sleeps = Sleeps()

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, pool = make_client(http_client, sleep=sleeps, max_cooldown_wait_seconds=5)
        await pool.report_rate_limited("key_1", resume_at=NOW + 3)
        await pool.report_rate_limited("key_2", resume_at=NOW + 10)
        data = await client.post_json("/chat/completions", {})

    assert data == {"ok": True}
    assert sleeps.calls == [3.0]
    assert captured[0].headers["authorization"] == "Bearer k1"
    assert pool.pool.keys["key_1"].cooldown_until is None


@pytest.mark.asyncio
@respx.mock
async def test_cooling_pool_gives_up_without_calling():
    route = respx.post(COMPLETIONS).mock(return_value=httpx.Response(200, json={}))

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, pool = make_client(http_client, keys=("k1",), max_cooldown_wait_seconds=5)
        await pool.report_rate_limited("key_1", resume_at=NOW + 30)
        with pytest.raises(ProviderExhaustedError):
            await client.post_json("/chat/completions", {})

    assert not route.called


@pytest.mark.asyncio
async def test_empty_pool_is_configuration_error():
    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, _ = make_client(http_client, keys=())
        assert not client.enabled
        with pytest.raises(ConfigurationError):
            await client.post_json("/chat/completions", {})


@pytest.mark.asyncio
@respx.mock
async def test_chat_client_complete_builds_body():
    captured: List[httpx.Request] = []
    respx.post(COMPLETIONS).mock(
        side_effect=recording([httpx.Response(200, json=completion("hello"))], captured)
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, _ = make_client(http_client)
        chat = ChatClient(client, "perplexity/sonar-pro-search")
        text = await chat.complete("Hi", system="Be brief", max_tokens=100)

    body = json.loads(captured[0].content)
    assert text == "hello"
    assert body["model"] == "perplexity/sonar-pro-search"
    assert body["messages"][0] == {"role": "system", "content": "Be brief"}
    assert body["max_tokens"] == 100
    assert body["temperature"] == 0.1


@pytest.mark.asyncio
@respx.mock
async def test_chat_client_empty_content_is_malformed():
    respx.post(COMPLETIONS).mock(return_value=httpx.Response(200, json=completion("  ")))

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, _ = make_client(http_client)
        with pytest.raises(MalformedResponse):
            await ChatClient(client, "m").complete("Hi")


@pytest.mark.asyncio
@respx.mock
async def test_chat_client_stream_yields_deltas():
    body = (
        'data: {"choices": [{"delta": {"content": "Hel"}}]}\n\n'
        ": keep-alive\n\n"
        'data: {"choices": [{"delta": {"content": "lo"}}]}\n\n'
        "data: [DONE]\n\n"
    )
    respx.post(COMPLETIONS).mock(return_value=httpx.Response(200, text=body))

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, _ = make_client(http_client)
        chat = ChatClient(client, "m")
        deltas = [d async for d in chat.stream([{"role": "user", "content": "Hi"}])]

    assert deltas == ["Hel", "lo"]


@pytest.mark.asyncio
@respx.mock
async def test_stream_request_has_read_timeout():
    captured: List[httpx.Request] = []
    respx.post(COMPLETIONS).mock(
        side_effect=recording([httpx.Response(200, text="data: [DONE]\n\n")], captured)
    )

    async with httpx.AsyncClient(base_url=BASE_URL) as http_client:
        client, _ = make_client(http_client, timeout_seconds=30.0)
        response = await client.open_stream("/chat/completions", {"stream": True})
        await response.aclose()

    assert captured[0].extensions["timeout"]["read"] == 30.0


@pytest.mark.asyncio
@respx.mock
async def test_search_client_uses_api_key_header():
    captured: List[httpx.Request] = []
    respx.post("https://serper.example.test/search").mock(
        side_effect=recording(
            [httpx.Response(200, json={"organic": [{"link": "https://a.edu"}, "junk"]})],
            captured,
        )
    )

    async with httpx.AsyncClient(base_url="https://serper.example.test") as http_client:
        client, _ = make_client(http_client, keys=("serper-key",), auth=api_key_header_auth)
        results = await SearchClient(client).search("mit apply", num=3, gl="us")

    assert results == [{"link": "https://a.edu"}]
    assert captured[0].headers["x-api-key"] == "serper-key"
    assert json.loads(captured[0].content) == {"q": "mit apply", "num": 3, "gl": "us"}
