from typing import Any, Callable, Dict, List, Optional, Union

import pytest
from fastapi.testclient import TestClient

from globeassist.cache import CacheGate
from globeassist.main import app
from globeassist.store import SQLiteStore

Reply = Union[str, Exception]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeChat:
    """Stands in for ChatClient; replies are queued or computed per prompt."""

    def __init__(self, replies: Optional[List[Reply]] = None, enabled: bool = True):
        self.replies: List[Reply] = list(replies or [])
        self.responder: Optional[Callable[[str], Reply]] = None
        self.enabled = enabled
        self.calls: List[Dict[str, Any]] = []
        self.stream_chunks: List[Reply] = []

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        self.calls.append(
            {
                "prompt": prompt,
                "system": system,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        reply = self.responder(prompt) if self.responder else self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def stream(self, messages, model=None):
        self.calls.append({"messages": list(messages), "model": model})
        for chunk in self.stream_chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


class FakeSearch:
    """Stands in for SearchClient."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.results: Dict[str, List[Dict[str, Any]]] = {}
        self.default_results: List[Dict[str, Any]] = []
        self.image_results: List[Dict[str, Any]] = []
        self.fail_queries: List[str] = []
        self.queries: List[str] = []
        self.image_queries: List[str] = []

    async def search(self, query: str, num: int = 10, gl: Optional[str] = None):
        self.queries.append(query)
        if any(marker in query for marker in self.fail_queries):
            raise RuntimeError(f"search failed for {query}")
        return list(self.results.get(query, self.default_results))

    async def images(self, query: str, num: int = 1):
        self.image_queries.append(query)
        if any(marker in query for marker in self.fail_queries):
            raise RuntimeError(f"image search failed for {query}")
        return list(self.image_results)[:num]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    store = SQLiteStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def make_gate(store, clock):
    def factory(namespace: str = "test", ttl_seconds: float = 3600) -> CacheGate:
        return CacheGate(store, namespace, ttl_seconds, clock=clock)

    return factory


@pytest.fixture
def chat():
    return FakeChat()


@pytest.fixture
def search():
    return FakeSearch()


POOL_ENV_VARS = (
    ["OPENROUTER_API_KEYS", "OPENROUTER_API_KEY_SONAR_SEARCH", "OPENROUTER_API_KEY"]
    + ["SERPER_API_KEYS", "SERPER_GOOGLE_SEARCH_API"]
    + [f"OPENROUTER_API_KEY_{i}" for i in range(1, 21)]
    + [f"SERPER_API_KEY_{i}" for i in range(1, 21)]
)


@pytest.fixture
def api_client(monkeypatch, respx_mock):
    """App with two OpenRouter keys, search disabled and an in-memory store."""
    for name in POOL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENROUTER_API_KEYS", "or_key_one,or_key_two")
    monkeypatch.setenv("DATABASE_PATH", ":memory:")
    monkeypatch.setenv("LLM_MIN_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("SEARCH_MIN_INTERVAL_SECONDS", "0")

    with TestClient(app) as client:
        yield client
