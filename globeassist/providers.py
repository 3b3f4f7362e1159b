"""Thin clients for the chat-completions and web-search providers."""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from globeassist.errors import MalformedResponse
from globeassist.fetch import ResilientClient

logger = logging.getLogger(__name__)

Message = Dict[str, str]


class ChatClient:
    """OpenRouter chat completions on top of a ResilientClient."""

    def __init__(self, client: ResilientClient, model: str, max_tokens: int = 4000):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    @property
    def enabled(self) -> bool:
        return self.client.enabled

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> str:
        messages: List[Message] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        data = await self.client.post_json(
            "/chat/completions",
            {
                "model": model or self.model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens or self.max_tokens,
            },
        )
        content = _message_content(data)
        if not content.strip():
            raise MalformedResponse("Provider returned an empty completion")
        return content

    async def stream(
        self, messages: Sequence[Message], model: Optional[str] = None
    ) -> AsyncIterator[str]:
        """Yield content deltas from a streamed completion."""
        response = await self.client.open_stream(
            "/chat/completions",
            {"model": model or self.model, "messages": list(messages), "stream": True},
        )
        try:
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:") :].strip()
                if data == "[DONE]":
                    break
                try:
                    chunk = json.loads(data)
                except ValueError:
                    logger.debug("Skipping undecodable stream chunk")
                    continue
                choices = chunk.get("choices") or []
                if choices:
                    delta = (choices[0].get("delta") or {}).get("content")
                    if delta:
                        yield delta
        finally:
            await response.aclose()


def _message_content(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise MalformedResponse("Completion has no choices[0].message.content")
    return content if isinstance(content, str) else ""


class SearchClient:
    """Serper web and image search. Disabled when no keys are configured."""

    def __init__(self, client: ResilientClient):
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client.enabled

    async def search(
        self, query: str, num: int = 10, gl: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        payload: Dict[str, Any] = {"q": query, "num": num}
        if gl:
            payload["gl"] = gl
        data = await self.client.post_json("/search", payload)
        return _result_list(data, "organic")

    async def images(self, query: str, num: int = 1) -> List[Dict[str, Any]]:
        data = await self.client.post_json("/images", {"q": query, "num": num})
        return _result_list(data, "images")


def _result_list(data: Any, field: str) -> List[Dict[str, Any]]:
    if not isinstance(data, dict):
        return []
    items = data.get(field) or []
    return [item for item in items if isinstance(item, dict)]
