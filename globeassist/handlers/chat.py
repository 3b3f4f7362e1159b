"""Streaming assistant chat as server-sent events."""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Sequence

import httpx

from globeassist.errors import GlobeAssistError
from globeassist.providers import ChatClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are GlobeAssist AI, a helpful assistant for a platform that helps people find global opportunities.
You provide general advice about studying abroad, working internationally, scholarships, visas, and accommodations.
Be friendly, informative, and supportive. Keep your responses concise but helpful.

IMPORTANT RULES:
1. NEVER claim to have user profile data or specific personal information
2. Provide general advice based on common knowledge
3. If asked about specific user data, politely explain you can only provide general information
4. Focus on factual information about countries, education systems, visa processes, etc.
5. Keep responses under 300 words
6. Format responses with clear paragraphs and bullet points when appropriate"""

FALLBACK_REPLY = """I'm here to help you with GlobeAssist! You can ask me about:
- Study abroad opportunities in various countries
- Visa requirements for different destinations
- General information about universities and programs
- Tips for preparing your applications
- Budget planning for international education/work

What would you like to know about today?"""

DONE_EVENT = "data: [DONE]\n\n"


def sse_event(text: str) -> str:
    return f"data: {json.dumps({'text': text})}\n\n"


def _message_text(message: Dict[str, Any]) -> str:
    content = message.get("content")
    if content:
        return str(content)
    parts = message.get("parts") or []
    if parts and isinstance(parts[0], dict):
        return str(parts[0].get("text") or "")
    return ""


def to_provider_messages(messages: Sequence[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Prefix the system prompt and collapse roles to assistant/user."""
    converted = [{"role": "system", "content": SYSTEM_PROMPT}]
    for message in messages:
        if not isinstance(message, dict):
            continue
        role = "assistant" if message.get("role") == "assistant" else "user"
        converted.append({"role": role, "content": _message_text(message)})
    return converted


class ChatHandler:
    def __init__(self, chat: ChatClient):
        self.chat = chat

    async def events(self, messages: Sequence[Dict[str, Any]]) -> AsyncIterator[str]:
        """Yield SSE frames; a provider failure ends in the fallback reply."""
        try:
            async for delta in self.chat.stream(to_provider_messages(messages)):
                yield sse_event(delta)
        except (GlobeAssistError, httpx.HTTPError) as exc:
            logger.error("Chat stream failed: %s", exc)
            yield sse_event(FALLBACK_REPLY)
        yield DONE_EVENT
