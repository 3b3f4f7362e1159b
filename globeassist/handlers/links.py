"""Search-backed link and image lookup shared by the domain handlers."""

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from urllib.parse import urlparse

from globeassist.cache import CacheGate
from globeassist.errors import GlobeAssistError
from globeassist.gather import gather_with_fallback
from globeassist.providers import ChatClient, SearchClient

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT_FOUND"

_URL = re.compile(r"https?://[^\s<>\"]+", re.IGNORECASE)
_TRAILING_PUNCTUATION = re.compile(r"[.,;!?)]+$")

LISTING_SITE_BLACKLIST = (
    "scholarshipportal.com",
    "scholarships.com",
    "findscholarship",
    "opportunit",
    "studyabroad.com",
    "scholars4dev",
    "afterschoolafrica",
    "scholarshipsads",
    "opportunitydesk",
)


def extract_url(text: str) -> Optional[str]:
    """First http(s) URL in ``text`` with trailing punctuation removed."""
    if not text or text.strip() == NOT_FOUND:
        return None
    match = _URL.search(text)
    if not match:
        return None
    return _TRAILING_PUNCTUATION.sub("", match.group(0))


def is_valid_application_url(url: Optional[str]) -> bool:
    if not url or len(url) < 10:
        return False
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False

    lowered = url.lower()
    for blocked in LISTING_SITE_BLACKLIST:
        if blocked in lowered:
            logger.info("Rejected listing site %s", url)
            return False
    if "google.com/search" in lowered:
        logger.info("Rejected search page %s", url)
        return False
    return True


def pick_link(
    results: Sequence[Dict[str, Any]], priority: Iterable[str] = ()
) -> Optional[str]:
    """First result whose link contains a priority marker, else the first link."""
    markers = [marker.lower() for marker in priority]
    for result in results:
        link = str(result.get("link") or "")
        if link and any(marker in link.lower() for marker in markers):
            return link
    for result in results:
        if result.get("link"):
            return str(result["link"])
    return None


def dedupe_results(results: Iterable[Dict[str, Any]], limit: int) -> List[Dict[str, Any]]:
    unique: Dict[str, Dict[str, Any]] = {}
    for result in results:
        link = result.get("link")
        if link and link not in unique:
            unique[link] = result
    return list(unique.values())[:limit]


def render_results(results: Sequence[Dict[str, Any]]) -> str:
    return "\n\n".join(
        f"{index}. URL: {result.get('link')}\n"
        f"   Title: {result.get('title') or ''}\n"
        f"   Snippet: {result.get('snippet') or ''}"
        for index, result in enumerate(results, start=1)
    )


async def first_image(search: SearchClient, query: str, fallback: str) -> str:
    """First image result for ``query``, or ``fallback`` when search is off."""
    if not search.enabled:
        return fallback
    images = await search.images(query, num=1)
    if images and images[0].get("imageUrl"):
        return str(images[0]["imageUrl"])
    return fallback


class LinkFinder:
    """Find one official page: several searches, then a model picks the link.

    Subclasses supply the queries, the selection prompt and the fallback
    search URL. Selected links are cached per item.
    """

    result_num = 10
    result_limit = 15
    search_locale: Optional[str] = "us"
    max_tokens = 300
    temperature = 0.1
    model: Optional[str] = None

    def __init__(self, chat: ChatClient, search: SearchClient, cache: CacheGate):
        self.chat = chat
        self.search = search
        self.cache = cache

    @property
    def enabled(self) -> bool:
        return self.chat.enabled and self.search.enabled

    def is_acceptable(self, url: str) -> bool:
        return is_valid_application_url(url)

    async def collect_results(self, queries: Sequence[str]) -> List[Dict[str, Any]]:
        batches = await gather_with_fallback(
            queries,
            lambda query: self.search.search(
                query, num=self.result_num, gl=self.search_locale
            ),
            lambda query, exc: [],
        )
        combined = [result for batch in batches for result in batch]
        return dedupe_results(combined, self.result_limit)

    async def select(self, queries: Sequence[str], build_prompt: Callable[[str], str]) -> Optional[str]:
        """Search, then ask the model for the best URL. None when nothing fits."""
        results = await self.collect_results(queries)
        if not results:
            logger.info("No search results for %s", queries[0] if queries else "")
            return None

        try:
            answer = await self.chat.complete(
                build_prompt(render_results(results)),
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except GlobeAssistError as exc:
            logger.warning("Link selection failed: %s", exc)
            return None

        url = extract_url(answer)
        if url and self.is_acceptable(url):
            return url
        return None

    async def cached_select(
        self,
        key: str,
        queries: Sequence[str],
        build_prompt: Callable[[str], str],
    ) -> Optional[str]:
        cached = await self.cache.get(key)
        if isinstance(cached, dict) and cached.get("link"):
            return str(cached["link"])

        url = await self.select(queries, build_prompt)
        if url:
            await self.cache.put(key, {"link": url})
        return url
