"""Wires key pools, dispatchers, provider clients, caches and handlers."""

import logging
import time
from typing import Callable, Dict, Optional, Tuple

import httpx

from globeassist.cache import CacheGate
from globeassist.config import Config
from globeassist.dispatcher import RateLimitedDispatcher
from globeassist.errors import BadRequestError
from globeassist.fetch import ResilientClient, api_key_header_auth, bearer_auth
from globeassist.handlers import (
    accommodation,
    countries,
    cv,
    jobs,
    recommendations,
    scholarships,
    universities,
    visas,
)
from globeassist.handlers.chat import ChatHandler
from globeassist.key_pool import KeyPool
from globeassist.providers import ChatClient, SearchClient
from globeassist.store import SQLiteStore

logger = logging.getLogger(__name__)

RESUME_PARSER_TITLE = "Resume Parser"

STUDENT = "student"
PROFESSIONAL = "professional"

# Namespaces whose owner-scoped rows are dropped by a profile's cache reset.
OWNER_NAMESPACES: Dict[str, Tuple[str, ...]] = {
    STUDENT: (
        recommendations.STUDENT_NAMESPACE,
        scholarships.NAMESPACE,
        countries.NAMESPACE,
        universities.UNIVERSITY_NAMESPACE,
        universities.PROGRAM_NAMESPACE,
        visas.NAMESPACES[visas.STUDENT],
        accommodation.NAMESPACE,
        cv.NAMESPACE,
    ),
    PROFESSIONAL: (
        recommendations.PROFESSIONAL_NAMESPACE,
        jobs.NAMESPACE,
        visas.NAMESPACES[visas.PROFESSIONAL],
        countries.NAMESPACE,
        accommodation.NAMESPACE,
        cv.NAMESPACE,
    ),
}


class Services:
    """Everything a request handler needs, built once per process."""

    def __init__(
        self,
        config: Config,
        store: SQLiteStore,
        llm_http: httpx.AsyncClient,
        search_http: httpx.AsyncClient,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.store = store
        self._clock = clock

        self.llm_pool = KeyPool(
            "openrouter",
            config.llm_api_keys,
            default_cooldown_seconds=config.default_cooldown_seconds,
            clock=clock,
        )
        self.search_pool = KeyPool(
            "serper",
            config.search_api_keys,
            default_cooldown_seconds=config.default_cooldown_seconds,
            clock=clock,
        )
        self.llm_dispatcher = RateLimitedDispatcher(
            "openrouter", config.llm_min_interval_seconds
        )
        self.search_dispatcher = RateLimitedDispatcher(
            "serper", config.search_min_interval_seconds
        )

        llm_client = self._client("openrouter", llm_http, self.llm_pool, self.llm_dispatcher)
        parser_client = self._client(
            "openrouter",
            llm_http,
            self.llm_pool,
            self.llm_dispatcher,
            extra_headers={"X-Title": RESUME_PARSER_TITLE},
        )
        search_client = self._client(
            "serper",
            search_http,
            self.search_pool,
            self.search_dispatcher,
            auth=api_key_header_auth,
        )

        research = ChatClient(llm_client, config.search_model)
        parser = ChatClient(parser_client, config.parser_model)
        assistant = ChatClient(llm_client, config.chat_model)
        search = SearchClient(search_client)

        university_cache = self._cache(
            universities.UNIVERSITY_NAMESPACE, universities.UNIVERSITY_TTL_SECONDS
        )

        self.countries = countries.CountryDetailsHandler(
            research, search, self._cache(countries.NAMESPACE, countries.TTL_SECONDS)
        )
        self.universities = universities.UniversityDetailsHandler(
            research, search, university_cache
        )
        self.programs = universities.ProgramDetailsHandler(
            research,
            search,
            self._cache(universities.PROGRAM_NAMESPACE, universities.PROGRAM_TTL_SECONDS),
            university_cache,
        )
        self.scholarships = scholarships.ScholarshipsHandler(
            research, self._cache(scholarships.NAMESPACE, scholarships.TTL_SECONDS), clock
        )
        self.scholarship_links = scholarships.ScholarshipLinkFinder(
            assistant,
            search,
            self._cache(scholarships.LINK_NAMESPACE, scholarships.LINK_TTL_SECONDS),
        )
        self.visas = {
            kind: visas.VisaRequirementsHandler(
                research, self._cache(namespace, visas.TTL_SECONDS), kind
            )
            for kind, namespace in visas.NAMESPACES.items()
        }
        self.accommodation = accommodation.AccommodationHandler(
            research, search, self._cache(accommodation.NAMESPACE, accommodation.TTL_SECONDS)
        )
        self.recommendations = {
            STUDENT: recommendations.RecommendationsHandler(
                self._cache(recommendations.STUDENT_NAMESPACE, recommendations.TTL_SECONDS),
                recommendations.STUDENT,
            ),
            PROFESSIONAL: recommendations.RecommendationsHandler(
                self._cache(
                    recommendations.PROFESSIONAL_NAMESPACE, recommendations.TTL_SECONDS
                ),
                recommendations.PROFESSIONAL,
            ),
        }
        self.jobs = jobs.JobsHandler(
            research, self._cache(jobs.NAMESPACE, jobs.TTL_SECONDS), clock
        )
        self.apply_links = jobs.ApplyLinkFinder(
            assistant, search, self._cache(jobs.LINK_NAMESPACE, jobs.LINK_TTL_SECONDS)
        )
        self.cv_parser = cv.CVParser(parser, self._cache(cv.NAMESPACE, cv.TTL_SECONDS))
        self.chat = ChatHandler(assistant)

    def _client(
        self,
        name: str,
        http_client: httpx.AsyncClient,
        pool: KeyPool,
        dispatcher: RateLimitedDispatcher,
        auth=bearer_auth,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> ResilientClient:
        config = self.config
        return ResilientClient(
            name,
            http_client,
            pool,
            dispatcher,
            max_retries=config.max_retries,
            timeout_seconds=config.request_timeout_seconds,
            backoff_base_seconds=config.backoff_base_seconds,
            backoff_max_seconds=config.backoff_max_seconds,
            max_cooldown_wait_seconds=config.max_cooldown_wait_seconds,
            auth=auth,
            extra_headers=extra_headers,
            clock=self._clock,
        )

    def _cache(self, namespace: str, ttl_seconds: float) -> CacheGate:
        return CacheGate(self.store, namespace, ttl_seconds, clock=self._clock)

    async def clear_owned(self, user_id: str, profile_type: str) -> int:
        """Drop every cache row owned by ``user_id`` for one profile type."""
        namespaces = OWNER_NAMESPACES.get(profile_type)
        if namespaces is None:
            raise BadRequestError(f"Unknown profile type: {profile_type}")
        removed = await self.store.delete_owned(user_id, namespaces)
        logger.info("Cleared %s cached rows for user %s (%s)", removed, user_id, profile_type)
        return removed

    def status(self) -> Dict[str, object]:
        return {
            "pools": {
                "openrouter": self.llm_pool.get_status(),
                "serper": self.search_pool.get_status(),
            },
            "dispatchers": {
                self.llm_dispatcher.name: {
                    "pending": self.llm_dispatcher.pending,
                    "dispatched": self.llm_dispatcher.dispatched,
                },
                self.search_dispatcher.name: {
                    "pending": self.search_dispatcher.pending,
                    "dispatched": self.search_dispatcher.dispatched,
                },
            },
        }

    def pool(self, name: str) -> Optional[KeyPool]:
        return {"openrouter": self.llm_pool, "serper": self.search_pool}.get(name)

    async def close(self) -> None:
        await self.llm_dispatcher.close()
        await self.search_dispatcher.close()


def build_services(
    config: Config,
    store: Optional[SQLiteStore] = None,
    llm_http: Optional[httpx.AsyncClient] = None,
    search_http: Optional[httpx.AsyncClient] = None,
    clock: Callable[[], float] = time.time,
) -> Services:
    """Build the service graph; missing HTTP clients get config defaults."""
    store = store or SQLiteStore(config.database_path)
    llm_http = llm_http or httpx.AsyncClient(base_url=config.openrouter_base_url)
    search_http = search_http or httpx.AsyncClient(base_url=config.serper_base_url)
    return Services(config, store, llm_http, search_http, clock)
