"""Scholarship search and on-demand application links."""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from globeassist.cache import CacheGate, make_cache_key
from globeassist.errors import BadRequestError, IncompleteResult
from globeassist.extract import extract_list
from globeassist.handlers.links import LinkFinder
from globeassist.providers import ChatClient
from globeassist.reference import google_search_url
from globeassist.schemas import Scholarship

logger = logging.getLogger(__name__)

NAMESPACE = "scholarships"
TTL_SECONDS = 7 * 24 * 3600
LINK_NAMESPACE = "scholarship_links"
LINK_TTL_SECONDS = 30 * 24 * 3600

MIN_SCHOLARSHIPS = 5
NATIONALITY = "Pakistani"
DEFAULT_DESTINATIONS = "USA, UK, Canada, Germany, Australia"
DEFAULT_QUALIFICATION = "Masters"
DEFAULT_FIELDS = "Computer Science, Engineering, Business"
REQUIRED_FIELDS = ("name", "university", "location", "qualification")


def scholarships_prompt(
    destinations: str, qualification: str, fields: str, nationality: str = NATIONALITY
) -> str:
    return f"""Find 15 REAL scholarships for {nationality} students who have {qualification} and want further studies in {destinations}, fields: {fields}.

REQUIREMENTS:
- Deadlines MUST be in 2026 or Rolling (no past dates)
- Real scholarships only (Fulbright, Chevening, DAAD, Commonwealth, Erasmus, etc.)
- Include scholarship name, university, country, degree level, award value, deadline, funding type

Return ONLY a valid JSON array without any markdown formatting or explanatory text. Each scholarship must be a complete valid JSON object.

Format:
[{{"name":"exact scholarship name","university":"exact university name","location":"country name","qualification":"Undergraduate/Masters/PhD","valueMin":1000,"valueMax":2000,"currency":"USD","deadline":"DD Mon 2026","fundingType":"Fully Funded","description":"brief description","eligibility":["requirement 1","requirement 2"],"subjects":["field 1"],"nationality":"eligible nationalities","howToApply":"application steps"}}]"""


def is_valid_scholarship(scholarship: Dict[str, Any]) -> bool:
    name = scholarship.get("name")
    if not isinstance(name, str) or len(name) <= 3:
        return False
    return all(
        isinstance(scholarship.get(field), str) and scholarship.get(field)
        for field in ("id", "university", "location", "qualification")
    )


def valid_scholarships(scholarships: Any) -> List[Dict[str, Any]]:
    if not isinstance(scholarships, list):
        return []
    return [s for s in scholarships if isinstance(s, dict) and is_valid_scholarship(s)]


def has_enough_scholarships(scholarships: Any) -> bool:
    return len(valid_scholarships(scholarships)) >= MIN_SCHOLARSHIPS


class ScholarshipsHandler:
    def __init__(
        self,
        chat: ChatClient,
        cache: CacheGate,
        clock: Callable[[], float] = time.time,
    ):
        self.chat = chat
        self.cache = cache
        self._clock = clock

    async def search(
        self,
        locations: Sequence[str] = (),
        qualifications: Sequence[str] = (),
        keyword: str = "",
        fields: Sequence[str] = (),
        refresh: bool = False,
    ) -> Dict[str, Any]:
        destinations = ", ".join(locations) or DEFAULT_DESTINATIONS
        qualification = ", ".join(qualifications) or DEFAULT_QUALIFICATION
        subject_fields = keyword or ", ".join(fields) or DEFAULT_FIELDS
        producer = lambda: self._research(destinations, qualification, subject_fields)

        if keyword:
            logger.info("Keyword scholarship search for %s", keyword)
            scholarships = await producer()
            if not has_enough_scholarships(scholarships):
                raise IncompleteResult()
            cached = False
        else:
            scholarships, cached = await self.cache.fetch(
                make_cache_key(destinations, qualification, subject_fields),
                producer,
                is_complete=has_enough_scholarships,
                refresh=refresh,
            )

        return {
            "scholarships": valid_scholarships(scholarships),
            "cached": cached,
            "appliedFilters": {
                "locations": list(locations),
                "qualifications": list(qualifications),
            },
        }

    async def _research(
        self, destinations: str, qualification: str, fields: str
    ) -> List[Dict[str, Any]]:
        raw = await self.chat.complete(
            scholarships_prompt(destinations, qualification, fields), max_tokens=4000
        )
        records = extract_list(raw, Scholarship, required=REQUIRED_FIELDS)
        stamp = int(self._clock() * 1000)
        scholarships = [
            record.model_copy(update={"id": f"sch_{index}_{stamp}", "applyLink": ""}).model_dump()
            for index, record in enumerate(records)
        ]
        logger.info("Parsed %s scholarships for %s", len(scholarships), destinations)
        return valid_scholarships(scholarships)


def scholarship_link_prompt(name: str, university: str, results_text: str) -> str:
    return f"""You are an expert at finding official scholarship application pages. Analyze these search results and find the BEST official application submission page for the "{name}" scholarship at {university}.

SEARCH RESULTS:
{results_text}

REQUIREMENTS FOR THE BEST LINK:
1. Must be from the official university website (.edu, .ac.uk, etc.) or official scholarship organization
2. Must be a direct application/admission/portal page (not just information page)
3. Should contain words like: apply, application, admission, submit, portal, form
4. Should be specific to this scholarship or at least the university's scholarship program
5. Avoid: Generic scholarship listing sites (scholarshipportal.com, findscholarship, etc.)
6. Avoid: News articles, blog posts, or general information pages

INSTRUCTIONS:
- Analyze ALL the search results carefully
- Return ONLY the single best URL that meets the requirements above
- Return just the URL as plain text, nothing else
- If NO result meets the requirements, return exactly: NOT_FOUND

YOUR RESPONSE (URL only):"""


class ScholarshipLinkFinder(LinkFinder):
    """Official application page for one scholarship."""

    result_num = 10
    result_limit = 15
    max_tokens = 300
    temperature = 0.1

    async def find(self, scholarship: Optional[Dict[str, Any]]) -> str:
        if not isinstance(scholarship, dict):
            raise BadRequestError("Invalid scholarship data")
        name = str(scholarship.get("name") or "").strip()
        university = str(scholarship.get("university") or "").strip()
        if not name or not university:
            raise BadRequestError("Invalid scholarship data")

        if not self.enabled:
            return google_search_url(
                f"{name} {university} official application form submit apply now 2026"
            )

        queries = [
            f'"{name}" "{university}" apply online application form portal',
            f"{university} {name} scholarship how to apply admission",
            f"{name} official application {university} submit",
        ]
        link = await self.cached_select(
            make_cache_key(name, university),
            queries,
            lambda results: scholarship_link_prompt(name, university, results),
        )
        if link:
            logger.info("Found application link for %s: %s", name, link)
            return link

        logger.info("Falling back to a search link for %s", name)
        return google_search_url(
            f"{name} {university} official application portal submit apply 2026"
        )
