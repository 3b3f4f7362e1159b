"""University and program pages."""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from globeassist.cache import CacheGate, make_cache_key
from globeassist.errors import GlobeAssistError
from globeassist.extract import extract
from globeassist.handlers.links import first_image
from globeassist.providers import ChatClient, SearchClient
from globeassist.reference import google_search_url, normalize_country, placeholder_image
from globeassist.schemas import Program, ProgramDetails, ProgramExtras, UniversityDetails

logger = logging.getLogger(__name__)

UNIVERSITY_NAMESPACE = "university_details"
UNIVERSITY_TTL_SECONDS = 14 * 24 * 3600
PROGRAM_NAMESPACE = "program_details"
PROGRAM_TTL_SECONDS = 7 * 24 * 3600

MIN_PROGRAMS = 3
PROGRAM_EXTRAS_MODEL = "perplexity/sonar-pro"

_PLACEHOLDER_FEES = ("Not specified", "Contact university")
_PLACEHOLDER_ABOUT = ("Detailed information available", "Contact university")


def university_key(university: str, country: str) -> str:
    return make_cache_key(university, normalize_country(country))


def university_prompt(
    university: str,
    country: str,
    interests: Sequence[str] = (),
    degree: Optional[str] = None,
) -> str:
    return f"""Provide REAL, search-based information for the following university.
Return ONLY a valid JSON object. No markdown. No explanation.

University: {university}
Country: {country}

Student profile:
- Intended degree: {degree or "Not specified"}
- Interests: {", ".join(interests) or "Not specified"}

JSON FORMAT:
{{
  "description": "Short factual university overview (max 150 chars)",
  "worldRanking": "Global ranking or range (e.g. 'Top 200'); estimate when unknown",
  "applicationFee": "Application fee with currency or 'Free'",
  "applicationRequirements": ["Requirement 1", "Requirement 2", "Requirement 3", "Requirement 4"],
  "programs": [
    {{
      "name": "Official program name",
      "qualification": "Degree awarded",
      "duration": "e.g. 2 Years",
      "fees": "Estimated annual tuition with currency",
      "nextIntake": "e.g. September 2025",
      "entryScore": "e.g. IELTS 6.5"
    }}
  ]
}}

GUIDELINES:
- Prefer official and commonly offered programs
- Fees and intakes must be accurate and up to date
- Programs must be relevant to student interests when possible
- Every field in the JSON format must be returned"""


def program_extras_prompt(program: str, university: str, country: str) -> str:
    return f"""For "{program}" at {university}, {country}, provide:

{{
  "location": "City, {country}",
  "applicationDeadline": "Specific date or Rolling",
  "aboutCourse": "2 sentences about what students learn and career outcomes",
  "entryRequirements": [
    "Undergraduate degree requirement with GPA",
    "IELTS score (e.g., IELTS 6.5 no band below 6.0)",
    "TOEFL score if applicable",
    "Other requirements like GRE/work experience"
  ]
}}

Return ONLY JSON with real 2026-2027 data."""


def is_valid_program(program: Dict[str, Any]) -> bool:
    name = program.get("name")
    return isinstance(name, str) and len(name) > 3


def valid_programs(details: Dict[str, Any]) -> List[Dict[str, Any]]:
    programs = details.get("programs") or []
    return [p for p in programs if isinstance(p, dict) and is_valid_program(p)]


def has_enough_programs(details: Any) -> bool:
    return isinstance(details, dict) and len(valid_programs(details)) >= MIN_PROGRAMS


def has_real_program_data(details: Any) -> bool:
    if not isinstance(details, dict):
        return False
    fees = details.get("fees") or ""
    about = details.get("aboutCourse") or ""
    if not fees or not about:
        return False
    if any(marker in fees for marker in _PLACEHOLDER_FEES):
        return False
    return not any(marker in about for marker in _PLACEHOLDER_ABOUT)


class UniversityDetailsHandler:
    def __init__(self, chat: ChatClient, search: SearchClient, cache: CacheGate):
        self.chat = chat
        self.search = search
        self.cache = cache

    async def get(
        self,
        university: str,
        country: str,
        interests: Sequence[str] = (),
        degree: Optional[str] = None,
        refresh: bool = False,
    ) -> Tuple[Dict[str, Any], bool]:
        return await self.cache.fetch(
            university_key(university, country),
            lambda: self._build(university, country, interests, degree),
            is_complete=has_enough_programs,
            refresh=refresh,
        )

    async def _build(
        self,
        university: str,
        country: str,
        interests: Sequence[str],
        degree: Optional[str],
    ) -> Dict[str, Any]:
        logger.info("Researching %s in %s", university, country)
        raw, image = await asyncio.gather(
            self.chat.complete(
                university_prompt(university, country, interests, degree),
                max_tokens=2500,
            ),
            self._image(university),
        )
        research = extract(raw, UniversityDetails)
        details = research.model_copy(
            update={
                "universityName": university,
                "countryName": country,
                "universityImageUrl": image,
                "description": research.description or f"Study at {university}",
                "worldRanking": research.worldRanking or "Not ranked",
                "applicationFee": research.applicationFee or "Varies",
            }
        ).model_dump()
        details["programs"] = valid_programs(details)
        return details

    async def _image(self, university: str) -> str:
        fallback = placeholder_image(f"{university} campus", height=400, width=600)
        try:
            return await first_image(self.search, f"{university} campus", fallback)
        except GlobeAssistError as exc:
            logger.warning("Image lookup failed for %s: %s", university, exc)
            return fallback


class ProgramDetailsHandler:
    """Merges cached university program data with a short research call."""

    def __init__(
        self,
        chat: ChatClient,
        search: SearchClient,
        cache: CacheGate,
        university_cache: CacheGate,
    ):
        self.chat = chat
        self.search = search
        self.cache = cache
        self.university_cache = university_cache

    async def get(
        self, program: str, university: str, country: str, refresh: bool = False
    ) -> Tuple[Dict[str, Any], bool]:
        return await self.cache.fetch(
            make_cache_key(program, university),
            lambda: self._build(program, university, country),
            is_complete=has_real_program_data,
            refresh=refresh,
            accept_incomplete=True,
        )

    async def cached_program(
        self, program: str, university: str, country: str
    ) -> Optional[Program]:
        details = await self.university_cache.get(university_key(university, country))
        if not isinstance(details, dict):
            return None
        wanted = program.lower()
        for candidate in details.get("programs") or []:
            if isinstance(candidate, dict) and str(candidate.get("name", "")).lower() == wanted:
                logger.info("Found %s in cached university programs", program)
                return Program.model_validate(candidate)
        return None

    async def _build(self, program: str, university: str, country: str) -> Dict[str, Any]:
        known = await self.cached_program(program, university, country)
        extras, application_url = await asyncio.gather(
            self._extras(program, university, country),
            self.application_url(program, university),
            return_exceptions=True,
        )

        if isinstance(application_url, BaseException):
            logger.warning("Application URL lookup failed for %s: %s", program, application_url)
            application_url = google_search_url(f"{program} {university} apply")
        if isinstance(extras, BaseException):
            if known is None:
                raise extras
            logger.warning("Program research failed for %s: %s", program, extras)
            extras = None

        known = known or Program()
        details = ProgramDetails(
            programName=program,
            universityName=university,
            location=(extras.location if extras else "") or country,
            qualification=known.qualification or "Master's Degree",
            fees=known.fees or "Contact university",
            duration=known.duration or "2 Year(s)",
            nextIntake=known.nextIntake or "Contact university",
            entryScore=known.entryScore or "6.5 IELTS",
            applicationDeadline=(extras.applicationDeadline if extras else "")
            or "Contact university",
            aboutCourse=(extras.aboutCourse if extras else "")
            or "Contact university for program details.",
            entryRequirements=(extras.entryRequirements if extras else [])
            or ["Contact university for requirements"],
            applicationUrl=application_url,
        )
        return details.model_dump()

    async def _extras(self, program: str, university: str, country: str) -> ProgramExtras:
        raw = await self.chat.complete(
            program_extras_prompt(program, university, country),
            model=PROGRAM_EXTRAS_MODEL,
            max_tokens=800,
        )
        return extract(raw, ProgramExtras)

    async def application_url(self, program: str, university: str) -> str:
        fallback = google_search_url(f"{program} {university} apply")
        if not self.search.enabled:
            return fallback

        results = await self.search.search(
            f"{program} {university} official application admission apply", num=5
        )
        links = [str(r["link"]) for r in results if r.get("link")]
        domain = re.sub(r"[^a-z]", "", university.lower())
        for link in links:
            lowered = link.lower()
            official = ".edu" in lowered or (domain and domain in lowered)
            if official and any(word in lowered for word in ("apply", "admission", "program")):
                return link
        for link in links:
            if ".edu" in link:
                return link
        return links[0] if links else fallback
