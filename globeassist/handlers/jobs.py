"""Job listings per destination and on-demand apply links."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from globeassist.cache import CacheGate, make_cache_key
from globeassist.errors import BadRequestError, NotFoundError
from globeassist.extract import extract_list
from globeassist.handlers.links import LinkFinder
from globeassist.providers import ChatClient
from globeassist.reference import google_search_url, job_market_profile, placeholder_image
from globeassist.schemas import Job

logger = logging.getLogger(__name__)

NAMESPACE = "professional_jobs"
TTL_SECONDS = 24 * 3600
LINK_NAMESPACE = "job_apply_links"
LINK_TTL_SECONDS = 7 * 24 * 3600

MIN_JOBS = 3

JOB_COUNTRY_IMAGES = {
    "Australia": "/sydney-australia-cityscape.jpg",
    "United States": "/nyc-skyline-twilight.png",
    "United States of America": "/nyc-skyline-twilight.png",
    "United Kingdom": "/london-big-ben.png",
    "Canada": "/toronto-skyline-cn-tower.jpg",
    "Germany": "/berlin-brandenburg-gate.jpg",
    "Japan": "/tokyo-cityscape-mount-fuji.jpg",
    "Singapore": "/singapore-marina-bay.jpg",
    "South Korea": "/seoul-south-korea-cityscape.jpg",
    "Netherlands": "/amsterdam-canals.png",
    "Sweden": "/stockholm-cityscape.jpg",
    "Switzerland": "/zurich-alps.jpg",
    "Ireland": "/dublin-ireland-cityscape.jpg",
    "New Zealand": "/auckland-new-zealand.jpg",
    "UAE": "/dubai-skyline-burj-khalifa.jpg",
    "United Arab Emirates": "/dubai-skyline-burj-khalifa.jpg",
    "France": "/paris-eiffel-tower.png",
    "Spain": "/barcelona-spain-cityscape.jpg",
    "Italy": "/rome-colosseum.png",
    "Turkey": "/istanbul-blue-mosque.jpg",
}


@dataclass
class JobSearchProfile:
    job_title: str = "Software Engineer"
    industry: str = "Technology"
    experience: int = 3
    qualification: str = "Bachelor's Degree"


def jobs_prompt(country: str, profile: JobSearchProfile) -> str:
    title = profile.job_title
    return f"""Find REAL, CURRENT job openings for {title} positions in {country}.

Return ONLY valid JSON array with exactly 8 job objects:

[
  {{
    "id": "unique_id_1",
    "title": "Exact job title",
    "company": "Real company name (not generic)",
    "location": "City, State/Province, Country",
    "salary": "Salary range with currency (e.g., '$70,000 - $95,000 annually')",
    "contractType": "Full-time/Part-time/Contract/Temporary",
    "qualification": "Required education/qualification",
    "postedDate": "Date posted (e.g., '2 days ago', '1 week ago', '2024-01-15')",
    "description": "Detailed job description (min 100 characters)",
    "requirements": ["Specific requirement 1", "Specific requirement 2", "Specific requirement 3", "Specific requirement 4"],
    "applyUrl": "Actual application URL or company career page",
    "source": "Job portal or company website name"
  }}
]

CRITICAL REQUIREMENTS:
1. Each job MUST be real and currently open in {country}
2. Company names must be specific (e.g., "Amazon", "Google", "Local Company Inc." not "A company" or "Confidential")
3. Locations must be specific cities in {country}
4. Salaries must be realistic for {country} (research typical {title} salaries in {country})
5. Requirements must be specific to {title} role
6. Apply URLs should be real job posting links
7. Include jobs from major companies and local employers
8. Jobs should require {profile.experience}+ years experience and {profile.qualification} qualification when relevant
9. Focus on {profile.industry} industry opportunities

DO NOT include any explanations, only return the JSON array."""


def is_valid_job(job: Dict[str, Any]) -> bool:
    return (
        len(job.get("title") or "") > 2
        and len(job.get("company") or "") > 1
        and len(job.get("description") or "") > 20
    )


def has_enough_jobs(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    jobs = [j for j in payload.get("jobs") or [] if isinstance(j, dict) and is_valid_job(j)]
    return len(jobs) >= MIN_JOBS


def housing_url(location: str, country: str) -> str:
    city = location.split(",")[0].strip()
    return f"https://www.airbnb.com/s/{quote(f'{city}, {country}', safe='')}/homes?tab_id=home_tab"


def job_country_image(country: str) -> str:
    return JOB_COUNTRY_IMAGES.get(country) or placeholder_image(
        f"{country} cityscape", height=400, width=600
    )


def with_job_defaults(
    job: Job, index: int, stamp: int, country: str, profile: JobSearchProfile
) -> Job:
    company = job.company or "Company not specified"
    title = job.title or profile.job_title
    location = job.location or country
    return job.model_copy(
        update={
            "id": job.id or f"job_{index}_{stamp}",
            "title": title,
            "company": company,
            "location": location,
            "salary": job.salary or "Competitive salary",
            "contractType": job.contractType or "Full-time",
            "qualification": job.qualification or profile.qualification,
            "postedDate": job.postedDate or "Recently posted",
            "description": job.description
            or f"Join {job.company or 'a leading company'} as a {title} in {location}.",
            "requirements": job.requirements or ["See job description for requirements"],
            "applyUrl": job.applyUrl or "#",
            "role": "Permanent",
            "source": job.source or "Perplexity Search",
            "verified": True,
            "airbnbUrl": housing_url(location, country),
        }
    )


class JobsHandler:
    def __init__(
        self,
        chat: ChatClient,
        cache: CacheGate,
        clock: Callable[[], float] = time.time,
    ):
        self.chat = chat
        self.cache = cache
        self._clock = clock

    async def get(
        self,
        user_id: str,
        country: str,
        profile: Optional[JobSearchProfile] = None,
        refresh: bool = False,
    ) -> Dict[str, Any]:
        profile = profile or JobSearchProfile()
        payload, cached = await self.cache.fetch(
            make_cache_key(user_id, country),
            lambda: self._search(country, profile),
            is_complete=has_enough_jobs,
            refresh=refresh,
            owner_id=user_id,
            accept_incomplete=True,
        )
        jobs = [j for j in payload.get("jobs") or [] if is_valid_job(j)]
        return {
            "country": payload.get("country"),
            "jobs": jobs,
            "cached": cached,
            "dataQuality": "cached" if cached else "real_time",
        }

    async def _search(self, country: str, profile: JobSearchProfile) -> Dict[str, Any]:
        logger.info("Searching %s jobs in %s", profile.job_title, country)
        raw = await self.chat.complete(jobs_prompt(country, profile), max_tokens=3000)
        records = extract_list(raw, Job)
        stamp = int(self._clock() * 1000)
        jobs: List[Dict[str, Any]] = []
        for index, record in enumerate(records):
            job = with_job_defaults(record, index, stamp, country, profile).model_dump()
            if is_valid_job(job):
                jobs.append(job)

        if not jobs:
            raise NotFoundError("No jobs found. Please try again or adjust your search criteria.")

        image = job_country_image(country)
        return {
            "country": {
                "name": country,
                "image": image,
                "imageUrl": image,
                **job_market_profile(country, profile.industry),
            },
            "jobs": jobs,
        }


def apply_link_prompt(title: str, company: str, results_text: str) -> str:
    return f"""You are an expert at finding an EXACT job posting page. Given the search results below, pick the SINGLE BEST URL that is the actual job posting/application page for the position "{title}" at "{company}".

SEARCH RESULTS:
{results_text}

RULES:
1) Return ONLY the single best URL (plain text) and nothing else. The URL must start with http:// or https://.
2) The link should be the direct job posting or application page (company career posting or job board posting).
3) If no single result is a direct job posting, return exactly: NOT_FOUND
4) Do not include commentary, numbering, or explanation. Only the URL or NOT_FOUND.

OUTPUT:"""


class ApplyLinkFinder(LinkFinder):
    """Direct posting or application page for one job."""

    result_num = 15
    result_limit = 20
    max_tokens = 250
    temperature = 0.0
    model = "openai/gpt-4o-mini"

    def is_acceptable(self, url: str) -> bool:
        return url.startswith(("http://", "https://"))

    async def find(self, job: Optional[Dict[str, Any]]) -> str:
        if not isinstance(job, dict):
            raise BadRequestError("Invalid job data")
        title = str(job.get("title") or "").strip()
        company = str(job.get("company") or "").strip()
        if not title or not company:
            raise BadRequestError("Invalid job data")
        location = str(job.get("location") or job.get("country") or "").strip()

        if not self.enabled:
            return google_search_url(
                f"{title} {company} apply now careers {location} job posting"
            )

        queries = [
            f'Job Post of "{title}" at "{company}" in {location}',
            f'"{company}" "{title}" job apply careers {location}',
            f"{company} careers {title} {location} apply",
        ]
        link = await self.cached_select(
            make_cache_key(company, title, location),
            queries,
            lambda results: apply_link_prompt(title, company, results),
        )
        if link:
            logger.info("Found apply link for %s at %s: %s", title, company, link)
            return link

        logger.info("Falling back to a search link for %s", company)
        return google_search_url(
            f'"{company}" "{title}" job apply careers submit 2025 {location}'
        )
