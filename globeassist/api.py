"""Public JSON endpoints under /api."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import StreamingResponse

from globeassist.errors import BadRequestError, UnauthorizedError
from globeassist.handlers.accommodation import booking_links
from globeassist.handlers.jobs import JobSearchProfile
from globeassist.handlers.recommendations import ProfessionalProfile, StudentProfile
from globeassist.handlers.visas import PROFESSIONAL, STUDENT
from globeassist.services import Services

api_router = APIRouter(prefix="/api", tags=["api"])

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def get_services(request: Request) -> Services:
    return request.app.state.services


def current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity; sessions are owned by the hosting platform."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError()
    return x_user_id.strip()


def required(value: Optional[str], message: str) -> str:
    if value is None or not value.strip():
        raise BadRequestError(message)
    return value.strip()


def split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def as_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def as_number(value: Optional[str], default: float, name: str) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value.replace(",", "").replace("$", ""))
    except ValueError:
        raise BadRequestError(f"{name} must be a number")


async def read_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise BadRequestError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise BadRequestError("Request body must be a JSON object")
    return body


def envelope(data: Any, cached: bool, **extra: Any) -> Dict[str, Any]:
    return {"success": True, "data": data, "cached": cached, **extra}


@api_router.get("/country-details")
async def country_details(
    country: Optional[str] = None,
    refresh: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    name = required(country, "Country name is required")
    details, cached = await services.countries.get(name, refresh=as_flag(refresh))
    return envelope(details, cached)


@api_router.get("/university-details")
async def university_details(
    university: Optional[str] = None,
    country: Optional[str] = None,
    interests: Optional[str] = None,
    degree: Optional[str] = None,
    refresh: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    if not (university and university.strip()) or not (country and country.strip()):
        raise BadRequestError("University name and country are required")
    details, cached = await services.universities.get(
        university.strip(),
        country.strip(),
        interests=split_list(interests),
        degree=degree,
        refresh=as_flag(refresh),
    )
    return envelope(details, cached)


@api_router.get("/program-details")
async def program_details(
    program: Optional[str] = None,
    university: Optional[str] = None,
    country: Optional[str] = None,
    refresh: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    if not (program and program.strip()) or not (university and university.strip()):
        raise BadRequestError("Program and university are required")
    details, cached = await services.programs.get(
        program.strip(), university.strip(), (country or "").strip(), refresh=as_flag(refresh)
    )
    return envelope(details, cached)


@api_router.get("/scholarships")
async def scholarships(
    locations: Optional[str] = None,
    qualifications: Optional[str] = None,
    keyword: Optional[str] = None,
    fields: Optional[str] = None,
    refresh: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    result = await services.scholarships.search(
        locations=split_list(locations),
        qualifications=split_list(qualifications),
        keyword=(keyword or "").strip(),
        fields=split_list(fields),
        refresh=as_flag(refresh),
    )
    return envelope(
        result["scholarships"], result["cached"], appliedFilters=result["appliedFilters"]
    )


@api_router.post("/scholarships/get-link")
async def scholarship_link(
    request: Request,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    body = await read_json(request)
    link = await services.scholarship_links.find(body.get("scholarship"))
    return {"success": True, "link": link}


async def _visa_requirements(
    services: Services,
    kind: str,
    country: Optional[str],
    nationality: Optional[str],
    refresh: Optional[str],
) -> Dict[str, Any]:
    name = required(country, "Country parameter is required")
    requirements, cached = await services.visas[kind].get(
        name, (nationality or "").strip(), refresh=as_flag(refresh)
    )
    return envelope(requirements, cached)


@api_router.get("/visa-requirements")
async def visa_requirements(
    country: Optional[str] = None,
    nationality: Optional[str] = None,
    refresh: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    return await _visa_requirements(services, STUDENT, country, nationality, refresh)


@api_router.get("/professional-visa-requirements")
async def professional_visa_requirements(
    country: Optional[str] = None,
    nationality: Optional[str] = None,
    refresh: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    return await _visa_requirements(services, PROFESSIONAL, country, nationality, refresh)


@api_router.get("/accommodation-details")
async def accommodation_details(
    university: Optional[str] = None,
    country: Optional[str] = None,
    refresh: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    if not (university and university.strip()) or not (country and country.strip()):
        raise BadRequestError("University and country are required")
    details, cached = await services.accommodation.get(
        university.strip(), country.strip(), refresh=as_flag(refresh)
    )
    return envelope(details, cached)


@api_router.get("/professional-accommodations")
async def professional_accommodations(
    city: Optional[str] = None,
    country: Optional[str] = None,
    checkin: Optional[str] = None,
    checkout: Optional[str] = None,
) -> Dict[str, Any]:
    if not (city and city.strip()) or not (country and country.strip()):
        raise BadRequestError("City and country are required")
    links = booking_links(city.strip(), country.strip(), checkin, checkout)
    return envelope(links, False)


@api_router.get("/recommendations")
async def recommendations(
    budget_max: Optional[str] = None,
    preferred_destination: Optional[str] = None,
    degree: Optional[str] = None,
    scholarships: Optional[str] = None,
    refresh: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    profile = StudentProfile(
        budget_max=as_number(budget_max, 50000, "budget_max"),
        preferred_destination=(preferred_destination or "").strip(),
        degree=(degree or "").strip(),
        scholarships=as_flag(scholarships),
    )
    countries, cached = await services.recommendations[STUDENT].get(
        user_id, profile, refresh=as_flag(refresh)
    )
    return envelope(countries, cached)


@api_router.delete("/recommendations")
async def clear_recommendations(
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    await services.store.delete_owned(
        user_id, [services.recommendations[STUDENT].cache.namespace]
    )
    return {"success": True, "message": "Recommendations cleared"}


@api_router.get("/professional-jobs")
async def job_recommendations(
    budget_max: Optional[str] = None,
    preferred_destination: Optional[str] = None,
    industry: Optional[str] = None,
    experience: Optional[str] = None,
    job_title: Optional[str] = None,
    refresh: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    profile = ProfessionalProfile(
        budget_max=as_number(budget_max, 10000, "budget_max"),
        preferred_destination=(preferred_destination or "").strip(),
        industry=(industry or "").strip(),
        experience=int(as_number(experience, 0, "experience")),
        job_title=(job_title or "").strip(),
    )
    countries, cached = await services.recommendations[PROFESSIONAL].get(
        user_id, profile, refresh=as_flag(refresh)
    )
    return envelope(countries, cached)


@api_router.delete("/professional-jobs")
async def clear_job_recommendations(
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    await services.store.delete_owned(
        user_id, [services.recommendations[PROFESSIONAL].cache.namespace]
    )
    return {"success": True, "message": "Job recommendations cleared"}


@api_router.post("/professional-jobs/apply-link")
async def job_apply_link(
    request: Request,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    body = await read_json(request)
    link = await services.apply_links.find(body.get("job"))
    return {"success": True, "link": link}


@api_router.get("/professional-jobs/{country}")
async def country_jobs(
    country: str,
    job_title: Optional[str] = None,
    industry: Optional[str] = None,
    experience: Optional[str] = None,
    qualification: Optional[str] = None,
    refresh: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    defaults = JobSearchProfile()
    profile = JobSearchProfile(
        job_title=(job_title or "").strip() or defaults.job_title,
        industry=(industry or "").strip() or defaults.industry,
        experience=int(as_number(experience, defaults.experience, "experience")),
        qualification=(qualification or "").strip() or defaults.qualification,
    )
    result = await services.jobs.get(
        user_id, required(country, "Country is required"), profile, refresh=as_flag(refresh)
    )
    return envelope(
        {"country": result["country"], "jobs": result["jobs"]},
        result["cached"],
        dataQuality=result["dataQuality"],
    )


@api_router.post("/parse-cv")
async def parse_cv(
    request: Request,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    body = await read_json(request)
    text = body.get("text")
    if not isinstance(text, str):
        raise BadRequestError("No resume text provided")
    parsed, cached = await services.cv_parser.parse(text, owner_id=user_id)
    return envelope(parsed, cached)


@api_router.post("/chat")
async def chat(
    request: Request,
    services: Services = Depends(get_services),
) -> StreamingResponse:
    body = await read_json(request)
    messages = body.get("messages")
    if not isinstance(messages, list):
        raise BadRequestError("Messages array is required")
    return StreamingResponse(
        services.chat.events(messages),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@api_router.delete("/clear-cache")
async def clear_cache(
    profile_type: Optional[str] = None,
    user_id: str = Depends(current_user),
    services: Services = Depends(get_services),
) -> Dict[str, Any]:
    kind = (profile_type or STUDENT).strip().lower()
    removed = await services.clear_owned(user_id, kind)
    return {
        "success": True,
        "message": "All cached recommendations cleared successfully",
        "profileType": kind,
        "removed": removed,
    }
