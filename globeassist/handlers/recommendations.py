"""Budget-driven destination recommendations for students and professionals.

Everything here is computed from the pre-researched tables in
``globeassist.reference``; no provider is called.
"""

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from globeassist.cache import CacheGate, make_cache_key
from globeassist.reference import (
    COUNTRY_BUDGETS,
    JOB_COUNT_BY_TIER,
    PROFESSIONAL,
    STUDENT,
    CountryBudget,
    budget_check,
    countries_within_budget,
    country_budget,
    country_image,
    minimum_budget,
    monthly_cost,
    normalize_country,
    settlement_cost,
    tier_description,
    university_count,
)

logger = logging.getLogger(__name__)

STUDENT_NAMESPACE = "country_recommendations"
PROFESSIONAL_NAMESPACE = "job_recommendations"
TTL_SECONDS = 12 * 3600

MIN_STUDENT_COUNTRIES = 3
MIN_PROFESSIONAL_COUNTRIES = 4


@dataclass
class StudentProfile:
    budget_max: float = 50000
    preferred_destination: str = ""
    degree: str = ""
    scholarships: bool = False


@dataclass
class ProfessionalProfile:
    budget_max: float = 10000
    preferred_destination: str = ""
    industry: str = ""
    experience: int = 0
    job_title: str = ""


@dataclass
class Candidate:
    name: str
    reason: str
    tier: int


@dataclass(frozen=True)
class _Rules:
    profile_type: str
    extra: int
    top_up_to: int
    stretch: float
    cap: int


_STUDENT_RULES = _Rules(STUDENT, extra=7, top_up_to=6, stretch=1.3, cap=8)
_PROFESSIONAL_RULES = _Rules(PROFESSIONAL, extra=5, top_up_to=4, stretch=1.5, cap=6)


def _money(amount: float) -> str:
    return f"${int(round(amount)):,}"


def _cost_range(country: CountryBudget, profile_type: str) -> str:
    return f"{_money(country.minimum(profile_type))}-{_money(country.maximum(profile_type))}"


def _select(
    rules: _Rules,
    budget_max: float,
    preferred_destination: str,
    preferred_reason: str,
    reason_for: Any,
    stretch_note: str,
    fallback_reason: Any,
) -> List[Candidate]:
    profile_type = rules.profile_type
    affordable = countries_within_budget(budget_max, profile_type)

    if not affordable:
        ceiling = max(budget_max, minimum_budget(profile_type))
        fallback = sorted(
            (c for c in COUNTRY_BUDGETS if c.minimum(profile_type) <= ceiling),
            key=lambda c: c.minimum(profile_type),
        )[: rules.cap]
        return [Candidate(c.country, fallback_reason(c), c.tier) for c in fallback]

    picks: List[Candidate] = []
    preferred = normalize_country(preferred_destination).lower()
    if preferred:
        for country in affordable:
            if country.country.lower() == preferred:
                picks.append(Candidate(country.country, preferred_reason, country.tier))
                break

    chosen = {c.name.lower() for c in picks}
    remaining = sorted(
        (c for c in affordable if c.country.lower() not in chosen), key=lambda c: c.tier
    )
    for country in remaining[: rules.extra]:
        picks.append(Candidate(country.country, reason_for(country), country.tier))

    if len(picks) < rules.top_up_to:
        stretch = sorted(
            (
                c
                for c in COUNTRY_BUDGETS
                if budget_max < c.minimum(profile_type) <= budget_max * rules.stretch
            ),
            key=lambda c: c.minimum(profile_type),
        )[: rules.top_up_to - len(picks)]
        for country in stretch:
            if country.country.lower() in {p.name.lower() for p in picks}:
                continue
            shortfall = country.minimum(profile_type) - budget_max
            picks.append(
                Candidate(
                    country.country,
                    f"Consider increasing your budget by {_money(shortfall)} for this "
                    f"{tier_description(country.tier).lower()} destination{stretch_note}",
                    country.tier,
                )
            )

    return picks[: rules.cap]


def student_candidates(profile: StudentProfile) -> List[Candidate]:
    budget_max = profile.budget_max or 50000
    scholarship_suffix = " (scholarship opportunities available)" if profile.scholarships else ""
    extra_suffix = " with good scholarship opportunities" if profile.scholarships else ""
    stretch_note = (
        " Consider applying for scholarships to cover the difference."
        if profile.scholarships
        else ""
    )
    return _select(
        _STUDENT_RULES,
        budget_max,
        profile.preferred_destination,
        f"Your preferred destination - Excellent for {profile.degree} programs{scholarship_suffix}",
        lambda c: f"{tier_description(c.tier)} study destination{extra_suffix} - "
        f"Total costs: {_cost_range(c, STUDENT)}",
        stretch_note,
        lambda c: "Budget-friendly study destination with total costs of "
        f"{_cost_range(c, STUDENT)}",
    )


def professional_candidates(profile: ProfessionalProfile) -> List[Candidate]:
    budget_max = profile.budget_max or 10000
    return _select(
        _PROFESSIONAL_RULES,
        budget_max,
        profile.preferred_destination,
        "Your preferred destination - Strong job market in "
        f"{profile.industry or 'your industry'} for professionals with "
        f"{profile.experience or 0} years experience",
        lambda c: f"{tier_description(c.tier)} option - Good opportunities in "
        f"{profile.industry or 'various industries'} with initial costs of "
        f"{_cost_range(c, PROFESSIONAL)}",
        " with excellent opportunities",
        lambda c: "Budget-friendly option with initial settlement costs of "
        f"{_cost_range(c, PROFESSIONAL)}",
    )


def is_valid_country(country: Dict[str, Any], profile_type: str) -> bool:
    if not country.get("name") or not country.get("imageUrl"):
        return False
    low = country.get("costOfLivingMin") or 0
    high = country.get("costOfLivingMax") or 0
    if low <= 0 or high < low:
        return False
    if profile_type == STUDENT:
        return (country.get("universities") or 0) > 0
    return True


def job_count(name: str, rng: random.Random) -> int:
    """Rough open-position estimate from the budget tier."""
    budget = country_budget(name)
    if budget is None:
        return rng.randint(50, 249)
    base = JOB_COUNT_BY_TIER.get(budget.tier, 100)
    return round(base * (0.8 + rng.random() * 0.4))


def recommend_student_countries(profile: StudentProfile) -> List[Dict[str, Any]]:
    countries = []
    for candidate in student_candidates(profile):
        name = normalize_country(candidate.name)
        image = country_image(name)
        if not image:
            logger.info("No image for %s; skipping", name)
            continue
        low, high = monthly_cost(name, STUDENT)
        country = {
            "name": name,
            "imageUrl": image,
            "universities": university_count(name),
            "costOfLivingMin": low,
            "costOfLivingMax": high,
            "reason": candidate.reason,
            "tier": candidate.tier,
            "withinBudget": budget_check(name, profile.budget_max or 50000, STUDENT)[
                "sufficient"
            ],
        }
        if is_valid_country(country, STUDENT):
            countries.append(country)
    return countries


def recommend_professional_countries(
    profile: ProfessionalProfile, rng: Optional[random.Random] = None
) -> List[Dict[str, Any]]:
    rng = rng or random.Random()
    budget_max = profile.budget_max or 10000
    countries = []
    for candidate in professional_candidates(profile):
        low, high = monthly_cost(candidate.name, PROFESSIONAL)
        settlement = settlement_cost(candidate.name)
        country = {
            "name": candidate.name,
            "imageUrl": country_image(candidate.name) or "",
            "jobCount": job_count(candidate.name, rng),
            "costOfLivingMin": low,
            "costOfLivingMax": high,
            "reason": candidate.reason,
            "settlementCostMin": settlement["min"],
            "settlementCostMax": settlement["max"],
            "tier": candidate.tier,
            "withinBudget": budget_check(candidate.name, budget_max, PROFESSIONAL)[
                "sufficient"
            ],
        }
        if is_valid_country(country, PROFESSIONAL):
            countries.append(country)
    return countries


class RecommendationsHandler:
    """Per-user cached recommendations for one profile type."""

    def __init__(
        self,
        cache: CacheGate,
        profile_type: str = STUDENT,
        rng: Optional[random.Random] = None,
    ):
        self.cache = cache
        self.profile_type = profile_type
        self.rng = rng or random.Random()
        self.minimum = (
            MIN_STUDENT_COUNTRIES if profile_type == STUDENT else MIN_PROFESSIONAL_COUNTRIES
        )

    def is_complete(self, countries: Any) -> bool:
        if not isinstance(countries, list):
            return False
        valid = [
            c for c in countries if isinstance(c, dict) and is_valid_country(c, self.profile_type)
        ]
        return len(valid) >= self.minimum

    async def get(
        self, user_id: str, profile: Any, refresh: bool = False
    ) -> Tuple[List[Dict[str, Any]], bool]:
        async def produce() -> List[Dict[str, Any]]:
            if self.profile_type == STUDENT:
                return recommend_student_countries(profile)
            return recommend_professional_countries(profile, self.rng)

        return await self.cache.fetch(
            make_cache_key(user_id),
            produce,
            is_complete=self.is_complete,
            refresh=refresh,
            owner_id=user_id,
        )
