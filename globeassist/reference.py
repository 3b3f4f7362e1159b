"""Pre-researched country data and small URL builders.

Costs are USD. Student ranges are total education cost, professional ranges
are initial settlement cost; monthly tables are cost of living per month.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote, quote_plus

STUDENT = "student"
PROFESSIONAL = "professional"


@dataclass(frozen=True)
class CountryBudget:
    country: str
    student_min: int
    student_max: int
    professional_min: int
    professional_max: int
    tier: int

    def minimum(self, profile_type: str) -> int:
        return self.student_min if profile_type == STUDENT else self.professional_min

    def maximum(self, profile_type: str) -> int:
        return self.student_max if profile_type == STUDENT else self.professional_max


COUNTRY_BUDGETS: List[CountryBudget] = [
    CountryBudget("Turkey", 14000, 20000, 1700, 3000, 1),
    CountryBudget("Malaysia", 16000, 22000, 1700, 3200, 1),
    CountryBudget("China", 17000, 23000, 2500, 4500, 1),
    CountryBudget("Poland", 18000, 24000, 2000, 3500, 1),
    CountryBudget("Germany", 22000, 32000, 3300, 5100, 2),
    CountryBudget("Spain", 24000, 35000, 3300, 5800, 2),
    CountryBudget("Italy", 25000, 36000, 2900, 5500, 2),
    CountryBudget("Austria", 38000, 52000, 3500, 6000, 2),
    CountryBudget("Japan", 40000, 54000, 4500, 7000, 2),
    CountryBudget("South Korea", 38000, 52000, 3500, 6000, 2),
    CountryBudget("Netherlands", 58000, 80000, 5500, 9500, 3),
    CountryBudget("France", 58000, 78000, 5500, 9500, 3),
    CountryBudget("New Zealand", 58000, 78000, 5500, 8500, 3),
    CountryBudget("Ireland", 30000, 40000, 4500, 7500, 3),
    CountryBudget("Saudi Arabia", 38000, 52000, 3000, 5500, 3),
    CountryBudget("United Arab Emirates", 42000, 58000, 4000, 7000, 3),
    CountryBudget("Finland", 40000, 55000, 4500, 7500, 3),
    CountryBudget("Australia", 58000, 80000, 6500, 10500, 4),
    CountryBudget("Canada", 60000, 82000, 6500, 10000, 4),
    CountryBudget("Singapore", 62000, 88000, 6500, 10500, 4),
    CountryBudget("Sweden", 88000, 125000, 6000, 10500, 4),
    CountryBudget("Denmark", 88000, 125000, 7000, 11000, 4),
    CountryBudget("United States", 85000, 120000, 7500, 12000, 5),
    CountryBudget("United Kingdom", 88000, 125000, 7000, 11000, 5),
    CountryBudget("Switzerland", 92000, 135000, 8500, 13500, 5),
    CountryBudget("Norway", 95000, 145000, 7500, 12000, 5),
]

TIER_DESCRIPTIONS = {
    1: "Most Affordable",
    2: "Budget-Friendly",
    3: "Moderate",
    4: "Premium",
    5: "Ultra-Premium",
}

STUDENT_MONTHLY_COST: Dict[str, Tuple[int, int]] = {
    "United States": (1200, 2500),
    "United Kingdom": (1100, 2200),
    "Canada": (1000, 2000),
    "Australia": (1100, 2200),
    "Germany": (900, 1600),
    "France": (950, 1700),
    "Netherlands": (1000, 1800),
    "Switzerland": (1500, 2800),
    "Sweden": (1000, 1900),
    "Norway": (1200, 2200),
    "Denmark": (1100, 2100),
    "Singapore": (1000, 2000),
    "Japan": (900, 1700),
    "South Korea": (850, 1600),
    "China": (600, 1200),
    "United Arab Emirates": (1000, 2000),
    "Saudi Arabia": (800, 1500),
    "Turkey": (400, 800),
    "Malaysia": (450, 900),
    "Poland": (500, 1000),
    "Italy": (800, 1500),
    "Spain": (700, 1300),
    "Austria": (900, 1600),
    "New Zealand": (900, 1700),
    "Ireland": (1000, 1900),
    "Finland": (900, 1700),
}

PROFESSIONAL_MONTHLY_COST: Dict[str, Tuple[int, int]] = {
    "United States": (2000, 4000),
    "United Kingdom": (1800, 3500),
    "Canada": (1700, 3200),
    "Australia": (1800, 3500),
    "Germany": (1200, 2500),
    "France": (1300, 2600),
    "Netherlands": (1500, 2800),
    "Switzerland": (2500, 4500),
    "Sweden": (1600, 3000),
    "Norway": (1800, 3500),
    "Denmark": (1700, 3200),
    "Singapore": (1800, 3500),
    "Japan": (1400, 2800),
    "South Korea": (1300, 2500),
    "China": (800, 1800),
    "United Arab Emirates": (1500, 2800),
    "Saudi Arabia": (1200, 2200),
    "Turkey": (600, 1200),
    "Malaysia": (700, 1400),
    "Poland": (800, 1500),
    "Italy": (1100, 2200),
    "Spain": (1000, 2000),
    "Austria": (1300, 2500),
    "New Zealand": (1400, 2700),
    "Ireland": (1500, 2800),
    "Finland": (1300, 2500),
}

UNIVERSITY_COUNTS: Dict[str, int] = {
    "United States": 5300,
    "United Kingdom": 165,
    "Canada": 223,
    "Australia": 170,
    "Germany": 427,
    "France": 3580,
    "Netherlands": 55,
    "Switzerland": 50,
    "Sweden": 39,
    "Norway": 33,
    "Denmark": 29,
    "Singapore": 34,
    "Japan": 780,
    "South Korea": 374,
    "China": 2956,
    "United Arab Emirates": 70,
    "Saudi Arabia": 60,
    "Turkey": 207,
    "Malaysia": 100,
    "Poland": 400,
    "Italy": 97,
    "Spain": 84,
    "Austria": 72,
    "New Zealand": 36,
    "Ireland": 39,
    "Finland": 39,
}

UNIVERSITY_COUNT_BY_TIER = {1: 150, 2: 200, 3: 100, 4: 80, 5: 2000}
JOB_COUNT_BY_TIER = {1: 50, 2: 100, 3: 150, 4: 200, 5: 250}

COUNTRY_IMAGES: Dict[str, str] = {
    "China": "https://eu-images.contentstack.com/v3/assets/blte218090c2a6fb1e2/blt948871d04c6ce037/6255d273643f9b4941542a21/china-alte-architektur-t-470436943.jpg?auto=webp&width=1440&quality=75",
    "Saudi Arabia": "https://www.oracle.com/a/pr/img/rc24-saudi.jpg",
    "United Arab Emirates": "https://cepa.org/wp-content/uploads/2023/03/2015-05-22T120000Z_1778115619_GF10000103727_RTRMADP_3_UAE-MARINA-scaled.jpg",
    "Malaysia": "https://moderndiplomacy.eu/wp-content/uploads/2018/09/malaysia-digital-economy.jpg",
    "Poland": "https://encrypted-tbn0.gstatic.com/images?q=tbn:ANd9GcSAjymlz1A4PnR9lfR0SDbEvvd8n5c6phniWA&s",
    "Austria": "https://heritagehotelsofeurope.com/wp-content/uploads/2020/06/hallstatt-village-austria-TX59P3L-1-scaled.jpg",
    "Finland": "https://i.natgeofe.com/k/2847c949-6de3-4d11-998a-d3ce12d9edb0/finland-cityscape.jpg?wp=1&w=1084.125&h=721.875",
    "Norway": "https://encrypted-tbn0.gstatic.com/images?q=tbn:ANd9GcSZD74TqXPx9bxEvLaAnMuapWqoFO2bQG5cyg&s",
    "Denmark": "https://ik.imgkit.net/3vlqs5axxjf/MM-TP/https://cdn.travelpulse.com/images/99999999-9999-9999-9999-999999999999/285d6f26-ce5f-36ec-c49d-0cc4eb97bd23/source.jpg?tr=w-1200%2Cfo-auto",
    "Spain": "https://cms-images.oliverstravels.com/app/uploads/2023/10/04080649/Barcelona.jpg",
    "Ireland": "https://i.natgeofe.com/n/058d192a-637e-47ac-a184-0e82c264a15a/NationalGeographic_1607903.jpg",
    "Singapore": "https://www.aljazeera.com/wp-content/uploads/2024/02/AP22047458269205-1708918925.jpg?resize=770%2C513&quality=80",
    "South Korea": "https://hips.hearstapps.com/hmg-prod/images/south-korea-travel-guide-from-seoul-to-busan-to-jeonju-with-intrepid-6627b232b51b3.jpg?crop=0.8888888888888888xw:1xh;center,top&resize=1200:*",
    "Japan": "https://www.fvw.de/news/media/28/Overtourism-Japan-271110.jpeg",
    "New Zealand": "https://www.thrillophilia.com/blog/wp-content/uploads/2024/03/New-Zealand-Cities.jpg",
    "Australia": "https://acko-cms.ackoassets.com/Things_To_Do_In_Australia_247bc1629f.png",
    "Switzerland": "https://www.alphatrad.com/sites/alphatrad.com/files/images/articles/what-are-the-languages-spoken-in-switzerland.jpg",
    "Sweden": "https://adventures.com/media/18366/stockholm-christmas-market-sweden-old-town.jpg",
    "Netherlands": "https://thepienews.com/wp-content/uploads/2025/10/iStock-netherlands-960x506.jpg",
    "France": "https://dynamic-media.tacdn.com/media/photo-o/30/42/46/65/caption.jpg?w=2400&h=-1&s=1",
    "Germany": "https://assets.weforum.org/article/image/QAAFBg6LUUWydJec7NJGO4cvBrUgy1LxTgfwVL7Q_r0.jpg",
    "Canada": "https://brighttax.com/wp-content/uploads/2025/06/life-in-canada.jpg",
    "Italy": "https://placebrandobserver.com/wp-content/uploads/Italy-economic-performance-sustainability-country-brand-strength-reputation.jpg",
    "Turkey": "https://smileytrips.com/uploads/blog/1702363260_turle.jpeg",
    "United States": "https://abdsirketrehberi.com/wp-content/uploads/2024/12/usa-850x425.jpg",
    "United Kingdom": "https://encrypted-tbn0.gstatic.com/licensed-image?q=tbn:ANd9GcRJn0bK_RKKssE24Tfrp3Qm_WQ1aQK8IXqnMOsp8af8ilcHv3Lp_irWVOEGbdqJGJyWLc9hKi1A6Q5YUvGIuE83JVA&s=19",
}

_COUNTRY_ALIASES = {
    "united states of america": "United States",
    "usa": "United States",
    "us": "United States",
    "america": "United States",
    "uk": "United Kingdom",
    "britain": "United Kingdom",
    "great britain": "United Kingdom",
    "england": "United Kingdom",
    "uae": "United Arab Emirates",
    "korea": "South Korea",
    "republic of korea": "South Korea",
}

_CANONICAL_NAMES = {name.lower(): name for name in COUNTRY_IMAGES}


def normalize_country(name: str) -> str:
    """Map common aliases and casings onto one canonical country name."""
    cleaned = (name or "").strip()
    lowered = cleaned.lower()
    if lowered in _COUNTRY_ALIASES:
        return _COUNTRY_ALIASES[lowered]
    return _CANONICAL_NAMES.get(lowered, cleaned)


def country_budget(name: str) -> Optional[CountryBudget]:
    canonical = normalize_country(name).lower()
    for budget in COUNTRY_BUDGETS:
        if budget.country.lower() == canonical:
            return budget
    return None


def country_image(name: str) -> Optional[str]:
    return COUNTRY_IMAGES.get(normalize_country(name))


def tier_description(tier: int) -> str:
    return TIER_DESCRIPTIONS.get(tier, "Unknown")


def countries_within_budget(budget_max: float, profile_type: str) -> List[CountryBudget]:
    """Countries whose minimum cost fits ``budget_max``, cheapest first."""
    affordable = [c for c in COUNTRY_BUDGETS if budget_max >= c.minimum(profile_type)]
    return sorted(affordable, key=lambda c: c.minimum(profile_type))


def minimum_budget(profile_type: str) -> int:
    return min(c.minimum(profile_type) for c in COUNTRY_BUDGETS)


def budget_check(name: str, budget_max: float, profile_type: str) -> Dict[str, object]:
    budget = country_budget(name)
    if budget is None:
        return {"sufficient": True, "minRequired": 0, "maxRecommended": 0, "tier": 3}
    return {
        "sufficient": budget_max >= budget.minimum(profile_type),
        "minRequired": budget.minimum(profile_type),
        "maxRecommended": budget.maximum(profile_type),
        "tier": budget.tier,
    }


def budget_warning(name: str, budget_max: float, profile_type: str) -> Optional[str]:
    check = budget_check(name, budget_max, profile_type)
    min_required = int(check["minRequired"])  # type: ignore[call-overload]
    if check["sufficient"] or min_required == 0:
        return None

    tier = int(check["tier"])  # type: ignore[call-overload]
    budget_type = "total education" if profile_type == STUDENT else "initial settlement"
    return (
        f"Your budget of ${budget_max:,.0f} is below the minimum {budget_type} cost "
        f"for {name} (${min_required:,}). You need at least "
        f"${min_required - budget_max:,.0f} more. Consider a Tier "
        f"{tier - 1 if tier > 2 else 1} country or increase your budget."
    )


def monthly_cost(name: str, profile_type: str) -> Tuple[int, int]:
    """Monthly cost of living, estimated from the budget tier when unlisted."""
    canonical = normalize_country(name)
    table = STUDENT_MONTHLY_COST if profile_type == STUDENT else PROFESSIONAL_MONTHLY_COST
    if canonical in table:
        return table[canonical]

    budget = country_budget(canonical)
    if budget is None:
        return (600, 1200) if profile_type == STUDENT else (1000, 2000)

    if profile_type == STUDENT:
        return (
            max(300, round(budget.student_min * 0.3 / 12)),
            max(600, round(budget.student_max * 0.5 / 12)),
        )
    return (
        max(500, round(budget.professional_min * 0.4 / 12)),
        max(1000, round(budget.professional_max * 0.6 / 12)),
    )


def university_count(name: str) -> int:
    canonical = normalize_country(name)
    if canonical in UNIVERSITY_COUNTS:
        return UNIVERSITY_COUNTS[canonical]
    budget = country_budget(canonical)
    if budget is None:
        return 50
    return UNIVERSITY_COUNT_BY_TIER.get(budget.tier, 100)


def settlement_cost(name: str) -> Dict[str, int]:
    budget = country_budget(name)
    if budget is None:
        return {"min": 5000, "max": 8000, "tier": 3}
    return {
        "min": budget.professional_min,
        "max": budget.professional_max,
        "tier": budget.tier,
    }


_JOB_MARKET_PROFILES: Dict[str, Dict[str, object]] = {
    "United States": {
        "description": "The United States offers unparalleled {industry} opportunities with the world's largest economy and highest salaries for skilled professionals.",
        "whyWork": [
            "World's largest economy with diverse job opportunities",
            "Highest average salaries in many professional fields",
            "Leading innovation hubs like Silicon Valley and New York",
            "Strong demand for skilled international professionals",
        ],
        "visaProcessingTime": "2-6 months for H-1B, 1-3 months for L-1",
        "language": "English",
        "jobMarketStrength": "Very Strong",
    },
    "United Kingdom": {
        "description": "The UK's thriving {industry} sector offers excellent career prospects with global companies and competitive compensation.",
        "whyWork": [
            "Global financial and business hub in London",
            "Strong legal protections for workers",
            "Access to European markets",
            "Rich cultural experience and diverse workforce",
        ],
        "visaProcessingTime": "3-8 weeks for Skilled Worker Visa",
        "language": "English",
        "jobMarketStrength": "Strong",
    },
    "Canada": {
        "description": "Canada welcomes {industry} professionals with straightforward immigration and excellent quality of life in growing tech hubs.",
        "whyWork": [
            "One of the easiest immigration pathways for skilled workers",
            "Growing tech ecosystems in Toronto, Vancouver, and Montreal",
            "Excellent healthcare and social benefits",
            "High quality of life and safety",
        ],
        "visaProcessingTime": "4-12 weeks for Express Entry",
        "language": "English, French",
        "jobMarketStrength": "Strong",
    },
    "Australia": {
        "description": "Australia offers {industry} professionals competitive salaries, high quality of life, and strong demand in key sectors.",
        "whyWork": [
            "High demand for skilled professionals across sectors",
            "Competitive salaries with strong work-life balance",
            "Pathway to permanent residency for qualified workers",
            "Excellent climate and quality of life",
        ],
        "visaProcessingTime": "6-10 weeks for skilled visas",
        "language": "English",
        "jobMarketStrength": "Strong",
    },
    "Germany": {
        "description": "Germany, Europe's largest economy, offers outstanding {industry} opportunities with engineering excellence and innovation.",
        "whyWork": [
            "Europe's largest economy with low unemployment",
            "Strong manufacturing and engineering sectors",
            "EU Blue Card provides straightforward immigration",
            "Excellent work-life balance with generous benefits",
        ],
        "visaProcessingTime": "4-8 weeks for EU Blue Card",
        "language": "German",
        "jobMarketStrength": "Strong",
    },
}


def job_market_profile(name: str, industry: str) -> Dict[str, object]:
    """Static job-market summary for the jobs page header."""
    canonical = normalize_country(name)
    profile = _JOB_MARKET_PROFILES.get(canonical)
    if profile is None:
        return {
            "description": f"Discover growing {industry} opportunities in {name} with competitive positions for skilled professionals.",
            "whyWork": [
                "Growing job market for international professionals",
                "Competitive career opportunities",
                "Quality of life advantages",
            ],
            "visaProcessingTime": "4-12 weeks",
            "language": "English",
            "jobMarketStrength": "Moderate",
        }
    result = dict(profile)
    result["description"] = str(profile["description"]).format(industry=industry)
    result["whyWork"] = list(profile["whyWork"])  # type: ignore[call-overload]
    return result


def placeholder_image(query: str, height: int = 200, width: int = 300) -> str:
    return f"/placeholder.svg?height={height}&width={width}&query={quote(query)}"


def google_search_url(query: str) -> str:
    return f"https://www.google.com/search?q={quote_plus(query)}"


def airbnb_url(
    city: str,
    country: str,
    checkin: Optional[str] = None,
    checkout: Optional[str] = None,
) -> str:
    location = quote(f"{city}, {country}", safe="")
    params = []
    if checkin:
        params.append(f"checkin={quote_plus(checkin)}")
    if checkout:
        params.append(f"checkout={quote_plus(checkout)}")
    params.append("adults=1")
    return f"https://www.airbnb.com/s/{location}/homes?{'&'.join(params)}"
