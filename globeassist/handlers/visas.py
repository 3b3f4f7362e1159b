"""Student and work visa requirements."""

import logging
from datetime import datetime
from typing import Any, Dict, Tuple

from globeassist.cache import CacheGate, make_cache_key
from globeassist.errors import MalformedResponse
from globeassist.extract import extract
from globeassist.providers import ChatClient
from globeassist.reference import normalize_country
from globeassist.schemas import VisaRequirements

logger = logging.getLogger(__name__)

STUDENT = "student"
PROFESSIONAL = "professional"

NAMESPACES = {
    STUDENT: "visa_requirements",
    PROFESSIONAL: "professional_visa_requirements",
}
TTL_SECONDS = 30 * 24 * 3600
DEFAULT_NATIONALITY = "Pakistani"
DEFAULT_PROCESSING_CENTERS = ["Islamabad", "Karachi", "Lahore"]

_JSON_FORMAT = """{{
  "visaType": "{visa_type}",
  "processingTime": "{processing_time}",
  "visaFee": "amount in USD",
  "validity": "{validity}",
  "requiredDocuments": [{documents}],
  "financialRequirements": {{
    "bankStatement": "minimum amount required",
    "sponsorshipLetter": {sponsorship},
    "proofOfFunds": "amount needed"
  }},
  "applicationSteps": [
    {{"step": 1, "title": "step title", "description": "brief description"}},
    {{"step": 2, "title": "step title", "description": "brief description"}}
  ],
  "whereToApply": [
    {{"name": "Embassy/VFS name", "address": "address in Pakistan", "website": "{website}", "phone": "number"}}
  ],
  "importantTips": [{tips}],
  "processingCenters": [{centers}]
}}"""


def _documents(count: int) -> str:
    return ", ".join(f'"doc{i}"' for i in range(1, count + 1))


def student_visa_prompt(country: str, nationality: str) -> str:
    body = _JSON_FORMAT.format(
        visa_type="visa type name",
        processing_time="X-Y weeks",
        validity="duration",
        documents=_documents(5),
        sponsorship="true/false",
        website="url",
        tips='"tip1", "tip2", "tip3"',
        centers='"city1", "city2"',
    )
    return (
        f"Student visa requirements for {nationality} citizens applying to study in "
        f"{country} in 2025.\n\nReturn JSON only:\n{body}"
    )


def professional_visa_prompt(country: str, nationality: str, year: int) -> str:
    body = _JSON_FORMAT.format(
        visa_type="work visa type name (e.g., Skilled Worker Visa, H-1B, etc.)",
        processing_time="X-Y weeks (realistic processing time)",
        validity="duration (e.g., 2-5 years)",
        documents=_documents(6),
        sponsorship="true/false (employer sponsorship)",
        website="official url",
        tips='"tip1", "tip2", "tip3", "tip4"',
        centers='"city1", "city2", "city3"',
    )
    return (
        f"Work visa requirements for {nationality} professionals applying to work in "
        f"{country} in {year}.\n\n"
        "Provide accurate, up-to-date information for SKILLED WORKER / EMPLOYMENT VISA "
        f"(not student visa).\n\nReturn JSON only:\n{body}"
    )


STUDENT_VISA_DEFAULTS: Dict[str, Any] = {
    "visaType": "Student Visa",
    "processingTime": "4-8 weeks",
    "visaFee": "Contact embassy",
    "validity": "Duration of study",
    "requiredDocuments": [
        "Valid passport (6+ months validity)",
        "University acceptance letter",
        "Proof of financial support",
        "Academic transcripts",
        "English proficiency test results",
    ],
    "financialRequirements": {
        "bankStatement": "Last 6 months required",
        "sponsorshipLetter": True,
        "proofOfFunds": "Contact embassy for amount",
    },
    "applicationSteps": [
        {"step": 1, "title": "Get Admission", "description": "Receive university acceptance letter"},
        {"step": 2, "title": "Gather Documents", "description": "Collect all required documents"},
        {"step": 3, "title": "Apply Online", "description": "Submit visa application online"},
        {"step": 4, "title": "Pay Fees", "description": "Pay visa application fee"},
        {"step": 5, "title": "Biometrics", "description": "Submit biometrics at visa center"},
        {"step": 6, "title": "Interview", "description": "Attend visa interview if required"},
    ],
    "whereToApply": [
        {
            "name": "Embassy/Consulate",
            "address": "Contact for address",
            "website": "Check official website",
            "phone": "Contact embassy",
        }
    ],
    "importantTips": [
        "Apply at least 3 months before course start date",
        "Ensure all documents are attested",
        "Keep copies of all submitted documents",
    ],
    "processingCenters": DEFAULT_PROCESSING_CENTERS,
}

PROFESSIONAL_VISA_DEFAULTS: Dict[str, Any] = {
    "visaType": "Work Visa / Employment Visa",
    "processingTime": "4-12 weeks",
    "visaFee": "Contact embassy for current fees",
    "validity": "1-5 years (renewable)",
    "requiredDocuments": [
        "Valid passport (6+ months validity)",
        "Job offer letter from employer",
        "Employment contract",
        "Educational certificates (attested)",
        "Professional experience certificates",
        "Police clearance certificate",
        "Medical examination report",
        "Passport-size photographs",
    ],
    "financialRequirements": {
        "bankStatement": "Last 6 months required",
        "sponsorshipLetter": True,
        "proofOfFunds": "Depends on country requirements",
    },
    "applicationSteps": [
        {"step": 1, "title": "Secure Job Offer", "description": "Get a valid job offer from an employer"},
        {"step": 2, "title": "Employer Sponsorship", "description": "Employer applies for work permit/sponsorship"},
        {"step": 3, "title": "Gather Documents", "description": "Collect all required documents with attestation"},
        {"step": 4, "title": "Apply Online", "description": "Submit visa application online"},
        {"step": 5, "title": "Pay Fees", "description": "Pay visa application and processing fees"},
        {"step": 6, "title": "Biometrics", "description": "Submit biometrics at visa center"},
        {"step": 7, "title": "Interview", "description": "Attend visa interview if required"},
        {"step": 8, "title": "Receive Visa", "description": "Collect passport with visa stamp"},
    ],
    "whereToApply": [
        {
            "name": "Embassy/Consulate",
            "address": "Contact for address in Pakistan",
            "website": "Check official embassy website",
            "phone": "Contact embassy",
        }
    ],
    "importantTips": [
        "Start the process at least 3-4 months before intended travel date",
        "Ensure all documents are properly attested from HEC and MOFA",
        "Your employer must complete their part of sponsorship first",
        "Keep copies of all submitted documents",
        "Check if your profession requires additional licensing in the destination country",
    ],
    "processingCenters": DEFAULT_PROCESSING_CENTERS,
}

_SYSTEM_PROMPTS = {
    STUDENT: "Return only valid JSON. No markdown, no explanation.",
    PROFESSIONAL: "Return only valid JSON. No markdown, no explanation. "
    "Provide accurate work visa information.",
}
_MAX_TOKENS = {STUDENT: 1200, PROFESSIONAL: 1500}
_DEFAULTS = {STUDENT: STUDENT_VISA_DEFAULTS, PROFESSIONAL: PROFESSIONAL_VISA_DEFAULTS}


def has_visa_essentials(requirements: Any) -> bool:
    if not isinstance(requirements, dict):
        return False
    return bool(requirements.get("visaType")) and bool(requirements.get("requiredDocuments"))


class VisaRequirementsHandler:
    """Visa requirements for one destination and nationality.

    ``kind`` selects the student or the work visa flavour; each has its own
    cache namespace and fallback structure.
    """

    def __init__(self, chat: ChatClient, cache: CacheGate, kind: str = STUDENT):
        if kind not in NAMESPACES:
            raise ValueError(f"Unknown visa kind: {kind}")
        self.chat = chat
        self.cache = cache
        self.kind = kind

    async def get(
        self, country: str, nationality: str = "", refresh: bool = False
    ) -> Tuple[Dict[str, Any], bool]:
        """Return ``(requirements, cached)``.

        An unreadable provider reply yields the default structure for this
        visa kind, flagged with ``fallback: true`` and never cached.
        """
        nationality = nationality or DEFAULT_NATIONALITY
        try:
            return await self.cache.fetch(
                make_cache_key(normalize_country(country), nationality),
                lambda: self._research(country, nationality),
                is_complete=has_visa_essentials,
                refresh=refresh,
            )
        except MalformedResponse as exc:
            logger.warning(
                "Using default %s visa structure for %s: %s", self.kind, country, exc
            )
            requirements = VisaRequirements.model_validate(_DEFAULTS[self.kind])
            return {**self._finish(requirements, country), "fallback": True}, False

    def prompt(self, country: str, nationality: str) -> str:
        if self.kind == PROFESSIONAL:
            return professional_visa_prompt(country, nationality, datetime.now().year)
        return student_visa_prompt(country, nationality)

    async def _research(self, country: str, nationality: str) -> Dict[str, Any]:
        raw = await self.chat.complete(
            self.prompt(country, nationality),
            system=_SYSTEM_PROMPTS[self.kind],
            max_tokens=_MAX_TOKENS[self.kind],
        )
        return self._finish(extract(raw, VisaRequirements), country)

    @staticmethod
    def _finish(requirements: VisaRequirements, country: str) -> Dict[str, Any]:
        if not requirements.processingCenters:
            requirements.processingCenters = list(DEFAULT_PROCESSING_CENTERS)
        requirements.countryName = country
        return requirements.model_dump()
