"""Pydantic payload models for every endpoint.

Every field has a default, so a record parsed from model output is always
fully populated. Before-validators absorb the usual model sloppiness: ``null``
for anything, numbers where strings belong, ``"$12,000"`` where a number
belongs, a bare string where a list belongs.
"""

import re
from typing import Annotated, Any, Dict, List

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return ", ".join(_to_text(item) for item in value if item is not None)
    if isinstance(value, dict):
        return ", ".join(_to_text(item) for item in value.values() if item)
    return str(value)


def _to_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = value.replace(",", "")
        match = _NUMBER.search(cleaned)
        if not match:
            return 0.0
        number = float(match.group())
        if re.search(r"\d\s*[kK]\b", cleaned):
            number *= 1000
        return number
    return 0.0


def _to_int(value: Any) -> int:
    return int(round(_to_number(value)))


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "y", "1", "available")
    return bool(value)


def _to_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [_to_text(item) for item in value if item is not None and _to_text(item)]
    return [_to_text(value)]


def _to_records(value: Any) -> List[Dict[str, Any]]:
    if isinstance(value, (dict, BaseModel)):
        value = [value]
    if not isinstance(value, list):
        return []
    return [
        item.model_dump() if isinstance(item, BaseModel) else item
        for item in value
        if isinstance(item, (dict, BaseModel))
    ]


def _to_object(value: Any) -> Dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value if isinstance(value, dict) else {}


Text = Annotated[str, BeforeValidator(_to_text)]
Number = Annotated[float, BeforeValidator(_to_number)]
Integer = Annotated[int, BeforeValidator(_to_int)]
Flag = Annotated[bool, BeforeValidator(_to_bool)]
TextList = Annotated[List[str], BeforeValidator(_to_text_list)]


class Payload(BaseModel):
    """Base for parsed payloads: unknown keys dropped, ``null`` means absent."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


# Country details


class UniversitySummary(Payload):
    name: Text = ""
    imageUrl: Text = ""
    tuitionFeeMin: Number = 0
    tuitionFeeMax: Number = 0
    numberOfCourses: Integer = 0
    scholarshipsAvailable: Integer = 0


class CountryResearch(Payload):
    description: Text = ""
    language: Text = ""
    intakes: Text = ""
    visaProcessingTime: Text = ""
    universities: Annotated[List[UniversitySummary], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )
    scholarshipNames: TextList = Field(default_factory=list)


class ScholarshipLink(Payload):
    name: Text = ""
    link: Text = ""


class CountryDetails(Payload):
    countryName: Text = ""
    description: Text = ""
    countryImageUrl: Text = ""
    visaProcessingTime: Text = ""
    language: Text = ""
    intakes: Text = ""
    popularScholarships: Annotated[List[ScholarshipLink], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )
    universities: Annotated[List[UniversitySummary], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )


# University and program details


class Program(Payload):
    name: Text = ""
    qualification: Text = ""
    duration: Text = ""
    fees: Text = ""
    nextIntake: Text = ""
    entryScore: Text = ""


class UniversityDetails(Payload):
    universityName: Text = ""
    countryName: Text = ""
    universityImageUrl: Text = ""
    description: Text = ""
    worldRanking: Text = ""
    applicationFee: Text = ""
    applicationRequirements: TextList = Field(default_factory=list)
    programs: Annotated[List[Program], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )


class ProgramExtras(Payload):
    location: Text = ""
    applicationDeadline: Text = ""
    aboutCourse: Text = ""
    entryRequirements: TextList = Field(default_factory=list)


class ProgramDetails(Payload):
    programName: Text = ""
    universityName: Text = ""
    location: Text = ""
    qualification: Text = ""
    fees: Text = ""
    duration: Text = ""
    nextIntake: Text = ""
    applicationDeadline: Text = ""
    aboutCourse: Text = ""
    entryRequirements: TextList = Field(default_factory=list)
    applicationUrl: Text = ""
    entryScore: Text = ""


# Scholarships


class Scholarship(Payload):
    id: Text = ""
    name: Text = ""
    university: Text = ""
    location: Text = ""
    qualification: Text = ""
    valueMin: Number = 0
    valueMax: Number = 0
    currency: Text = ""
    deadline: Text = ""
    fundingType: Text = ""
    description: Text = ""
    eligibility: TextList = Field(default_factory=list)
    subjects: TextList = Field(default_factory=list)
    nationality: Text = ""
    howToApply: Text = ""
    applyLink: Text = ""


# Visas


class FinancialRequirements(Payload):
    bankStatement: Text = ""
    sponsorshipLetter: Flag = False
    proofOfFunds: Text = ""


class ApplicationStep(Payload):
    step: Integer = 0
    title: Text = ""
    description: Text = ""


class ApplicationOffice(Payload):
    name: Text = ""
    address: Text = ""
    website: Text = ""
    phone: Text = ""


class VisaRequirements(Payload):
    countryName: Text = ""
    visaType: Text = ""
    processingTime: Text = ""
    visaFee: Text = ""
    validity: Text = ""
    requiredDocuments: TextList = Field(default_factory=list)
    financialRequirements: Annotated[
        FinancialRequirements, BeforeValidator(_to_object)
    ] = Field(default_factory=FinancialRequirements)
    applicationSteps: Annotated[List[ApplicationStep], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )
    whereToApply: Annotated[List[ApplicationOffice], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )
    importantTips: TextList = Field(default_factory=list)
    processingCenters: TextList = Field(default_factory=list)


# Accommodation


class DormInfo(Payload):
    available: Flag = False
    types: TextList = Field(default_factory=list)
    costRange: Text = ""
    costRangePKR: Text = ""
    facilities: TextList = Field(default_factory=list)
    applicationDeadline: Text = ""
    images: TextList = Field(default_factory=list)


class NamedLink(Payload):
    name: Text = ""
    url: Text = ""


class PrivateHousing(Payload):
    avgRent: Text = ""
    avgRentPKR: Text = ""
    popularAreas: TextList = Field(default_factory=list)
    resources: Annotated[List[NamedLink], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )


class AccommodationApplication(Payload):
    steps: TextList = Field(default_factory=list)
    requiredDocuments: TextList = Field(default_factory=list)
    timeline: Text = ""
    whereToApply: Text = ""
    applicationUrl: Text = ""


class SupportContact(Payload):
    name: Text = ""
    contact: Text = ""


class StudentSupport(Payload):
    tips: TextList = Field(default_factory=list)
    supportResources: Annotated[List[SupportContact], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )


class AccommodationDetails(Payload):
    dormInfo: Annotated[DormInfo, BeforeValidator(_to_object)] = Field(
        default_factory=DormInfo
    )
    privateHousing: Annotated[PrivateHousing, BeforeValidator(_to_object)] = Field(
        default_factory=PrivateHousing
    )
    applicationProcess: Annotated[
        AccommodationApplication, BeforeValidator(_to_object)
    ] = Field(default_factory=AccommodationApplication)
    pakistaniStudentInfo: Annotated[StudentSupport, BeforeValidator(_to_object)] = Field(
        default_factory=StudentSupport
    )


# Jobs


class Job(Payload):
    id: Text = ""
    title: Text = ""
    company: Text = ""
    location: Text = ""
    salary: Text = ""
    contractType: Text = ""
    qualification: Text = ""
    postedDate: Text = ""
    description: Text = ""
    requirements: TextList = Field(default_factory=list)
    applyUrl: Text = ""
    role: Text = ""
    airbnbUrl: Text = ""
    source: Text = ""
    verified: Flag = False


# CV


class PersonalInfo(Payload):
    name: Text = ""
    email: Text = ""
    phone: Text = ""
    location: Text = ""
    linkedin: Text = ""
    website: Text = ""
    github: Text = ""


class Experience(Payload):
    title: Text = ""
    company: Text = ""
    duration: Text = ""
    description: TextList = Field(default_factory=list)


class Education(Payload):
    degree: Text = ""
    institution: Text = ""
    year: Text = ""
    gpa: Text = ""


class Project(Payload):
    name: Text = ""
    description: Text = ""
    technologies: TextList = Field(default_factory=list)


def _certification_text(value: Any) -> Any:
    if not isinstance(value, list):
        return value
    certifications = []
    for cert in value:
        if isinstance(cert, dict):
            parts = []
            if cert.get("name"):
                parts.append(str(cert["name"]))
            if cert.get("issuer"):
                parts.append(f"({cert['issuer']})")
            when = cert.get("date") or cert.get("year")
            if when:
                parts.append(f"- {when}")
            certifications.append(" ".join(parts) or "Certification")
        elif cert is not None:
            certifications.append(cert)
    return certifications


class ParsedCV(Payload):
    personalInfo: Annotated[PersonalInfo, BeforeValidator(_to_object)] = Field(
        default_factory=PersonalInfo
    )
    summary: Text = ""
    experience: Annotated[List[Experience], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )
    education: Annotated[List[Education], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )
    skills: TextList = Field(default_factory=list)
    certifications: Annotated[TextList, BeforeValidator(_certification_text)] = Field(
        default_factory=list
    )
    languages: TextList = Field(default_factory=list)
    projects: Annotated[List[Project], BeforeValidator(_to_records)] = Field(
        default_factory=list
    )
