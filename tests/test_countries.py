import json

import pytest

from globeassist.errors import IncompleteResult
from globeassist.schemas import CountryDetails, ScholarshipLink, UniversitySummary
from globeassist.handlers.countries import (
    NAMESPACE,
    CountryDetailsHandler,
    has_enough_universities,
)


def research(university_names, scholarships=("Vanier Canada Graduate Scholarships",)):
    return json.dumps(
        {
            "description": "High quality education.",
            "language": "English, French",
            "universities": [
                {"name": name, "tuitionFeeMin": "$20,000", "tuitionFeeMax": 40000}
                for name in university_names
            ],
            "scholarshipNames": list(scholarships),
        }
    )


UNIVERSITIES = [f"University of Place {i}" for i in range(9)]


@pytest.fixture
def handler(chat, search, make_gate):
    return CountryDetailsHandler(chat, search, make_gate(NAMESPACE))


@pytest.mark.asyncio
async def test_builds_details_with_images_and_links(handler, chat, search):
    chat.replies = [research(UNIVERSITIES)]
    search.image_results = [{"imageUrl": "https://img.example/campus.jpg"}]
    search.default_results = [
        {"link": "https://www.scholarshipsdirectory.example/vanier"},
        {"link": "https://vanier.gc.ca/en/home.html"},
    ]

    details, cached = await handler.get("canada")

    assert not cached
    assert details["countryName"] == "Canada"
    assert details["intakes"] == "September & January"
    assert details["visaProcessingTime"] == "4-8 weeks"
    assert len(details["universities"]) == 9
    first = details["universities"][0]
    assert first["imageUrl"] == "https://img.example/campus.jpg"
    assert first["tuitionFeeMin"] == 20000
    assert first["numberOfCourses"] == 150
    assert details["popularScholarships"] == [
        {"name": "Vanier Canada Graduate Scholarships", "link": "https://www.scholarshipsdirectory.example/vanier"}
    ]
    assert chat.calls[0]["max_tokens"] == 3000


@pytest.mark.asyncio
async def test_scholarship_link_prefers_official_domains(handler, chat, search):
    chat.replies = [research(UNIVERSITIES, scholarships=("DAAD",))]
    search.default_results = [
        {"link": "https://blog.example.com/daad-tips"},
        {"link": "https://www.daad.de/en/"},
    ]

    details, _ = await handler.get("Germany")

    assert details["popularScholarships"][0]["link"] == "https://www.daad.de/en/"


@pytest.mark.asyncio
async def test_failed_lookups_fall_back(handler, chat, search):
    chat.replies = [research(UNIVERSITIES, scholarships=("Chevening",))]
    search.fail_queries = ["University of Place 3", "Chevening"]
    search.image_results = [{"imageUrl": "https://img.example/x.jpg"}]

    details, _ = await handler.get("UK")

    failed = details["universities"][3]
    assert failed["imageUrl"].startswith("/placeholder.svg?")
    assert details["universities"][2]["imageUrl"] == "https://img.example/x.jpg"
    link = details["popularScholarships"][0]["link"]
    assert link.startswith("https://www.google.com/search?q=")
    assert details["countryName"] == "United Kingdom"


@pytest.mark.asyncio
async def test_disabled_search_uses_placeholders(handler, chat, search):
    search.enabled = False
    chat.replies = [research(UNIVERSITIES)]

    details, _ = await handler.get("Canada")

    assert all(u["imageUrl"].startswith("/placeholder.svg?") for u in details["universities"])


@pytest.mark.asyncio
async def test_second_call_is_served_from_cache(handler, chat, search):
    chat.replies = [research(UNIVERSITIES)]

    await handler.get("Canada")
    details, cached = await handler.get("canada ")

    assert cached
    assert len(chat.calls) == 1
    assert len(details["universities"]) == 9


@pytest.mark.asyncio
async def test_too_few_universities_is_incomplete(handler, chat):
    chat.replies = [research(["Only University", "Uni", "Another University"])]

    with pytest.raises(IncompleteResult):
        await handler.get("Malta")


@pytest.mark.asyncio
async def test_incomplete_cache_entry_is_regenerated(handler, chat, make_gate):
    gate = make_gate(NAMESPACE)
    await gate.put("canada", {"countryName": "Canada", "universities": [{"name": "Lone University"}]})
    chat.replies = [research(UNIVERSITIES)]

    details, cached = await handler.get("Canada")

    assert not cached
    assert len(details["universities"]) == 9


def test_has_enough_universities_ignores_short_names():
    details = {"universities": [{"name": "Uni"}] * 10 + [{"name": "Real University"}] * 7}

    assert not has_enough_universities(details)


def test_details_keep_nested_model_instances():
    details = CountryDetails(
        countryName="Canada",
        universities=[UniversitySummary(name="University of Toronto")] * 9,
        popularScholarships=[ScholarshipLink(name="Vanier", link="https://vanier.gc.ca")],
    ).model_dump()

    assert len(details["universities"]) == 9
    assert details["universities"][0]["name"] == "University of Toronto"
    assert details["popularScholarships"] == [{"name": "Vanier", "link": "https://vanier.gc.ca"}]
    assert has_enough_universities(details)
