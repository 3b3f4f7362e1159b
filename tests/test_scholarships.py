"""Tests for scholarship search and scholarship application links."""

import json

import pytest

from globeassist.errors import BadRequestError, IncompleteResult, MalformedResponse
from globeassist.handlers.scholarships import (
    DEFAULT_DESTINATIONS,
    ScholarshipLinkFinder,
    ScholarshipsHandler,
    has_enough_scholarships,
    is_valid_scholarship,
)


def scholarship_reply(count: int) -> str:
    return json.dumps(
        [
            {
                "name": f"Global Excellence Award {index}",
                "university": f"University {index}",
                "location": "Germany",
                "qualification": "Masters",
                "valueMin": "$1,000",
                "valueMax": 12000,
                "deadline": "15 Mar 2026",
            }
            for index in range(count)
        ]
    )


@pytest.fixture
def handler(chat, make_gate, clock):
    return ScholarshipsHandler(chat, make_gate("scholarships"), clock=clock)


def test_is_valid_scholarship_requires_identity_fields():
    complete = {
        "id": "sch_0_1",
        "name": "DAAD EPOS",
        "university": "TU Munich",
        "location": "Germany",
        "qualification": "Masters",
    }
    assert is_valid_scholarship(complete)
    assert not is_valid_scholarship({**complete, "name": "DA"})
    assert not is_valid_scholarship({**complete, "location": ""})
    assert not has_enough_scholarships([complete] * 4)
    assert has_enough_scholarships([complete] * 5)


@pytest.mark.asyncio
async def test_search_assigns_ids_and_caches(handler, chat, clock):
    chat.replies = [scholarship_reply(6)]

    result = await handler.search(locations=["Germany"], qualifications=["Masters"])

    assert result["cached"] is False
    assert result["appliedFilters"] == {"locations": ["Germany"], "qualifications": ["Masters"]}
    scholarships = result["scholarships"]
    assert len(scholarships) == 6
    stamp = int(clock.now * 1000)
    assert scholarships[0]["id"] == f"sch_0_{stamp}"
    assert scholarships[0]["valueMin"] == 1000
    assert scholarships[0]["applyLink"] == ""
    assert "Germany" in chat.calls[0]["prompt"]

    again = await handler.search(locations=["Germany"], qualifications=["Masters"])
    assert again["cached"] is True
    assert again["scholarships"] == scholarships
    assert len(chat.calls) == 1


@pytest.mark.asyncio
async def test_search_uses_defaults_when_unfiltered(handler, chat):
    chat.replies = [scholarship_reply(5)]

    result = await handler.search()

    assert DEFAULT_DESTINATIONS in chat.calls[0]["prompt"]
    assert result["appliedFilters"] == {"locations": [], "qualifications": []}


@pytest.mark.asyncio
async def test_too_few_scholarships_is_incomplete(handler, chat):
    chat.replies = [scholarship_reply(3), scholarship_reply(5)]

    with pytest.raises(IncompleteResult):
        await handler.search(locations=["Norway"])

    retry = await handler.search(locations=["Norway"])
    assert retry["cached"] is False
    assert len(chat.calls) == 2


@pytest.mark.asyncio
async def test_keyword_search_bypasses_cache(handler, chat):
    chat.replies = [scholarship_reply(5), scholarship_reply(5)]

    first = await handler.search(keyword="robotics")
    second = await handler.search(keyword="robotics")

    assert first["cached"] is False
    assert second["cached"] is False
    assert len(chat.calls) == 2
    assert "robotics" in chat.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_keyword_search_with_too_few_results_is_incomplete(handler, chat):
    chat.replies = [scholarship_reply(2)]

    with pytest.raises(IncompleteResult):
        await handler.search(keyword="marine biology")


@pytest.mark.asyncio
async def test_unparseable_reply_propagates(handler, chat):
    chat.replies = ["I could not find any scholarships."]

    with pytest.raises(MalformedResponse):
        await handler.search(locations=["Japan"])


# Application links

SCHOLARSHIP = {"name": "Chevening Scholarship", "university": "University of Oxford"}


@pytest.fixture
def finder(chat, search, make_gate):
    return ScholarshipLinkFinder(chat, search, make_gate("scholarship_links"))


@pytest.mark.asyncio
async def test_link_requires_name_and_university(finder):
    with pytest.raises(BadRequestError):
        await finder.find({"name": "Chevening Scholarship"})
    with pytest.raises(BadRequestError):
        await finder.find(None)
    with pytest.raises(BadRequestError):
        await finder.find("Chevening Scholarship")


@pytest.mark.asyncio
async def test_link_selected_by_model_and_cached(finder, chat, search):
    search.default_results = [
        {"link": "https://www.chevening.org/apply", "title": "Apply", "snippet": "Apply now"},
        {"link": "https://www.scholarshipportal.com/chevening", "title": "Listing"},
    ]
    chat.replies = ["The best page is https://www.chevening.org/apply."]

    link = await finder.find(SCHOLARSHIP)

    assert link == "https://www.chevening.org/apply"
    assert len(search.queries) == 3
    prompt = chat.calls[0]["prompt"]
    assert prompt.count("https://www.chevening.org/apply") == 1
    assert "scholarshipportal.com" in prompt

    assert await finder.find(SCHOLARSHIP) == link
    assert len(chat.calls) == 1
    assert len(search.queries) == 3


@pytest.mark.asyncio
async def test_listing_site_answer_falls_back_to_search(finder, chat, search):
    search.default_results = [{"link": "https://www.scholarshipportal.com/chevening"}]
    chat.replies = ["https://www.scholarshipportal.com/chevening"]

    link = await finder.find(SCHOLARSHIP)

    assert link.startswith("https://www.google.com/search?q=")
    assert "Chevening+Scholarship" in link


@pytest.mark.asyncio
async def test_not_found_answer_falls_back_to_search(finder, chat, search):
    search.default_results = [{"link": "https://www.ox.ac.uk/news"}]
    chat.replies = ["NOT_FOUND"]

    link = await finder.find(SCHOLARSHIP)

    assert link.startswith("https://www.google.com/search?q=")


@pytest.mark.asyncio
async def test_model_failure_falls_back_to_search(finder, chat, search):
    search.default_results = [{"link": "https://www.ox.ac.uk/admissions"}]
    chat.replies = [MalformedResponse()]

    link = await finder.find(SCHOLARSHIP)

    assert link.startswith("https://www.google.com/search?q=")


@pytest.mark.asyncio
async def test_disabled_search_skips_lookup(finder, chat, search):
    search.enabled = False

    link = await finder.find(SCHOLARSHIP)

    assert link.startswith("https://www.google.com/search?q=")
    assert search.queries == []
    assert chat.calls == []
