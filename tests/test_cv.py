import hashlib
import json

import pytest

from globeassist.errors import BadRequestError
from globeassist.handlers.cv import SYSTEM_PROMPT, CVParser, clean_text

RESUME = """Ayesha Khan
ayesha@example.com   |   +92 300 1234567\r\n


Software engineer with five years of backend experience in Python and Go.
"""

PARSED = {
    "personalInfo": {"name": "Ayesha Khan", "email": "ayesha@example.com", "phone": 923001234567},
    "summary": "Backend engineer",
    "experience": [
        {"title": "Engineer", "company": "Careem", "duration": "2020-2025", "description": "APIs"}
    ],
    "skills": ["Python", "Go"],
    "certifications": [{"name": "CKA", "issuer": "CNCF", "year": 2023}],
    "languages": None,
}


@pytest.fixture
def parser(chat, make_gate):
    return CVParser(chat, make_gate("cv_parses"))


def test_clean_text_collapses_whitespace():
    assert clean_text("a \t b\x00c\r\n\n\n\nd  \n") == "a b c\n\nd"


@pytest.mark.asyncio
async def test_short_text_is_rejected(parser, chat):
    with pytest.raises(BadRequestError) as excinfo:
        await parser.parse("   too short   ")

    assert str(excinfo.value) == "Could not extract enough text from the file"
    assert chat.calls == []


@pytest.mark.asyncio
async def test_parse_coerces_and_caches_by_content(parser, chat, store):
    chat.replies = ["```json\n" + json.dumps(PARSED) + "\n```"]

    parsed, cached = await parser.parse(RESUME, owner_id="user-1")

    assert cached is False
    assert parsed["personalInfo"]["phone"] == "923001234567"
    assert parsed["personalInfo"]["linkedin"] == ""
    assert parsed["experience"][0]["description"] == ["APIs"]
    assert parsed["certifications"] == ["CKA (CNCF) - 2023"]
    assert parsed["languages"] == []
    assert parsed["education"] == []

    call = chat.calls[0]
    assert call["system"] == SYSTEM_PROMPT
    assert "ayesha@example.com | +92 300 1234567" in call["prompt"]

    digest = hashlib.sha256(clean_text(RESUME).encode("utf-8")).hexdigest()
    entry = await store.select("cv_parses", digest)
    assert entry.owner_id == "user-1"

    again, cached = await parser.parse(RESUME + "\n\n\n", owner_id="user-1")
    assert cached is True
    assert again == parsed
    assert len(chat.calls) == 1


@pytest.mark.asyncio
async def test_long_text_is_truncated(parser, chat):
    chat.replies = [json.dumps({"summary": "ok"})]

    await parser.parse("x" * 30000)

    prompt = chat.calls[0]["prompt"]
    assert "x" * 25000 in prompt
    assert "x" * 25001 not in prompt
