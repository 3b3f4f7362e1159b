"""Pull JSON out of free-form model output.

Model replies wrap their JSON in prose, code fences and reasoning tags, and
long replies are sometimes cut off mid-object. The extractor tries, in order:

1. strict parsing of the located payload,
2. a structural repair pass (control characters, trailing commas, adjacent
   objects, unclosed strings and brackets),
3. salvage of individually well-formed objects (list extraction only).

Validation against a pydantic schema then fills every missing field with its
default, so callers never see a partially populated record.
"""

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from globeassist.errors import MalformedResponse

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_THINK_BLOCK = re.compile(r"<(think|thinking)>.*?</\1>", re.DOTALL | re.IGNORECASE)
_UNCLOSED_THINK = re.compile(r"<(think|thinking)>.*?(?=[{\[])", re.DOTALL | re.IGNORECASE)
_FENCED_BLOCK = re.compile(r"```[a-zA-Z]*\s*(.*?)```", re.DOTALL)
_FENCE = re.compile(r"```[a-zA-Z]*")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_ADJACENT_OBJECTS = re.compile(r"}(\s*){")
_DANGLING_KEY = re.compile(r',?\s*"(?:[^"\\]|\\.)*"\s*:\s*$')

_CLOSERS = {"{": "}", "[": "]"}


def strip_noise(raw_text: str) -> str:
    """Drop reasoning tags and code fences, keeping a fenced payload if any."""
    text = _THINK_BLOCK.sub("", raw_text)
    text = _UNCLOSED_THINK.sub("", text)

    for match in _FENCED_BLOCK.finditer(text):
        block = match.group(1)
        if "{" in block or "[" in block:
            return block.strip()

    return _FENCE.sub("", text).strip()


def _candidate_spans(text: str, prefer: str) -> List[str]:
    order = ("{", "[") if prefer == "{" else ("[", "{")
    spans = []
    for opener in order:
        start = text.find(opener)
        if start == -1:
            continue
        end = text.rfind(_CLOSERS[opener])
        spans.append(text[start : end + 1] if end > start else text[start:])
    return spans


def _close_open_structures(text: str) -> str:
    stack: List[str] = []
    kept: List[str] = []
    in_string = False
    escaped = False

    for char in text:
        if in_string:
            kept.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in "}]":
            if not stack or stack[-1] != char:
                # unmatched closer
                continue
            stack.pop()
        kept.append(char)

    result = "".join(kept)
    if in_string:
        if escaped:
            result = result[:-1]
        result += '"'

    if stack:
        result = _DANGLING_KEY.sub("", result.rstrip())
        result = result.rstrip().rstrip(",:").rstrip()
        result += "".join(reversed(stack))
    return result


def repair_json(text: str) -> str:
    """Best-effort structural repair of a broken JSON document."""
    text = _CONTROL_CHARS.sub("", text)
    text = _TRAILING_COMMA.sub(r"\1", text)
    text = _ADJACENT_OBJECTS.sub(r"},\1{", text)
    text = _close_open_structures(text)
    return _TRAILING_COMMA.sub(r"\1", text)


def _has_fields(record: Any, required: Iterable[str]) -> bool:
    if not isinstance(record, dict):
        return False
    for field in required:
        value = record.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            return False
    return True


def salvage_objects(text: str, required: Sequence[str] = ()) -> List[dict]:
    """Collect every well-formed object in ``text`` carrying ``required``."""
    decoder = json.JSONDecoder(strict=False)
    records: List[dict] = []
    position = 0
    while True:
        start = text.find("{", position)
        if start == -1:
            break
        try:
            value, end = decoder.raw_decode(text, start)
        except ValueError:
            position = start + 1
            continue
        if _has_fields(value, required):
            records.append(value)
            position = end
        else:
            position = start + 1
    return records


def extract_json(raw_text: str, prefer: str = "{") -> Any:
    """Locate and parse the JSON payload in ``raw_text``.

    Raises:
        MalformedResponse: No ``{`` or ``[`` at all, or nothing parseable
            even after repair.
    """
    text = strip_noise(raw_text or "")
    spans = _candidate_spans(text, prefer)
    if not spans:
        raise MalformedResponse("No JSON object or array in model output")

    for span in spans:
        try:
            return json.loads(span)
        except ValueError:
            continue

    for span in spans:
        try:
            return json.loads(repair_json(span), strict=False)
        except ValueError:
            continue

    raise MalformedResponse("Model output JSON could not be repaired")


def _validate(schema: Type[ModelT], record: Any) -> ModelT:
    try:
        return schema.model_validate(record)
    except ValidationError as exc:
        raise MalformedResponse(
            f"Model output does not fit {schema.__name__}: {exc.error_count()} errors"
        ) from exc


def extract(raw_text: str, schema: Type[ModelT]) -> ModelT:
    """Parse ``raw_text`` into ``schema`` with defaults for absent fields."""
    value = extract_json(raw_text, prefer="{")
    if isinstance(value, list):
        value = next((item for item in value if isinstance(item, dict)), None)
    if not isinstance(value, dict):
        raise MalformedResponse("Model output is not a JSON object")
    return _validate(schema, value)


def _records_in(value: Any, key: Optional[str]) -> List[Any]:
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        if key and isinstance(value.get(key), list):
            return value[key]
        for item in value.values():
            if isinstance(item, list) and any(isinstance(v, dict) for v in item):
                return item
        return [value]
    return []


def extract_list(
    raw_text: str,
    item_schema: Type[ModelT],
    required: Sequence[str] = (),
    key: Optional[str] = None,
) -> List[ModelT]:
    """Parse a list of records, salvaging what survives a broken document.

    ``key`` names the list inside a wrapping object such as
    ``{"jobs": [...]}``. Records missing any ``required`` field are dropped.

    Raises:
        MalformedResponse: No JSON boundary at all, or zero usable records.
    """
    try:
        records = _records_in(extract_json(raw_text, prefer="["), key)
    except MalformedResponse:
        text = strip_noise(raw_text or "")
        if "{" not in text:
            raise
        records = salvage_objects(text, required)
        logger.warning("Salvaged %s records from malformed model output", len(records))

    items: List[ModelT] = []
    for record in records:
        if not _has_fields(record, required):
            continue
        try:
            items.append(item_schema.model_validate(record))
        except ValidationError as exc:
            logger.debug("Dropping record that does not fit %s: %s", item_schema.__name__, exc)

    if not items:
        raise MalformedResponse("No usable records in model output")
    return items
