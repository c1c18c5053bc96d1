from __future__ import annotations

import json
import logging
import re
import typing as t

from .errors import ParseError
from .models import UNKNOWN, W1H_FIELDS, JsonDict

logger = logging.getLogger(__name__)

_FENCED = re.compile(r"```[\w-]*[ \t]*\n?(.*?)\s*```", re.S)
_FENCE_OPEN = re.compile(r"```[\w-]*[ \t]*\n?")


def strip_code_fences(text: str) -> str:
    s = text.strip()
    if not s.startswith("```"):
        return s
    # Only a fence wrapping the whole text counts; backticks inside JSON strings stay
    match = _FENCED.fullmatch(s)
    if match:
        return match.group(1).strip()
    # Opening fence never closed (truncated output)
    return s[_FENCE_OPEN.match(s).end():].strip()


def parse_model_json(text: str | None) -> t.Any:
    """Strip code fences from model output and parse the rest as JSON.

    Raises ParseError when nothing is left or the remainder is not valid JSON.
    No repair is attempted.
    """
    cleaned = strip_code_fences(text or "")
    if not cleaned:
        raise ParseError("Model returned empty text.")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.debug("Unparseable model text: %s", cleaned[:2000])
        raise ParseError(f"Model did not return valid JSON: {e}") from e


def _require_dict(obj: t.Any, what: str) -> JsonDict:
    if not isinstance(obj, dict):
        raise ParseError(f"Expected a JSON object for {what}, got {type(obj).__name__}.")
    return t.cast(JsonDict, obj)


def _require_str(obj: JsonDict, key: str, what: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise ParseError(f"Missing or non-string field {what}.{key}.")
    return value


def _require_str_list(obj: JsonDict, key: str, what: str) -> list[str]:
    value = obj.get(key)
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise ParseError(f"Missing or non-list field {what}.{key}.")
    return t.cast(list[str], value)


def parse_article_payload(text: str | None) -> dict[str, str]:
    data = _require_dict(parse_model_json(text), "article")
    out = {key: _require_str(data, key, "article").strip() for key in ("title", "category", "content")}
    for key, value in out.items():
        if not value:
            raise ParseError(f"Field article.{key} is empty.")
    return out


def parse_analysis_payload(text: str | None) -> tuple[dict[str, str], dict[str, list[str]]]:
    """Validate an analysis payload of the form ``{"answers": {...}, "quotes": {...}}``.

    Every 5W1H field must be present in both objects. A missing field is an
    error, not an implicit "unknown".
    """
    data = _require_dict(parse_model_json(text), "analysis")
    answers_obj = _require_dict(data.get("answers"), "analysis.answers")
    quotes_obj = _require_dict(data.get("quotes"), "analysis.quotes")

    answers: dict[str, str] = {}
    quotes: dict[str, list[str]] = {}
    for field in W1H_FIELDS:
        answers[field] = _require_str(answers_obj, field, "answers").strip() or UNKNOWN
        quotes[field] = _require_str_list(quotes_obj, field, "quotes")
    return answers, quotes


def parse_keyword_payload(text: str | None) -> list[str]:
    data = parse_model_json(text)
    if isinstance(data, dict):
        # Some models wrap the list: {"keywords": [...]}
        data = data.get("keywords")
    if not isinstance(data, list):
        raise ParseError("Expected a JSON array of keywords.")
    out: list[str] = []
    for item in data:
        if not isinstance(item, str):
            raise ParseError("Keyword list contains a non-string item.")
        s = item.strip()
        if s and s not in out:
            out.append(s)
    return out
