"""
Helpers for turning raw model text into JSON payloads.
"""
import json
import re
from typing import Any, Dict, List

from finance_api.llm.errors import AIParseError

_LEADING_FENCE = re.compile(r"^```[ \t]*(?:json)?", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"```$")


def sanitize_json(text: str) -> str:
    """
    Strip Markdown code fences (```json, ```JSON, ```) and surrounding whitespace.

    Stripping repeats until nothing changes, so sanitizing clean text is a no-op.
    """
    if not text:
        return ""
    current = text.strip()
    while True:
        stripped = _LEADING_FENCE.sub("", current, count=1).strip()
        stripped = _TRAILING_FENCE.sub("", stripped, count=1).strip()
        if stripped == current:
            return current
        current = stripped


def parse_json_payload(raw: str, items_key: str) -> Dict[str, Any]:
    """
    Parse sanitized model output into an object that carries a non-empty list.

    Raises:
        AIParseError: empty text, invalid JSON, not an object, or no items
    """
    payload = parse_json_object(raw)
    items = payload.get(items_key)
    if not isinstance(items, list) or not items:
        raise AIParseError(f"AI response has no {items_key}")
    return payload


def parse_json_object(raw: str) -> Dict[str, Any]:
    """Parse sanitized model output into a JSON object; no list required."""
    cleaned = sanitize_json(raw)
    if not cleaned:
        raise AIParseError("AI response is empty")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AIParseError(f"AI response is not valid JSON: {e.msg}") from e
    if not isinstance(payload, dict):
        raise AIParseError("AI response is not a JSON object")
    return payload


def dict_items(values: Any) -> List[Dict[str, Any]]:
    """Keep only the object entries of a loosely typed list."""
    if not isinstance(values, list):
        return []
    return [value for value in values if isinstance(value, dict)]
