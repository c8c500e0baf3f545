"""
Tests for model-output cleanup and JSON payload parsing.
"""
import pytest

from finance_api.llm.errors import AIParseError
from finance_api.llm.parsing import sanitize_json, parse_json_payload, parse_json_object, dict_items


@pytest.mark.parametrize("raw", [
    '```json\n{"a": 1}\n```',
    '```JSON {"a": 1}```',
    '```\n{"a": 1}\n```',
    '  {"a": 1}  ',
    '```\n```json\n{"a": 1}\n```\n```',
])
def test_sanitize_strips_fences(raw):
    assert sanitize_json(raw) == '{"a": 1}'


def test_sanitize_is_idempotent():
    raw = '```json\n{"tips": [{"type": "alerta"}]}\n```'
    once = sanitize_json(raw)
    assert sanitize_json(once) == once


def test_sanitize_empty():
    assert sanitize_json("") == ""
    assert sanitize_json(None) == ""


@pytest.mark.parametrize("raw", ["", "```json\n```", "not json", "[1, 2]", '{"tips": []}', '{"tips": {}}'])
def test_parse_payload_rejects_unusable_output(raw):
    with pytest.raises(AIParseError):
        parse_json_payload(raw, "tips")


def test_parse_payload_accepts_fenced_object():
    payload = parse_json_payload('```json\n{"meals": [{"day": "seg"}]}\n```', "meals")
    assert payload["meals"] == [{"day": "seg"}]


def test_parse_object_does_not_require_items():
    assert parse_json_object('{"total": 10}') == {"total": 10}


def test_dict_items_filters_non_objects():
    assert dict_items([{"a": 1}, "x", 3, None, {"b": 2}]) == [{"a": 1}, {"b": 2}]
    assert dict_items("nope") == []
