"""
Tests for the Gemini client: request shape, retries, backoff and cancellation.
"""
import json
import threading
import time

import httpx
import pytest

from finance_api.llm.errors import (
    AIClientError,
    AIConfigurationError,
    AIRequestError,
    AIContentError,
    AICancelledError,
    AIRetriesExhaustedError,
    AIProtocolError,
    AITransportError,
)
from finance_api.llm.gemini_client import GeminiClient, extract_text
from finance_api.llm.provider import GenerateContentRequest, ContentPart, UsageMetadata

OK_BODY = {
    "candidates": [{"content": {"parts": [{"text": "  {\"tips\": []}  "}]}}],
    "usageMetadata": {"promptTokenCount": 120, "candidatesTokenCount": 30, "totalTokenCount": 150},
}


def text_request(text="hello"):
    return GenerateContentRequest.from_parts(ContentPart.text_part(text))


def make_client(handler, waits, **kwargs):
    def fake_wait(event, seconds):
        waits.append(seconds)
        return False

    options = {
        "api_key": "test-key",
        "model": "gemini-test",
        "http_client": httpx.Client(transport=httpx.MockTransport(handler)),
        "base_url": "https://example.test/v1beta",
        "wait": fake_wait,
    }
    options.update(kwargs)
    return GeminiClient(**options)


def test_missing_api_key_is_configuration_error():
    with pytest.raises(AIConfigurationError):
        GeminiClient(api_key="  ")


def test_request_shape_and_success():
    """Key goes in the query string, parts are serialized in camelCase."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=OK_BODY)

    client = make_client(handler, [])
    request = GenerateContentRequest.from_parts(
        ContentPart.text_part("extract"),
        ContentPart.inline_image("image/png", "AAAA"),
    )
    result = client.generate_content(request)

    assert result.text == '{"tips": []}'
    assert result.model == "gemini-test"
    assert result.usage == UsageMetadata(120, 30, 150)

    sent = seen[0]
    assert sent.method == "POST"
    assert sent.url.path == "/v1beta/models/gemini-test:generateContent"
    assert sent.url.params["key"] == "test-key"
    body = json.loads(sent.content)
    assert body == {
        "contents": [{
            "role": "user",
            "parts": [
                {"text": "extract"},
                {"inlineData": {"mimeType": "image/png", "data": "AAAA"}},
            ],
        }]
    }


def test_empty_request_is_rejected_without_calling():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=OK_BODY)

    client = make_client(handler, [])
    with pytest.raises(AIRequestError):
        client.generate_content(GenerateContentRequest.from_parts())
    assert calls == []


def test_retries_exhausted_with_doubling_backoff():
    waits = []
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, json={"error": "unavailable"})

    client = make_client(handler, waits, max_retries=3, backoff=1.0)
    with pytest.raises(AIRetriesExhaustedError) as exc_info:
        client.generate_content(text_request())

    assert len(calls) == 3
    assert waits == [1.0, 2.0]
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value.last_error, AIProtocolError)
    assert exc_info.value.last_error.status_code == 503


def test_transport_error_then_success():
    waits = []
    attempts = {"n": 0}

    def handler(request):
        attempts["n"] += 1
        if attempts["n"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=OK_BODY)

    client = make_client(handler, waits)
    result = client.generate_content(text_request())

    assert result.text == '{"tips": []}'
    assert attempts["n"] == 2
    assert waits == [1.0]


def test_malformed_body_is_retried_as_protocol_error():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, content=b"<html>oops</html>")

    client = make_client(handler, [], max_retries=2)
    with pytest.raises(AIRetriesExhaustedError) as exc_info:
        client.generate_content(text_request())
    assert len(calls) == 2
    assert isinstance(exc_info.value.last_error, AIProtocolError)


def test_zero_candidates_fails_fast():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"candidates": []})

    client = make_client(handler, [])
    with pytest.raises(AIContentError):
        client.generate_content(text_request())
    assert len(calls) == 1


def test_cancel_during_backoff_stops_retrying():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    def cancelled_wait(event, seconds):
        return True

    client = make_client(handler, [], wait=cancelled_wait)
    with pytest.raises(AICancelledError):
        client.generate_content(text_request())
    assert len(calls) == 1


def test_cancel_event_set_before_call():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=OK_BODY)

    event = threading.Event()
    event.set()
    client = make_client(handler, [])
    with pytest.raises(AICancelledError):
        client.generate_content(text_request(), cancel_event=event)
    assert calls == []


def test_backoff_is_capped_by_deadline():
    """A 2.5s deadline allows waits of 1.0 and 1.5, then gives up."""
    now = [0.0]
    waits = []
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    def advancing_wait(event, seconds):
        waits.append(seconds)
        now[0] += seconds
        return False

    client = make_client(handler, [], wait=advancing_wait, clock=lambda: now[0], max_retries=5)
    with pytest.raises(AICancelledError):
        client.generate_content(text_request(), timeout=2.5)

    assert waits == [1.0, 1.5]
    assert len(calls) == 2


def test_extract_text_skips_blank_parts():
    body = {"candidates": [
        {"content": {"parts": [{"text": "   "}]}},
        {"content": {"parts": [{"inlineData": {}}, {"text": " ok \n"}]}},
    ]}
    assert extract_text(body) == "ok"


def test_extract_text_without_text_raises():
    with pytest.raises(AIContentError):
        extract_text({"candidates": [{"content": {"parts": [{"text": ""}]}}]})


def test_usage_total_defaults_to_sum():
    usage = UsageMetadata.from_dict({"promptTokenCount": 10, "candidatesTokenCount": "5"})
    assert usage.total_token_count == 15
    assert UsageMetadata.from_dict(None) == UsageMetadata(0, 0, 0)


def test_transport_and_protocol_errors_are_retryable():
    assert AITransportError("x").retryable
    assert AIProtocolError("x", status_code=500).retryable
    assert not AIContentError("x").retryable


@pytest.mark.parametrize("body", [
    {"candidates": [{"content": ["oops"]}]},
    {"candidates": [{"content": {"parts": "oops"}}]},
    {"candidates": {"content": {}}},
    {"candidates": OK_BODY["candidates"], "usageMetadata": ["x"]},
])
def test_unexpected_body_shapes_raise_client_errors(body):
    client = make_client(lambda request: httpx.Response(200, json=body), [], max_retries=2)
    with pytest.raises(AIClientError):
        client.generate_content(text_request())


def test_usage_metadata_from_non_object_is_zero():
    assert UsageMetadata.from_dict(["x"]) == UsageMetadata(0, 0, 0)
    assert UsageMetadata.from_dict("oops") == UsageMetadata(0, 0, 0)


def test_real_event_cancels_real_backoff():
    """A Timer sets the event while the client sleeps; no second request is made."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    event = threading.Event()
    timer = threading.Timer(0.05, event.set)
    client = make_client(handler, [], wait=None, backoff=5.0, max_retries=3)

    started = time.monotonic()
    timer.start()
    try:
        with pytest.raises(AICancelledError):
            client.generate_content(text_request(), cancel_event=event)
    finally:
        timer.cancel()

    assert len(calls) == 1
    assert time.monotonic() - started < 4.0
