"""
Tests for the token usage ledger: cost estimation, env rates, recording and paging.
"""
from decimal import Decimal

import pytest

from finance_api.db.models.token_usage import TokenUsage
from finance_api.llm.provider import UsageMetadata
from finance_api.services.token_usage_service import (
    TokenUsageLedger,
    lookup_cost_rate,
    clamp_page,
)


def test_estimate_cost_rounds_half_up():
    ledger = TokenUsageLedger(prompt_rate=10, response_rate=20)
    assert ledger.estimate_cost(UsageMetadata(1500, 500, 2000)) == 25
    # 0.45 + 0.1 = 0.55 -> 1
    assert ledger.estimate_cost(UsageMetadata(45, 5, 50)) == 1
    assert TokenUsageLedger().estimate_cost(UsageMetadata(1500, 500, 2000)) == 0


@pytest.mark.parametrize("raw,expected", [
    (None, Decimal(0)),
    ("", Decimal(0)),
    ("12.5", Decimal("12.5")),
    ("abc", Decimal(0)),
    ("-3", Decimal(0)),
    ("NaN", Decimal(0)),
    ("Infinity", Decimal(0)),
])
def test_lookup_cost_rate(monkeypatch, raw, expected):
    if raw is None:
        monkeypatch.delenv("TEST_RATE", raising=False)
    else:
        monkeypatch.setenv("TEST_RATE", raw)
    assert lookup_cost_rate("TEST_RATE") == expected


def test_record_stores_entry(db_session, user, ledger):
    entry = ledger.record(db_session, user.id, "receipt", UsageMetadata(1500, 500, 2000), {"model": "gemini-test"})

    assert entry is not None
    assert entry.cost_in_cents == 25
    assert entry.prompt_tokens == 1500
    assert entry.response_tokens == 500
    assert entry.total_tokens == 2000
    assert entry.metadata_json == {"model": "gemini-test"}
    assert len(entry.request_id) == 36


def test_record_unknown_type(db_session, user, ledger):
    with pytest.raises(ValueError):
        ledger.record(db_session, user.id, "chat", UsageMetadata(1, 1, 2))
    assert db_session.query(TokenUsage).count() == 0


def test_request_ids_are_unique(db_session, user, ledger):
    first = ledger.record(db_session, user.id, "insight", UsageMetadata(10, 10, 20))
    second = ledger.record(db_session, user.id, "insight", UsageMetadata(10, 10, 20))
    assert first.request_id != second.request_id


def test_list_entries_newest_first_with_totals(db_session, user, ledger):
    for request_type in ("receipt", "insight", "meal_plan"):
        ledger.record(db_session, user.id, request_type, UsageMetadata(1500, 500, 2000))

    page = ledger.list_entries(db_session, user.id, page=1, limit=2)
    assert [e.request_type for e in page] == ["meal_plan", "insight"]
    assert [e.request_type for e in ledger.list_entries(db_session, user.id, page=2, limit=2)] == ["receipt"]

    assert ledger.count(db_session, user.id) == 3
    assert ledger.totals(db_session, user.id) == {
        "total_prompt_tokens": 4500,
        "total_response_tokens": 1500,
        "total_tokens": 6000,
        "total_cost_cents": 75,
    }


def test_totals_for_user_without_entries(db_session, user, ledger):
    assert ledger.totals(db_session, user.id)["total_cost_cents"] == 0
    assert ledger.count(db_session, user.id) == 0


@pytest.mark.parametrize("page,limit,expected", [
    (1, 50, (1, 50)),
    (0, 0, (1, 50)),
    (-2, -1, (1, 50)),
    (3, 500, (3, 200)),
    (None, None, (1, 50)),
])
def test_clamp_page(page, limit, expected):
    assert clamp_page(page, limit) == expected
