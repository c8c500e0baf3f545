"""
Tests for ISO week handling, meal reconciliation and plan generation.
"""
import json
from datetime import date

import pytest

from finance_api.db.models.meal_plan import MealPlan, MealItem
from finance_api.db.models.token_usage import TokenUsage
from finance_api.llm.errors import AITransportError
from finance_api.services.meal_plan_service import (
    MealPlanService,
    InvalidISOWeek,
    convert_meal_plan,
    heuristic_meal_plan,
    iso_week_start,
    parse_iso_week,
    resolve_iso_week,
    current_iso_week,
)

from tests.fakes import FakeProvider, ai_result


@pytest.mark.parametrize("value,expected", [
    ("2024-W37", (2024, 37)),
    ("2024-w5", (2024, 5)),
    (" 2025-W01 ", (2025, 1)),
])
def test_parse_iso_week(value, expected):
    assert parse_iso_week(value) == expected


@pytest.mark.parametrize("value", ["2024-W00", "2024-W54", "2024-37", "semana 3", ""])
def test_parse_iso_week_rejects(value):
    with pytest.raises(InvalidISOWeek):
        parse_iso_week(value)


def test_resolve_iso_week_formats_canonically():
    assert resolve_iso_week("2024-w5") == (2024, 5, "2024-W05")
    assert resolve_iso_week(None)[2] == current_iso_week()[2]


def test_iso_week_start_is_monday():
    assert iso_week_start(2024, 37) == date(2024, 9, 9)
    assert iso_week_start(2021, 1) == date(2021, 1, 4)
    assert current_iso_week(date(2024, 9, 12)) == (2024, 37, "2024-W37")


def test_heuristic_plan_has_21_items():
    plan = heuristic_meal_plan(1, "2024-W37")
    assert len(plan.items) == 21
    assert plan.estimated_cost == 210.0
    assert plan.calorie_goal == 2000
    assert not plan.generated_by_ai
    assert {i.day_of_week for i in plan.items} == {"seg", "ter", "qua", "qui", "sex", "sab", "dom"}
    assert {i.meal_type for i in plan.items} == {"cafe", "almoco", "janta"}
    assert heuristic_meal_plan(1, "2024-W37", requested_calories=1600).calorie_goal == 1600


def test_convert_meal_plan_normalizes_and_skips():
    payload = {
        "estimatedCost": "150,50",
        "calorieGoal": 1800,
        "meals": [
            {"day": "Segunda", "mealType": "Café da manhã", "title": " Tapioca ",
             "ingredients": ["tapioca", " ", "queijo"], "estimatedCost": 8},
            {"day": "funday", "mealType": "almoco", "title": "Skipped"},
            {"day": "ter", "meal_type": "dinner", "title": "Sopa", "instructions": "Cozinhe."},
            {"day": "qua", "mealType": "almoco", "title": "   "},
        ],
    }
    plan = convert_meal_plan(1, "2024-W37", None, payload)

    assert [(i.day_of_week, i.meal_type, i.title) for i in plan.items] == [
        ("seg", "cafe", "Tapioca"),
        ("ter", "janta", "Sopa"),
    ]
    assert plan.items[0].ingredients == ["tapioca", "queijo"]
    assert plan.estimated_cost == 150.5
    assert plan.calorie_goal == 1800
    assert plan.generated_by_ai


def test_convert_meal_plan_defaults():
    payload = {"meals": [{"day": "seg", "mealType": "almoco", "title": "Arroz e feijão"}]}
    plan = convert_meal_plan(1, "2024-W37", 1700, payload)
    assert plan.calorie_goal == 1700
    assert plan.estimated_cost == 18.0

    assert convert_meal_plan(1, "2024-W37", None, {"meals": [{"day": "x"}]}) is None


def test_generate_with_ai(db_session, user, ledger):
    text = json.dumps({
        "estimatedCost": 95.0,
        "meals": [
            {"day": "seg", "mealType": "almoco", "title": "Frango", "estimatedCost": 20},
            {"day": "sexta", "mealType": "lanche", "title": "Fruta", "estimatedCost": 4},
        ],
    })
    provider = FakeProvider().queue(ai_result(text))
    plan = MealPlanService(db_session, provider, ledger).generate(
        user, week="2024-W37", options={"calorie_goal": 1900, "exclusions": ["amendoim"]}
    )

    assert plan.generated_by_ai
    assert plan.iso_week == "2024-W37"
    assert plan.calorie_goal == 1900
    assert [i.title for i in plan.items] == ["Frango", "Fruta"]

    entry = db_session.query(TokenUsage).one()
    assert entry.request_type == "meal_plan"
    assert entry.cost_in_cents == 25
    assert entry.metadata_json["iso_week"] == "2024-W37"
    assert entry.metadata_json["items"] == 2

    prompt = provider.requests[0].contents[0].parts[0].text
    assert "2024-W37" in prompt
    assert "09/09/2024" in prompt
    assert "amendoim" in prompt


def test_generate_falls_back_when_ai_fails(db_session, user, ledger):
    provider = FakeProvider().queue(AITransportError("connection reset"))
    plan = MealPlanService(db_session, provider, ledger).generate(user, week="2024-W37")

    assert not plan.generated_by_ai
    assert len(plan.items) == 21
    assert plan.estimated_cost == 210.0
    assert db_session.query(TokenUsage).count() == 0


def test_generate_falls_back_when_no_meal_is_valid(db_session, user, ledger):
    text = json.dumps({"meals": [{"day": "someday", "mealType": "brunch", "title": "?"}]})
    provider = FakeProvider().queue(ai_result(text))
    plan = MealPlanService(db_session, provider, ledger).generate(user, week="2024-W37")

    assert not plan.generated_by_ai
    assert len(plan.items) == 21
    entry = db_session.query(TokenUsage).one()
    assert entry.metadata_json["parse_error"] is True


def test_generate_replaces_plan_for_same_week(db_session, user, ledger):
    service = MealPlanService(db_session, None, ledger)
    service.generate(user, week="2024-W37")
    service.generate(user, week="2024-W37")
    service.generate(user, week="2024-W38")

    plans = db_session.query(MealPlan).filter(MealPlan.user_id == user.id).all()
    assert sorted(p.iso_week for p in plans) == ["2024-W37", "2024-W38"]
    assert db_session.query(MealItem).count() == 42


def test_generate_rejects_invalid_week(db_session, user, ledger):
    with pytest.raises(InvalidISOWeek):
        MealPlanService(db_session, None, ledger).generate(user, week="2024-W99")


def test_load_missing_plan(db_session, user, ledger):
    assert MealPlanService(db_session, None, ledger).load(user.id, "2024-W01") is None


def test_convert_meal_plan_truncates_long_titles(db_session, user, ledger):
    payload = {"meals": [{"day": "seg", "mealType": "almoco", "title": "Feijoada " * 60}]}
    plan = convert_meal_plan(user.id, "2024-W37", None, payload)
    assert len(plan.items[0].title) <= 200

    service = MealPlanService(db_session, FakeProvider().queue(ai_result(json.dumps(payload))), ledger)
    stored = service.generate(user, week="2024-W37")
    assert stored.generated_by_ai
    assert len(stored.items[0].title) <= 200
