"""
Integration tests for receipt scanning, tips, meal plans and the token ledger endpoints.
"""
import base64
import json

from finance_api.core.ai_dependency import get_ai_provider
from finance_api.main import app

from tests.fakes import ai_result

IMAGE = base64.b64encode(b"receipt").decode()

RECEIPT_JSON = json.dumps({
    "total": 87.4,
    "currency": "BRL",
    "confidence": 0.9,
    "date": "2024-09-12",
    "items": [{"description": "Arroz", "quantity": 1, "unitPrice": 87.4, "total": 87.4}],
    "raw_text": "MERCADO",
})

TIPS_JSON = json.dumps({"tips": [
    {"type": "economia", "message": "Compare preços no atacado", "relevance": 70},
    {"type": "alerta", "message": "Gastos com lazer subiram", "relevance": 90},
]})


def test_scan_receipt_saves_expense(client, auth_headers, fake_provider):
    fake_provider.queue(ai_result(RECEIPT_JSON))
    response = client.post("/api/v1/receipts/scan", json={"image_base64": IMAGE}, headers=auth_headers)
    assert response.status_code == 200

    data = response.json()
    assert data["fallback"] is False
    assert data["suggested_amount"] == 87.4
    assert data["suggested_date"] == "2024-09-12"
    assert data["tokens_used"] == 2000
    assert data["raw_model_output"] is None
    assert data["saved_expense"]["origin"] == "ocr"
    assert data["saved_expense"]["description"] == "Compras no mercado (12/09)"
    assert len(data["saved_expense"]["items"]) == 1

    listed = client.get("/api/v1/expenses?month=9&year=2024", headers=auth_headers).json()
    assert listed["summary"]["count"] == 1


def test_scan_receipt_without_gemini_returns_fallback(client, auth_headers):
    app.dependency_overrides[get_ai_provider] = lambda: None
    response = client.post(
        "/api/v1/receipts/scan",
        json={"image_base64": IMAGE, "amount_hint": 30},
        headers=auth_headers,
    )
    data = response.json()
    assert data["fallback"] is True
    assert data["suggested_amount"] == 30.0
    assert data["saved_expense"] is None


def test_scan_receipt_rejects_bad_image(client, auth_headers):
    response = client.post("/api/v1/receipts/scan", json={"image_base64": "%%%"}, headers=auth_headers)
    assert response.status_code == 400
    response = client.post("/api/v1/receipts/scan", json={"image_base64": ""}, headers=auth_headers)
    assert response.status_code == 422


def test_tips_are_generated_once_then_served_from_storage(client, auth_headers):
    first = client.get("/api/v1/tips", headers=auth_headers).json()
    assert first["source"] == "heuristic"
    assert first["tips"]

    second = client.get("/api/v1/tips", headers=auth_headers).json()
    assert second["source"] == "stored"
    assert [t["id"] for t in second["tips"]] == [t["id"] for t in first["tips"]]


def test_generate_tips_with_gemini(client, auth_headers, fake_provider):
    fake_provider.queue(ai_result(TIPS_JSON))
    data = client.post("/api/v1/tips/generate", headers=auth_headers).json()

    assert data["source"] == "gemini"
    assert [t["type"] for t in data["tips"]] == ["alerta", "economia"]
    assert all(t["model_source"] == "gemini-test" for t in data["tips"])

    usage = client.get("/api/v1/token-usage", headers=auth_headers).json()
    assert usage["entries"][0]["request_type"] == "insight"
    assert usage["entries"][0]["metadata"]["tips_generated"] == 2


def test_meal_plan_lifecycle(client, auth_headers):
    missing = client.get("/api/v1/meal-plans?week=2024-W37", headers=auth_headers)
    assert missing.status_code == 404

    response = client.post("/api/v1/meal-plans/generate", json={"week": "2024-w37"}, headers=auth_headers)
    assert response.status_code == 201
    plan = response.json()
    assert plan["iso_week"] == "2024-W37"
    assert plan["generated_by_ai"] is False
    assert len(plan["items"]) == 21

    fetched = client.get("/api/v1/meal-plans?week=2024-W37", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["id"] == plan["id"]


def test_meal_plan_rejects_bad_week(client, auth_headers):
    assert client.get("/api/v1/meal-plans?week=2024-W60", headers=auth_headers).status_code == 400
    response = client.post("/api/v1/meal-plans/generate", json={"week": "next week"}, headers=auth_headers)
    assert response.status_code == 400


def test_token_usage_pagination_is_clamped(client, auth_headers, fake_provider):
    fake_provider.queue(ai_result(RECEIPT_JSON), ai_result(RECEIPT_JSON, prompt_tokens=3000))
    client.post("/api/v1/receipts/scan", json={"image_base64": IMAGE}, headers=auth_headers)
    client.post("/api/v1/receipts/scan", json={"image_base64": IMAGE}, headers=auth_headers)

    data = client.get("/api/v1/token-usage?page=-3&limit=1000", headers=auth_headers).json()
    assert data["pagination"] == {"page": 1, "limit": 200, "total_entries": 2}
    assert [e["prompt_tokens"] for e in data["entries"]] == [3000, 1500]
    assert data["summary"]["total_tokens"] == 5500

    data = client.get("/api/v1/token-usage?limit=0", headers=auth_headers).json()
    assert data["pagination"]["limit"] == 50

    page_two = client.get("/api/v1/token-usage?page=2&limit=1", headers=auth_headers).json()
    assert [e["prompt_tokens"] for e in page_two["entries"]] == [1500]
    assert page_two["summary"]["total_cost_cents"] == data["summary"]["total_cost_cents"]


def test_ai_endpoints_require_auth(client):
    assert client.post("/api/v1/receipts/scan", json={"image_base64": IMAGE}).status_code == 401
    assert client.get("/api/v1/tips").status_code == 401
    assert client.get("/api/v1/meal-plans").status_code == 401
    assert client.get("/api/v1/token-usage").status_code == 401
