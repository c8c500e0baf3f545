"""
Integration tests for categories, expenses, dashboard, sync and health endpoints.
"""
import pytest


@pytest.fixture
def category_id(client, auth_headers):
    categories = client.get("/api/v1/categories", headers=auth_headers).json()
    return categories[0]["id"]


def create_expense(client, headers, category_id, **overrides):
    payload = {
        "category_id": category_id,
        "description": "Supermercado",
        "amount": 120.555,
        "date": "2024-03-10",
    }
    payload.update(overrides)
    return client.post("/api/v1/expenses", json=payload, headers=headers)


def test_category_crud_and_status_filter(client, auth_headers):
    response = client.post(
        "/api/v1/categories",
        json={"name": "Pets", "icon": "paw", "color_hex": "#AA5500"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    pets = response.json()
    assert pets["type"] == "variavel"
    assert pets["active"] is True

    response = client.put(f"/api/v1/categories/{pets['id']}", json={"name": "Pet shop"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Pet shop"

    assert client.delete(f"/api/v1/categories/{pets['id']}", headers=auth_headers).status_code == 200

    inactive = client.get("/api/v1/categories?status=inativo", headers=auth_headers).json()
    assert [c["name"] for c in inactive] == ["Pet shop"]
    active = client.get("/api/v1/categories?status=true", headers=auth_headers).json()
    assert len(active) == 6
    assert len(client.get("/api/v1/categories?status=all", headers=auth_headers).json()) == 7
    assert client.get("/api/v1/categories?status=maybe", headers=auth_headers).status_code == 400


def test_category_validation_and_not_found(client, auth_headers):
    bad_color = client.post("/api/v1/categories", json={"name": "X", "color_hex": "AA5500"}, headers=auth_headers)
    assert bad_color.status_code == 422
    bad_type = client.post("/api/v1/categories", json={"name": "X", "type": "anual"}, headers=auth_headers)
    assert bad_type.status_code == 422
    assert client.put("/api/v1/categories/9999", json={"name": "Y"}, headers=auth_headers).status_code == 404
    assert client.put("/api/v1/categories/9999", json={}, headers=auth_headers).status_code == 400


def test_create_expense_with_receipt(client, auth_headers, category_id):
    response = create_expense(
        client, auth_headers, category_id,
        receipt={"file_path": "/tmp/r.jpg", "extracted_text": "TOTAL 120,56", "ocr_confidence": 0.8},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["amount"] == 120.56
    assert data["origin"] == "manual"
    assert data["category"]["id"] == category_id
    assert data["receipt"]["extracted_text"] == "TOTAL 120,56"


def test_create_expense_rejects_foreign_category(client, auth_headers, signup):
    other = signup(email="bruno@example.com").json()["access_token"]
    other_headers = {"Authorization": f"Bearer {other}"}
    foreign_id = client.get("/api/v1/categories", headers=other_headers).json()[0]["id"]

    assert create_expense(client, auth_headers, foreign_id).status_code == 403


def test_create_expense_validation(client, auth_headers, category_id):
    assert create_expense(client, auth_headers, category_id, amount=0).status_code == 422
    assert create_expense(client, auth_headers, category_id, origin="import").status_code == 422


def test_list_expenses_by_month_with_summary(client, auth_headers, category_id):
    create_expense(client, auth_headers, category_id, amount=100, date="2024-03-01")
    create_expense(client, auth_headers, category_id, amount=50, date="2024-03-31", origin="ocr")
    create_expense(client, auth_headers, category_id, amount=999, date="2024-04-01")

    data = client.get("/api/v1/expenses?month=3&year=2024", headers=auth_headers).json()
    assert data["summary"] == {"count": 2, "total": 150.0, "average": 75.0}
    assert [e["date"] for e in data["expenses"]] == ["2024-03-31", "2024-03-01"]

    ocr_only = client.get("/api/v1/expenses?month=3&year=2024&origin=ocr", headers=auth_headers).json()
    assert ocr_only["summary"]["count"] == 1

    empty = client.get("/api/v1/expenses?month=1&year=2020", headers=auth_headers).json()
    assert empty["summary"] == {"count": 0, "total": 0.0, "average": 0.0}


def test_update_expense_receipt_upsert_and_removal(client, auth_headers, category_id):
    expense_id = create_expense(client, auth_headers, category_id).json()["id"]

    response = client.put(
        f"/api/v1/expenses/{expense_id}",
        json={"amount": 80, "receipt": {"extracted_text": "v1"}},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["amount"] == 80.0
    receipt_id = response.json()["receipt"]["id"]

    response = client.put(f"/api/v1/expenses/{expense_id}", json={"receipt": {"extracted_text": "v2"}}, headers=auth_headers)
    assert response.json()["receipt"] == {
        "id": receipt_id, "file_path": None, "extracted_text": "v2", "ocr_confidence": None
    }

    response = client.put(f"/api/v1/expenses/{expense_id}", json={"remove_receipt": True}, headers=auth_headers)
    assert response.json()["receipt"] is None
    assert response.json()["description"] == "Supermercado"


def test_get_and_delete_expense(client, auth_headers, category_id, signup):
    expense_id = create_expense(client, auth_headers, category_id).json()["id"]

    other = signup(email="bruno@example.com").json()["access_token"]
    other_headers = {"Authorization": f"Bearer {other}"}
    assert client.get(f"/api/v1/expenses/{expense_id}", headers=other_headers).status_code == 404

    assert client.get(f"/api/v1/expenses/{expense_id}", headers=auth_headers).status_code == 200
    assert client.delete(f"/api/v1/expenses/{expense_id}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/v1/expenses/{expense_id}", headers=auth_headers).status_code == 404


def test_dashboard_summary(client, auth_headers):
    categories = client.get("/api/v1/categories", headers=auth_headers).json()
    food, transport = categories[0]["id"], categories[1]["id"]
    create_expense(client, auth_headers, food, amount=100, date="2024-03-05")
    create_expense(client, auth_headers, transport, amount=50, date="2024-03-06")
    create_expense(client, auth_headers, food, amount=75, date="2024-02-20")

    data = client.get("/api/v1/dashboard/summary?month=3&year=2024", headers=auth_headers).json()
    assert data["total_spent"] == 150.0
    assert data["previous_total"] == 75.0
    assert data["variation_pct"] == 100.0
    assert [(c["category"]["id"], c["total"]) for c in data["top_categories"]] == [(food, 100.0), (transport, 50.0)]


def test_dashboard_january_compares_with_december(client, auth_headers, category_id):
    create_expense(client, auth_headers, category_id, amount=40, date="2023-12-31")
    data = client.get("/api/v1/dashboard/summary?month=1&year=2024", headers=auth_headers).json()
    assert data["previous_total"] == 40.0
    assert data["variation_pct"] == -100.0


def test_sync_job(client, auth_headers):
    response = client.post("/api/v1/sync/jobs", json={}, headers=auth_headers)
    assert response.status_code == 201
    assert response.json()["origin"] == "mobile"
    assert response.json()["status"] == "ok"

    assert client.post("/api/v1/sync/jobs", json={"origin": "backup"}, headers=auth_headers).json()["origin"] == "backup"
    assert client.post("/api/v1/sync/jobs", json={"origin": "fax"}, headers=auth_headers).status_code == 422


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "connected"
