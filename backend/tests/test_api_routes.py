import os
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[2]))
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_api_routes.db")


def _headers(email="api@example.com"):
    return {"X-User-Email": email}


def _me(api_client, email="api@example.com"):
    resp = api_client.get("/api/me", headers=_headers(email))
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_missing_or_unknown_identity_is_unauthorized(api_client):
    assert api_client.get("/api/transactions").status_code == 401
    resp = api_client.get("/api/transactions", headers={"X-User-Id": "nope"})
    assert resp.status_code == 401


def test_me_provisions_and_login_counts(api_client):
    me = _me(api_client)
    assert me["onboarding_stage"] == "new"

    resp = api_client.post("/api/me/login", headers={"X-User-Id": me["id"]})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["user"]["login_count"] == 1
    assert body["score"]["score"] == 10
    assert body["nudges_created"] == 1


def test_transaction_lifecycle_over_http(api_client):
    me = _me(api_client)
    headers = {"X-User-Id": me["id"]}

    resp = api_client.post(
        "/api/budgets", json={"name": "Dining", "budget_amount": 50}, headers=headers
    )
    assert resp.status_code == 201, resp.text
    budget_id = resp.json()["budget"]["id"]

    resp = api_client.post(
        "/api/transactions",
        json={"amount": "-5.75", "merchant": "STARBUCKS #1234", "date": "2025-05-17", "user_id": "someone"},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    txn = body["transaction"]
    assert txn["date"] == "2025-05-17"
    assert txn["category"] == "Dining"
    assert txn["amount"] == 5.75
    assert txn["type"] == "expense"
    assert 0 <= body["score"]["score"] <= 100

    budget = api_client.get(f"/api/budgets/{budget_id}", headers=headers).json()
    assert budget["spent_amount"] == 5.75

    resp = api_client.patch(f"/api/transactions/{txn['id']}", json={"amount": 7}, headers=headers)
    assert resp.status_code == 200, resp.text
    assert api_client.get(f"/api/budgets/{budget_id}", headers=headers).json()["spent_amount"] == 7.0

    resp = api_client.delete(f"/api/transactions/{txn['id']}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["deleted_id"] == txn["id"]
    assert api_client.get(f"/api/budgets/{budget_id}", headers=headers).json()["spent_amount"] == 0.0
    assert api_client.get(f"/api/transactions/{txn['id']}", headers=headers).status_code == 404


def test_validation_errors_map_to_422(api_client):
    headers = _headers()
    resp = api_client.post("/api/transactions", json={"amount": 0, "merchant": "X"}, headers=headers)
    assert resp.status_code == 422
    assert resp.json()["detail"].startswith("amount")


def test_cross_user_access_maps_to_403(api_client):
    owner = _headers("owner@example.com")
    intruder = _headers("intruder@example.com")
    txn_id = api_client.post(
        "/api/transactions", json={"amount": 10, "merchant": "Target"}, headers=owner
    ).json()["transaction"]["id"]

    assert api_client.get(f"/api/transactions/{txn_id}", headers=intruder).status_code == 403
    assert api_client.delete(f"/api/transactions/{txn_id}", headers=intruder).status_code == 403
    assert api_client.get("/api/transactions", headers=intruder).json() == []


def test_batch_and_sync_endpoints(api_client):
    headers = _headers()
    rows = [{"amount": f"{i + 1}", "merchant": f"Shop {i}", "date": "2025-05-01"} for i in range(10)]
    rows[4]["amount"] = "abc"
    resp = api_client.post("/api/transactions/import", json={"rows": rows}, headers=headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] == 9
    assert [e["index"] for e in body["errors"]] == [4]

    csv_text = "date,merchant,amount\n2025-05-02,Netflix,15.99\n"
    resp = api_client.post("/api/transactions/import/csv", json={"csv": csv_text}, headers=headers)
    assert resp.json()["success"] == 1

    records = [{"transaction_id": "x-1", "amount": 20, "name": "Shell Oil", "date": "2025-05-03"}]
    first = api_client.post("/api/transactions/sync", json={"transactions": records}, headers=headers).json()
    second = api_client.post("/api/transactions/sync", json={"transactions": records}, headers=headers).json()
    assert (first["success"], first["skipped"]) == (1, 0)
    assert (second["success"], second["skipped"]) == (0, 1)


def test_goal_contributions_and_score_history(api_client):
    headers = _headers()
    resp = api_client.post(
        "/api/goals", json={"name": "Laptop", "target_amount": 1000, "target_date": "2025-12-01"}, headers=headers
    )
    assert resp.status_code == 201, resp.text
    goal = resp.json()["goal"]
    assert goal["target_date"] == "2025-12-01"

    resp = api_client.post(f"/api/goals/{goal['id']}/contributions", json={"amount": 1500}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["goal"]["progress_percentage"] == 100.0

    resp = api_client.post(f"/api/goals/{goal['id']}/contributions", json={"amount": -2000}, headers=headers)
    assert resp.status_code == 422

    history = api_client.get("/api/score/history", headers=headers).json()
    assert history
    assert api_client.get("/api/score", headers=headers).json()["meta"]["weights"]["budget_adherence"] == 0.5


def test_nudge_endpoints(api_client):
    headers = _headers()
    created = api_client.post("/api/nudges/evaluate", headers=headers).json()["created"]
    assert [n["condition_key"] for n in created] == ["onboarding:create_budget"]
    nudge_id = created[0]["id"]

    resp = api_client.post(f"/api/nudges/{nudge_id}/dismiss", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "dismissed"

    resp = api_client.post(f"/api/nudges/{nudge_id}/complete", headers=headers)
    assert resp.status_code == 422

    dismissed = api_client.get("/api/nudges", params={"status": "dismissed"}, headers=headers).json()
    assert [n["id"] for n in dismissed] == [nudge_id]


def test_linked_accounts_and_account_deletion(api_client):
    headers = _headers("leaving@example.com")
    resp = api_client.post("/api/accounts", json={"name": "Visa", "type": "credit", "last_four": "4242"}, headers=headers)
    assert resp.status_code == 201, resp.text
    assert api_client.post("/api/accounts", json={"name": "Bad", "last_four": "12"}, headers=headers).status_code == 422
    assert api_client.post("/api/accounts", json={"name": "V" * 201}, headers=headers).status_code == 422

    api_client.post("/api/transactions", json={"amount": 10, "merchant": "Target"}, headers=headers)
    me = _me(api_client, "leaving@example.com")

    resp = api_client.delete("/api/me", headers={"X-User-Id": me["id"]})
    assert resp.status_code == 200, resp.text
    rows = resp.json()["rows"]
    assert rows["transactions"] == 1
    assert rows["linked_accounts"] == 1

    assert api_client.get("/api/me", headers={"X-User-Id": me["id"]}).status_code == 401


def test_summary_and_export_endpoints(api_client):
    headers = _headers("summary@example.com")
    rows = [
        {"amount": "1000", "type": "income", "merchant": "Payroll", "date": "2025-03-01"},
        {"amount": "-250", "merchant": "Landlord", "date": "2025-03-05"},
    ]
    assert api_client.post("/api/transactions/import", json={"rows": rows}, headers=headers).status_code == 200

    resp = api_client.get("/api/transactions/summary", headers=headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["period"] == "month"
    assert body["periods"] == [
        {"period": "2025-03", "income": 1000.0, "expense": 250.0, "savings": 750.0, "savings_rate": 75.0}
    ]
    assert body["total"]["savings"] == 750.0

    resp = api_client.get("/api/transactions/summary", params={"period": "week"}, headers=headers)
    assert resp.status_code == 422

    resp = api_client.get("/api/me/export", headers=headers)
    assert resp.status_code == 200, resp.text
    exported = resp.json()
    assert exported["user"]["email"] == "summary@example.com"
    assert len(exported["tables"]["transactions"]) == 2
    assert exported["tables"]["budget_categories"] == []
