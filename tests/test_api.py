import pytest
from fastapi.testclient import TestClient

from payout_engine.core.database import get_db
from payout_engine.main import app


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _create_recruiter(client):
    return client.post("/api/payees", json={
        "email": "rec@example.com",
        "name": "Rec",
        "payee_class": "recruiter",
        "base_rate": "0.02",
        "tier1_rate": "0.03",
        "tier1_threshold": "30000",
        "excess_bonus_rate": "0.02",
    })


def _batch(month="2025-01", amount="45000"):
    return {
        "payee_class": "recruiter",
        "invoices": [],
        "collections": [
            {"deal_id": "D1", "payee_email": "rec@example.com", "amount_paid": amount, "month": month},
        ],
    }


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestPayeesApi:
    def test_create_and_fetch(self, client):
        response = _create_recruiter(client)
        assert response.status_code == 201
        assert response.json()["payee_class"] == "recruiter"

        response = client.get("/api/payees/rec@example.com")
        assert response.status_code == 200
        assert response.json()["name"] == "Rec"

    def test_duplicate_is_conflict(self, client):
        _create_recruiter(client)
        assert _create_recruiter(client).status_code == 409

    def test_missing_is_not_found(self, client):
        assert client.get("/api/payees/nobody@example.com").status_code == 404

    def test_invalid_ladder_is_unprocessable(self, client):
        response = client.post("/api/payees", json={
            "email": "ae@example.com",
            "payee_class": "account_executive",
            "tier1_rate": "0.02",
            "tier1_threshold": "50000",
            "tier2_rate": "0.01",
            "tier2_threshold": "60000",
        })
        assert response.status_code == 422

    def test_list(self, client):
        _create_recruiter(client)
        response = client.get("/api/payees", params={"payee_class": "recruiter"})
        assert response.status_code == 200
        body = response.json()
        assert body["page_count"] == 1
        assert [p["email"] for p in body["items"]] == ["rec@example.com"]


class TestUploadsApi:
    def test_upload_and_history(self, client):
        _create_recruiter(client)
        response = client.post("/api/uploads", json=_batch())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "completed"
        assert body["month"] == "2025-01"
        assert body["recalculated_months"] == ["2025-01"]

        history = client.get("/api/uploads").json()
        assert len(history) == 1
        assert client.get(f"/api/uploads/{body['id']}").status_code == 200

    def test_engine_error_is_bad_request(self, client):
        response = client.post("/api/uploads", json=_batch())
        assert response.status_code == 400
        assert "Unknown payees" in response.json()["detail"]

        failed = client.get("/api/uploads").json()
        assert failed[0]["status"] == "failed"

    def test_multi_month_is_bad_request(self, client):
        _create_recruiter(client)
        batch = _batch()
        batch["collections"].append(
            {"deal_id": "D2", "payee_email": "rec@example.com", "amount_paid": "10", "month": "2025-02"}
        )
        response = client.post("/api/uploads", json=batch)
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Data for multiple months")

    def test_bad_month_format_is_unprocessable(self, client):
        _create_recruiter(client)
        assert client.post("/api/uploads", json=_batch(month="2025-1")).status_code == 422

    def test_missing_upload(self, client):
        assert client.get("/api/uploads/999").status_code == 404


class TestReportsApi:
    def test_yearly_and_monthly(self, client):
        _create_recruiter(client)
        client.post("/api/uploads", json=_batch())

        yearly = client.get("/api/reports/payees/rec@example.com/years/2025").json()
        assert len(yearly) == 12
        assert yearly[0]["total_payout"] == 1350.0
        assert yearly[1]["total_payout"] == 300.0

        details = client.get("/api/reports/payees/rec@example.com/months/2025-02").json()
        assert details["payouts"][0]["kind"] == "tier_bonus"

        payouts = client.get("/api/reports/payouts/2025-01", params={"payee_class": "recruiter"}).json()
        assert [p["amount"] for p in payouts] == [1350.0]

    def test_month_details_unknown_payee(self, client):
        assert client.get("/api/reports/payees/nobody@example.com/months/2025-01").status_code == 404

    def test_yearly_unknown_payee(self, client):
        assert client.get("/api/reports/payees/nobody@example.com/years/2025").status_code == 404

    def test_invalid_month(self, client):
        _create_recruiter(client)
        assert client.get("/api/reports/payees/rec@example.com/months/2025-13").status_code == 400


class TestAdminApi:
    def test_purge(self, client):
        _create_recruiter(client)
        client.post("/api/uploads", json=_batch())

        response = client.post("/api/admin/purge", params={"month": "2025-01"})

        assert response.status_code == 200
        assert response.json()["deleted"]["payouts"] == 2
        assert client.get("/api/reports/payouts/2025-01").json() == []

    def test_purge_invalid_month(self, client):
        assert client.post("/api/admin/purge", params={"month": "January"}).status_code == 400
