"""
Unit Tests - Report API
"""
import pytest
from fastapi.testclient import TestClient

from pos_reports.main import app
from pos_reports.reports.service import ReportService
from pos_reports.serving.api.routes.reports import get_report_service


class StaticSource:
    """Returns the seeded records whatever the window"""

    def __init__(self, records):
        self.records = records

    async def fetch(self, dataset, window):
        return list(self.records.get(dataset, []))


class BrokenSource:
    async def fetch(self, dataset, window):
        raise ConnectionError("database is down")


@pytest.fixture
def client(report_data):
    """Test client whose report service reads the sample records"""
    app.dependency_overrides[get_report_service] = lambda: ReportService(StaticSource(report_data))
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestReportEndpoints:
    """Tests for /api/v1/reports"""

    def test_list_reports(self, client):
        response = client.get("/api/v1/reports")

        assert response.status_code == 200
        names = {entry["name"] for entry in response.json()}
        assert {"sales", "stock", "profit_loss", "supplier_payments"} <= names
        sales = next(entry for entry in response.json() if entry["name"] == "sales")
        assert sales["datasets"] == ["sales", "sale_items"]

    def test_get_report(self, client):
        response = client.get("/api/v1/reports/sales", params={"days": 30})

        assert response.status_code == 200
        payload = response.json()
        assert payload["report"] == "sales"
        assert payload["days"] == 30
        assert payload["summary"]["total_revenue"] == 200.5
        assert payload["tables"]["daily"][0] == {"date": "2024-03-01", "sales": 2, "revenue": 150.0}

    def test_default_range(self, client):
        response = client.get("/api/v1/reports/stock")

        assert response.status_code == 200
        assert response.json()["days"] == 30

    def test_unknown_report(self, client):
        response = client.get("/api/v1/reports/forecast")

        assert response.status_code == 404

    def test_invalid_range(self, client):
        response = client.get("/api/v1/reports/sales", params={"days": 10})

        assert response.status_code == 422
        assert "10" in response.json()["detail"]

    def test_fetch_failure_is_generic(self):
        """Test a failed fetch surfaces only the generic message"""
        app.dependency_overrides[get_report_service] = lambda: ReportService(BrokenSource())
        try:
            response = TestClient(app).get("/api/v1/reports/sales", params={"days": 30})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 502
        assert response.json() == {"detail": "Failed to load report"}


class TestHealthEndpoints:
    """Tests for health checks and middleware headers"""

    def test_liveness(self, client):
        response = client.get("/api/v1/health/live")

        assert response.status_code == 200
        assert response.json() == {"status": "alive"}

    def test_health_without_database(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["checks"]["database"]["status"] == "unhealthy"

    def test_request_id_echoed(self, client):
        response = client.get("/api/v1/health/live", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"
        assert response.headers["X-Response-Time"].endswith("ms")

    def test_info(self, client):
        response = client.get("/api/v1/info")

        assert response.json()["name"] == "pos-reports"

    def test_metrics_exposed(self, client):
        client.get("/api/v1/reports/sales", params={"days": 30})

        response = client.get("/metrics/")

        assert response.status_code == 200
        assert "pos_report_loads_total" in response.text
