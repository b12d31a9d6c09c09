"""
Tests for the application shell: error envelopes and middleware
"""

from fastapi.testclient import TestClient

from app.common.exceptions import (
    ClientInUse, DocumentGenerationFailed, InvoiceNotFound, PaymentExceedsBalance
)
from app.main import app
from app.modules.reports.services.dashboard import DashboardReportService


class TestErrorTaxonomy:

    def test_error_payloads(self):
        error = PaymentExceedsBalance("0.01", "0.00")
        assert error.status_code == 400
        assert error.to_dict() == {
            "kind": "balance_violation",
            "message": "Payment of 0.01 exceeds the outstanding balance of 0.00",
            "amount": "0.01",
            "balance_due": "0.00",
        }

        assert InvoiceNotFound("abc").to_dict()["resource"] == "invoice"
        assert ClientInUse("abc", 2).status_code == 409

    def test_document_failure_status_follows_reason(self):
        assert DocumentGenerationFailed("x", reason="invoice_incomplete").status_code == 422
        assert DocumentGenerationFailed("x", reason="renderers_exhausted").status_code == 500


class TestApplication:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "environment": "test"}

    def test_security_headers(self, client):
        response = client.get("/")
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"

    def test_validation_envelope(self, client, accountant_headers):
        response = client.post("/clients", json={}, headers=accountant_headers)

        assert response.status_code == 422
        body = response.json()
        assert body["kind"] == "validation_error"
        assert body["errors"][0]["loc"][-1] == "name"

    def test_unhandled_errors_become_internal_error(self, accountant_headers, monkeypatch):
        def explode(self):
            raise RuntimeError("database went away")

        monkeypatch.setattr(DashboardReportService, "get_stats", explode)

        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.get("/dashboard/stats", headers=accountant_headers)

        assert response.status_code == 500
        body = response.json()
        assert body["kind"] == "internal_error"
        assert body["message"] == "database went away"
        assert "traceback" in body
