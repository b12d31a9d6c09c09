"""
Tests for the dashboard and financial report endpoints
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.modules.reports.services import DashboardReportService, FinancialReportService
from app.common.exceptions import InvalidDataError


@pytest.fixture
def ledger(client, accountant_headers, invoice_payload):
    """Three invoices: one Paid, one partly paid, one Overdue"""
    def create(amount, due_in_days):
        payload = {
            **invoice_payload,
            "amount": amount,
            "dueDate": (date.today() + timedelta(days=due_in_days)).isoformat(),
        }
        response = client.post("/invoices", json=payload, headers=accountant_headers)
        assert response.status_code == 201, response.text
        return response.json()

    def pay(invoice, amount):
        response = client.post(
            f"/invoices/{invoice['id']}/payments",
            json={"referenceNumber": f"UTR-{invoice['number']}", "amount": amount},
            headers=accountant_headers
        )
        assert response.status_code == 201, response.text

    paid = create("100.00", 10)
    partial = create("200.00", 20)
    overdue = create("50.00", -5)
    pay(paid, "100.00")
    pay(partial, "80.00")
    return {"paid": paid, "partial": partial, "overdue": overdue}


class TestDashboard:

    def test_stats(self, client, accountant_headers, ledger):
        response = client.get("/dashboard/stats", headers=accountant_headers)

        assert response.status_code == 200
        stats = response.json()
        assert stats["totalInvoices"] == 3
        assert Decimal(stats["totalRevenue"]) == Decimal("100.00")
        assert stats["pendingPayments"] == 2
        assert stats["activeClients"] == 1

    def test_revenue_is_split_by_currency(self, client, accountant_headers, invoice_payload, ledger):
        rupees = client.post(
            "/invoices", json={**invoice_payload, "amount": "500.00", "currency": "INR"}, headers=accountant_headers
        ).json()
        client.post(
            f"/invoices/{rupees['id']}/payments",
            json={"referenceNumber": "NEFT-1", "amount": "500.00"},
            headers=accountant_headers
        )

        stats = client.get("/dashboard/stats", headers=accountant_headers).json()
        assert {k: Decimal(v) for k, v in stats["revenueByCurrency"].items()} == {
            "USD": Decimal("100.00"), "INR": Decimal("500.00")
        }
        assert Decimal(stats["totalRevenue"]) == Decimal("600.00")

        report = client.get("/reports/financial-report", headers=accountant_headers).json()
        assert {k: Decimal(v) for k, v in report["revenueByCurrency"].items()} == {
            "USD": Decimal("180.00"), "INR": Decimal("500.00")
        }

    def test_empty_stats(self, db_session, settings):
        stats = DashboardReportService(db_session, settings).get_stats()
        assert stats.total_invoices == 0
        assert stats.total_revenue == Decimal("0.00")
        assert stats.revenue_by_currency == {}

    def test_monthly_data(self, client, accountant_headers, ledger):
        months = client.get("/dashboard/monthly-data", headers=accountant_headers).json()

        assert len(months) == 1
        assert months[0]["monthName"] == calendar.month_name[months[0]["month"]]
        assert months[0]["invoices"] == 3
        assert Decimal(months[0]["revenue"]) == Decimal("350.00")

    def test_payment_status(self, client, accountant_headers, ledger):
        counts = client.get("/dashboard/payment-status", headers=accountant_headers).json()
        assert {c["status"]: c["count"] for c in counts} == {"Pending": 1, "Paid": 1, "Overdue": 1}

    def test_clients_cannot_see_reports(self, client, client_headers):
        response = client.get("/dashboard/stats", headers=client_headers)
        assert response.status_code == 403
        assert response.json()["kind"] == "permission_denied"


class TestFinancialReport:

    def test_full_range(self, client, accountant_headers, ledger):
        response = client.get("/reports/financial-report", headers=accountant_headers)

        assert response.status_code == 200
        report = response.json()
        assert Decimal(report["totalRevenue"]) == Decimal("180.00")
        assert report["totalInvoices"] == 3
        assert report["paidInvoices"] == 1
        assert report["unpaidInvoices"] == 2
        assert Decimal(report["taxRate"]) == Decimal("0.18")
        assert Decimal(report["totalTax"]) == Decimal("32.40")
        assert sum(Decimal(v) for v in report["revenueSummary"].values()) == Decimal("180.00")

    def test_range_filters_on_due_date(self, client, accountant_headers, ledger):
        response = client.get("/reports/financial-report", params={
            "start_date": date.today().isoformat(),
            "end_date": (date.today() + timedelta(days=15)).isoformat(),
        }, headers=accountant_headers)

        report = response.json()
        assert report["totalInvoices"] == 1
        assert Decimal(report["totalRevenue"]) == Decimal("100.00")
        assert Decimal(report["totalTax"]) == Decimal("18.00")

    def test_inverted_range(self, client, accountant_headers):
        response = client.get("/reports/financial-report", params={
            "start_date": "2024-05-01",
            "end_date": "2024-04-01",
        }, headers=accountant_headers)

        assert response.status_code == 422
        assert response.json()["kind"] == "validation_error"

    def test_inverted_range_in_service(self, db_session, settings):
        with pytest.raises(InvalidDataError):
            FinancialReportService(db_session, settings).get_financial_report(date(2024, 5, 1), date(2024, 4, 1))

    def test_configured_tax_rate(self, db_session, settings):
        custom = settings.model_copy(update={"REPORT_TAX_RATE": 0.05})
        report = FinancialReportService(db_session, custom).get_financial_report()
        assert report.tax_rate == Decimal("0.05")
        assert report.total_tax == Decimal("0.00")
