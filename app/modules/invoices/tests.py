"""
Tests for the invoices module

Covers numbering, payment reconciliation, the invoice lifecycle through the
service and the HTTP API, and optimistic locking.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from sqlalchemy.orm.exc import StaleDataError

from app.common.exceptions import (
    BalanceViolation, ClientNotFound, ConcurrentModification, InvoiceNotFound, PaymentExceedsBalance
)
from app.database.database import SessionLocal
from app.modules.invoices.ledger import PaymentLedger
from app.modules.invoices.models import Invoice, InvoiceSequence, InvoiceStatus, Payment, to_money
from app.modules.invoices.numbering import NumberingAuthority, parse_sequence
from app.modules.invoices.schemas import InvoiceCreate, InvoiceUpdate, LineItemCreate, PaymentCreate
from app.modules.invoices.service import InvoiceService


def make_invoice(db_session, client, number="01/AI/24-25", amount="100.00", due_in_days=30):
    invoice = Invoice(
        client_id=client.id,
        number=number,
        amount=Decimal(amount),
        currency="USD",
        due_date=date.today() + timedelta(days=due_in_days),
        stored_status=InvoiceStatus.PENDING.value
    )
    db_session.add(invoice)
    db_session.commit()
    db_session.refresh(invoice)
    return invoice


def payment(amount, reference="REF-1"):
    return PaymentCreate(reference_number=reference, amount=Decimal(amount))


class RecordingDocuments:
    """Stands in for the document service and records invalidations"""

    def __init__(self):
        self.invalidated = []

    def invalidate(self, number):
        self.invalidated.append(number)


# ===== NUMBERING =====

class TestNumbering:

    def test_parse_sequence(self):
        assert parse_sequence("01/AI/24-25") == 1
        assert parse_sequence("105/AI/24-25") == 105
        assert parse_sequence("INV-7") is None
        assert parse_sequence(None) is None

    def test_first_number(self, db_session, settings):
        assert NumberingAuthority(db_session, settings).allocate() == "01/AI/24-25"

    def test_sequential_allocation(self, db_session, settings):
        numbering = NumberingAuthority(db_session, settings)
        numbers = [numbering.allocate() for _ in range(3)]
        db_session.commit()
        assert numbers == ["01/AI/24-25", "02/AI/24-25", "03/AI/24-25"]

    def test_seeds_from_existing_numbers_numerically(self, db_session, settings, sample_client):
        # "99" sorts after "100" as text; the seed must still be 100
        make_invoice(db_session, sample_client, number="99/AI/24-25")
        make_invoice(db_session, sample_client, number="100/AI/24-25")
        make_invoice(db_session, sample_client, number="legacy-7")

        numbering = NumberingAuthority(db_session, settings)
        assert numbering.peek() == "101/AI/24-25"
        assert numbering.allocate() == "101/AI/24-25"
        db_session.commit()

        sequence = db_session.query(InvoiceSequence).one()
        assert sequence.series == "AI/24-25"
        assert sequence.current_number == 101

    def test_ignores_other_series(self, db_session, settings, sample_client):
        make_invoice(db_session, sample_client, number="41/AI/23-24")
        assert NumberingAuthority(db_session, settings).allocate() == "01/AI/24-25"

    def test_peek_does_not_consume(self, db_session, settings):
        numbering = NumberingAuthority(db_session, settings)
        assert numbering.peek() == "01/AI/24-25"
        assert numbering.peek() == "01/AI/24-25"
        assert numbering.allocate() == "01/AI/24-25"
        assert numbering.peek() == "02/AI/24-25"

    def test_configured_series(self, db_session, settings):
        custom = settings.model_copy(update={"INVOICE_COMPANY_CODE": "ZX", "INVOICE_FINANCIAL_YEAR": "25-26"})
        assert NumberingAuthority(db_session, custom).allocate() == "01/ZX/25-26"


# ===== LEDGER =====

class TestPaymentLedger:

    def test_partial_then_full_payment(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client)
        ledger = PaymentLedger()

        ledger.apply(invoice, Payment(reference_number="A", amount=Decimal("60.00"), payment_date=date.today()))
        assert invoice.stored_status == InvoiceStatus.PENDING.value
        assert ledger.balance_due(invoice) == Decimal("40.00")

        ledger.apply(invoice, Payment(reference_number="B", amount=Decimal("40.00"), payment_date=date.today()))
        assert invoice.stored_status == InvoiceStatus.PAID.value
        assert ledger.total_paid(invoice) == Decimal("100.00")
        assert [p.position for p in invoice.payments] == [0, 1]

    def test_overpayment_leaves_invoice_untouched(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client)
        ledger = PaymentLedger()
        ledger.apply(invoice, Payment(reference_number="A", amount=Decimal("100.00"), payment_date=date.today()))

        with pytest.raises(PaymentExceedsBalance) as exc_info:
            ledger.apply(invoice, Payment(reference_number="B", amount=Decimal("0.01"), payment_date=date.today()))

        assert exc_info.value.kind == "balance_violation"
        assert len(invoice.payments) == 1
        assert invoice.stored_status == InvoiceStatus.PAID.value

    def test_can_apply_is_exact(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client, amount="0.30")
        ledger = PaymentLedger()
        ledger.apply(invoice, Payment(reference_number="A", amount=Decimal("0.10"), payment_date=date.today()))
        ledger.apply(invoice, Payment(reference_number="B", amount=Decimal("0.20"), payment_date=date.today()))

        assert invoice.stored_status == InvoiceStatus.PAID.value
        assert not ledger.can_apply(invoice, Decimal("0.01"))

    def test_to_money_rounds_half_up(self):
        assert to_money("2.675") == Decimal("2.68")
        assert to_money(1.005) == Decimal("1.01")
        assert to_money(None) == Decimal("0.00")


# ===== MODEL =====

class TestInvoiceModel:

    def test_overdue_is_derived(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client, due_in_days=-1)

        assert invoice.stored_status == InvoiceStatus.PENDING.value
        assert invoice.effective_status() == InvoiceStatus.OVERDUE
        assert invoice.status == "Overdue"
        assert invoice.effective_status(today=date.today() - timedelta(days=5)) == InvoiceStatus.PENDING

    def test_version_counter_detects_stale_writes(self, db_session, sample_client):
        invoice = make_invoice(db_session, sample_client)
        assert invoice.version_id == 1

        other = SessionLocal()
        try:
            stale = other.get(Invoice, invoice.id)

            invoice.amount = Decimal("120.00")
            db_session.commit()
            assert invoice.version_id == 2

            stale.amount = Decimal("130.00")
            with pytest.raises(StaleDataError):
                other.commit()
            other.rollback()
        finally:
            other.close()


# ===== SERVICE =====

class TestInvoiceService:

    def test_create_invoice(self, db_session, settings, sample_client):
        service = InvoiceService(db_session, settings)
        invoice = service.create_invoice(InvoiceCreate(
            client_id=sample_client.id,
            amount=Decimal("250.00"),
            due_date=date.today() + timedelta(days=15),
            items=[LineItemCreate(description="Audit", quantity=Decimal("2.5"), rate=Decimal("100"))]
        ))

        assert invoice.number == "01/AI/24-25"
        assert invoice.stored_status == InvoiceStatus.PENDING.value
        assert invoice.currency == "USD"
        assert invoice.line_items[0].sac == settings.DEFAULT_SAC_CODE
        assert invoice.line_items[0].line_amount == Decimal("250.00")

    def test_create_for_unknown_client(self, db_session, settings):
        with pytest.raises(ClientNotFound):
            InvoiceService(db_session, settings).create_invoice(InvoiceCreate(
                client_id=uuid4(), amount=Decimal("10"), due_date=date.today()
            ))
        assert db_session.query(InvoiceSequence).count() == 0

    def test_missing_invoice(self, db_session, settings):
        service = InvoiceService(db_session, settings)
        with pytest.raises(InvoiceNotFound):
            service.get_invoice(uuid4())
        with pytest.raises(InvoiceNotFound):
            service.record_payment(uuid4(), payment("1.00"))

    def test_update_cannot_go_below_paid(self, db_session, settings, sample_client):
        invoice = make_invoice(db_session, sample_client)
        service = InvoiceService(db_session, settings)
        service.record_payment(invoice.id, payment("60.00"))

        with pytest.raises(BalanceViolation):
            service.update_invoice(invoice.id, InvoiceUpdate(amount=Decimal("50.00")))

        assert service.get_invoice(invoice.id).amount == Decimal("100.00")

    def test_lowering_amount_to_paid_total_marks_paid(self, db_session, settings, sample_client):
        invoice = make_invoice(db_session, sample_client)
        service = InvoiceService(db_session, settings)
        service.record_payment(invoice.id, payment("60.00"))

        updated = service.update_invoice(invoice.id, InvoiceUpdate(amount=Decimal("60.00")))
        assert updated.stored_status == InvoiceStatus.PAID.value

    def test_update_replaces_items_in_order(self, db_session, settings, sample_client):
        invoice = make_invoice(db_session, sample_client)
        service = InvoiceService(db_session, settings)

        updated = service.update_invoice(invoice.id, InvoiceUpdate(items=[
            LineItemCreate(description="First", quantity=Decimal("1"), rate=Decimal("10")),
            LineItemCreate(description="Second", quantity=Decimal("1"), rate=Decimal("20")),
        ]))
        assert [item.description for item in updated.line_items] == ["First", "Second"]
        assert updated.items_subtotal == Decimal("30.00")

    def test_mutations_invalidate_documents(self, db_session, settings, sample_client):
        invoice = make_invoice(db_session, sample_client)
        documents = RecordingDocuments()
        service = InvoiceService(db_session, settings, documents)

        service.record_payment(invoice.id, payment("10.00"))
        service.update_invoice(invoice.id, InvoiceUpdate(amount=Decimal("90.00")))
        service.delete_invoice(invoice.id)

        assert documents.invalidated == ["01/AI/24-25"] * 3

    def test_lost_race_is_reported_as_conflict(self, db_session, settings, sample_client, monkeypatch):
        invoice = make_invoice(db_session, sample_client)
        service = InvoiceService(db_session, settings)

        def stale_commit():
            raise StaleDataError("UPDATE statement on table 'invoices' expected to update 1 row(s); 0 were matched.")

        monkeypatch.setattr(db_session, "commit", stale_commit)
        with pytest.raises(ConcurrentModification) as exc_info:
            service.record_payment(invoice.id, payment("10.00"))
        monkeypatch.undo()

        assert exc_info.value.status_code == 409
        db_session.expire_all()
        assert db_session.get(Invoice, invoice.id).payments == []

    def test_list_filters_by_reported_status(self, db_session, settings, sample_client):
        make_invoice(db_session, sample_client, number="01/AI/24-25")
        make_invoice(db_session, sample_client, number="02/AI/24-25", due_in_days=-3)
        paid = make_invoice(db_session, sample_client, number="03/AI/24-25")
        service = InvoiceService(db_session, settings)
        service.record_payment(paid.id, payment("100.00"))

        def numbers(status):
            return [i.number for i in service.list_invoices(status=status).invoices]

        assert numbers(InvoiceStatus.PENDING) == ["01/AI/24-25"]
        assert numbers(InvoiceStatus.OVERDUE) == ["02/AI/24-25"]
        assert numbers(InvoiceStatus.PAID) == ["03/AI/24-25"]
        assert service.list_invoices(client_id=sample_client.id).total == 3


# ===== API =====

class TestInvoiceEndpoints:

    def test_payment_lifecycle(self, client, accountant_headers, invoice_payload):
        """100.00 invoice: 60 -> Pending, 40 -> Paid, 0.01 rejected, 50 rejected, 150 -> Pending"""
        response = client.post("/invoices", json=invoice_payload, headers=accountant_headers)
        assert response.status_code == 201
        invoice = response.json()
        invoice_id = invoice["id"]
        assert invoice["number"] == "01/AI/24-25"
        assert invoice["status"] == "Pending"

        def pay(amount, reference):
            return client.post(
                f"/invoices/{invoice_id}/payments",
                json={"referenceNumber": reference, "amount": amount, "paymentDate": date.today().isoformat()},
                headers=accountant_headers
            )

        response = pay("60.00", "UTR-1")
        assert response.status_code == 201
        assert response.json()["status"] == "Pending"
        assert Decimal(response.json()["balanceDue"]) == Decimal("40.00")

        response = pay("40.00", "UTR-2")
        assert response.status_code == 201
        assert response.json()["status"] == "Paid"

        response = pay("0.01", "UTR-3")
        assert response.status_code == 400
        assert response.json()["kind"] == "balance_violation"

        payments = client.get(f"/invoices/{invoice_id}/payments", headers=accountant_headers).json()
        assert [p["referenceNumber"] for p in payments["payments"]] == ["UTR-1", "UTR-2"]
        assert Decimal(payments["totalPaid"]) == Decimal("100.00")

        response = client.put(f"/invoices/{invoice_id}", json={"amount": "50.00"}, headers=accountant_headers)
        assert response.status_code == 400
        assert response.json()["kind"] == "balance_violation"

        response = client.put(f"/invoices/{invoice_id}", json={"amount": "150.00"}, headers=accountant_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "Pending"
        assert Decimal(response.json()["balanceDue"]) == Decimal("50.00")

    def test_numbers_increment(self, client, accountant_headers, invoice_payload):
        first = client.post("/invoices", json=invoice_payload, headers=accountant_headers).json()
        nxt = client.get("/invoices/next-number", headers=accountant_headers).json()
        second = client.post("/invoices", json=invoice_payload, headers=accountant_headers).json()

        assert first["number"] == "01/AI/24-25"
        assert nxt["nextNumber"] == "02/AI/24-25"
        assert second["number"] == "02/AI/24-25"

    def test_aliased_total_amount_is_rejected(self, client, accountant_headers, invoice_payload):
        payload = dict(invoice_payload)
        payload["totalAmount"] = payload.pop("amount")

        response = client.post("/invoices", json=payload, headers=accountant_headers)
        assert response.status_code == 422
        assert response.json()["kind"] == "validation_error"

    def test_status_cannot_be_set(self, client, accountant_headers, invoice_payload):
        invoice = client.post("/invoices", json=invoice_payload, headers=accountant_headers).json()
        response = client.put(f"/invoices/{invoice['id']}", json={"status": "Paid"}, headers=accountant_headers)
        assert response.status_code == 422

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    def test_non_positive_amounts_rejected(self, client, accountant_headers, invoice_payload, amount):
        assert client.post(
            "/invoices", json={**invoice_payload, "amount": amount}, headers=accountant_headers
        ).status_code == 422

    def test_negative_payment_rejected(self, client, accountant_headers, invoice_payload):
        invoice = client.post("/invoices", json=invoice_payload, headers=accountant_headers).json()
        response = client.post(
            f"/invoices/{invoice['id']}/payments",
            json={"referenceNumber": "X", "amount": "-1.00"},
            headers=accountant_headers
        )
        assert response.status_code == 422

    def test_unknown_client(self, client, accountant_headers, invoice_payload):
        response = client.post(
            "/invoices", json={**invoice_payload, "clientId": str(uuid4())}, headers=accountant_headers
        )
        assert response.status_code == 404
        assert response.json()["resource"] == "client"

    def test_get_and_delete(self, client, admin_headers, invoice_payload):
        invoice = client.post("/invoices", json=invoice_payload, headers=admin_headers).json()

        fetched = client.get(f"/invoices/{invoice['id']}", headers=admin_headers).json()
        assert fetched["client"]["name"] == "Acme Analytics Pvt Ltd"
        assert [item["lineAmount"] for item in fetched["lineItems"]] == ["60.00", "40.00"]
        assert fetched["lineItems"][0]["sac"] == "998314"

        assert client.delete(f"/invoices/{invoice['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/invoices/{invoice['id']}", headers=admin_headers).status_code == 404

    def test_list_with_status_filter(self, client, accountant_headers, invoice_payload):
        client.post("/invoices", json=invoice_payload, headers=accountant_headers)
        overdue = {**invoice_payload, "dueDate": (date.today() - timedelta(days=2)).isoformat()}
        client.post("/invoices", json=overdue, headers=accountant_headers)

        listing = client.get("/invoices", params={"status": "Overdue"}, headers=accountant_headers).json()
        assert listing["total"] == 1
        assert listing["invoices"][0]["status"] == "Overdue"

        assert client.get("/invoices", headers=accountant_headers).json()["total"] == 2

    def test_requires_authentication(self, client):
        assert client.get("/invoices").status_code == 401

    def test_null_amount_on_update_is_rejected(self, client, accountant_headers, invoice_payload):
        invoice = client.post("/invoices", json=invoice_payload, headers=accountant_headers).json()

        response = client.put(f"/invoices/{invoice['id']}", json={"amount": None}, headers=accountant_headers)

        assert response.status_code == 422
        assert response.json()["kind"] == "validation_error"

    @pytest.mark.parametrize("amount", ["1e400", "10000000000000.00", "NaN"])
    def test_unstorable_amounts_are_rejected(self, client, accountant_headers, invoice_payload, amount):
        response = client.post("/invoices", json={**invoice_payload, "amount": amount}, headers=accountant_headers)
        assert response.status_code == 422

        invoice = client.post("/invoices", json=invoice_payload, headers=accountant_headers).json()
        response = client.post(
            f"/invoices/{invoice['id']}/payments",
            json={"referenceNumber": "X", "amount": amount},
            headers=accountant_headers
        )
        assert response.status_code == 422

    def test_oversized_line_item_is_rejected(self, client, accountant_headers, invoice_payload):
        items = [{"description": "Bulk", "quantity": "1e400", "rate": "1.00"}]
        response = client.post("/invoices", json={**invoice_payload, "items": items}, headers=accountant_headers)
        assert response.status_code == 422

        items = [{"description": "Bulk", "quantity": 1, "rate": "1e400"}]
        response = client.post("/invoices", json={**invoice_payload, "items": items}, headers=accountant_headers)
        assert response.status_code == 422
