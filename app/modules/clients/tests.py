"""
Tests for the clients module
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import ClientInUse, ClientNotFound
from app.modules.clients.schemas import ClientCreate, ClientUpdate
from app.modules.clients.service import ClientService
from app.modules.invoices.models import Invoice


class RecordingDocuments:
    def __init__(self):
        self.invalidated = []

    def invalidate(self, number):
        self.invalidated.append(number)


class TestClientService:

    def test_create_and_get(self, db_session):
        service = ClientService(db_session)
        created = service.create_client(ClientCreate(name="  Globex  ", email="ap@globex.example.com"))

        fetched = service.get_client(created.id)
        assert fetched.name == "Globex"
        assert fetched.email == "ap@globex.example.com"

    def test_get_missing(self, db_session):
        with pytest.raises(ClientNotFound):
            ClientService(db_session).get_client(uuid4())

    def test_partial_update(self, db_session, sample_client):
        service = ClientService(db_session)
        updated = service.update_client(sample_client.id, ClientUpdate(phone="+61 2 5550 1234"))

        assert updated.phone == "+61 2 5550 1234"
        assert updated.name == "Acme Analytics Pvt Ltd"

    def test_search(self, db_session, sample_client):
        service = ClientService(db_session)
        service.create_client(ClientCreate(name="Initech"))

        result = service.list_clients(search="acme")
        assert result.total == 1
        assert result.clients[0].id == sample_client.id

    def test_update_drops_cached_documents(self, db_session, sample_client):
        invoice = Invoice(
            client_id=sample_client.id,
            number="07/AI/24-25",
            amount=Decimal("10.00"),
            due_date=date.today(),
            stored_status="Pending"
        )
        db_session.add(invoice)
        db_session.commit()
        documents = RecordingDocuments()

        ClientService(db_session, documents).update_client(sample_client.id, ClientUpdate(name="Acme Analytics Ltd"))

        assert documents.invalidated == ["07/AI/24-25"]

    def test_delete_unreferenced_client(self, db_session):
        service = ClientService(db_session)
        created = service.create_client(ClientCreate(name="Short-lived"))

        service.delete_client(created.id)
        with pytest.raises(ClientNotFound):
            service.get_client(created.id)


class TestClientEndpoints:

    def test_crud(self, client, accountant_headers):
        response = client.post("/clients", json={
            "name": "Umbrella Corp",
            "email": "finance@umbrella.example.com",
            "phone": "555-0100",
        }, headers=accountant_headers)
        assert response.status_code == 201
        client_id = response.json()["id"]
        assert "createdAt" in response.json()

        response = client.put(f"/clients/{client_id}", json={"address": "1 Raccoon St"}, headers=accountant_headers)
        assert response.status_code == 200
        assert response.json()["address"] == "1 Raccoon St"
        assert response.json()["name"] == "Umbrella Corp"

        listing = client.get("/clients", headers=accountant_headers).json()
        assert listing["total"] == 1

        assert client.delete(f"/clients/{client_id}", headers=accountant_headers).status_code == 200
        response = client.get(f"/clients/{client_id}", headers=accountant_headers)
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"

    def test_invalid_email(self, client, accountant_headers):
        response = client.post("/clients", json={"name": "Bad", "email": "not-an-email"}, headers=accountant_headers)
        assert response.status_code == 422

    def test_delete_refused_while_invoiced(self, client, admin_headers, invoice_payload, sample_client):
        assert client.post("/invoices", json=invoice_payload, headers=admin_headers).status_code == 201

        response = client.delete(f"/clients/{sample_client.id}", headers=admin_headers)
        assert response.status_code == 409
        body = response.json()
        assert body["kind"] == "conflict"
        assert body["invoice_count"] == 1

        assert client.get(f"/clients/{sample_client.id}", headers=admin_headers).status_code == 200

    def test_delete_refused_raises_client_in_use(self, db_session, client, admin_headers, invoice_payload, sample_client):
        client.post("/invoices", json=invoice_payload, headers=admin_headers)

        with pytest.raises(ClientInUse):
            ClientService(db_session).delete_client(sample_client.id)

    def test_null_name_is_rejected(self, client, accountant_headers, sample_client):
        response = client.put(f"/clients/{sample_client.id}", json={"name": None}, headers=accountant_headers)

        assert response.status_code == 422
        assert response.json()["kind"] == "validation_error"
        assert client.get(f"/clients/{sample_client.id}", headers=accountant_headers).json()["name"] == "Acme Analytics Pvt Ltd"

    def test_rename_drops_cached_pdf(self, client, accountant_headers, invoice_payload, sample_client, documents_dir):
        invoice = client.post("/invoices", json=invoice_payload, headers=accountant_headers).json()
        assert client.get(f"/invoices/{invoice['id']}/pdf", headers=accountant_headers).status_code == 200
        cached = documents_dir / "Invoice_01-AI-24-25.pdf"
        assert cached.is_file()

        response = client.put(
            f"/clients/{sample_client.id}", json={"name": "Acme Analytics Ltd"}, headers=accountant_headers
        )

        assert response.status_code == 200
        assert not cached.exists()
