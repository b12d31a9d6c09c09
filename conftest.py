"""
Shared test fixtures.

The environment is set before the application is imported: an in-memory
SQLite database, a throwaway documents directory and a browser path that
does not exist, so documents are drawn by the canvas renderer.
"""
import os
import tempfile

os.environ["APP_SECRET_STRING"] = "test-secret-string-for-the-invoicing-api-0123456789"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DOCUMENTS_DIR"] = tempfile.mkdtemp(prefix="invoices-test-")
os.environ["PDF_BROWSER_PATH"] = "/nonexistent/chromium"
os.environ["ALLOW_PRIVILEGED_REGISTRATION"] = "true"

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.core.config import get_settings
from app.database.database import Base, SessionLocal, engine
from app.modules.clients.models import Client
from app.modules.documents.dependencies import get_document_service
from app.modules.documents.service import DocumentService


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def documents_dir(tmp_path, settings):
    """Point the API's document service at a per-test directory"""
    test_settings = settings.model_copy(update={"DOCUMENTS_DIR": tmp_path})
    app.dependency_overrides[get_document_service] = lambda: DocumentService(test_settings)
    yield tmp_path
    app.dependency_overrides.pop(get_document_service, None)


@pytest.fixture
def client(documents_dir):
    with TestClient(app) as test_client:
        yield test_client


def register(test_client: TestClient, role: str, email: str = None) -> dict:
    response = test_client.post("/auth/register", json={
        "name": f"Test {role.title()}",
        "email": email or f"{role}@example.com",
        "password": "s3cret-password",
        "role": role,
    })
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    return register(client, "admin")


@pytest.fixture
def accountant_headers(client):
    return register(client, "accountant")


@pytest.fixture
def client_headers(client):
    return register(client, "client")


@pytest.fixture
def sample_client(db_session):
    billed = Client(
        name="Acme Analytics Pvt Ltd",
        email="billing@acme.example.com",
        phone="+91 98765 43210",
        address="12 MG Road, Bengaluru"
    )
    db_session.add(billed)
    db_session.commit()
    db_session.refresh(billed)
    return billed


@pytest.fixture
def invoice_payload(sample_client):
    return {
        "clientId": str(sample_client.id),
        "amount": "100.00",
        "currency": "USD",
        "dueDate": (date.today() + timedelta(days=30)).isoformat(),
        "items": [
            {"description": "Data pipeline consulting", "quantity": 2, "rate": "30.00"},
            {"description": "Model review", "sac": "998313", "quantity": 1, "rate": "40.00"},
        ],
    }
