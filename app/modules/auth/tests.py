"""
Tests for the auth module: registration, login, token checks and role gating.
"""

import pytest
from datetime import timedelta

from app.common.exceptions import AuthenticationError, ConflictError, PermissionDenied
from app.core.config import get_settings
from app.main import app
from app.modules.auth.schemas import UserCreate, UserRole
from app.modules.auth.service import AuthService
from app.modules.auth.utils import (
    create_access_token, decode_access_token, hash_password, verify_password
)


class TestPasswordHashing:

    def test_hash_and_verify(self):
        hashed = hash_password("s3cret-password")
        assert hashed != "s3cret-password"
        assert verify_password("s3cret-password", hashed)
        assert not verify_password("wrong-password", hashed)

    def test_verify_without_hash(self):
        assert not verify_password("anything", "")


class TestTokens:

    def test_round_trip(self, settings):
        token = create_access_token({"sub": "user-1", "role": "admin"}, settings)
        payload = decode_access_token(token, settings)
        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"

    def test_expired_token(self, settings):
        token = create_access_token({"sub": "user-1"}, settings, expires_delta=timedelta(seconds=-5))
        with pytest.raises(AuthenticationError) as exc_info:
            decode_access_token(token, settings)
        assert exc_info.value.message == "Token has expired"

    def test_tampered_token(self, settings):
        token = create_access_token({"sub": "user-1"}, settings)
        with pytest.raises(AuthenticationError):
            decode_access_token(token[:-2] + "xx", settings)

    def test_token_without_subject(self, settings):
        token = create_access_token({"email": "a@example.com"}, settings)
        with pytest.raises(AuthenticationError):
            decode_access_token(token, settings)


class TestAuthService:

    def test_register_defaults_to_client_role(self, db_session, settings):
        service = AuthService(db_session, settings)
        result = service.register(UserCreate(name="Ana", email="Ana@Example.com", password="s3cret-password"))

        assert result.user.email == "ana@example.com"
        assert result.user.role == UserRole.CLIENT
        assert result.expires_in == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    def test_register_duplicate_email(self, db_session, settings):
        service = AuthService(db_session, settings)
        service.register(UserCreate(name="Ana", email="ana@example.com", password="s3cret-password"))

        with pytest.raises(ConflictError):
            service.register(UserCreate(name="Ana 2", email="ANA@example.com", password="s3cret-password"))

    def test_login_wrong_password(self, db_session, settings):
        service = AuthService(db_session, settings)
        service.register(UserCreate(name="Ana", email="ana@example.com", password="s3cret-password"))

        with pytest.raises(AuthenticationError):
            service.login("ana@example.com", "not-the-password")

    def test_only_the_first_user_may_self_register_as_admin(self, db_session, settings):
        locked = settings.model_copy(update={"ALLOW_PRIVILEGED_REGISTRATION": False})
        service = AuthService(db_session, locked)

        first = service.register(UserCreate(
            name="Owner", email="owner@example.com", password="s3cret-password", role=UserRole.ADMIN
        ))
        assert first.user.role == UserRole.ADMIN

        for role in (UserRole.ADMIN, UserRole.ACCOUNTANT):
            with pytest.raises(PermissionDenied):
                service.register(UserCreate(
                    name="Intruder", email=f"{role.value}@example.com", password="s3cret-password", role=role
                ))

        customer = service.register(UserCreate(name="Ana", email="ana@example.com", password="s3cret-password"))
        assert customer.user.role == UserRole.CLIENT


class TestAuthEndpoints:

    def test_register_and_me(self, client):
        response = client.post("/auth/register", json={
            "name": "Priya",
            "email": "priya@example.com",
            "password": "s3cret-password",
            "role": "accountant",
        })
        assert response.status_code == 201
        body = response.json()
        assert body["token_type"] == "bearer"

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "priya@example.com"
        assert me.json()["role"] == "accountant"

    def test_register_rejects_unknown_fields(self, client):
        response = client.post("/auth/register", json={
            "name": "Priya",
            "email": "priya@example.com",
            "password": "s3cret-password",
            "is_superuser": True,
        })
        assert response.status_code == 422
        assert response.json()["kind"] == "validation_error"

    def test_login(self, client):
        client.post("/auth/register", json={
            "name": "Priya", "email": "priya@example.com", "password": "s3cret-password"
        })
        response = client.post("/auth/login", json={"email": "priya@example.com", "password": "s3cret-password"})
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "client"

    def test_login_bad_credentials(self, client):
        response = client.post("/auth/login", json={"email": "nobody@example.com", "password": "whatever-it-is"})
        assert response.status_code == 401
        assert response.json()["kind"] == "authentication_error"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_me_requires_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code == 401
        assert response.json()["kind"] == "authentication_error"

    def test_me_rejects_garbage_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_public_admin_registration_is_refused(self, client, settings, client_headers):
        locked = settings.model_copy(update={"ALLOW_PRIVILEGED_REGISTRATION": False})
        app.dependency_overrides[get_settings] = lambda: locked
        try:
            response = client.post("/auth/register", json={
                "name": "Mallory",
                "email": "mallory@example.com",
                "password": "s3cret-password",
                "role": "admin",
            })
        finally:
            app.dependency_overrides.pop(get_settings, None)

        assert response.status_code == 403
        assert response.json()["kind"] == "permission_denied"
        assert client.post("/auth/login", json={
            "email": "mallory@example.com", "password": "s3cret-password"
        }).status_code == 401


class TestRoleGating:

    def test_client_role_cannot_create_clients(self, client, client_headers):
        response = client.post("/clients", json={"name": "Someone"}, headers=client_headers)
        assert response.status_code == 403
        assert response.json()["kind"] == "permission_denied"

    def test_client_role_can_read(self, client, client_headers):
        response = client.get("/clients", headers=client_headers)
        assert response.status_code == 200

    def test_accountant_cannot_delete_invoices(self, client, accountant_headers, invoice_payload):
        created = client.post("/invoices", json=invoice_payload, headers=accountant_headers)
        assert created.status_code == 201

        response = client.delete(f"/invoices/{created.json()['id']}", headers=accountant_headers)
        assert response.status_code == 403

    def test_reports_are_staff_only(self, client, client_headers):
        assert client.get("/dashboard/stats", headers=client_headers).status_code == 403
