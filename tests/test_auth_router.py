"""
Tests for registration, login and token handling
Run with: pytest tests/test_auth_router.py -v
"""

import pytest
from fastapi.testclient import TestClient
from datetime import timedelta

from farmkonnect.api.main import app
from farmkonnect.api.core.security import (
    create_access_token,
    create_refresh_token,
    get_password_hash,
    verify_password,
)

client = TestClient(app, raise_server_exceptions=False)

REGISTRATION = {
    "name": "Kofi Mensah",
    "email": "kofi@example.com",
    "password": "supersecret1",
    "phone": "+233200000000",
    "role": "farmer",
}


class TestRegistration:
    """Test account registration"""

    def test_register_creates_pending_user(self):
        response = client.post("/api/v1/auth/register", json=REGISTRATION)
        assert response.status_code == 201

        data = response.json()
        assert data["email"] == "kofi@example.com"
        assert data["role"] == "farmer"
        assert data["approval_status"] == "pending"
        assert data["account_status"] == "active"
        assert "password_hash" not in data

    def test_register_duplicate_email_conflicts(self):
        assert client.post("/api/v1/auth/register", json=REGISTRATION).status_code == 201

        duplicate = dict(REGISTRATION, email="KOFI@example.com")
        response = client.post("/api/v1/auth/register", json=duplicate)
        assert response.status_code == 409
        assert "already registered" in response.json()["detail"]

    def test_register_rejects_admin_role(self):
        response = client.post("/api/v1/auth/register", json=dict(REGISTRATION, role="admin"))
        assert response.status_code == 422

    def test_register_validates_name_and_password(self):
        response = client.post("/api/v1/auth/register", json=dict(REGISTRATION, name="K"))
        assert response.status_code == 422

        response = client.post("/api/v1/auth/register", json=dict(REGISTRATION, password="short"))
        assert response.status_code == 422

    def test_register_invalid_email(self):
        response = client.post("/api/v1/auth/register", json=dict(REGISTRATION, email="not-an-email"))
        assert response.status_code == 422

    def test_register_defaults_role_to_user(self):
        payload = {k: v for k, v in REGISTRATION.items() if k != "role"}
        response = client.post("/api/v1/auth/register", json=payload)
        assert response.status_code == 201
        assert response.json()["role"] == "user"


class TestLogin:
    """Test the approval gate on login"""

    def test_pending_user_cannot_login(self):
        client.post("/api/v1/auth/register", json=REGISTRATION)

        response = client.post("/api/v1/auth/login", json={
            "email": REGISTRATION["email"],
            "password": REGISTRATION["password"],
        })
        assert response.status_code == 403
        assert "awaiting approval" in response.json()["detail"]

    def test_approved_user_gets_tokens(self, make_user):
        make_user(email="approved@example.com", password="password123")

        response = client.post("/api/v1/auth/login", json={
            "email": "approved@example.com",
            "password": "password123",
        })
        assert response.status_code == 200

        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["access_token"]
        assert data["refresh_token"]

    def test_wrong_password(self, make_user):
        make_user(email="someone@example.com", password="password123")

        response = client.post("/api/v1/auth/login", json={
            "email": "someone@example.com",
            "password": "wrong-password",
        })
        assert response.status_code == 401

    def test_unknown_email(self):
        response = client.post("/api/v1/auth/login", json={
            "email": "nobody@example.com",
            "password": "password123",
        })
        assert response.status_code == 401

    def test_rejected_user_cannot_login(self, make_user):
        make_user(email="rejected@example.com", approval_status="rejected")

        response = client.post("/api/v1/auth/login", json={
            "email": "rejected@example.com",
            "password": "password123",
        })
        assert response.status_code == 403

    def test_suspended_user_cannot_login(self, make_user):
        make_user(email="suspended@example.com", account_status="suspended")

        response = client.post("/api/v1/auth/login", json={
            "email": "suspended@example.com",
            "password": "password123",
        })
        assert response.status_code == 403
        assert "suspended" in response.json()["detail"]


class TestTokens:
    """Test token validation and refresh"""

    def test_me_requires_auth(self):
        response = client.get("/api/v1/auth/me")
        assert response.status_code in (401, 403)

    def test_me_returns_profile(self, farmer):
        user, headers = farmer
        response = client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 200
        assert response.json()["id"] == str(user.id)

    def test_me_with_unknown_user(self, auth_headers):
        response = client.get("/api/v1/auth/me", headers=auth_headers)
        assert response.status_code == 401

    def test_invalid_token(self):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_expired_token(self, farmer):
        user, _ = farmer
        token = create_access_token(data={"sub": str(user.id)}, expires_delta=timedelta(minutes=-5))
        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_refresh_token_cannot_access_api(self, farmer):
        user, _ = farmer
        token = create_refresh_token(data={"sub": str(user.id)})
        response = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_refresh_issues_access_token(self, farmer):
        user, _ = farmer
        refresh_token = create_refresh_token(data={"sub": str(user.id)})

        response = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 200

        access_token = response.json()["access_token"]
        me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {access_token}"})
        assert me.status_code == 200

    def test_refresh_rejects_access_token(self, farmer):
        user, _ = farmer
        access_token = create_access_token(data={"sub": str(user.id)})
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": access_token})
        assert response.status_code == 401


class TestPasswordHashing:
    """Test bcrypt helpers"""

    def test_hash_and_verify(self):
        hashed = get_password_hash("password123")
        assert hashed != "password123"
        assert verify_password("password123", hashed)
        assert not verify_password("password124", hashed)

    def test_long_passwords_are_truncated_consistently(self):
        long_password = "a" * 100
        hashed = get_password_hash(long_password)
        assert verify_password(long_password, hashed)
        assert verify_password("a" * 72, hashed)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
