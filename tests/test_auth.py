"""
Tests for sign-in, the session cookie and the role gate.
"""
from unittest.mock import Mock, patch

import pytest
from fastapi import status

from pettycash.core.config import get_settings
from pettycash.core.errors import PlatformError
from pettycash.middleware.auth import resolve_auth_user
from tests.conftest import ADMIN_ID, USER_ID, auth_headers, make_token


class TestLogin:
    """
    Test suite for /auth/login, /auth/logout and /auth/me.
    """

    def test_login_returns_token_and_profile(self, client):
        response = client.post("/auth/login", json={"email": "bob@example.com", "password": "secret123"})

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["access_token"]
        assert body["token_type"] == "bearer"
        assert body["email"] == "bob@example.com"
        assert body["profile"]["username"] == "bob"

    def test_login_sets_session_cookie(self, client):
        """
        After login the session cookie alone authenticates the caller.
        """
        client.post("/auth/login", json={"email": "bob@example.com", "password": "secret123"})

        assert get_settings().SESSION_COOKIE in client.cookies
        response = client.get("/auth/me")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["profile"]["id"] == USER_ID

    def test_login_bad_password(self, client):
        response = client.post("/auth/login", json={"email": "bob@example.com", "password": "wrong"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": "Invalid login credentials"}

    def test_login_missing_email(self, client):
        response = client.post("/auth/login", json={"password": "secret123"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Missing required fields: email"

    def test_login_platform_outage_is_not_reported_as_bad_credentials(self, client, platform):
        platform.sign_in_with_password = Mock(side_effect=PlatformError("down", status_code=503))

        response = client.post("/auth/login", json={"email": "bob@example.com", "password": "secret123"})

        assert response.status_code == 503
        assert response.json()["error"] == "down"

    def test_logout_clears_session(self, client):
        client.post("/auth/login", json={"email": "bob@example.com", "password": "secret123"})

        response = client.post("/auth/logout")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"message": "Signed out"}

        assert client.get("/auth/me").status_code == status.HTTP_401_UNAUTHORIZED

    def test_logout_without_session(self, client):
        assert client.post("/auth/logout").status_code == status.HTTP_200_OK


class TestAuthGate:
    """
    Test suite for token validation on protected routes.
    """

    @pytest.mark.parametrize("method,path", [
        ("get", "/auth/me"),
        ("get", "/api/balance"),
        ("get", "/api/transactions/funds"),
        ("get", "/api/transactions/expenses"),
        ("get", "/api/profile"),
        ("get", "/api/admin/funds?userId=x"),
        ("get", "/api/admin/users-with-balances"),
        ("get", "/api/admin/users/emails?userIds=x"),
        ("get", "/api/admin/wallets?userId=x"),
        ("delete", "/api/admin/users/x"),
        ("delete", "/api/admin/wallets?walletId=x"),
        ("delete", "/api/transactions/expenses/x"),
    ])
    def test_routes_require_authentication(self, client, method, path):
        response = getattr(client, method)(path)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": "Not authenticated"}

    def test_expired_token(self, client):
        token = make_token(USER_ID, expires_in=-60)

        response = client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_token_signed_with_wrong_secret(self, client):
        token = make_token(USER_ID, secret="not-the-platform-secret")

        response = client.get("/api/profile", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_malformed_authorization_header(self, client):
        response = client.get("/api/profile", headers={"Authorization": "Token abc"})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_missing_profile_is_provisioned(self, client, platform):
        """
        A valid token for a user without a profile row gets a default
        ``user`` profile named after the email prefix and ID.
        """
        new_id = "12345678-aaaa-bbbb-cccc-000000000001"

        response = client.get("/api/profile", headers=auth_headers(new_id, "Eve.Smith@Example.com"))

        assert response.status_code == status.HTTP_200_OK
        profile = response.json()["profile"]
        assert profile["username"] == "evesmith_12345678"
        assert profile["role"] == "user"
        assert any(u["id"] == new_id for u in platform.rows("users"))

    def test_profile_unavailable(self, client, platform):
        platform.fail("users", "GET")

        response = client.get("/api/profile", headers=auth_headers(USER_ID))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"error": "User profile not found"}


class TestRoleGate:
    """
    Test suite for admin-only routes.
    """

    @pytest.mark.parametrize("method,path,body", [
        ("get", "/api/admin/users-with-balances", None),
        ("get", "/api/admin/users/emails?userIds=x", None),
        ("get", "/api/admin/wallets?userId=x", None),
        ("post", "/api/admin/funds", {"recipient_id": "x", "amount": 1, "description": "d"}),
        ("post", "/api/admin/wallets", {"user_id": "x", "currency": "USD", "name": "n"}),
    ])
    def test_user_role_is_forbidden(self, client, user_headers, method, path, body):
        kwargs = {"headers": user_headers}
        if body is not None:
            kwargs["json"] = body

        response = getattr(client, method)(path, **kwargs)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": "Insufficient permissions"}

    def test_admin_is_allowed(self, client, admin_headers):
        response = client.get("/api/admin/users-with-balances", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK

    def test_admin_funds_lookup_only_needs_authentication(self, client, user_headers):
        response = client.get(f"/api/admin/funds?userId={USER_ID}", headers=user_headers)

        assert response.status_code == status.HTTP_200_OK


class TestRemoteTokenCheck:
    """
    Without a JWT secret, tokens are resolved by the platform.
    """

    @pytest.fixture
    def no_secret(self):
        settings = get_settings().model_copy(update={"SUPABASE_JWT_SECRET": ""})
        with patch("pettycash.middleware.auth.get_settings", return_value=settings):
            yield

    def test_known_token(self, platform, no_secret):
        platform.tokens["opaque-token"] = ADMIN_ID

        user = resolve_auth_user(platform, "opaque-token")

        assert user == {"id": ADMIN_ID, "email": "alice@example.com"}

    def test_unknown_token(self, platform, no_secret):
        assert resolve_auth_user(platform, "nope") is None

    def test_platform_failure(self, no_secret):
        platform = Mock()
        platform.get_user.side_effect = PlatformError("down", status_code=503)

        assert resolve_auth_user(platform, "opaque-token") is None
