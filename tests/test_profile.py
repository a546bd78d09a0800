"""
Tests for /api/profile.
"""
from fastapi import status

from tests.conftest import USER_ID


class TestProfile:
    """
    Test suite for reading and updating the caller's profile.
    """

    def test_get_profile(self, client, user_headers):
        response = client.get("/api/profile", headers=user_headers)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["email"] == "bob@example.com"
        assert body["profile"]["username"] == "bob"
        assert body["profile"]["role"] == "user"

    def test_update_profile(self, client, platform, user_headers):
        response = client.put(
            "/api/profile",
            headers=user_headers,
            json={"username": "  bobby ", "display_name": "   ", "avatar_url": "https://img.test/b.png"},
        )

        assert response.status_code == status.HTTP_200_OK
        profile = response.json()["profile"]
        assert profile["username"] == "bobby"
        assert profile["display_name"] is None
        assert profile["avatar_url"] == "https://img.test/b.png"

        row = next(u for u in platform.rows("users") if u["id"] == USER_ID)
        assert row["username"] == "bobby"

    def test_keeping_own_username(self, client, user_headers):
        response = client.put("/api/profile", headers=user_headers, json={"username": "bob", "display_name": "Bob"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["profile"]["display_name"] == "Bob"

    def test_username_taken(self, client, user_headers):
        response = client.put("/api/profile", headers=user_headers, json={"username": "carol"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "Username is already taken"}

    def test_username_required(self, client, user_headers):
        response = client.put("/api/profile", headers=user_headers, json={"username": "  "})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": "Username is required"}

    def test_permission_error(self, client, platform, user_headers):
        platform.fail("users", "PATCH", message="permission denied for table users", code="42501")

        response = client.put("/api/profile", headers=user_headers, json={"username": "bob"})

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {
            "error": "Failed to update profile",
            "details": "permission denied for table users",
        }

    def test_other_platform_error(self, client, platform, user_headers):
        platform.fail("users", "PATCH")

        response = client.put("/api/profile", headers=user_headers, json={"username": "bob"})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"] == "Failed to update profile"
