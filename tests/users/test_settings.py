"""Self-service settings: profile, notification preferences, theme."""

from __future__ import annotations

import pytest

from psyd.db.models import Profile
from tests.conftest import load


class TestMe:
    async def test_returns_account_and_profile(self, client, make_account):
        user_id, headers = await make_account("helper@example.com", "superuser")
        response = await client.get("/api/v1/users/me", headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == str(user_id)
        assert body["role"] == "superuser"
        assert body["theme"] == "system"
        assert body["notification_frequency"] == "instant"

    async def test_requires_sign_in(self, client):
        assert (await client.get("/api/v1/users/me")).status_code == 401


class TestNotificationPreferences:
    async def test_partial_update(self, client, make_account):
        user_id, headers = await make_account("admin@example.com", "admin")
        response = await client.patch(
            "/api/v1/users/me/notifications",
            json={"email_on_new_submission": False, "notification_frequency": "daily"},
            headers=headers,
        )
        assert response.status_code == 200

        profile = await load(Profile, user_id)
        assert profile.email_on_new_submission is False
        assert profile.email_on_approval is True
        assert profile.notification_frequency == "daily"

    async def test_invalid_frequency(self, client, make_account):
        user_id, headers = await make_account("admin@example.com", "admin")
        response = await client.patch(
            "/api/v1/users/me/notifications", json={"notification_frequency": "hourly"}, headers=headers
        )
        assert response.status_code == 400
        assert (await load(Profile, user_id)).notification_frequency == "instant"

    async def test_opt_out_removes_from_submission_alerts(self, client, make_account, mock_email_service):
        _, headers = await make_account("admin@example.com", "admin")
        await client.patch("/api/v1/users/me/notifications", json={"email_on_new_submission": False}, headers=headers)

        await client.post(
            "/api/v1/houses",
            json={
                "address_street": "37 Gould Ave",
                "address_suburb": "Lewisham",
                "address_state": "NSW",
                "address_postcode": "2049",
            },
        )
        mock_email_service.send_template.assert_not_awaited()


class TestTheme:
    @pytest.mark.parametrize("theme", ["light", "dark", "system"])
    async def test_valid_themes(self, client, make_account, theme):
        user_id, headers = await make_account("helper@example.com", "superuser")
        response = await client.put("/api/v1/users/me/theme", json={"theme": theme}, headers=headers)
        assert response.status_code == 200
        assert (await load(Profile, user_id)).theme == theme

    @pytest.mark.parametrize("theme", ["", "blue", "DARK"])
    async def test_invalid_theme(self, client, make_account, theme):
        user_id, headers = await make_account("helper@example.com", "superuser")
        response = await client.put("/api/v1/users/me/theme", json={"theme": theme}, headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid theme"
        assert (await load(Profile, user_id)).theme == "system"
