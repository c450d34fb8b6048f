"""Account administration: invite, role changes, removal, and the role ceiling."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from psyd.database import get_session
from psyd.db.models import AuthToken, Profile, User
from tests.conftest import load


async def _user_by_email(email: str) -> User | None:
    async for db in get_session():
        return (await db.execute(select(User).where(User.email == email))).scalar_one_or_none()
    return None


class TestListUsers:
    async def test_admin_sees_accounts_with_roles(self, client, make_account):
        _, headers = await make_account("admin@example.com", "admin")
        await make_account("helper@example.com", "superuser", password=None)

        response = await client.get("/api/v1/admin/users", headers=headers)
        assert response.status_code == 200
        rows = {row["email"]: row for row in response.json()}
        assert rows["helper@example.com"]["role"] == "superuser"
        assert rows["helper@example.com"]["has_password"] is False
        assert rows["admin@example.com"]["has_password"] is True

    async def test_superuser_forbidden(self, client, make_account):
        _, headers = await make_account("helper@example.com", "superuser")
        response = await client.get("/api/v1/admin/users", headers=headers)
        assert response.status_code == 403


class TestInvite:
    async def test_admin_invites_superuser(self, client, make_account, mock_email_service):
        _, headers = await make_account("admin@example.com", "admin")

        response = await client.post(
            "/api/v1/admin/users/invite", json={"email": "New@Example.com", "role": "superuser"}, headers=headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "new@example.com"
        assert body["email_sent"] is True

        user = await _user_by_email("new@example.com")
        assert user.password_hash is None
        assert user.invited_at is not None
        assert (await load(Profile, user.id)).role == "superuser"

        kwargs = mock_email_service.send_template.await_args.kwargs
        assert kwargs["template_name"] == "invite"
        assert kwargs["context"]["invite_url"].startswith("https://example.test/admin/reset-password?token=")

        async for db in get_session():
            token = (await db.execute(select(AuthToken).where(AuthToken.user_id == user.id))).scalar_one()
            assert token.purpose == "invite"
            break

    @pytest.mark.parametrize(
        ("caller", "role"),
        [("admin", "admin"), ("admin", "super_admin"), ("super_admin", "super_admin"), ("admin", "owner")],
    )
    async def test_role_ceiling(self, client, make_account, caller, role):
        _, headers = await make_account("caller@example.com", caller)
        response = await client.post(
            "/api/v1/admin/users/invite", json={"email": "new@example.com", "role": role}, headers=headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "You cannot assign that role."
        assert await _user_by_email("new@example.com") is None

    @pytest.mark.parametrize(("caller", "role"), [("super_admin", "admin"), ("admin", "superuser")])
    async def test_cannot_reinvite_own_account(self, client, make_account, mock_email_service, caller, role):
        caller_id, headers = await make_account("boss@example.com", caller)
        response = await client.post(
            "/api/v1/admin/users/invite", json={"email": "boss@example.com", "role": role}, headers=headers
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "You cannot change your own role."
        assert (await load(Profile, caller_id)).role == caller
        assert (await load(User, caller_id)).invited_at is None
        mock_email_service.send_template.assert_not_awaited()

    async def test_super_admin_invites_admin(self, client, make_account):
        _, headers = await make_account("boss@example.com", "super_admin")
        response = await client.post(
            "/api/v1/admin/users/invite", json={"email": "new@example.com", "role": "admin"}, headers=headers
        )
        assert response.status_code == 200

    async def test_invite_accepted_through_reset_password(self, client, make_account, mock_email_service):
        _, headers = await make_account("admin@example.com", "admin")
        await client.post(
            "/api/v1/admin/users/invite", json={"email": "new@example.com", "role": "superuser"}, headers=headers
        )
        url = mock_email_service.send_template.await_args.kwargs["context"]["invite_url"]
        token = url.split("token=", 1)[1]

        accepted = await client.post(
            "/api/v1/auth/reset-password",
            json={"token": token, "password": "FirstPass123", "confirm": "FirstPass123"},
        )
        assert accepted.status_code == 200

        login = await client.post("/api/v1/auth/login", json={"email": "new@example.com", "password": "FirstPass123"})
        assert login.status_code == 200
        assert login.json()["account"]["role"] == "superuser"

    async def test_email_failure_still_creates_invite(self, client, make_account, mock_email_service):
        _, headers = await make_account("admin@example.com", "admin")
        mock_email_service.send_template.side_effect = RuntimeError("provider down")
        response = await client.post(
            "/api/v1/admin/users/invite", json={"email": "new@example.com", "role": "superuser"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["email_sent"] is False
        assert await _user_by_email("new@example.com") is not None

    async def test_empty_email(self, client, make_account):
        _, headers = await make_account("admin@example.com", "admin")
        response = await client.post("/api/v1/admin/users/invite", json={"email": " "}, headers=headers)
        assert response.status_code == 400


class TestSetRole:
    async def test_super_admin_promotes(self, client, make_account):
        _, headers = await make_account("boss@example.com", "super_admin")
        target_id, _ = await make_account("helper@example.com", "superuser")

        response = await client.put(f"/api/v1/admin/users/{target_id}/role", json={"role": "admin"}, headers=headers)
        assert response.status_code == 200
        assert (await load(Profile, target_id)).role == "admin"

    @pytest.mark.parametrize("caller", ["admin", "super_admin"])
    async def test_cannot_change_own_role(self, client, make_account, caller):
        caller_id, headers = await make_account("caller@example.com", caller)
        response = await client.put(
            f"/api/v1/admin/users/{caller_id}/role", json={"role": "superuser"}, headers=headers
        )
        assert response.status_code == 400
        assert (await load(Profile, caller_id)).role == caller

    async def test_admin_cannot_grant_admin(self, client, make_account):
        _, headers = await make_account("admin@example.com", "admin")
        target_id, _ = await make_account("helper@example.com", "superuser")
        response = await client.put(f"/api/v1/admin/users/{target_id}/role", json={"role": "admin"}, headers=headers)
        assert response.status_code == 400
        assert (await load(Profile, target_id)).role == "superuser"

    async def test_admin_cannot_demote_super_admin(self, client, make_account):
        _, headers = await make_account("admin@example.com", "admin")
        target_id, _ = await make_account("boss@example.com", "super_admin")
        response = await client.put(
            f"/api/v1/admin/users/{target_id}/role", json={"role": "superuser"}, headers=headers
        )
        assert response.status_code == 400
        assert (await load(Profile, target_id)).role == "super_admin"

    async def test_superuser_forbidden(self, client, make_account):
        _, headers = await make_account("helper@example.com", "superuser")
        target_id, _ = await make_account("other@example.com", "superuser")
        response = await client.put(
            f"/api/v1/admin/users/{target_id}/role", json={"role": "superuser"}, headers=headers
        )
        assert response.status_code == 403


class TestRemoveUser:
    async def test_super_admin_removes_account_and_profile(self, client, make_account):
        _, headers = await make_account("boss@example.com", "super_admin")
        target_id, _ = await make_account("helper@example.com", "superuser")

        response = await client.delete(f"/api/v1/admin/users/{target_id}", headers=headers)
        assert response.status_code == 200
        assert await load(User, target_id) is None
        assert await load(Profile, target_id) is None

    async def test_cannot_remove_self(self, client, make_account):
        caller_id, headers = await make_account("boss@example.com", "super_admin")
        response = await client.delete(f"/api/v1/admin/users/{caller_id}", headers=headers)
        assert response.status_code == 400
        assert await load(User, caller_id) is not None

    async def test_admin_forbidden(self, client, make_account):
        _, headers = await make_account("admin@example.com", "admin")
        target_id, _ = await make_account("helper@example.com", "superuser")
        response = await client.delete(f"/api/v1/admin/users/{target_id}", headers=headers)
        assert response.status_code == 403
        assert await load(User, target_id) is not None
