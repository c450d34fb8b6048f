"""Sign-in, token rotation and password flows."""

from __future__ import annotations

from psyd.auth.password import verify_password
from psyd.db.models import User
from tests.conftest import TEST_PASSWORD, load


def _token_from_link(mock_email_service) -> str:
    context = mock_email_service.send_template.await_args.kwargs["context"]
    url = context.get("reset_url") or context["invite_url"]
    return url.split("token=", 1)[1]


class TestLogin:
    async def test_success_returns_tokens_and_account(self, client, make_account):
        user_id, _ = await make_account("admin@example.com", "admin")
        response = await client.post(
            "/api/v1/auth/login", json={"email": "Admin@Example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["account"]["id"] == str(user_id)
        assert body["account"]["role"] == "admin"

        user = await load(User, user_id)
        assert user.login_count == 1
        assert user.last_login is not None

    async def test_wrong_password_and_unknown_email_look_the_same(self, client, make_account):
        await make_account("admin@example.com", "admin")
        wrong = await client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": "nope-nope"})
        unknown = await client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "nope-nope"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json() == {"detail": "Invalid email or password."}

    async def test_invited_account_without_password_cannot_sign_in(self, client, make_account):
        await make_account("invitee@example.com", "superuser", password=None)
        response = await client.post("/api/v1/auth/login", json={"email": "invitee@example.com", "password": "x" * 10})
        assert response.status_code == 401

    async def test_empty_fields(self, client):
        response = await client.post("/api/v1/auth/login", json={"email": "", "password": ""})
        assert response.status_code == 400


class TestRefresh:
    async def test_rotation_and_reuse_detection(self, client, make_account):
        await make_account("admin@example.com", "admin")
        login = await client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": TEST_PASSWORD})
        first_refresh = login.json()["refresh_token"]

        rotated = await client.post("/api/v1/auth/refresh", json={"refresh_token": first_refresh})
        assert rotated.status_code == 200
        second_refresh = rotated.json()["refresh_token"]
        assert second_refresh != first_refresh

        reused = await client.post("/api/v1/auth/refresh", json={"refresh_token": first_refresh})
        assert reused.status_code == 401

        # Reuse revoked the whole family
        after = await client.post("/api/v1/auth/refresh", json={"refresh_token": second_refresh})
        assert after.status_code == 401

    async def test_logout_revokes(self, client, make_account):
        await make_account("admin@example.com", "admin")
        login = await client.post("/api/v1/auth/login", json={"email": "admin@example.com", "password": TEST_PASSWORD})
        refresh = login.json()["refresh_token"]

        assert (await client.post("/api/v1/auth/logout", json={"refresh_token": refresh})).status_code == 200
        assert (await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})).status_code == 401

    async def test_logout_with_garbage_still_succeeds(self, client):
        response = await client.post("/api/v1/auth/logout", json={"refresh_token": "garbage"})
        assert response.status_code == 200


class TestForgotPassword:
    async def test_same_response_for_known_and_unknown(self, client, make_account, mock_email_service):
        await make_account("admin@example.com", "admin")

        known = await client.post("/api/v1/auth/forgot-password", json={"email": "admin@example.com"})
        assert mock_email_service.send_template.await_count == 1
        unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
        assert mock_email_service.send_template.await_count == 1

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()

    async def test_email_failure_still_same_response(self, client, make_account, mock_email_service):
        await make_account("admin@example.com", "admin")
        mock_email_service.send_template.side_effect = RuntimeError("provider down")
        response = await client.post("/api/v1/auth/forgot-password", json={"email": "admin@example.com"})
        assert response.status_code == 200
        assert response.json()["status"] == "If that email exists, a reset link has been sent."

    async def test_empty_email(self, client):
        response = await client.post("/api/v1/auth/forgot-password", json={"email": " "})
        assert response.status_code == 400


class TestResetPassword:
    async def test_reset_link_sets_password_once(self, client, make_account, mock_email_service):
        user_id, _ = await make_account("admin@example.com", "admin")
        await client.post("/api/v1/auth/forgot-password", json={"email": "admin@example.com"})
        token = _token_from_link(mock_email_service)

        response = await client.post(
            "/api/v1/auth/reset-password",
            json={"token": token, "password": "BrandNewPass1", "confirm": "BrandNewPass1"},
        )
        assert response.status_code == 200
        assert verify_password("BrandNewPass1", (await load(User, user_id)).password_hash)

        again = await client.post(
            "/api/v1/auth/reset-password",
            json={"token": token, "password": "AnotherPass12", "confirm": "AnotherPass12"},
        )
        assert again.status_code == 400

    async def test_newer_link_invalidates_older(self, client, make_account, mock_email_service):
        await make_account("admin@example.com", "admin")
        await client.post("/api/v1/auth/forgot-password", json={"email": "admin@example.com"})
        old_token = _token_from_link(mock_email_service)
        await client.post("/api/v1/auth/forgot-password", json={"email": "admin@example.com"})

        response = await client.post(
            "/api/v1/auth/reset-password",
            json={"token": old_token, "password": "BrandNewPass1", "confirm": "BrandNewPass1"},
        )
        assert response.status_code == 400

    async def test_password_policy(self, client):
        short = await client.post(
            "/api/v1/auth/reset-password", json={"token": "t", "password": "short", "confirm": "short"}
        )
        assert short.status_code == 400
        assert "at least 8" in short.json()["detail"]

        mismatch = await client.post(
            "/api/v1/auth/reset-password",
            json={"token": "t", "password": "LongEnough1", "confirm": "LongEnough2"},
        )
        assert mismatch.status_code == 400
        assert mismatch.json()["detail"] == "Passwords do not match."

    async def test_unknown_token(self, client):
        response = await client.post(
            "/api/v1/auth/reset-password",
            json={"token": "not-a-real-token", "password": "LongEnough1", "confirm": "LongEnough1"},
        )
        assert response.status_code == 400


class TestChangePassword:
    async def test_change_own_password(self, client, make_account):
        user_id, headers = await make_account("admin@example.com", "admin")
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"password": "BrandNewPass1", "confirm": "BrandNewPass1"},
            headers=headers,
        )
        assert response.status_code == 200
        assert verify_password("BrandNewPass1", (await load(User, user_id)).password_hash)

    async def test_requires_sign_in(self, client):
        response = await client.post(
            "/api/v1/auth/change-password", json={"password": "BrandNewPass1", "confirm": "BrandNewPass1"}
        )
        assert response.status_code == 401

    async def test_mismatch(self, client, make_account):
        _, headers = await make_account("admin@example.com", "admin")
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"password": "BrandNewPass1", "confirm": "BrandNewPass2"},
            headers=headers,
        )
        assert response.status_code == 400
