"""Public submission intake tests."""

from __future__ import annotations

import uuid

from sqlalchemy import func, select

from psyd.database import get_session
from psyd.db.models import House
from tests.conftest import load

VALID_SUBMISSION = {
    "address_street": "37 Gould Ave",
    "address_suburb": "Lewisham",
    "address_state": "NSW",
    "address_postcode": "2049",
    "style": "Split level",
    "year_built": "1971",
    "builder_name": "",
    "latitude": -33.893,
    "longitude": 151.147,
    "submitter_email": "Owner@Example.com",
}


async def _house_count() -> int:
    async for db in get_session():
        return (await db.execute(select(func.count()).select_from(House))).scalar_one()
    return 0


class TestSubmitHouse:
    async def test_creates_pending_listing(self, client):
        response = await client.post("/api/v1/houses", json=VALID_SUBMISSION)
        assert response.status_code == 200

        house = await load(House, uuid.UUID(response.json()["id"]))
        assert house.status == "pending"
        assert house.year_built == 1971
        assert house.builder_name is None
        assert house.submitter_email == "owner@example.com"
        assert house.is_featured is False

    async def test_status_cannot_be_forced(self, client):
        response = await client.post("/api/v1/houses", json={**VALID_SUBMISSION, "status": "published"})
        assert response.status_code == 200
        house = await load(House, uuid.UUID(response.json()["id"]))
        assert house.status == "pending"

    async def test_missing_required_field_rejected_without_write(self, client):
        for field in ("address_street", "address_suburb", "address_state", "address_postcode"):
            response = await client.post("/api/v1/houses", json={**VALID_SUBMISSION, field: "  "})
            assert response.status_code == 400
            assert response.json()["detail"] == "Missing required fields"
        assert await _house_count() == 0

    async def test_notifies_subscribed_moderators(self, client, make_account, mock_email_service):
        await make_account("admin@example.com", "admin")
        await make_account("boss@example.com", "super_admin")
        await make_account("quiet@example.com", "admin", email_on_new_submission=False)
        await make_account("helper@example.com", "superuser")

        response = await client.post("/api/v1/houses", json=VALID_SUBMISSION)
        assert response.status_code == 200

        mock_email_service.send_template.assert_awaited_once()
        kwargs = mock_email_service.send_template.await_args.kwargs
        assert kwargs["template_name"] == "new_submission"
        assert sorted(kwargs["to"]) == ["admin@example.com", "boss@example.com"]
        assert kwargs["context"]["suburb"] == "Lewisham"

    async def test_no_moderators_means_no_email(self, client, mock_email_service):
        response = await client.post("/api/v1/houses", json=VALID_SUBMISSION)
        assert response.status_code == 200
        mock_email_service.send_template.assert_not_awaited()

    async def test_notification_failure_does_not_fail_submission(self, client, make_account, mock_email_service):
        await make_account("admin@example.com", "admin")
        mock_email_service.send_template.side_effect = RuntimeError("provider down")

        response = await client.post("/api/v1/houses", json=VALID_SUBMISSION)
        assert response.status_code == 200
        assert await _house_count() == 1
