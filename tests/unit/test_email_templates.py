"""Email template tests."""

from __future__ import annotations

from psyd.email.templates import (
    invite_email,
    new_submission_email,
    password_reset_email,
    status_update_email,
)

SITE = "https://example.test"
HOUSE_ID = "7d4f1c2e-0000-4000-8000-000000000001"


class TestNewSubmission:
    def test_subject_and_moderation_link(self):
        subject, html, text = new_submission_email("37 Gould Ave", "Lewisham", SITE)
        assert subject == "New submission: 37 Gould Ave, Lewisham"
        assert f"{SITE}/admin" in html
        assert f"{SITE}/admin" in text

    def test_values_are_html_escaped(self):
        _, html, text = new_submission_email("<b>1 Evil St</b>", "Ultimo", SITE)
        assert "<b>1 Evil St</b>" not in html
        assert "&lt;b&gt;" in html
        assert "<b>1 Evil St</b>" in text


class TestStatusUpdate:
    def test_published_includes_listing_link(self):
        subject, html, text = status_update_email("37 Gould Ave", "Lewisham", "published", SITE, HOUSE_ID)
        assert "approved" in subject
        assert "Lewisham" in subject
        assert f"{SITE}/house/{HOUSE_ID}" in html
        assert f"{SITE}/house/{HOUSE_ID}" in text

    def test_rejected_omits_listing_link(self):
        subject, html, text = status_update_email(
            "37 Gould Ave", "Lewisham", "rejected", SITE, HOUSE_ID, notes="Duplicate of an existing listing."
        )
        assert subject.startswith("Update on your submission")
        assert f"/house/{HOUSE_ID}" not in html
        assert f"/house/{HOUSE_ID}" not in text
        assert "Duplicate of an existing listing." in html
        assert "Duplicate of an existing listing." in text

    def test_without_notes(self):
        _, _, text = status_update_email("37 Gould Ave", "Lewisham", "rejected", SITE, HOUSE_ID)
        assert "None" not in text


class TestAccountEmails:
    def test_invite(self):
        url = f"{SITE}/admin/reset-password?token=abc"
        subject, html, text = invite_email(url, "super_admin", SITE, expires_hours=72)
        assert "invited" in subject
        assert url in html
        assert "super admin" in text
        assert "72 hours" in text

    def test_password_reset_default_expiry(self):
        url = f"{SITE}/admin/reset-password?token=abc"
        subject, html, text = password_reset_email(url, SITE)
        assert subject == "Reset your password"
        assert url in html
        assert "1 hour" in text

    def test_password_reset_custom_expiry(self):
        _, _, text = password_reset_email("https://x", SITE, expires_minutes=30)
        assert "30 minutes" in text
