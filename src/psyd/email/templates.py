"""
Email templates for Project Sydney.

All templates use inline CSS for email client compatibility: plain black type on
white, Helvetica, a thin rule above the footer. Every interpolated value is
HTML-escaped in the HTML body.

Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from html import escape

APP_NAME = "Project Sydney"

FONT = "Helvetica, Arial, sans-serif"
TEXT_PRIMARY = "#111111"
TEXT_SECONDARY = "#555555"
TEXT_MUTED = "#999999"
BORDER = "#EEEEEE"


def _paragraph(html: str, color: str = TEXT_PRIMARY) -> str:
    return f'<p style="font-family: {FONT}; color: {color}; font-size: 15px; line-height: 1.6;">{html}</p>'


def _link(url: str, label: str) -> str:
    """Render a bold call-to-action link."""
    return (
        f'<p style="font-family: {FONT};">'
        f'<a href="{escape(url)}" style="color: #000000; font-weight: bold;">{escape(label)} &rarr;</a>'
        f"</p>"
    )


def _base_layout(content: str, site_url: str) -> str:
    """Wrap content in the base email layout with the site footer."""
    site = escape(site_url)
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{APP_NAME}</title></head>
<body style="margin: 0; padding: 24px; background-color: #FFFFFF;">
{content}
<hr style="border: 1px solid {BORDER}; margin: 24px 0;" />
<p style="font-family: {FONT}; font-size: 12px; color: {TEXT_MUTED};">
    {APP_NAME} &mdash; <a href="{site}" style="color: {TEXT_MUTED};">{site}</a>
</p>
</body>
</html>"""


def new_submission_email(address: str, suburb: str, site_url: str) -> tuple[str, str, str]:
    """
    Alert moderators that a listing is waiting for review.

    Returns:
        (subject, html_body, text_body)
    """
    admin_url = f"{site_url}/admin"
    subject = f"New submission: {address}, {suburb}"
    content = "\n".join(
        [
            _paragraph("A new Pettit &amp; Sevitt home has been submitted for review."),
            _paragraph(f"<strong>{escape(address)}, {escape(suburb)}</strong>"),
            _link(admin_url, "Review in Admin"),
        ]
    )
    text_body = (
        f"A new Pettit & Sevitt home has been submitted for review.\n\n"
        f"{address}, {suburb}\n\n"
        f"Review in Admin: {admin_url}\n\n"
        f"-- {APP_NAME}"
    )
    return subject, _base_layout(content, site_url), text_body


def status_update_email(
    address: str,
    suburb: str,
    status: str,
    site_url: str,
    house_id: str,
    notes: str | None = None,
) -> tuple[str, str, str]:
    """
    Tell a submitter their listing was published or rejected.

    The public listing link is only included when the listing was published.

    Returns:
        (subject, html_body, text_body)
    """
    approved = status == "published"
    listing_url = f"{site_url}/house/{house_id}"
    if approved:
        subject = f"Your submission has been approved — {suburb}"
        greeting = "Great news!"
        outcome = "published to the directory"
    else:
        subject = f"Update on your submission — {suburb}"
        greeting = "Thanks for your submission."
        outcome = "reviewed but not approved at this time"

    parts = [
        _paragraph(greeting),
        _paragraph(
            f"Your submission for <strong>{escape(address)}, {escape(suburb)}</strong> has been "
            f"<strong>{outcome}</strong>."
        ),
    ]
    if notes:
        parts.append(_paragraph(escape(notes), color=TEXT_SECONDARY))
    if approved:
        parts.append(_link(listing_url, "View your listing"))

    text_lines = [greeting, "", f"Your submission for {address}, {suburb} has been {outcome}.", ""]
    if notes:
        text_lines += [notes, ""]
    if approved:
        text_lines += [f"View your listing: {listing_url}", ""]
    text_lines.append(f"-- {APP_NAME}")

    return subject, _base_layout("\n".join(parts), site_url), "\n".join(text_lines)


def invite_email(invite_url: str, role: str, site_url: str, expires_hours: int = 72) -> tuple[str, str, str]:
    """
    Invitation to join the moderation team.

    Returns:
        (subject, html_body, text_body)
    """
    role_label = role.replace("_", " ")
    subject = f"You've been invited to {APP_NAME}"
    content = "\n".join(
        [
            _paragraph(f"You've been invited to help curate {APP_NAME} as a <strong>{escape(role_label)}</strong>."),
            _paragraph("Choose a password to activate your account."),
            _link(invite_url, "Accept invitation"),
            _paragraph(f"This link expires in {expires_hours} hours.", color=TEXT_MUTED),
        ]
    )
    text_body = (
        f"You've been invited to help curate {APP_NAME} as a {role_label}.\n\n"
        f"Choose a password to activate your account:\n\n{invite_url}\n\n"
        f"This link expires in {expires_hours} hours.\n\n"
        f"-- {APP_NAME}"
    )
    return subject, _base_layout(content, site_url), text_body


def password_reset_email(reset_url: str, site_url: str, expires_minutes: int = 60) -> tuple[str, str, str]:
    """
    Password reset email.

    Returns:
        (subject, html_body, text_body)
    """
    expires_text = "1 hour" if expires_minutes == 60 else f"{expires_minutes} minutes"
    subject = "Reset your password"
    content = "\n".join(
        [
            _paragraph(f"We received a request to reset your {APP_NAME} password."),
            _link(reset_url, "Choose a new password"),
            _paragraph(
                f"This link expires in {expires_text}. If you didn't request this, your password "
                f"will remain unchanged.",
                color=TEXT_MUTED,
            ),
        ]
    )
    text_body = (
        f"We received a request to reset your {APP_NAME} password.\n\n"
        f"Choose a new password:\n\n{reset_url}\n\n"
        f"This link expires in {expires_text}. If you didn't request this, "
        f"your password will remain unchanged.\n\n"
        f"-- {APP_NAME}"
    )
    return subject, _base_layout(content, site_url), text_body
