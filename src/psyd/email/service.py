"""
Email service with provider abstraction.

Supports the Resend API (default), SMTP, and AWS SES. Provider is selected via
configuration. Providers report failure by returning False rather than raising.
"""

from __future__ import annotations

import hashlib
import ssl
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Any

import structlog
from redis.exceptions import RedisError

from psyd.config import Settings, get_settings
from psyd.email.templates import (
    invite_email,
    new_submission_email,
    password_reset_email,
    status_update_email,
)

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()

# Template registry: name -> function returning (subject, html_body, text_body)
_TEMPLATE_REGISTRY: dict[str, Callable[..., tuple[str, str, str]]] = {
    "new_submission": new_submission_email,
    "status_update": status_update_email,
    "invite": invite_email,
    "password_reset": password_reset_email,
}


class BaseEmailProvider(ABC):
    """
    Abstract base class for email delivery providers.

    Subclasses implement ``_deliver`` and may raise; ``send`` turns any failure into
    a logged False.
    """

    name = "base"

    def __init__(self, from_address: str, from_name: str) -> None:
        self.from_address = from_address
        self.from_name = from_name

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_address}>"

    @abstractmethod
    async def _deliver(self, to: list[str], subject: str, html_body: str, text_body: str) -> None: ...

    async def send(
        self,
        to: Sequence[str],
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """Send one message to every address in ``to``. Returns True on success."""
        try:
            await self._deliver(list(to), subject, html_body, text_body)
        except Exception:
            logger.exception("email_send_failed", recipients=len(to), provider=self.name)
            return False
        logger.info("email_sent", recipients=len(to), subject=subject, provider=self.name)
        return True


class ResendProvider(BaseEmailProvider):
    """Resend HTTP API."""

    name = "resend"
    API_URL = "https://api.resend.com/emails"

    def __init__(self, api_key: str, from_address: str, from_name: str) -> None:
        super().__init__(from_address, from_name)
        self.api_key = api_key

    async def send(
        self,
        to: Sequence[str],
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        if not self.api_key:
            logger.warning("email_provider_unconfigured", provider=self.name, subject=subject)
            return False
        return await super().send(to, subject, html_body, text_body)

    async def _deliver(self, to: list[str], subject: str, html_body: str, text_body: str) -> None:
        import httpx

        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(
                self.API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": to, "subject": subject, "html": html_body, "text": text_body},
            )
            response.raise_for_status()


class SMTPProvider(BaseEmailProvider):
    """SMTP relay via aiosmtplib. One multipart/alternative message addressed to all recipients."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        use_tls: bool = True,
    ) -> None:
        super().__init__(from_address, from_name)
        self.host = host
        self.port = port
        self.username = username or None
        self.password = password or None
        self.use_tls = use_tls

    def _build_message(self, to: list[str], subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["From"] = self.sender
        message["To"] = ", ".join(to)
        message["Subject"] = subject
        message.attach(MIMEText(text_body, "plain", "utf-8"))
        message.attach(MIMEText(html_body, "html", "utf-8"))
        return message

    async def _deliver(self, to: list[str], subject: str, html_body: str, text_body: str) -> None:
        import aiosmtplib

        await aiosmtplib.send(
            self._build_message(to, subject, html_body, text_body),
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            start_tls=self.use_tls,
            tls_context=ssl.create_default_context() if self.use_tls else None,
        )


class SESProvider(BaseEmailProvider):
    """AWS SES through aioboto3."""

    name = "ses"

    def __init__(self, region: str, from_address: str, from_name: str) -> None:
        super().__init__(from_address, from_name)
        self.region = region

    async def _deliver(self, to: list[str], subject: str, html_body: str, text_body: str) -> None:
        import aioboto3

        def utf8(data: str) -> dict[str, str]:
            return {"Data": data, "Charset": "UTF-8"}

        async with aioboto3.Session().client("ses", region_name=self.region) as ses:
            await ses.send_email(
                Source=self.sender,
                Destination={"ToAddresses": to},
                Message={
                    "Subject": utf8(subject),
                    "Body": {"Text": utf8(text_body), "Html": utf8(html_body)},
                },
            )


_PROVIDERS: dict[str, Callable[[Settings], BaseEmailProvider]] = {
    "resend": lambda s: ResendProvider(s.resend_api_key, s.email_from_address, s.email_from_name),
    "smtp": lambda s: SMTPProvider(
        s.smtp_host,
        s.smtp_port,
        s.smtp_username,
        s.smtp_password,
        s.email_from_address,
        s.email_from_name,
        use_tls=s.smtp_use_tls,
    ),
    "ses": lambda s: SESProvider(s.ses_region, s.email_from_address, s.email_from_name),
}


def _create_provider() -> BaseEmailProvider:
    """Build the provider named by ``email_provider``."""
    settings = get_settings()
    factory = _PROVIDERS.get(settings.email_provider.lower())
    if factory is None:
        msg = f"Unsupported email provider: {settings.email_provider}"
        raise ValueError(msg)
    return factory(settings)


class EmailService:
    """
    High-level email service.

    Handles per-recipient rate limiting (when Redis is available) and template rendering.
    """

    RATE_LIMIT_WINDOW = 3600

    def __init__(
        self,
        provider: BaseEmailProvider | None = None,
        redis: Redis | None = None,
    ) -> None:
        self.provider = provider or _create_provider()
        self._redis = redis

    async def _check_rate_limit(self, email: str) -> bool:
        """Check if we can send another email to this address."""
        if self._redis is None:
            return True
        key = f"email_rate:{hashlib.sha256(email.lower().encode()).hexdigest()}"
        try:
            count = await self._redis.incr(key)
            if count == 1:
                await self._redis.expire(key, self.RATE_LIMIT_WINDOW)
        except RedisError:
            logger.warning("email_rate_limit_unavailable")
            return True
        return count <= get_settings().email_rate_limit_per_hour

    async def send_email(
        self,
        to: str | Sequence[str],
        subject: str,
        html_body: str,
        text_body: str,
    ) -> bool:
        """
        Send one message to one or many recipients.

        Rate-limited recipients are dropped. Returns True if the provider accepted the
        message, False if nobody was left to send to or delivery failed.
        """
        recipients = [to] if isinstance(to, str) else list(to)
        allowed = [addr for addr in recipients if addr and await self._check_rate_limit(addr)]
        if len(allowed) < len(recipients):
            logger.warning("email_recipients_dropped", dropped=len(recipients) - len(allowed), subject=subject)
        if not allowed:
            return False
        return await self.provider.send(allowed, subject, html_body, text_body)

    async def send_template(
        self,
        to: str | Sequence[str],
        template_name: str,
        context: dict[str, Any],
    ) -> bool:
        """
        Render a template and send.

        Raises:
            ValueError: If the template name is unknown.
        """
        template_func = _TEMPLATE_REGISTRY.get(template_name)
        if template_func is None:
            msg = f"Unknown template: {template_name}"
            raise ValueError(msg)

        subject, html_body, text_body = template_func(**context)
        return await self.send_email(to, subject, html_body, text_body)


# Module-level singleton
_email_service: EmailService | None = None


def get_email_service(redis: Redis | None = None) -> EmailService:
    """Get or create the email service singleton."""
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService(redis=redis)
    return _email_service


def reset_email_service() -> None:
    """Reset the email service singleton (for testing)."""
    global _email_service  # noqa: PLW0603
    _email_service = None
