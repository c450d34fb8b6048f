"""Email service tests: recipient handling, throttling and template dispatch."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from psyd.email.service import _TEMPLATE_REGISTRY, BaseEmailProvider, EmailService, ResendProvider


def _provider(result: bool = True) -> MagicMock:
    provider = MagicMock()
    provider.send = AsyncMock(return_value=result)
    return provider


class TestSendEmail:
    async def test_single_address_wrapped_in_list(self):
        provider = _provider()
        assert await EmailService(provider=provider).send_email("a@example.com", "s", "<p>h</p>", "t")
        provider.send.assert_awaited_once_with(["a@example.com"], "s", "<p>h</p>", "t")

    async def test_batch_sent_as_one_message(self):
        provider = _provider()
        await EmailService(provider=provider).send_email(["a@example.com", "b@example.com"], "s", "h", "t")
        assert provider.send.await_count == 1
        assert provider.send.await_args.args[0] == ["a@example.com", "b@example.com"]

    async def test_throttled_recipients_dropped(self):
        redis = MagicMock()
        redis.incr = AsyncMock(side_effect=[1, 6])
        redis.expire = AsyncMock()
        provider = _provider()

        sent = await EmailService(provider=provider, redis=redis).send_email(
            ["a@example.com", "b@example.com"], "s", "h", "t"
        )

        assert sent is True
        assert provider.send.await_args.args[0] == ["a@example.com"]

    async def test_nobody_left_means_not_sent(self):
        redis = MagicMock()
        redis.incr = AsyncMock(return_value=999)
        redis.expire = AsyncMock()
        provider = _provider()

        assert await EmailService(provider=provider, redis=redis).send_email("a@example.com", "s", "h", "t") is False
        provider.send.assert_not_awaited()

    async def test_unreachable_redis_does_not_block_sending(self):
        redis = MagicMock()
        redis.incr = AsyncMock(side_effect=RedisConnectionError("refused"))
        provider = _provider()

        assert await EmailService(provider=provider, redis=redis).send_email("a@example.com", "s", "h", "t")


class TestSendTemplate:
    def test_registry(self):
        assert set(_TEMPLATE_REGISTRY) == {"new_submission", "status_update", "invite", "password_reset"}

    async def test_renders_and_sends(self):
        provider = _provider()
        await EmailService(provider=provider).send_template(
            to="owner@example.com",
            template_name="new_submission",
            context={"address": "37 Gould Ave", "suburb": "Lewisham", "site_url": "https://example.test"},
        )
        assert provider.send.await_args.args[1] == "New submission: 37 Gould Ave, Lewisham"

    async def test_unknown_template(self):
        with pytest.raises(ValueError, match="Unknown template"):
            await EmailService(provider=_provider()).send_template("a@example.com", "nope", {})


async def test_resend_without_api_key_reports_failure():
    provider = ResendProvider(api_key="", from_address="noreply@example.test", from_name="Test")
    assert await provider.send(["a@example.com"], "s", "h", "t") is False


class _FailingProvider(BaseEmailProvider):
    name = "failing"

    async def _deliver(self, to, subject, html_body, text_body):  # noqa: ANN001, ANN202
        raise ConnectionError("relay down")


async def test_delivery_failure_reported_as_false():
    provider = _FailingProvider("noreply@example.test", "Test")
    assert provider.sender == "Test <noreply@example.test>"
    assert await provider.send(["a@example.com"], "s", "h", "t") is False
