"""Tests for the email, SMS and Slack channel providers."""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import httpx
import pytest

from alert_router.alerter.channels import (
    EmailChannel,
    SlackChannel,
    SmsChannel,
    default_providers,
)
from alert_router.alerter.errors import ConfigurationError, TransportError
from alert_router.alerter.rules import AlertingConfig, HandlerRule, Subscription
from alert_router.config import Settings

CHANNEL_ENV = {
    "SMTP_USERNAME": "smtp-user",
    "SMTP_PASSWORD": "smtp-pass",
    "EMAIL_SENDER": "alerts@example.com",
    "SMTP_MAX_RETRY": "2",
    "TWILIO_ACCOUNT_SID": "AC123",
    "TWILIO_AUTH_TOKEN": "token",
    "TWILIO_SENDER": "+61400000001",
}


def _settings(**overrides: str) -> Settings:
    env = {**CHANNEL_ENV, **overrides}
    with patch.dict(os.environ, env, clear=True):
        return Settings(_env_file=None)


def _response(status_code: int, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


@pytest.fixture
def smtp_client() -> MagicMock:
    """Create a mock SMTP session that tracks its connection state."""
    client = MagicMock()
    client.is_connected = False

    def _connect() -> None:
        client.is_connected = True

    def _close() -> None:
        client.is_connected = False

    client.connect = AsyncMock(side_effect=_connect)
    client.login = AsyncMock()
    client.send_message = AsyncMock()
    client.quit = AsyncMock()
    client.close = MagicMock(side_effect=_close)
    return client


def test_default_providers() -> None:
    """One provider per built-in handler code."""
    assert sorted(p.code for p in default_providers()) == ["email", "slack", "sms"]


# ============================================================================
# SlackChannel Tests
# ============================================================================


class TestSlackChannel:
    """Tests for the Slack webhook channel."""

    @pytest.mark.asyncio
    async def test_send_success(self) -> None:
        """Post a colored attachment to the webhook."""
        config = AlertingConfig(
            subscriptions=[
                Subscription(
                    alert_code="Play completed",
                    handler_rules=[HandlerRule(handler_code="slack", coloring="#ff0000")],
                )
            ]
        )
        channel = SlackChannel()

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response(200, "ok")
            mock_client_class.return_value = mock_client

            await channel.init(config, _settings())
            await channel.send("https://hooks.slack.test/T1", "Info", "Play completed", "Done")

            url = mock_client.post.call_args.args[0]
            payload = mock_client.post.call_args.kwargs["data"]["payload"]
            assert url == "https://hooks.slack.test/T1"
            assert '"color": "#ff0000"' in payload
            assert "*Info* > *Play completed*: Done" in payload

    @pytest.mark.asyncio
    async def test_send_rejected(self) -> None:
        """A non-200 response is a transport error."""
        channel = SlackChannel()

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response(404, "no_service")
            mock_client_class.return_value = mock_client

            await channel.init(AlertingConfig(), _settings())
            with pytest.raises(TransportError, match="404"):
                await channel.send("https://hooks.slack.test/T1", "Info", "X", "text")

    @pytest.mark.asyncio
    async def test_send_network_error(self) -> None:
        """Connection failures are wrapped in a transport error."""
        channel = SlackChannel()

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.side_effect = httpx.ConnectError("refused")
            mock_client_class.return_value = mock_client

            await channel.init(AlertingConfig(), _settings())
            with pytest.raises(TransportError, match="refused"):
                await channel.send("https://hooks.slack.test/T1", "Info", "X", "text")

    @pytest.mark.asyncio
    async def test_send_requires_endpoint(self) -> None:
        """An empty webhook URL is rejected before any request."""
        channel = SlackChannel()

        with pytest.raises(ValueError, match="endpoint must not be empty"):
            await channel.send("", "Info", "X", "text")

    @pytest.mark.asyncio
    async def test_send_before_init(self) -> None:
        """Sending without init is a transport error."""
        with pytest.raises(TransportError, match="not initialized"):
            await SlackChannel().send("https://hooks.slack.test/T1", "Info", "X", "text")


# ============================================================================
# SmsChannel Tests
# ============================================================================


class TestSmsChannel:
    """Tests for the Twilio SMS channel."""

    @pytest.mark.asyncio
    async def test_init_requires_credentials(self) -> None:
        """Missing Twilio settings fail initialisation."""
        with pytest.raises(ConfigurationError, match="TWILIO_SENDER"):
            await SmsChannel().init(AlertingConfig(), _settings(TWILIO_SENDER=""))

    @pytest.mark.asyncio
    async def test_send_success(self) -> None:
        """Post a form to the account's Messages resource."""
        channel = SmsChannel()

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response(201)
            mock_client_class.return_value = mock_client

            await channel.init(AlertingConfig(), _settings())
            await channel.send("+61411111111", "Critical", "PlayDied", "x" * 300)

            assert mock_client_class.call_args.kwargs["auth"] == ("AC123", "token")
            url = mock_client.post.call_args.args[0]
            form = mock_client.post.call_args.kwargs["data"]
            assert url == "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json"
            assert form["To"] == "+61411111111"
            assert form["From"] == "+61400000001"
            assert form["Body"].startswith("Critical>PlayDied: xxx")
            assert len(form["Body"]) == 160

    @pytest.mark.asyncio
    async def test_send_without_truncation(self) -> None:
        """Long messages are kept whole when truncation is off."""
        channel = SmsChannel()

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response(201)
            mock_client_class.return_value = mock_client

            await channel.init(AlertingConfig(), _settings(TRUNCATE_SMS_TO_ONE_PART="false"))
            await channel.send("+61411111111", "Critical", "PlayDied", "x" * 300)

            form = mock_client.post.call_args.kwargs["data"]
            assert len(form["Body"]) == len("Critical>PlayDied: ") + 300

    @pytest.mark.asyncio
    async def test_send_retries_server_error(self) -> None:
        """A 503 is retried and the second attempt succeeds."""
        channel = SmsChannel(max_retries=2, retry_delay=0.01)

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.side_effect = [_response(503, "busy"), _response(201)]
            mock_client_class.return_value = mock_client

            await channel.init(AlertingConfig(), _settings())
            await channel.send("+61411111111", "Critical", "PlayDied", "Play died")

            assert mock_client.post.call_count == 2

    @pytest.mark.asyncio
    async def test_send_rejected_not_retried(self) -> None:
        """A 400 from Twilio fails immediately."""
        channel = SmsChannel(max_retries=3, retry_delay=0.01)

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.return_value = _response(400, "invalid To number")
            mock_client_class.return_value = mock_client

            await channel.init(AlertingConfig(), _settings())
            with pytest.raises(TransportError, match="invalid To number"):
                await channel.send("not-a-number", "Critical", "PlayDied", "Play died")

            assert mock_client.post.call_count == 1

    @pytest.mark.asyncio
    async def test_send_failure_after_retries(self) -> None:
        """Repeated timeouts exhaust the retries."""
        channel = SmsChannel(max_retries=2, retry_delay=0.01)

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.post.side_effect = httpx.ReadTimeout("slow")
            mock_client_class.return_value = mock_client

            await channel.init(AlertingConfig(), _settings())
            with pytest.raises(TransportError, match="after 2 attempts"):
                await channel.send("+61411111111", "Critical", "PlayDied", "Play died")

            assert mock_client.post.call_count == 2

    @pytest.mark.asyncio
    async def test_send_requires_level(self) -> None:
        """Every message part must be present."""
        with pytest.raises(ValueError, match="alert_level must not be empty"):
            await SmsChannel().send("+61411111111", "", "PlayDied", "Play died")


# ============================================================================
# EmailChannel Tests
# ============================================================================


class TestEmailChannel:
    """Tests for the SMTP email channel."""

    @pytest.mark.asyncio
    async def test_init_requires_credentials(self) -> None:
        """Missing SMTP settings fail initialisation."""
        with pytest.raises(ConfigurationError, match="password"):
            await EmailChannel().init(AlertingConfig(), _settings(SMTP_PASSWORD=""))

    @pytest.mark.asyncio
    async def test_init_opens_session(self, smtp_client: MagicMock) -> None:
        """Initialisation connects and logs in once."""
        channel = EmailChannel()

        with patch("aiosmtplib.SMTP", return_value=smtp_client) as mock_smtp:
            await channel.init(AlertingConfig(), _settings())

        assert mock_smtp.call_args.kwargs["start_tls"] is True
        smtp_client.connect.assert_awaited_once()
        smtp_client.login.assert_awaited_once_with("smtp-user", "smtp-pass")
        assert channel.is_initialized is True

    @pytest.mark.asyncio
    async def test_init_connection_failure(self, smtp_client: MagicMock) -> None:
        """An unreachable relay is a configuration error."""
        smtp_client.connect.side_effect = aiosmtplib.SMTPConnectError("unreachable")

        with (
            patch("aiosmtplib.SMTP", return_value=smtp_client),
            pytest.raises(ConfigurationError, match="Could not open SMTP session"),
        ):
            await EmailChannel().init(AlertingConfig(), _settings())

    @pytest.mark.asyncio
    async def test_send_message(self, smtp_client: MagicMock) -> None:
        """The email carries the alert subject and text."""
        channel = EmailChannel()

        with patch("aiosmtplib.SMTP", return_value=smtp_client):
            await channel.init(AlertingConfig(), _settings())
            await channel.send("tom@gmail.com", "Critical", "PlayDied", "Play died")

        message = smtp_client.send_message.call_args.args[0]
        assert message["Subject"] == "Alert Level: Critical. Alert Code: PlayDied"
        assert message["From"] == "alerts@example.com"
        assert message["To"] == "tom@gmail.com"
        assert message.get_content().strip() == "Play died"
        smtp_client.login.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_reconnects_after_drop(self, smtp_client: MagicMock) -> None:
        """A dropped session is reopened and the message resent."""
        smtp_client.send_message.side_effect = [
            aiosmtplib.SMTPServerDisconnected("gone"),
            None,
        ]
        channel = EmailChannel()

        with patch("aiosmtplib.SMTP", return_value=smtp_client):
            await channel.init(AlertingConfig(), _settings())
            await channel.send("tom@gmail.com", "Critical", "PlayDied", "Play died")

        assert smtp_client.send_message.await_count == 2
        assert smtp_client.login.await_count == 2

    @pytest.mark.asyncio
    async def test_send_gives_up(self, smtp_client: MagicMock) -> None:
        """After SMTP_MAX_RETRY failed attempts the send fails."""
        smtp_client.send_message.side_effect = aiosmtplib.SMTPServerDisconnected("gone")
        channel = EmailChannel()

        with patch("aiosmtplib.SMTP", return_value=smtp_client):
            await channel.init(AlertingConfig(), _settings())
            with pytest.raises(TransportError, match="tom@gmail.com"):
                await channel.send("tom@gmail.com", "Critical", "PlayDied", "Play died")

        assert smtp_client.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_send_before_init(self) -> None:
        """Sending without a configured sender is a transport error."""
        with pytest.raises(TransportError, match="sender not set"):
            await EmailChannel().send("tom@gmail.com", "Critical", "PlayDied", "Play died")

    @pytest.mark.asyncio
    async def test_close(self, smtp_client: MagicMock) -> None:
        """Closing quits the session."""
        channel = EmailChannel()

        with patch("aiosmtplib.SMTP", return_value=smtp_client):
            await channel.init(AlertingConfig(), _settings())
            await channel.close()

        smtp_client.quit.assert_awaited_once()
        assert channel.is_initialized is False
