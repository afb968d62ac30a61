"""Email backend, verification message and dispatcher tests."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import httpx
import pytest

from peaceblog.services.email import (
    RESEND_API_URL,
    ConsoleEmailBackend,
    EmailService,
    NotificationDispatcher,
    ResendEmailBackend,
    SMTPEmailBackend,
    get_email_backend,
)
from tests.conftest import RecordingEmailService


@pytest.fixture
def smtp_backend() -> SMTPEmailBackend:
    return SMTPEmailBackend(
        host="smtp.example.com",
        port=587,
        username="mailer",
        password="secret",
        from_address="Peace Blog <noreply@example.com>",
    )


@pytest.fixture
def resend_backend() -> ResendEmailBackend:
    return ResendEmailBackend(api_key="re_test_key", from_address="noreply@example.com")


class TestConsoleEmailBackend:
    async def test_send_logs_email(self, caplog):
        backend = ConsoleEmailBackend()

        with caplog.at_level(logging.INFO):
            result = await backend.send(
                to="alice@example.com",
                subject="Code",
                html="<p>482913</p>",
                text="482913",
            )

        assert result is True
        assert "alice@example.com" in caplog.text
        assert "482913" in caplog.text

    async def test_falls_back_to_html(self, caplog):
        with caplog.at_level(logging.INFO):
            await ConsoleEmailBackend().send(to="a@example.com", subject="S", html="<p>only html</p>")

        assert "<p>only html</p>" in caplog.text


class TestSMTPEmailBackend:
    def test_build_message_has_both_parts(self, smtp_backend: SMTPEmailBackend):
        message = smtp_backend.build_message("alice@example.com", "Code", "<b>1</b>", "1")

        assert message["To"] == "alice@example.com"
        assert message["From"] == "Peace Blog <noreply@example.com>"
        assert message.is_multipart()
        assert [part.get_content_type() for part in message.iter_parts()] == [
            "text/plain",
            "text/html",
        ]

    async def test_send_success(self, smtp_backend: SMTPEmailBackend):
        with patch("peaceblog.services.email.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            result = await smtp_backend.send(
                to="alice@example.com", subject="Code", html="<p>1</p>", text="1"
            )

        assert result is True
        mock_send.assert_called_once()
        kwargs = mock_send.call_args.kwargs
        assert kwargs["hostname"] == "smtp.example.com"
        assert kwargs["port"] == 587
        assert kwargs["start_tls"] is True
        assert kwargs["username"] == "mailer"

    async def test_send_without_credentials(self):
        backend = SMTPEmailBackend(host="localhost", port=25, username="", password="", use_tls=False)

        with patch("peaceblog.services.email.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            await backend.send(to="alice@example.com", subject="Code", html="<p>1</p>")

        kwargs = mock_send.call_args.kwargs
        assert kwargs["username"] is None
        assert kwargs["password"] is None

    @pytest.mark.parametrize(
        "error",
        [
            aiosmtplib.SMTPConnectError("Connection refused"),
            ConnectionRefusedError("Connection refused"),
        ],
    )
    async def test_send_failure(self, smtp_backend: SMTPEmailBackend, error: Exception):
        with patch(
            "peaceblog.services.email.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=error,
        ):
            result = await smtp_backend.send(to="alice@example.com", subject="Code", html="<p>1</p>")

        assert result is False


class TestResendEmailBackend:
    async def test_send_success(self, resend_backend: ResendEmailBackend):
        mock_response = MagicMock()
        mock_response.raise_for_status = MagicMock()

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response

            result = await resend_backend.send(
                to="alice@example.com", subject="Code", html="<p>1</p>", text="1"
            )

        assert result is True
        assert mock_post.call_args.args[0] == RESEND_API_URL
        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer re_test_key"
        assert kwargs["json"]["to"] == ["alice@example.com"]
        assert kwargs["json"]["text"] == "1"

    async def test_send_http_error(self, resend_backend: ResendEmailBackend):
        mock_response = MagicMock()
        mock_response.status_code = 401
        mock_response.text = "Unauthorized"
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "Unauthorized",
            request=MagicMock(),
            response=mock_response,
        )

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            mock_post.return_value = mock_response

            result = await resend_backend.send(to="alice@example.com", subject="Code", html="<p>1</p>")

        assert result is False

    async def test_send_network_error(self, resend_backend: ResendEmailBackend):
        with patch(
            "httpx.AsyncClient.post",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("Network unreachable"),
        ):
            result = await resend_backend.send(to="alice@example.com", subject="Code", html="<p>1</p>")

        assert result is False


class TestGetEmailBackend:
    def test_console_backend(self):
        with patch("peaceblog.services.email.settings") as mock_settings:
            mock_settings.email_backend = "console"
            mock_settings.is_production = False

            assert isinstance(get_email_backend(), ConsoleEmailBackend)

    def test_console_backend_in_production_warns(self, caplog):
        with patch("peaceblog.services.email.settings") as mock_settings:
            mock_settings.email_backend = "console"
            mock_settings.is_production = True

            with caplog.at_level(logging.WARNING):
                get_email_backend()

        assert "Console email backend in production" in caplog.text

    def test_smtp_backend(self):
        with patch("peaceblog.services.email.settings") as mock_settings:
            mock_settings.email_backend = "smtp"
            mock_settings.smtp_host = "smtp.example.com"
            mock_settings.smtp_port = 465
            mock_settings.smtp_username = "mailer"
            mock_settings.smtp_password = "secret"
            mock_settings.smtp_use_tls = False
            mock_settings.email_from = "noreply@example.com"

            backend = get_email_backend()

        assert isinstance(backend, SMTPEmailBackend)
        assert backend.port == 465
        assert backend.use_tls is False

    def test_resend_backend(self):
        with patch("peaceblog.services.email.settings") as mock_settings:
            mock_settings.email_backend = "resend"
            mock_settings.resend_api_key = "re_test_key"
            mock_settings.email_from = "noreply@example.com"

            backend = get_email_backend()

        assert isinstance(backend, ResendEmailBackend)
        assert backend.api_key == "re_test_key"

    def test_invalid_backend(self):
        with patch("peaceblog.services.email.settings") as mock_settings:
            mock_settings.email_backend = "pigeon"

            with pytest.raises(ValueError, match="Unknown email backend"):
                get_email_backend()


class TestEmailService:
    async def test_send_verification_code(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = True
        service = EmailService(backend=mock_backend)

        result = await service.send_verification_code(to="alice@example.com", code="048213")

        assert result is True
        kwargs = mock_backend.send.call_args.kwargs
        assert kwargs["to"] == "alice@example.com"
        assert kwargs["subject"] == "[Peace Blog] Admin verification code"
        assert "048213" in kwargs["html"]
        assert "048213" in kwargs["text"]
        assert "expires in 5 minutes" in kwargs["text"]

    async def test_send_verification_code_failure(self):
        mock_backend = AsyncMock()
        mock_backend.send.return_value = False

        service = EmailService(backend=mock_backend)

        assert await service.send_verification_code(to="alice@example.com", code="1") is False

    def test_lazy_backend_loading(self):
        service = EmailService()

        with patch("peaceblog.services.email.get_email_backend") as mock_get_backend:
            mock_get_backend.return_value = ConsoleEmailBackend()

            backend = service.backend
            assert isinstance(backend, ConsoleEmailBackend)

            assert service.backend is backend
            mock_get_backend.assert_called_once()


class TestNotificationDispatcher:
    async def test_dispatch_reports_success(self):
        email = RecordingEmailService()
        dispatcher = NotificationDispatcher(email)

        assert await dispatcher.dispatch("alice@example.com", "123456") is True
        assert email.sent == [("alice@example.com", "123456")]

    async def test_dispatch_reports_failure(self):
        dispatcher = NotificationDispatcher(RecordingEmailService(succeed=False))

        assert await dispatcher.dispatch("alice@example.com", "123456") is False

    async def test_exception_becomes_failure(self, caplog):
        email = AsyncMock(spec=EmailService)
        email.send_verification_code.side_effect = RuntimeError("boom")
        dispatcher = NotificationDispatcher(email)

        with caplog.at_level(logging.ERROR):
            assert await dispatcher.dispatch("alice@example.com", "123456") is False

        assert "delivery to alice@example.com raised" in caplog.text

    async def test_pending_tracks_in_flight(self):
        release = asyncio.Event()

        class SlowEmailService(RecordingEmailService):
            async def send_verification_code(self, to: str, code: str) -> bool:
                await release.wait()
                return await super().send_verification_code(to, code)

        dispatcher = NotificationDispatcher(SlowEmailService())
        task = dispatcher.dispatch("alice@example.com", "123456")
        await asyncio.sleep(0)

        assert dispatcher.pending == 1
        release.set()
        await task
        await asyncio.sleep(0)
        assert dispatcher.pending == 0

    async def test_drain_cancels_stuck_deliveries(self):
        class StuckEmailService(RecordingEmailService):
            async def send_verification_code(self, to: str, code: str) -> bool:
                await asyncio.Event().wait()
                return True

        dispatcher = NotificationDispatcher(StuckEmailService())
        task = dispatcher.dispatch("alice@example.com", "123456")

        await dispatcher.drain(timeout=0.01)
        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_drain_with_nothing_pending(self):
        await NotificationDispatcher(RecordingEmailService()).drain()
