"""Outbound email: transport backends, the verification-code message, and
background delivery of that message."""

import asyncio
import logging
from abc import ABC, abstractmethod
from email.message import EmailMessage

import aiosmtplib
import httpx

from peaceblog.config import settings

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailBackend(ABC):
    """Abstract base class for email backends."""

    name: str = "abstract"

    @abstractmethod
    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        """Send an email.

        Transport failures are logged and reported as False rather than
        raised, so callers can treat delivery as a yes/no outcome.

        Args:
            to: Recipient email address
            subject: Email subject
            html: HTML content
            text: Plain text alternative (optional)

        Returns:
            True if sent successfully
        """


class ConsoleEmailBackend(EmailBackend):
    """Writes emails to the log instead of sending them (development only)."""

    name = "console"

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        body = text or html
        rule = "=" * 60
        logger.info(f"\n{rule}\nEMAIL (console backend, not sent)\nTo: {to}\nSubject: {subject}\n{rule}\n{body}\n{rule}")
        return True


class SMTPEmailBackend(EmailBackend):
    """Email backend using SMTP via aiosmtplib."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = True,
        from_address: str = "",
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_address = from_address
        self.timeout = timeout

    def build_message(self, to: str, subject: str, html: str, text: str | None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        # Plain text first so clients that can't render HTML still show the code
        message.set_content(text or "This message requires an HTML-capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        message = self.build_message(to, subject, html, text)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                start_tls=self.use_tls,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {to} via {self.host}:{self.port} failed: {e!r}")
            return False
        logger.info(f"Email sent via SMTP to {to}")
        return True


class ResendEmailBackend(EmailBackend):
    """Email backend using the Resend HTTP API."""

    name = "resend"

    def __init__(self, api_key: str, from_address: str, timeout: float = 30.0):
        self.api_key = api_key
        self.from_address = from_address
        self.timeout = timeout

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        payload = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Resend rejected email to {to}: {e.response.status_code} {e.response.text}")
                return False
            except httpx.HTTPError as e:
                logger.error(f"Resend request for {to} failed: {e!r}")
                return False
        logger.info(f"Email sent via Resend to {to}")
        return True


def get_email_backend() -> EmailBackend:
    """Build the backend selected by settings.email_backend."""
    backend = settings.email_backend
    if backend == "console":
        if settings.is_production:
            logger.warning("Console email backend in production: codes will only be logged")
        return ConsoleEmailBackend()
    if backend == "smtp":
        return SMTPEmailBackend(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.email_from,
        )
    if backend == "resend":
        return ResendEmailBackend(
            api_key=settings.resend_api_key,
            from_address=settings.email_from,
        )
    raise ValueError(f"Unknown email backend: {backend}")


class EmailService:
    """High-level email service for sending application emails."""

    def __init__(self, backend: EmailBackend | None = None):
        self._backend = backend

    @property
    def backend(self) -> EmailBackend:
        """Lazy-load the backend."""
        if self._backend is None:
            self._backend = get_email_backend()
        return self._backend

    async def send_verification_code(self, to: str, code: str) -> bool:
        """Send an admin sign-in verification code.

        Args:
            to: Recipient email address
            code: The one-time verification code

        Returns:
            True if sent successfully
        """
        subject = "[Peace Blog] Admin verification code"
        minutes = max(1, settings.verification_code_ttl_seconds // 60)

        html = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="text-align: center; margin-bottom: 30px;">
        <h1 style="color: #1a1a1a; margin: 0;">Peace Blog</h1>
    </div>

    <div style="background: #f9fafb; border-radius: 8px; padding: 30px; margin-bottom: 30px;">
        <h2 style="margin-top: 0; color: #1a1a1a;">Your admin verification code</h2>
        <p>Enter this code to finish signing in. It expires in {minutes} minutes.</p>

        <div style="text-align: center; margin: 30px 0; font-size: 32px; letter-spacing: 8px; font-weight: 600;">
            {code}
        </div>

        <p style="color: #666; font-size: 14px;">
            If you didn't try to sign in, someone may know your passcode. Change it as soon as possible.
        </p>
    </div>
</body>
</html>
"""

        text = f"""
Peace Blog admin verification code
==================================

Your verification code is:

{code}

This code expires in {minutes} minutes.

If you didn't try to sign in, someone may know your passcode.
"""

        return await self.backend.send(to=to, subject=subject, html=html, text=text)


class NotificationDispatcher:
    """Runs verification-code deliveries as background tasks.

    dispatch() schedules delivery and returns immediately with the task, so
    the caller decides whether and how long to wait for the outcome. In-flight
    tasks are referenced here until they finish so they aren't garbage
    collected mid-send, and drain() lets shutdown wait for them.
    """

    def __init__(self, email: EmailService) -> None:
        self.email = email
        self._pending: set[asyncio.Task[bool]] = set()

    async def _deliver(self, to: str, code: str) -> bool:
        try:
            return await self.email.send_verification_code(to=to, code=code)
        except Exception:
            logger.exception(f"Verification code delivery to {to} raised")
            return False

    def dispatch(self, to: str, code: str) -> asyncio.Task[bool]:
        """Schedule delivery of a code. Must be called from a running event loop."""
        task = asyncio.create_task(self._deliver(to, code), name=f"verification-email:{to}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: float | None = 10.0) -> None:
        """Wait for in-flight deliveries, cancelling any still running after timeout."""
        if not self._pending:
            return
        _done, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in not_done:
            logger.warning(f"Cancelling unfinished delivery task {task.get_name()}")
            task.cancel()
