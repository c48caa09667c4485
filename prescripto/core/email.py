"""
Transactional email over SMTP.

A single ``EmailClient`` is built from settings at application startup and
handed to the services that notify patients. Sending is best-effort: every
public ``send_*`` method returns ``False`` on failure instead of raising.

Request handlers never wait on SMTP. Services hand a ``send_*`` call to
``EmailClient.dispatch``, which runs it on the client's worker pool and
logs the outcome when it finishes.
"""

import logging
import smtplib
import ssl
from concurrent.futures import Future, ThreadPoolExecutor
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr
from typing import Callable, Optional

from .config import Settings

logger = logging.getLogger(__name__)

MAIL_WORKERS = 4


def _report_outcome(description: str) -> Callable[[Future], None]:
    def _callback(future: Future) -> None:
        if future.cancelled():
            logger.warning(f"{description} was cancelled before sending")
            return
        error = future.exception()
        if error is not None:
            logger.error(f"{description} failed: {error}")
        elif not future.result():
            logger.warning(f"{description} was not delivered")
    return _callback


def format_slot_date(slot_date: Optional[str]) -> str:
    """Render a ``DD_MM_YYYY`` date-key as ``DD/MM/YYYY``."""
    if not slot_date:
        return "the scheduled date"
    if "_" in slot_date:
        return "/".join(slot_date.split("_"))
    return slot_date


class EmailClient:
    def __init__(
        self,
        host: Optional[str],
        port: int,
        username: Optional[str],
        password: Optional[str],
        from_address: str,
        frontend_url: str,
        use_tls: bool = True,
        timeout: int = 30,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.frontend_url = frontend_url.rstrip("/")
        self.use_tls = use_tls
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=MAIL_WORKERS, thread_name_prefix="email"
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailClient":
        client = cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            from_address=settings.EMAIL_FROM,
            frontend_url=settings.FRONTEND_URL,
            use_tls=settings.SMTP_USE_TLS,
        )
        logger.info(
            "Email configuration: SMTP_HOST=%s SMTP_USER=%s FRONTEND_URL=%s",
            "SET" if settings.SMTP_HOST else "MISSING",
            "SET" if settings.SMTP_USER else "MISSING",
            client.frontend_url,
        )
        return client

    @property
    def configured(self) -> bool:
        return bool(self.host and self.username and self.password)

    def dispatch(self, description: str, send_func: Callable[..., bool], *args, **kwargs) -> Future:
        """Run ``send_func`` on the mail worker pool and return without waiting."""
        future = self._executor.submit(send_func, *args, **kwargs)
        future.add_done_callback(_report_outcome(description))
        return future

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting mail; with ``wait`` the queued messages are sent first."""
        self._executor.shutdown(wait=wait)

    def send(self, to: str, subject: str, html_content: str) -> bool:
        """Send one HTML email; failures are logged and reported as ``False``."""
        if not to:
            logger.warning(f"Cannot send '{subject}': recipient email missing")
            return False
        if not self.configured:
            logger.warning(f"Cannot send '{subject}' to {to}: SMTP not configured")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to
        msg.attach(MIMEText(html_content, "html"))

        try:
            if self.port == 465:
                context = ssl.create_default_context()
                server = smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
            try:
                server.login(self.username, self.password)
                server.sendmail(parseaddr(self.from_address)[1], [to], msg.as_string())
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send '{subject}' to {to}: {e}")
            return False

        logger.info(f"Email '{subject}' sent to {to}")
        return True

    def send_verification_email(self, to: str, token: str, user_name: str) -> bool:
        link = f"{self.frontend_url}/verify-email?token={token}"
        html = (
            f"<p>Hi {user_name},</p>"
            "<p>Thanks for signing up with Prescripto. Please confirm your email "
            "address to finish creating your account.</p>"
            f'<p><a href="{link}">Verify my email</a></p>'
            "<p>This link expires in 24 hours. If you did not create an account, "
            "you can ignore this email.</p>"
        )
        return self.send(to, "Verify your Prescripto account", html)

    def send_appointment_cancellation_email(
        self,
        to: str,
        patient_name: Optional[str],
        doctor_name: Optional[str],
        slot_date: Optional[str],
        slot_time: Optional[str],
        reason: Optional[str] = None,
    ) -> bool:
        html = (
            f"<p>Hi {patient_name or 'there'},</p>"
            f"<p>Your appointment with {doctor_name or 'your doctor'} on "
            f"{format_slot_date(slot_date)} at {slot_time or 'the scheduled time'} "
            "has been cancelled.</p>"
        )
        if reason:
            html += f"<p>Reason: {reason}</p>"
        html += "<p>You can book a new appointment at any time from your account.</p>"
        return self.send(to, "Your appointment has been cancelled", html)
