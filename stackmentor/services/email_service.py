"""Outgoing email (account verification) over SMTP."""

import asyncio
import os
import smtplib
from email.mime.text import MIMEText

import structlog

from stackmentor.services.errors import EmailDeliveryError

logger = structlog.get_logger(__name__)

VERIFICATION_SUBJECT = "Email Verification for StackMentor.io"


class EmailService:
    """Sends transactional email.

    SMTP settings come from the environment. Without ``SMTP_HOST`` messages
    are logged instead of sent, which is what local development wants.
    """

    def __init__(
        self,
        smtp_host: str | None = None,
        smtp_port: int | None = None,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        use_tls: bool | None = None,
        mail_from: str | None = None,
        base_url: str | None = None,
    ):
        self.smtp_host = smtp_host or os.getenv("SMTP_HOST")
        self.smtp_port = smtp_port or int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = smtp_user or os.getenv("SMTP_USER")
        self.smtp_password = smtp_password or os.getenv("SMTP_PASSWORD")
        if use_tls is None:
            use_tls = os.getenv("SMTP_USE_TLS", "true").lower() in ("1", "true", "yes")
        self.use_tls = use_tls
        self.mail_from = mail_from or os.getenv("MAIL_FROM", "no-reply@stackmentor.io")
        self.base_url = (base_url or os.getenv("APP_BASE_URL", "http://localhost:8080")).rstrip("/")

    def verification_link(self, token: str) -> str:
        return f"{self.base_url}/api/auth/verify?token={token}"

    def build_verification_email(self, to: str, token: str) -> MIMEText:
        """Compose the verification message for a recipient."""
        body = (
            "Please verify your email by clicking the following link: "
            + self.verification_link(token)
        )
        msg = MIMEText(body, "plain")
        msg["From"] = self.mail_from
        msg["To"] = to
        msg["Subject"] = VERIFICATION_SUBJECT
        return msg

    async def send_verification_email(self, to: str, token: str) -> None:
        """Send the verification link to a newly registered address.

        Args:
            to: Recipient address
            token: Verification token to embed in the link

        Raises:
            EmailDeliveryError: If the SMTP exchange fails
        """
        msg = self.build_verification_email(to, token)

        if not self.smtp_host:
            logger.warning("smtp_not_configured", recipient=to, subject=msg["Subject"])
            return

        # smtplib blocks; keep it off the event loop
        await asyncio.to_thread(self._deliver, msg)
        logger.info("verification_email_sent", recipient=to)

    def _deliver(self, msg: MIMEText) -> None:
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user:
                    server.login(self.smtp_user, self.smtp_password or "")
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("email_delivery_failed", recipient=msg["To"], error=str(exc))
            raise EmailDeliveryError(str(exc)) from exc
