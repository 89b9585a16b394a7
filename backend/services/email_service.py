"""Best-effort outbound email over SMTP.

Notifications are fire-and-forget: every public method returns ``True``/
``False`` and never raises, so a mail outage cannot fail a link flow.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """SMTP-based notifier configured from ``SMTP_*`` settings."""

    def __init__(
        self,
        smtp_server: str | None = None,
        smtp_port: int | None = None,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        from_email: str | None = None,
    ):
        self.smtp_server = smtp_server if smtp_server is not None else settings.SMTP_SERVER
        self.smtp_port = smtp_port or settings.SMTP_PORT
        self.smtp_user = smtp_user if smtp_user is not None else settings.SMTP_USER
        self.smtp_password = smtp_password if smtp_password is not None else settings.SMTP_PASSWORD
        self.from_email = from_email or settings.EMAIL_FROM

    def is_configured(self) -> bool:
        return bool(self.smtp_server and self.smtp_user and self.smtp_password)

    def send_email(self, to_email: str, subject: str, html_body: str, text_body: str) -> bool:
        if not self.is_configured():
            logger.info("SMTP not configured, skipping email %r to %s", subject, to_email)
            return False

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.from_email
        message["To"] = to_email
        message.attach(MIMEText(text_body, "plain"))
        message.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=10) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Failed to send email %r to %s: %s", subject, to_email, e)
            return False

        logger.info("Sent email %r to %s", subject, to_email)
        return True

    def send_bank_connection_notification(
        self, to_email: str, user_name: str | None, institution_name: str | None
    ) -> bool:
        institution = institution_name or "your bank"
        greeting = f"Hi {user_name}," if user_name else "Hi,"
        subject = f"{institution} is now connected"
        text_body = (
            f"{greeting}\n\n"
            f"{institution} was connected to your AskMyMoney account. "
            "If this wasn't you, remove the connection and contact support.\n"
        )
        html_body = (
            f"<p>{escape(greeting)}</p>"
            f"<p><strong>{escape(institution)}</strong> was connected to your AskMyMoney account.</p>"
            "<p>If this wasn't you, remove the connection and contact support.</p>"
        )
        return self.send_email(to_email, subject, html_body, text_body)

    def send_subscription_confirmation(self, to_email: str, user_name: str | None, plan: str) -> bool:
        greeting = f"Hi {user_name}," if user_name else "Hi,"
        subject = "Your AskMyMoney subscription is active"
        text_body = f"{greeting}\n\nYour {plan} plan is now active.\n"
        html_body = f"<p>{escape(greeting)}</p><p>Your <strong>{escape(plan)}</strong> plan is now active.</p>"
        return self.send_email(to_email, subject, html_body, text_body)
