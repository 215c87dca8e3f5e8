# storefront/services/notifications/mail.py
import email.message
import email.policy
import logging
import smtplib
from typing import Optional

from storefront.core.errors import DeliveryError

logger = logging.getLogger(__name__)


class SMTPMailTransport:
    """SMTP e-mail sender. Opens one connection per message."""

    def __init__(self, host: Optional[str], port: int = 587, username: Optional[str] = None,
                 password: Optional[str] = None, use_tls: bool = True,
                 from_email: Optional[str] = None, from_name: Optional[str] = None,
                 timeout: float = 10.0):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email or username
        self.from_name = from_name
        self.timeout = timeout

        if not self.host or not self.from_email:
            logger.warning("SMTP not configured. E-mail sending will fail. Set SMTP_HOST and MAIL_FROM.")

    def _build_message(self, to: str, subject: str, body: str,
                       html: Optional[str]) -> email.message.EmailMessage:
        message = email.message.EmailMessage(policy=email.policy.default)
        message["To"] = to
        message["From"] = f'"{self.from_name}" <{self.from_email}>' if self.from_name else self.from_email
        message["Subject"] = subject
        message.set_content(body, subtype="plain", charset="utf-8")
        if html:
            message.add_alternative(html, subtype="html", charset="utf-8")
        return message

    def send(self, to: str, subject: str, body: str, html: Optional[str] = None) -> None:
        if not self.host or not self.from_email:
            raise DeliveryError("Mail transport is not configured")

        message = self._build_message(to, subject, body, html)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            raise DeliveryError("Failed to send verification email") from e

        logger.info(f"Email sent to {to} via SMTP")
