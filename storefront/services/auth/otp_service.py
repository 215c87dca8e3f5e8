# storefront/services/auth/otp_service.py
from dataclasses import dataclass
import hmac
import logging
from typing import Optional

from storefront.core.errors import DeliveryError
from storefront.core.logging import hash_subject
from storefront.services.auth.otp_store import OTPLedger
from storefront.services.notifications.base import MailTransport, SMSTransport

logger = logging.getLogger(__name__)

DEFAULT_OTP_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class NotificationReport:
    """Which channels actually delivered a code. The flow succeeds either way."""
    phone_delivered: bool = False
    email_delivered: bool = False

    def as_dict(self) -> dict:
        return {"phoneDelivered": self.phone_delivered, "emailDelivered": self.email_delivered}


class OTPChannelService:
    """
    One-time code lifecycle for a single delivery channel.

    ``generate`` stores a fresh code for a key, ``send`` hands the pending
    code to the transport and ``verify`` checks a submitted code with
    single-use consumption. A wrong guess leaves the code in place until it
    expires or a correct guess consumes it.
    """
    channel = "otp"

    def __init__(self, ledger: OTPLedger, ttl_seconds: int = DEFAULT_OTP_TTL_SECONDS,
                 debug_log: bool = False):
        self.ledger = ledger
        self.ttl_seconds = ttl_seconds
        self.debug_log = debug_log

    def generate(self, key: str) -> str:
        code = self.ledger.put(key, self.ttl_seconds)
        if self.debug_log:
            logger.warning("OTP_DEBUG_LOG: %s OTP for %s is %s (disable OTP_DEBUG_LOG in production)",
                           self.channel, key, code)
        return code

    def send(self, destination: str, key: str) -> None:
        """Deliver the pending code for ``key``. Raises DeliveryError on failure."""
        entry = self.ledger.peek(key)
        if entry is None:
            raise DeliveryError("OTP not generated yet")
        self._deliver(destination, entry.code)

    def _deliver(self, destination: str, code: str) -> None:
        raise NotImplementedError

    def issue(self, key: str, destination: str) -> bool:
        """Generate and send a code. Delivery is best effort: the code stays valid either way."""
        self.generate(key)
        try:
            self.send(destination, key)
        except DeliveryError as e:
            logger.error(f"{self.channel} OTP delivery failed for {hash_subject(destination)}: {e.message}")
            return False
        return True

    def verify(self, key: str, code: Optional[str]) -> bool:
        entry = self.ledger.peek(key)
        if entry is None:
            logger.info(f"{self.channel} OTP verification for {key}: no pending code")
            return False

        if entry.is_expired(self.ledger.now()):
            self.ledger.delete(key, entry)
            logger.info(f"{self.channel} OTP verification for {key}: expired")
            return False

        if not code or not hmac.compare_digest(entry.code.encode(), code.encode()):
            logger.info(f"{self.channel} OTP verification for {key}: Failed")
            return False

        # Only one concurrent verifier gets to remove the entry
        consumed = self.ledger.delete(key, entry)
        logger.info(f"{self.channel} OTP verification for {key}: {'Success' if consumed else 'Failed'}")
        return consumed


class PhoneOTPService(OTPChannelService):
    """Codes keyed by account id, delivered by SMS"""
    channel = "phone"

    def __init__(self, ledger: OTPLedger, transport: SMSTransport, **kwargs):
        super().__init__(ledger, **kwargs)
        self.transport = transport

    def _deliver(self, destination: str, code: str) -> None:
        self.transport.send(destination, f"Your verification code is {code}")


class EmailOTPService(OTPChannelService):
    """Codes keyed by e-mail address, delivered by mail"""
    channel = "email"
    subject = "Your Verification Code"

    def __init__(self, ledger: OTPLedger, transport: MailTransport, app_name: str = "E-Commerce App",
                 **kwargs):
        super().__init__(ledger, **kwargs)
        self.transport = transport
        self.app_name = app_name

    def _deliver(self, destination: str, code: str) -> None:
        minutes = self.ttl_seconds // 60
        body = (
            "Hello,\n\n"
            f"Your verification code is: {code}\n\n"
            f"This code will expire in {minutes} minutes.\n"
            "If you didn't request this code, please ignore this email.\n\n"
            f"{self.app_name}"
        )
        html = render_otp_email(code, minutes, self.app_name)
        self.transport.send(destination, self.subject, body, html=html)


def render_otp_email(code: str, minutes: int, app_name: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <style>
    body {{ font-family: Arial, sans-serif; background-color: #f4f4f4; margin: 0; padding: 0; }}
    .container {{ max-width: 600px; margin: 40px auto; background: white; padding: 30px; border-radius: 10px; }}
    .otp-box {{ background: #f8f9fa; border: 2px dashed #007bff; border-radius: 8px; padding: 20px; text-align: center; }}
    .otp-code {{ font-size: 32px; font-weight: bold; color: #007bff; letter-spacing: 5px; }}
    .footer {{ text-align: center; color: #999; font-size: 12px; margin-top: 30px; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>Verification Code</h1>
    <p>Hello,</p>
    <p>Your verification code is:</p>
    <div class="otp-box"><div class="otp-code">{code}</div></div>
    <p><strong>This code will expire in {minutes} minutes.</strong></p>
    <p>If you didn't request this code, please ignore this email.</p>
    <div class="footer"><p>{app_name}</p></div>
  </div>
</body>
</html>
"""
