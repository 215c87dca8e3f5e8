# storefront/services/notifications/base.py
import re
from typing import Optional, Protocol


class SMSTransport(Protocol):
    def send(self, to: str, body: str) -> None:
        """Deliver ``body`` to ``to`` (E.164). Raises DeliveryError on failure."""


class MailTransport(Protocol):
    def send(self, to: str, subject: str, body: str, html: Optional[str] = None) -> None:
        """Deliver a message to ``to``. Raises DeliveryError on failure."""


def to_e164(phone: str) -> str:
    """
    Format a stored phone number for SMS delivery.
    Accounts keep digits only (country code included), transports want a leading "+".
    """
    digits = re.sub(r"\D", "", phone or "")
    return f"+{digits}"
