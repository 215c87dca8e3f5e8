# storefront/services/notifications/sms.py
import logging
from typing import Optional

import requests

from storefront.core.errors import DeliveryError

logger = logging.getLogger(__name__)


class TwilioSMSTransport:
    """
    SMS delivery through the Twilio Messages REST API.
    API Documentation: https://www.twilio.com/docs/messaging/api/message-resource
    """
    BASE_URL = "https://api.twilio.com/2010-04-01"

    def __init__(self, account_sid: Optional[str], auth_token: Optional[str],
                 from_number: Optional[str], timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self.session = session or requests.Session()

        if not self.is_configured:
            logger.warning("Twilio credentials not configured. SMS sending will fail. "
                           "Set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER.")
        else:
            logger.info("Twilio SMS transport initialized")

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def send(self, to: str, body: str) -> None:
        if not self.is_configured:
            raise DeliveryError("SMS transport is not configured")

        url = f"{self.BASE_URL}/Accounts/{self.account_sid}/Messages.json"
        try:
            response = self.session.post(
                url,
                data={"To": to, "From": self.from_number, "Body": body},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Timeout while sending SMS via Twilio to {to}")
            raise DeliveryError("SMS delivery timed out") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error while sending SMS via Twilio: {e}")
            raise DeliveryError("SMS delivery failed") from e

        if response.status_code >= 400:
            try:
                details = response.json().get("message")
            except ValueError:
                details = response.text
            logger.error(f"Twilio rejected SMS: status={response.status_code}, details={details}")
            raise DeliveryError("SMS delivery failed")

        try:
            sid = response.json().get("sid")
        except ValueError:
            sid = None
        logger.info(f"SMS sent via Twilio to {to} (SID: {sid})")
