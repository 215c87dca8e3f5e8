from .base import MailTransport, SMSTransport, to_e164
from .mail import SMTPMailTransport
from .sms import TwilioSMSTransport

__all__ = [
    "MailTransport",
    "SMSTransport",
    "SMTPMailTransport",
    "TwilioSMSTransport",
    "to_e164",
]
