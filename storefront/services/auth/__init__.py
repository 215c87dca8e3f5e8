from .auth_service import AdminCredentials, AuthService
from .otp_service import EmailOTPService, NotificationReport, OTPChannelService, PhoneOTPService
from .otp_store import OTPEntry, OTPLedger
from .passwords import PasswordHasher
from .token_service import Identity, TokenClaims, TokenService

__all__ = [
    "AdminCredentials",
    "AuthService",
    "EmailOTPService",
    "Identity",
    "NotificationReport",
    "OTPChannelService",
    "OTPEntry",
    "OTPLedger",
    "PasswordHasher",
    "PhoneOTPService",
    "TokenClaims",
    "TokenService",
]
