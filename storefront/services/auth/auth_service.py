# storefront/services/auth/auth_service.py
from dataclasses import dataclass
import logging
import re
import secrets
from typing import Any, Dict, List, Optional

from storefront.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from storefront.core.logging import audit_log
from storefront.db.models import Role, User
from storefront.services.auth.otp_service import (
    EmailOTPService,
    NotificationReport,
    PhoneOTPService,
)
from storefront.services.auth.passwords import PasswordHasher
from storefront.services.auth.token_service import Identity, TokenService
from storefront.services.notifications.base import to_e164
from storefront.services.users.user_service import UserService

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_OTP = "Invalid or expired OTP"
FORGOT_PASSWORD_GENERIC = "If the email exists, OTP has been sent"


@dataclass(frozen=True)
class AdminCredentials:
    """The built-in administrator. Lives in configuration only, never in the account store."""
    email: str
    password: str
    username: str = "Admin"

    def owns_email(self, email: str) -> bool:
        return normalize_email(email) == normalize_email(self.email)

    def matches(self, email: str, password: str) -> bool:
        email_ok = secrets.compare_digest(normalize_email(email).encode(), normalize_email(self.email).encode())
        password_ok = secrets.compare_digest(password.encode(), self.password.encode())
        return email_ok and password_ok

    def profile(self, identity: Identity) -> Dict[str, Any]:
        return {"id": identity.id, "username": self.username, "email": self.email, "role": Role.ADMIN.value}


@dataclass
class RegistrationResult:
    user: User
    notifications: NotificationReport


@dataclass
class LoginResult:
    identity: Identity
    role: Role
    access_token: str
    refresh_token: str
    profile: Dict[str, Any]


@dataclass
class ForgotPasswordResult:
    user: Optional[User]
    notifications: NotificationReport


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone(phone: Any) -> str:
    """Digits only, country code included"""
    return re.sub(r"\D", "", str(phone))


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def require(message: str, *values: Any) -> None:
    if any(_missing(v) for v in values):
        raise ValidationError(message)


def account_profile(user: User) -> Dict[str, Any]:
    return {"id": user.id, "username": user.username, "email": user.email, "role": Role(user.role).value}


class AuthService:
    """
    Registration, OTP verification, login, token refresh and password
    recovery on top of the account store, the two OTP channels and the
    token service.

    Delivery of OTPs is best effort in registration and forgot-password:
    the account is created (or the reset started) even when no message
    went out, and the returned NotificationReport says what was delivered.
    OTP verification is advisory and never gates login.
    """

    def __init__(self, users: UserService, phone_otp: PhoneOTPService, email_otp: EmailOTPService,
                 tokens: TokenService, hasher: PasswordHasher, admin: AdminCredentials):
        self.users = users
        self.phone_otp = phone_otp
        self.email_otp = email_otp
        self.tokens = tokens
        self.hasher = hasher
        self.admin = admin

    def _send_both(self, user: User) -> NotificationReport:
        phone_delivered = self.phone_otp.issue(user.id, to_e164(user.phone))
        email_delivered = self.email_otp.issue(user.email, user.email)
        return NotificationReport(phone_delivered=phone_delivered, email_delivered=email_delivered)

    # Registration

    def register(self, username: Optional[str], email: Optional[str], password: Optional[str],
                 phonenumber: Optional[str]) -> RegistrationResult:
        require("All fields are required", username, email, password, phonenumber)

        email = normalize_email(email)
        # Rejected whatever the rest of the payload looks like
        if self.admin.owns_email(email):
            audit_log("register_admin_email", email, success=False)
            raise AuthorizationError("Cannot register with admin credentials")

        phone = normalize_phone(phonenumber)
        username = username.strip()
        if not phone:
            raise ValidationError("Phone number must contain digits")
        if len(username) < 3:
            raise ValidationError("Username must be at least 3 characters")

        if self.users.find_by_email_or_phone(email, phone):
            audit_log("register_duplicate", email, success=False)
            raise ConflictError("User with this email or phone already exists")

        user = self.users.create(
            username=username,
            email=email,
            phone=phone,
            password_hash=self.hasher.hash(password),
            role=Role.USER,
        )
        logger.info(f"Registered user {user.id}")

        notifications = self._send_both(user)
        audit_log("register", email, user.id, success=True, **notifications.as_dict())
        return RegistrationResult(user=user, notifications=notifications)

    # OTP verification and resend

    def verify_phone_otp(self, user_id: Optional[str], otp: Optional[str]) -> None:
        require("User ID and OTP are required", user_id, otp)
        ok = self.phone_otp.verify(user_id, otp.strip())
        audit_log("verify_phone_otp", None, user_id, success=ok)
        if not ok:
            raise ValidationError(INVALID_OTP)

    def verify_email_otp(self, email: Optional[str], otp: Optional[str]) -> None:
        require("Email and OTP are required", email, otp)
        email = normalize_email(email)
        ok = self.email_otp.verify(email, otp.strip())
        audit_log("verify_email_otp", email, success=ok)
        if not ok:
            raise ValidationError(INVALID_OTP)

    def resend_phone_otp(self, user_id: Optional[str]) -> None:
        require("User ID is required", user_id)
        user = self.users.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        self.phone_otp.generate(user.id)
        self.phone_otp.send(to_e164(user.phone), user.id)
        audit_log("resend_phone_otp", None, user.id, success=True)

    def resend_email_otp(self, email: Optional[str]) -> None:
        require("Email is required", email)
        email = normalize_email(email)
        user = self.users.find_by_email(email)
        if not user:
            raise NotFoundError("User not found")
        self.email_otp.generate(user.email)
        self.email_otp.send(user.email, user.email)
        audit_log("resend_email_otp", email, user.id, success=True)

    # Sessions

    def login(self, email: Optional[str], password: Optional[str]) -> LoginResult:
        require("Email and password are required", email, password)

        # Checked before any storage lookup
        if self.admin.matches(email, password):
            identity = Identity.new_admin(clock=self.tokens.clock)
            audit_log("login_admin", email, identity.id, success=True)
            return self._issue(identity, Role.ADMIN, self.admin.profile(identity))

        user = self.users.find_by_email(normalize_email(email))
        if not user or not self.hasher.verify(user.password_hash, password):
            audit_log("login_failed", email, success=False)
            raise AuthenticationError(INVALID_CREDENTIALS)

        audit_log("login", email, user.id, success=True)
        return self._issue(Identity.stored(user.id), Role(user.role), account_profile(user))

    def _issue(self, identity: Identity, role: Role, profile: Dict[str, Any]) -> LoginResult:
        return LoginResult(
            identity=identity,
            role=role,
            access_token=self.tokens.issue_access(identity, role),
            refresh_token=self.tokens.issue_refresh(identity),
            profile=profile,
        )

    def refresh(self, refresh_token: Optional[str]) -> str:
        """Mint a new access token. Stored accounts get their current role."""
        if _missing(refresh_token):
            raise AuthenticationError("Refresh token not found")

        claims = self.tokens.verify_refresh(refresh_token)
        identity = claims.identity
        if identity.is_builtin_admin:
            audit_log("refresh_admin", None, identity.id, success=True)
            return self.tokens.issue_access(identity, Role.ADMIN)

        user = self.users.find_by_id(identity.id)
        if not user:
            audit_log("refresh_account_gone", None, identity.id, success=False)
            raise NotFoundError("User not found")
        audit_log("refresh", user.email, user.id, success=True, role=Role(user.role).value)
        return self.tokens.issue_access(identity, Role(user.role))

    # Password recovery

    def forgot_password(self, email: Optional[str]) -> ForgotPasswordResult:
        require("Email is required", email)
        email = normalize_email(email)

        if self.admin.owns_email(email):
            audit_log("forgot_password_admin", email, success=False)
            raise AuthorizationError("Admin password reset not allowed via this method")

        user = self.users.find_by_email(email)
        if not user:
            audit_log("forgot_password_unknown", email, success=False)
            return ForgotPasswordResult(user=None, notifications=NotificationReport())

        notifications = self._send_both(user)
        audit_log("forgot_password", email, user.id, success=True, **notifications.as_dict())
        return ForgotPasswordResult(user=user, notifications=notifications)

    def reset_password(self, otp: Optional[str], new_password: Optional[str],
                       verification_type: Optional[str], user_id: Optional[str] = None,
                       email: Optional[str] = None) -> None:
        require("OTP, new password, and verification type are required", otp, new_password, verification_type)
        otp = otp.strip()

        if verification_type == "phone" and not _missing(user_id):
            ok = self.phone_otp.verify(user_id, otp)
            target = {"user_id": user_id}
        elif verification_type == "email" and not _missing(email):
            email = normalize_email(email)
            ok = self.email_otp.verify(email, otp)
            target = {"email": email}
        else:
            raise ValidationError("Invalid verification type or missing identifier")

        if not ok:
            audit_log("reset_password", email, user_id, success=False, channel=verification_type)
            raise ValidationError(INVALID_OTP)

        # Update only the account whose channel was proven
        if not self.users.update_password(self.hasher.hash(new_password), **target):
            raise NotFoundError("User not found")
        audit_log("reset_password", email, user_id, success=True, channel=verification_type)

    # Profiles

    def get_current_user(self, identity: Identity) -> Dict[str, Any]:
        if identity.is_builtin_admin:
            return self.admin.profile(identity)
        user = self.users.find_by_id(identity.id)
        if not user:
            raise NotFoundError("User not found")
        return user.model_dump(exclude={"password_hash"})

    def list_users(self) -> List[User]:
        return self.users.list_all()

    def dashboard(self) -> Dict[str, Any]:
        return {"stats": {"totalUsers": self.users.count()}}
