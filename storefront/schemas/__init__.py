from .auth.auth import (
    ApiResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResendEmailOTPRequest,
    ResendPhoneOTPRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyEmailOTPRequest,
    VerifyPhoneOTPRequest,
)

__all__ = [
    "ApiResponse",
    "ForgotPasswordRequest",
    "LoginRequest",
    "RegisterRequest",
    "ResendEmailOTPRequest",
    "ResendPhoneOTPRequest",
    "ResetPasswordRequest",
    "UserResponse",
    "VerifyEmailOTPRequest",
    "VerifyPhoneOTPRequest",
]
