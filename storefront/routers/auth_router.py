# storefront/routers/auth_router.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from storefront.core.config import Settings
from storefront.schemas import (
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
from storefront.services.auth import AuthService
from storefront.services.auth.auth_service import FORGOT_PASSWORD_GENERIC
from storefront.routers.dependencies import (
    Principal,
    get_auth_service,
    get_current_principal,
    get_optional_principal,
    require_roles,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["Authentication"])


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def set_refresh_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


@router.post("/register", response_model=ApiResponse, status_code=201)
def register(payload: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Create an account and send OTPs to both phone and e-mail"""
    result = auth_service.register(payload.username, payload.email, payload.password, payload.phonenumber)
    data = UserResponse.model_validate(result.user).to_json()
    data["userId"] = result.user.id
    data["notifications"] = result.notifications.as_dict()
    return ApiResponse(
        message="User registered successfully. OTP sent to phone and email.",
        data=data,
    )


@router.post("/verify-phone-otp", response_model=ApiResponse)
def verify_phone_otp(payload: VerifyPhoneOTPRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.verify_phone_otp(payload.user_id, payload.otp)
    return ApiResponse(message="Phone verified successfully")


@router.post("/verify-email-otp", response_model=ApiResponse)
def verify_email_otp(payload: VerifyEmailOTPRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.verify_email_otp(payload.email, payload.otp)
    return ApiResponse(message="Email verified successfully")


@router.post("/resend-phone-otp", response_model=ApiResponse)
def resend_phone_otp(payload: ResendPhoneOTPRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.resend_phone_otp(payload.user_id)
    return ApiResponse(message="OTP resent successfully to phone")


@router.post("/resend-email-otp", response_model=ApiResponse)
def resend_email_otp(payload: ResendEmailOTPRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.resend_email_otp(payload.email)
    return ApiResponse(message="OTP resent successfully to email")


@router.post("/login", response_model=ApiResponse)
def login(payload: LoginRequest, response: Response,
          auth_service: AuthService = Depends(get_auth_service),
          settings: Settings = Depends(get_settings)):
    """
    Email + password login. The built-in administrator is recognised before
    any account lookup. The refresh token only ever travels as an httpOnly cookie.
    """
    result = auth_service.login(payload.email, payload.password)
    set_refresh_cookie(response, result.refresh_token, settings)
    return ApiResponse(
        message="Admin login successful" if result.identity.is_builtin_admin else "Login successful",
        data={"accessToken": result.access_token, "user": result.profile},
    )


@router.post("/refresh", response_model=ApiResponse)
def refresh(request: Request, auth_service: AuthService = Depends(get_auth_service),
            settings: Settings = Depends(get_settings)):
    token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    access_token = auth_service.refresh(token)
    return ApiResponse(data={"accessToken": access_token})


@router.post("/logout", response_model=ApiResponse)
async def logout(response: Response, principal: Optional[Principal] = Depends(get_optional_principal),
                 settings: Settings = Depends(get_settings)):
    """
    Clear the refresh cookie. Nothing is revoked server-side: an access token
    already handed out stays valid until it expires.
    """
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )
    if principal:
        logger.info(f"Logout for {principal.id}")
    return ApiResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=ApiResponse)
def forgot_password(payload: ForgotPasswordRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.forgot_password(payload.email)
    # Same body whether or not the account exists
    return ApiResponse(message=FORGOT_PASSWORD_GENERIC)


@router.post("/reset-password", response_model=ApiResponse)
def reset_password(payload: ResetPasswordRequest, auth_service: AuthService = Depends(get_auth_service)):
    auth_service.reset_password(
        otp=payload.otp,
        new_password=payload.new_password,
        verification_type=payload.verification_type,
        user_id=payload.user_id,
        email=payload.email,
    )
    return ApiResponse(message="Password reset successfully")


@router.get("/me", response_model=ApiResponse)
def get_me(principal: Principal = Depends(get_current_principal),
           auth_service: AuthService = Depends(get_auth_service)):
    profile = auth_service.get_current_user(principal.identity)
    return ApiResponse(data=UserResponse.model_validate(profile).to_json())


@router.get("/admin/dashboard", response_model=ApiResponse)
def admin_dashboard(principal: Principal = Depends(require_roles("admin")),
                    auth_service: AuthService = Depends(get_auth_service)):
    return ApiResponse(message="Admin Dashboard", data=auth_service.dashboard())


@router.get("/admin/users", response_model=ApiResponse)
def admin_list_users(principal: Principal = Depends(require_roles("admin")),
                     auth_service: AuthService = Depends(get_auth_service)):
    users = auth_service.list_users()
    return ApiResponse(data=[UserResponse.model_validate(user).to_json() for user in users])


@router.get("/ping")
def auth_ping():
    return {"ok": True}
