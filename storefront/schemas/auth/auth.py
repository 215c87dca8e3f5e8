# storefront/schemas/auth/auth.py
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from storefront.db.models import Role


class AuthRequest(BaseModel):
    """Request bodies keep every field optional; the service reports what is missing."""
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class RegisterRequest(AuthRequest):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phonenumber: Optional[str] = Field(None, description="Digits with country code, e.g. 919876543210")


class VerifyPhoneOTPRequest(AuthRequest):
    user_id: Optional[str] = Field(None, alias="userId")
    otp: Optional[str] = None


class VerifyEmailOTPRequest(AuthRequest):
    email: Optional[str] = None
    otp: Optional[str] = None


class ResendPhoneOTPRequest(AuthRequest):
    user_id: Optional[str] = Field(None, alias="userId")


class ResendEmailOTPRequest(AuthRequest):
    email: Optional[str] = None


class LoginRequest(AuthRequest):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(AuthRequest):
    email: Optional[str] = None


class ResetPasswordRequest(AuthRequest):
    user_id: Optional[str] = Field(None, alias="userId")
    email: Optional[str] = None
    otp: Optional[str] = None
    new_password: Optional[str] = Field(None, alias="newPassword")
    verification_type: Optional[str] = Field(None, alias="verificationType", description="'phone' or 'email'")


class UserResponse(BaseModel):
    """Public account fields. Never includes the password hash."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    username: str
    email: str
    phonenumber: Optional[str] = Field(None, validation_alias="phone")
    role: Role
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
    updated_at: Optional[datetime] = Field(None, serialization_alias="updatedAt")

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class ApiResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None
