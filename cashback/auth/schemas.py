"""Auth domain schemas.

Request and response schemas for signup, login and password operations.
"""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

from cashback.core.schemas import CamelModel
from cashback.user.schemas import UserPublicRead

# At least one lowercase, uppercase, digit and special character; only
# these characters allowed.
PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,128}$"
)
PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")


def _check_password(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must be at least 8 characters and contain an uppercase "
            "letter, a lowercase letter, a digit and one of @$!%*?&"
        )
    return value


def _clean_name(value: str) -> str:
    return value.strip().replace("<", "").replace(">", "")


class SignupData(CamelModel):
    """Signup payload held in the ephemeral store until the OTP is verified."""

    password: str
    phone: str | None = None
    referral_code: str | None = Field(default=None, max_length=20)

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password(value)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if not PHONE_PATTERN.match(value):
            raise ValueError("Invalid phone number")
        return value


class SendOTPRequest(CamelModel):
    email: EmailStr
    name: str = Field(min_length=2, max_length=50)
    signup_data: SignupData | None = None

    @field_validator("name")
    @classmethod
    def clean_name(cls, value: str) -> str:
        value = _clean_name(value)
        if len(value) < 2:
            raise ValueError("Name must be at least 2 characters")
        return value


class SendOTPResponse(CamelModel):
    message: str
    expires_in: int  # seconds


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    # OTP_LENGTH defaults to 6; the stored code is the only exact check
    otp: str = Field(pattern=r"^\d{4,10}$")


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password(value)


class UpdatePasswordRequest(CamelModel):
    """Request schema for updating password (authenticated user)."""

    current_password: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return _check_password(value)


class AuthResponse(CamelModel):
    """Returned by signup, login and refresh."""

    message: str
    user: UserPublicRead
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds


class AuthMessage(BaseModel):
    """Generic auth message response."""

    message: str
