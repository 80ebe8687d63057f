"""
Pydantic schemas for authentication endpoints.
"""
from datetime import datetime
from typing import Optional
from pydantic import ConfigDict, EmailStr, Field, field_validator

from ayahfind.core.security import BCRYPT_MAX_BYTES, PASSWORD_TOO_LONG
from ayahfind.schemas.base import CamelModel


def _check_password_bytes(v: str) -> str:
    if len(v.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(PASSWORD_TOO_LONG)
    return v


class RegisterRequest(CamelModel):
    """Request schema for user registration."""
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")
    display_name: Optional[str] = Field(default=None, max_length=100, description="Name shown in the app")

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        return _check_password_bytes(v)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "aisha@example.com",
                "password": "SecurePass123",
                "displayName": "Aisha"
            }
        }
    )


class LoginRequest(CamelModel):
    """Request schema for user login."""
    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")


class TokenRequest(CamelModel):
    """Email verification token."""
    token: str = Field(..., min_length=1)


class EmailRequest(CamelModel):
    email: EmailStr


class ResetPasswordConfirmRequest(CamelModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)

    @field_validator("new_password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        return _check_password_bytes(v)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class UserProfile(CamelModel):
    """Public view of a user account."""
    id: int
    email: str
    display_name: Optional[str] = None
    subscription_tier: str
    email_verified: bool
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


class RegisterResponse(CamelModel):
    user_id: int
    message: str


class TokenPairResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResponse(TokenPairResponse):
    user: UserProfile
