"""Account schemas - Pydantic models for sign up, sign in and profile"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...security_utils import sanitize_phone, sanitize_text


class SignupRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None


class CredentialsRequest(BaseModel):
    """Email/password pair used by both sign-in flows"""

    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def clean_name(cls, v):
        return sanitize_text(v, max_length=255) if v is not None else v

    @field_validator("phone")
    @classmethod
    def clean_phone(cls, v):
        return sanitize_phone(v) if v is not None else v


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    hasBillingAccount: bool = False


class SignInResponse(BaseModel):
    ok: bool
    token: str
    user: UserResponse
