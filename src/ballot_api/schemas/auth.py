"""Authentication and member account Pydantic v2 schemas.

Defines request/response schemas for registration, the password + OTP login
flow, token refresh, and user management.
"""

import re
import uuid
from datetime import UTC, date, datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from ballot_api.lib.lifecycle import Division
from ballot_api.schemas.common import PaginationMeta

MINIMUM_VOTER_AGE = 18

_PASSWORD_COMPLEXITY = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
_MOBILE = re.compile(r"^[0-9]{10,15}$")


def age_on(birth: date, today: date) -> int:
    """Return completed years between ``birth`` and ``today``."""
    return today.year - birth.year - ((today.month, today.day) < (birth.month, birth.day))


class Address(BaseModel):
    """Postal address of a member."""

    street: str = Field(min_length=5, max_length=200)
    city: str = Field(min_length=2, max_length=100)
    state: str = Field(min_length=2, max_length=100)
    postal_code: str = Field(min_length=3, max_length=20)


class _MemberFields(BaseModel):
    """Identity fields shared by self-registration and admin-created accounts."""

    full_name: str = Field(min_length=2, max_length=100)
    membership_id: str = Field(min_length=3, max_length=20)
    email: EmailStr
    password: str = Field(min_length=8)
    mobile: str
    date_of_birth: date
    address: Address
    nic: str = Field(min_length=5, max_length=20)
    division: Division

    @field_validator("full_name", "membership_id", "nic", mode="before")
    @classmethod
    def strip_whitespace(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("membership_id", "nic")
    @classmethod
    def upper_case(cls, v: str) -> str:
        return v.upper()

    @field_validator("email")
    @classmethod
    def lower_case_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def validate_password_complexity(cls, v: str) -> str:
        if not _PASSWORD_COMPLEXITY.match(v):
            msg = "Password must contain at least one lowercase letter, one uppercase letter, and one number"
            raise ValueError(msg)
        return v

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, v: str) -> str:
        if not _MOBILE.match(v):
            msg = "Mobile number must be 10-15 digits"
            raise ValueError(msg)
        return v

    @field_validator("date_of_birth")
    @classmethod
    def validate_age(cls, v: date) -> date:
        if age_on(v, datetime.now(UTC).date()) < MINIMUM_VOTER_AGE:
            msg = f"Member must be at least {MINIMUM_VOTER_AGE} years old"
            raise ValueError(msg)
        return v


class RegisterRequest(_MemberFields):
    """Self-registration request. Always creates a voter account."""


class UserCreateRequest(_MemberFields):
    """Administrative account creation (CLI bootstrap), role selectable."""

    role: str = Field(default="voter", pattern="^(voter|admin)$")


class LoginRequest(BaseModel):
    """First login step: email, NIC, and password."""

    email: EmailStr
    nic: str = Field(min_length=5, max_length=20)
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def lower_case_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("nic")
    @classmethod
    def upper_case_nic(cls, v: str) -> str:
        return v.strip().upper()


class OtpChallengeResponse(BaseModel):
    """Issued after a correct password; the caller must now present the OTP."""

    message: str = "OTP sent successfully"
    user_id: uuid.UUID
    expires_in: int = Field(description="Passcode validity in seconds")
    otp: str | None = Field(default=None, description="Echoed passcode (development only)")


class OtpVerifyRequest(BaseModel):
    """Second login step."""

    user_id: uuid.UUID
    otp: str = Field(pattern=r"^\d{6}$", description="Six-digit one-time passcode")


class ResendOtpRequest(BaseModel):
    """Request a fresh passcode for a pending login."""

    user_id: uuid.UUID


class RefreshRequest(BaseModel):
    """Token refresh request."""

    refresh_token: str


class TokenResponse(BaseModel):
    """JWT token pair response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token expiration in seconds")


class UserResponse(BaseModel):
    """Member profile. Never includes password or OTP material."""

    id: uuid.UUID
    full_name: str
    membership_id: str
    email: str
    division: str
    role: str
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None = None

    model_config = {"from_attributes": True}


class LoginResponse(TokenResponse):
    """Completed login: tokens plus the member profile."""

    user: UserResponse


class UserStatusUpdateRequest(BaseModel):
    """Administrative (de)activation of a member account."""

    is_active: bool


class PaginatedUserListResponse(BaseModel):
    """Paginated member list."""

    items: list[UserResponse]
    pagination: PaginationMeta
