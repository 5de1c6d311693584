"""Pydantic models for auth domain."""

from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from utils.timezone import to_utc


class UserStatus(str, Enum):
    """Account status. Only ACTIVE users may hold sessions."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    DELETED = "DELETED"


class AttemptStatus(str, Enum):
    """Signup attempt lifecycle status."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    ABANDONED = "ABANDONED"  # reserved for an external cancellation flow


class User(BaseModel):
    """A registered user of the system."""

    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    password_hash: str = Field(..., repr=False)
    email_verified: bool = False
    status: UserStatus = UserStatus.ACTIVE
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


class UserSummary(BaseModel):
    """User fields safe to return to the client."""

    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    email_verified: bool
    status: UserStatus

    @classmethod
    def from_user(cls, user: User) -> "UserSummary":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            email_verified=user.email_verified,
            status=user.status,
        )


class RefreshToken(BaseModel):
    """A persisted refresh token (one login session)."""

    id: UUID
    token: str = Field(..., repr=False)
    user_id: UUID
    revoked: bool = False
    expires_at: datetime
    created_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("expires_at", "created_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime) -> datetime:
        return to_utc(value)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class IssuedRefreshToken(BaseModel):
    """Refresh token material handed to the transport layer."""

    token: str = Field(..., repr=False)
    token_id: UUID
    expires_at: datetime


class SignupProfile(BaseModel):
    """Profile fields collected on the first signup submission."""

    first_name: str | None = None
    last_name: str | None = None
    password: str | None = Field(default=None, repr=False)


class SignupAttempt(BaseModel):
    """An in-flight, resumable registration."""

    id: UUID
    email: EmailStr
    first_name: str | None = None
    last_name: str | None = None
    password_hash: str | None = Field(default=None, repr=False)
    email_verified: bool = False
    phone_verified: bool = False
    mfa_enabled: bool = False
    current_step: str
    completed_steps: list[str] = Field(default_factory=list)
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    attempt_count: int = Field(default=1, ge=1)
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at", "expires_at", "completed_at")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return to_utc(value) if value is not None else None

    def is_resumable(self, now: datetime) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS and now < self.expires_at


class AccessClaims(BaseModel):
    """Verified access token payload."""

    sub: UUID
    email: str
    type: Literal["access"]


class RefreshClaims(BaseModel):
    """Verified refresh token payload."""

    sub: UUID
    token_id: UUID
    type: Literal["refresh"]


class SignupClaims(BaseModel):
    """Verified signup token payload."""

    attempt_id: UUID
    email: str
    type: Literal["signup"]
    current_step: str


class SignupRequest(BaseModel):
    """Request payload for starting or resuming signup."""

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=128, repr=False)
