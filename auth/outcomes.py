"""Outcomes of the session orchestrator's entry points.

Each entry point returns a sum type: a success variant or a failure
variant. Failures carry only a stable kind and a safe message; internal
causes stay in the logs. Consumers match on the variant and close the
match with typing.assert_never.
"""

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from auth.types import IssuedRefreshToken, UserSummary


class SessionFailureKind(str, Enum):
    """Why a refresh did not produce a session."""

    NO_SESSION = "no_session"
    INVALID_SESSION = "invalid_session"
    REVOKED_SESSION = "revoked_session"
    EXPIRED_SESSION = "expired_session"
    INACTIVE_ACCOUNT = "inactive_account"
    INTERNAL_ERROR = "internal_error"


class SignupFailureKind(str, Enum):
    """Why signup could not start or resume."""

    ALREADY_EXISTS = "already_exists"
    INTERNAL_ERROR = "internal_error"


_SESSION_MESSAGES = {
    SessionFailureKind.NO_SESSION: "No session found",
    SessionFailureKind.INVALID_SESSION: "Invalid session",
    SessionFailureKind.REVOKED_SESSION: "Session has been revoked",
    SessionFailureKind.EXPIRED_SESSION: "Session has expired",
    SessionFailureKind.INACTIVE_ACCOUNT: "User account is not active",
    SessionFailureKind.INTERNAL_ERROR: "An error occurred",
}

_SIGNUP_MESSAGES = {
    SignupFailureKind.ALREADY_EXISTS: "An account with this email already exists",
    SignupFailureKind.INTERNAL_ERROR: "An error occurred during signup",
}


@dataclass(frozen=True)
class RefreshSucceeded:
    """A new access token, plus replacement refresh material if rotated."""

    access_token: str
    expires_in: int
    user: UserSummary
    rotated: IssuedRefreshToken | None = None


@dataclass(frozen=True)
class RefreshFailed:
    kind: SessionFailureKind

    @property
    def message(self) -> str:
        return _SESSION_MESSAGES[self.kind]


RefreshOutcome = RefreshSucceeded | RefreshFailed


@dataclass(frozen=True)
class SignupStarted:
    """Signup token bound to a new or resumed attempt."""

    signup_token: str
    attempt_id: UUID
    next_step: str
    resumed_session: bool = False
    completed_steps: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SignupFailed:
    kind: SignupFailureKind

    @property
    def message(self) -> str:
        return _SIGNUP_MESSAGES[self.kind]


SignupOutcome = SignupStarted | SignupFailed
