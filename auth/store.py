"""Credential store contract.

The services depend on this protocol, not on a storage technology.
Implementations: AuthDatabase (PostgreSQL) and InMemoryCredentialStore.

Every mutation is a single-row conditional update or a count-returning
bulk update. Conditional signup-attempt updates only touch rows that are
still IN_PROGRESS and unexpired at `now`, returning None otherwise, so a
caller racing a sweep sees a clean miss instead of writing stale state.
"""

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from auth.types import RefreshToken, SignupAttempt, User, UserStatus


class CredentialStore(Protocol):
    """Durable users, refresh tokens, signup attempts, and security events."""

    # Users

    def get_user_by_id(self, user_id: UUID) -> User | None: ...

    def get_user_by_email(self, email: str) -> User | None:
        """Case-insensitive lookup."""
        ...

    def create_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        email_verified: bool = False,
    ) -> User:
        """Insert a user. Raises DuplicateRecordError if the email is taken."""
        ...

    def update_user_status(self, user_id: UUID, status: UserStatus) -> bool: ...

    # Refresh tokens

    def insert_refresh_token(self, record: RefreshToken) -> None: ...

    def get_refresh_token(self, token_id: UUID) -> RefreshToken | None: ...

    def revoke_refresh_token(self, token_id: UUID) -> bool:
        """Flip revoked false -> true. False if missing or already revoked."""
        ...

    def revoke_user_refresh_tokens(self, user_id: UUID) -> int:
        """Revoke every live token of a user. Returns count flipped."""
        ...

    # Signup attempts

    def insert_signup_attempt(self, attempt: SignupAttempt) -> None:
        """Raises DuplicateRecordError if the email already has an IN_PROGRESS row."""
        ...

    def get_signup_attempt(self, attempt_id: UUID) -> SignupAttempt | None: ...

    def find_in_progress_attempts(self, email: str, now: datetime) -> list[SignupAttempt]:
        """Unexpired IN_PROGRESS attempts for email, newest first."""
        ...

    def resume_signup_attempt(self, attempt_id: UUID, now: datetime) -> SignupAttempt | None: ...

    def advance_signup_step(
        self,
        attempt_id: UUID,
        new_step: str,
        completed_step: str | None,
        now: datetime,
    ) -> SignupAttempt | None:
        """Set current step; append completed_step unless already present."""
        ...

    def set_signup_flags(
        self, attempt_id: UUID, flags: dict[str, bool], now: datetime
    ) -> SignupAttempt | None: ...

    def complete_signup_attempt(self, attempt_id: UUID, now: datetime) -> SignupAttempt | None:
        """IN_PROGRESS -> COMPLETED with completed_at = now."""
        ...

    def expire_signup_attempts(self, now: datetime, email: str | None = None) -> int:
        """IN_PROGRESS rows with expires_at <= now become EXPIRED. Returns count."""
        ...

    # Security events

    def insert_security_event(
        self,
        event_type: str,
        email: str | None,
        user_id: UUID | None,
        details: dict[str, Any] | None,
        created_at: datetime,
    ) -> None: ...

    def get_security_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]: ...
