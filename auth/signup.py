"""Signup attempt lifecycle.

    (none) --create--> IN_PROGRESS --advance/resume--> IN_PROGRESS
    IN_PROGRESS --complete--> COMPLETED
    IN_PROGRESS --sweep (expires_at passed)--> EXPIRED

At most one IN_PROGRESS attempt exists per email. The store's uniqueness
constraint is the final arbiter; the checks here only turn the common case
into a clean ConflictError. Every transition out of IN_PROGRESS is a
conditional update, so work racing a sweep fails instead of writing to an
expired row.
"""

import logging
from datetime import timedelta
from uuid import UUID, uuid4

from auth.config import AuthConfig
from auth.exceptions import (
    AttemptInProgressError,
    AttemptNotInProgressError,
    DuplicateRecordError,
    SignupStateError,
    UserExistsError,
)
from auth.passwords import PasswordHasher
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.store import CredentialStore
from auth.types import AttemptStatus, SignupAttempt, SignupProfile
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class SignupAttemptManager:
    """Owns create/resume/advance/complete/expire for signup attempts."""

    def __init__(
        self,
        config: AuthConfig,
        store: CredentialStore,
        password_hasher: PasswordHasher,
        security_logger: SecurityLogger,
        clock: Clock = now_utc,
    ):
        self._config = config
        self._store = store
        self._hasher = password_hasher
        self._security_logger = security_logger
        self._clock = clock
        self._ttl = timedelta(minutes=config.signup_attempt_ttl_minutes)

    def user_exists(self, email: str) -> bool:
        return self._store.get_user_by_email(normalize_email(email)) is not None

    def get(self, attempt_id: UUID) -> SignupAttempt | None:
        return self._store.get_signup_attempt(attempt_id)

    def create(self, email: str, profile: SignupProfile) -> SignupAttempt:
        """Start a new attempt on the first signup step.

        Raises:
            UserExistsError: An account already uses this email.
            AttemptInProgressError: A live attempt exists, including one
                inserted concurrently by another request.
        """
        email = normalize_email(email)

        if self._store.get_user_by_email(email) is not None:
            raise UserExistsError("An account with this email already exists")

        now = self._clock()
        if self._store.find_in_progress_attempts(email, now):
            raise AttemptInProgressError("A signup is already in progress for this email")

        # A past-deadline row nobody swept yet would still hold the unique slot
        stale = self._store.expire_signup_attempts(now, email=email)
        if stale:
            logger.info(f"Expired {stale} stale signup attempt(s) for {email} before create")

        attempt = SignupAttempt(
            id=uuid4(),
            email=email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            password_hash=self._hasher.hash(profile.password) if profile.password else None,
            current_step=self._config.first_signup_step,
            completed_steps=[],
            status=AttemptStatus.IN_PROGRESS,
            attempt_count=1,
            created_at=now,
            updated_at=now,
            expires_at=now + self._ttl,
        )

        try:
            self._store.insert_signup_attempt(attempt)
        except DuplicateRecordError as e:
            logger.warning(f"Signup attempt for {email} lost the insert race ({e.constraint})")
            raise AttemptInProgressError("A signup is already in progress for this email") from e

        self._security_logger.log(
            SecurityEvent.SIGNUP_STARTED,
            email=email,
            details={"attempt_id": str(attempt.id)},
        )
        return attempt

    def find_resumable(self, email: str) -> SignupAttempt | None:
        """Newest unexpired IN_PROGRESS attempt for email, or None.

        Raises:
            SignupStateError: More than one live attempt exists. Never guessed around.
        """
        matches = self._store.find_in_progress_attempts(normalize_email(email), self._clock())
        if len(matches) > 1:
            logger.error(
                f"{len(matches)} in-progress signup attempts share one email: "
                f"{', '.join(str(a.id) for a in matches)}"
            )
            raise SignupStateError("Multiple in-progress signup attempts for one email")
        return matches[0] if matches else None

    def resume(self, attempt: SignupAttempt) -> SignupAttempt:
        """Count a resumption. Step, status and deadline are unchanged.

        Raises:
            AttemptNotInProgressError: Attempt was completed or expired meanwhile.
        """
        updated = self._store.resume_signup_attempt(attempt.id, self._clock())
        if updated is None:
            raise AttemptNotInProgressError(f"Signup attempt {attempt.id} is no longer in progress")

        self._security_logger.log(
            SecurityEvent.SIGNUP_RESUMED,
            email=updated.email,
            details={"attempt_id": str(updated.id), "attempt_count": updated.attempt_count},
        )
        return updated

    def advance_step(
        self,
        attempt_id: UUID,
        new_step: str,
        completed_step: str | None = None,
    ) -> SignupAttempt:
        """Move to new_step, recording completed_step once (insertion order kept).

        Raises:
            AttemptNotInProgressError: Attempt is missing, terminal or expired.
        """
        updated = self._store.advance_signup_step(attempt_id, new_step, completed_step, self._clock())
        if updated is None:
            raise AttemptNotInProgressError(f"Signup attempt {attempt_id} is no longer in progress")

        logger.info(f"Signup attempt {attempt_id} advanced to step {new_step}")
        return updated

    def record_verification(
        self,
        attempt_id: UUID,
        email_verified: bool | None = None,
        phone_verified: bool | None = None,
        mfa_enabled: bool | None = None,
    ) -> SignupAttempt:
        """Record verification flag transitions made by out-of-core steps."""
        flags = {
            name: value
            for name, value in (
                ("email_verified", email_verified),
                ("phone_verified", phone_verified),
                ("mfa_enabled", mfa_enabled),
            )
            if value is not None
        }
        if not flags:
            raise ValueError("No verification flags given")

        updated = self._store.set_signup_flags(attempt_id, flags, self._clock())
        if updated is None:
            raise AttemptNotInProgressError(f"Signup attempt {attempt_id} is no longer in progress")
        return updated

    def complete(self, attempt_id: UUID) -> SignupAttempt:
        """Terminal call of the signup flow.

        Raises:
            AttemptNotInProgressError: Attempt is missing, terminal or expired.
        """
        updated = self._store.complete_signup_attempt(attempt_id, self._clock())
        if updated is None:
            raise AttemptNotInProgressError(f"Signup attempt {attempt_id} is no longer in progress")

        self._security_logger.log(
            SecurityEvent.SIGNUP_COMPLETED,
            email=updated.email,
            details={"attempt_id": str(attempt_id)},
        )
        return updated

    def sweep_expired(self) -> int:
        """Mark every past-deadline IN_PROGRESS attempt EXPIRED. Safe to repeat."""
        count = self._store.expire_signup_attempts(self._clock())
        if count > 0:
            self._security_logger.log(
                SecurityEvent.SIGNUP_ATTEMPTS_EXPIRED,
                details={"count": count},
            )
        return count
