"""Session orchestrator - application-facing refresh and signup entry points."""

import logging
import secrets
from uuid import UUID

from auth.exceptions import (
    AttemptInProgressError,
    AttemptNotInProgressError,
    InvalidTokenError,
    ServiceUnavailableError,
    SessionRevokedError,
    UserExistsError,
)
from auth.outcomes import (
    RefreshFailed,
    RefreshOutcome,
    RefreshSucceeded,
    SessionFailureKind,
    SignupFailed,
    SignupFailureKind,
    SignupOutcome,
    SignupStarted,
)
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.signup import SignupAttemptManager, normalize_email
from auth.store import CredentialStore
from auth.token_service import TokenService
from auth.types import SignupAttempt, SignupProfile, UserSummary
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


class SessionOrchestrator:
    """Composes TokenService and SignupAttemptManager into user-facing outcomes.

    Handles:
    - Session refresh (with refresh token rotation)
    - Signup start or resume
    - Logout

    Per-request failures are returned as outcome values, never raised.
    Unexpected errors collapse to an internal-error outcome; the cause is
    only logged.
    """

    def __init__(
        self,
        store: CredentialStore,
        token_service: TokenService,
        signup_manager: SignupAttemptManager,
        security_logger: SecurityLogger,
        clock: Clock = now_utc,
    ):
        self._store = store
        self._tokens = token_service
        self._signups = signup_manager
        self._security_logger = security_logger
        self._clock = clock

    # Refresh

    def refresh_session(self, refresh_token: str | None) -> RefreshOutcome:
        """Exchange a refresh token for a new access token.

        Flow:
        1. No token -> no_session
        2. Verify signature, type, expiry -> invalid_session
        3. Load stored row by embedded token id -> invalid_session if missing
        4. Row revoked -> revoked_session
        5. Row expired -> expired_session
        6. Owner not ACTIVE -> inactive_account
        7. Issue access token; rotate the refresh token if old enough
        8. Return access token, expiry, user summary, rotated material
        """
        if not refresh_token:
            logger.info("Session refresh requested without a refresh token")
            return RefreshFailed(SessionFailureKind.NO_SESSION)

        try:
            return self._refresh(refresh_token)
        except Exception:
            logger.exception("Unexpected error refreshing session")
            return RefreshFailed(SessionFailureKind.INTERNAL_ERROR)

    def _reject_session(
        self,
        kind: SessionFailureKind,
        reason: str,
        user_id: UUID | None = None,
        token_id: UUID | None = None,
    ) -> RefreshFailed:
        details = {"reason": reason}
        if token_id is not None:
            details["token_id"] = str(token_id)
        self._security_logger.log(SecurityEvent.SESSION_REJECTED, user_id=user_id, details=details)
        return RefreshFailed(kind)

    def _refresh(self, refresh_token: str) -> RefreshOutcome:
        try:
            claims = self._tokens.verify_refresh_token(refresh_token)
        except InvalidTokenError:
            return self._reject_session(SessionFailureKind.INVALID_SESSION, "token_invalid")

        record = self._store.get_refresh_token(claims.token_id)
        if record is None:
            return self._reject_session(
                SessionFailureKind.INVALID_SESSION, "token_not_found",
                user_id=claims.sub, token_id=claims.token_id,
            )

        if record.user_id != claims.sub or not secrets.compare_digest(record.token, refresh_token):
            return self._reject_session(
                SessionFailureKind.INVALID_SESSION, "token_mismatch",
                user_id=claims.sub, token_id=claims.token_id,
            )

        if record.revoked:
            return self._reject_session(
                SessionFailureKind.REVOKED_SESSION, "token_revoked",
                user_id=record.user_id, token_id=record.id,
            )

        if record.is_expired(self._clock()):
            return self._reject_session(
                SessionFailureKind.EXPIRED_SESSION, "row_expired",
                user_id=record.user_id, token_id=record.id,
            )

        user = self._store.get_user_by_id(record.user_id)
        if user is None:
            return self._reject_session(
                SessionFailureKind.INVALID_SESSION, "user_not_found",
                user_id=record.user_id, token_id=record.id,
            )

        if not user.is_active:
            return self._reject_session(
                SessionFailureKind.INACTIVE_ACCOUNT, f"user_{user.status.value.lower()}",
                user_id=user.id, token_id=record.id,
            )

        access_token = self._tokens.issue_access_token(user)

        rotated = None
        if self._tokens.should_rotate(record.id):
            try:
                rotated = self._tokens.rotate(record.id, user.id)
            except SessionRevokedError as e:
                # Old token is revoked either way; never report the session as unchanged
                return self._reject_session(
                    SessionFailureKind.REVOKED_SESSION, type(e).__name__,
                    user_id=user.id, token_id=record.id,
                )

        self._security_logger.log(
            SecurityEvent.SESSION_REFRESHED,
            email=user.email,
            user_id=user.id,
            details={"token_id": str(record.id), "rotated": rotated is not None},
        )

        return RefreshSucceeded(
            access_token=access_token,
            expires_in=self._tokens.access_token_expiry_seconds,
            user=UserSummary.from_user(user),
            rotated=rotated,
        )

    # Signup

    def signup(self, email: str, first_name: str, last_name: str, password: str) -> SignupOutcome:
        """Start a signup attempt, or resume the live one for this email."""
        try:
            return self._signup(normalize_email(email), first_name, last_name, password)
        except Exception:
            logger.exception("Unexpected error during signup")
            return SignupFailed(SignupFailureKind.INTERNAL_ERROR)

    def _signup(self, email: str, first_name: str, last_name: str, password: str) -> SignupOutcome:
        if self._signups.user_exists(email):
            return self._reject_signup(email)

        existing = self._signups.find_resumable(email)
        if existing is not None:
            try:
                return self._signup_started(self._signups.resume(existing), resumed=True)
            except AttemptNotInProgressError:
                # Deadline passed or the attempt finished after the lookup
                logger.info(f"Signup attempt {existing.id} ended before resume; starting fresh")

        profile = SignupProfile(first_name=first_name, last_name=last_name, password=password)
        try:
            return self._signup_started(self._signups.create(email, profile), resumed=False)
        except UserExistsError:
            return self._reject_signup(email)
        except AttemptInProgressError:
            # A concurrent request created the attempt first; resume theirs
            existing = self._signups.find_resumable(email)
            if existing is None:
                raise

        return self._signup_started(self._signups.resume(existing), resumed=True)

    def _reject_signup(self, email: str) -> SignupFailed:
        self._security_logger.log(
            SecurityEvent.SIGNUP_REJECTED,
            email=email,
            details={"reason": "user_exists"},
        )
        return SignupFailed(SignupFailureKind.ALREADY_EXISTS)

    def _signup_started(self, attempt: SignupAttempt, resumed: bool) -> SignupStarted:
        signup_token = self._tokens.issue_signup_token(attempt.id, attempt.email, attempt.current_step)
        return SignupStarted(
            signup_token=signup_token,
            attempt_id=attempt.id,
            next_step=attempt.current_step,
            resumed_session=resumed,
            completed_steps=list(attempt.completed_steps),
        )

    # Logout

    def logout(self, refresh_token: str | None) -> bool:
        """Revoke the presented refresh token.

        Safe to call with a missing or invalid token. Returns True if a live
        token was revoked by this call.

        Raises:
            ServiceUnavailableError: The store could not be read or written.
        """
        if not refresh_token:
            return False

        try:
            claims = self._tokens.verify_refresh_token(refresh_token)
        except InvalidTokenError:
            return False

        try:
            record = self._store.get_refresh_token(claims.token_id)
        except Exception as e:
            logger.exception(f"Failed to load refresh token {claims.token_id} for logout")
            raise ServiceUnavailableError("Failed to load refresh token") from e
        if record is None or record.user_id != claims.sub:
            return False

        return self._tokens.revoke(record.id)
