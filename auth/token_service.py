"""Token issuance, verification, rotation, and revocation.

Verification is pure signature/type/expiry checking. Whether a refresh
token's stored row is still live (not revoked, not expired) is the
caller's decision, so verifying never touches the store.
"""

import logging
from datetime import timedelta
from uuid import UUID, uuid4

from pydantic import BaseModel, ValidationError

from auth.config import AuthConfig
from auth.exceptions import (
    InvalidTokenError,
    RotationIncompleteError,
    ServiceUnavailableError,
    SessionRevokedError,
)
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.store import CredentialStore
from auth.tokens import TokenCodec, TokenKind
from auth.types import (
    AccessClaims,
    IssuedRefreshToken,
    RefreshClaims,
    RefreshToken,
    SignupClaims,
    User,
)
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


class TokenService:
    """Orchestrates the token codec and the credential store."""

    def __init__(
        self,
        config: AuthConfig,
        codec: TokenCodec,
        store: CredentialStore,
        security_logger: SecurityLogger,
        clock: Clock = now_utc,
    ):
        self._config = config
        self._codec = codec
        self._store = store
        self._security_logger = security_logger
        self._clock = clock
        self._rotation_age = timedelta(days=config.refresh_rotation_days)

    @property
    def access_token_expiry_seconds(self) -> int:
        return int(self._codec.lifetime(TokenKind.ACCESS).total_seconds())

    def _audit(self, event: SecurityEvent, **kwargs) -> None:
        """Record an event for a write that has already committed.

        A failed audit write is logged, never reported as a failed store write.
        """
        try:
            self._security_logger.log(event, **kwargs)
        except Exception:
            logger.exception(f"Failed to record {event.value} security event")

    # Issuance

    def issue_access_token(self, user: User) -> str:
        return self._codec.encode(TokenKind.ACCESS, {"sub": str(user.id), "email": user.email})

    def issue_refresh_token(self, user_id: UUID) -> IssuedRefreshToken:
        """Sign a refresh token and persist its row.

        The token is only returned once the row is stored.

        Raises:
            ServiceUnavailableError: If the row could not be persisted.
        """
        token_id = uuid4()
        token = self._codec.encode(
            TokenKind.REFRESH, {"sub": str(user_id), "token_id": str(token_id)}
        )
        now = self._clock()
        record = RefreshToken(
            id=token_id,
            token=token,
            user_id=user_id,
            revoked=False,
            expires_at=now + self._codec.lifetime(TokenKind.REFRESH),
            created_at=now,
        )

        try:
            self._store.insert_refresh_token(record)
        except Exception as e:
            logger.exception(f"Failed to persist refresh token for user {user_id}")
            raise ServiceUnavailableError("Failed to issue refresh token") from e

        self._audit(
            SecurityEvent.REFRESH_TOKEN_ISSUED,
            user_id=user_id,
            details={"token_id": str(token_id)},
        )
        return IssuedRefreshToken(token=token, token_id=token_id, expires_at=record.expires_at)

    def issue_signup_token(self, attempt_id: UUID, email: str, current_step: str) -> str:
        return self._codec.encode(
            TokenKind.SIGNUP,
            {"attempt_id": str(attempt_id), "email": email, "current_step": current_step},
        )

    # Verification

    def _verify(self, token: str, kind: TokenKind, claims_model: type[BaseModel]):
        payload = self._codec.decode(token, kind)
        try:
            return claims_model.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Rejected {kind.value} token: malformed claims ({e.error_count()} errors)")
            raise InvalidTokenError("Invalid or expired token") from None

    def verify_access_token(self, token: str) -> AccessClaims:
        """Raises InvalidTokenError on any failure."""
        return self._verify(token, TokenKind.ACCESS, AccessClaims)

    def verify_refresh_token(self, token: str) -> RefreshClaims:
        """Raises InvalidTokenError on any failure. Does not check the stored row."""
        return self._verify(token, TokenKind.REFRESH, RefreshClaims)

    def verify_signup_token(self, token: str) -> SignupClaims:
        """Raises InvalidTokenError on any failure."""
        return self._verify(token, TokenKind.SIGNUP, SignupClaims)

    # Rotation and revocation

    def should_rotate(self, token_id: UUID) -> bool:
        """True once the stored token is at least the rotation age (inclusive).

        A missing row returns False; callers must treat "not found" as invalid
        on their own.
        """
        try:
            record = self._store.get_refresh_token(token_id)
        except Exception as e:
            logger.exception(f"Failed to load refresh token {token_id}")
            raise ServiceUnavailableError("Failed to load refresh token") from e

        if record is None:
            return False
        return self._clock() - record.created_at >= self._rotation_age

    def rotate(self, old_token_id: UUID, user_id: UUID) -> IssuedRefreshToken:
        """Revoke the old refresh token, then issue a replacement.

        Revoke-then-issue: a failure in between leaves the user logged out,
        never holding two live tokens.

        Raises:
            SessionRevokedError: Old token was already revoked (concurrent rotation).
            RotationIncompleteError: Old token revoked, replacement not issued.
            ServiceUnavailableError: Revocation itself failed; nothing changed.
        """
        try:
            revoked = self._store.revoke_refresh_token(old_token_id)
        except Exception as e:
            logger.exception(f"Failed to revoke refresh token {old_token_id} for rotation")
            raise ServiceUnavailableError("Failed to rotate refresh token") from e

        if not revoked:
            logger.warning(f"Refresh token {old_token_id} was already revoked; rotation refused")
            raise SessionRevokedError("Refresh token already revoked")

        try:
            issued = self.issue_refresh_token(user_id)
        except Exception as e:
            logger.error(f"Refresh token {old_token_id} revoked but no replacement issued for user {user_id}")
            raise RotationIncompleteError("Refresh token revoked; replacement not issued") from e

        self._audit(
            SecurityEvent.REFRESH_TOKEN_ROTATED,
            user_id=user_id,
            details={"old_token_id": str(old_token_id), "new_token_id": str(issued.token_id)},
        )
        return issued

    def revoke(self, token_id: UUID) -> bool:
        """Revoke one refresh token. Idempotent; True if this call flipped it."""
        try:
            revoked = self._store.revoke_refresh_token(token_id)
        except Exception as e:
            logger.exception(f"Failed to revoke refresh token {token_id}")
            raise ServiceUnavailableError("Failed to revoke refresh token") from e

        if revoked:
            self._audit(SecurityEvent.REFRESH_TOKEN_REVOKED, details={"token_id": str(token_id)})
        return revoked

    def revoke_all(self, user_id: UUID) -> int:
        """Revoke every live refresh token of a user. Idempotent; returns count flipped."""
        try:
            count = self._store.revoke_user_refresh_tokens(user_id)
        except Exception as e:
            logger.exception(f"Failed to revoke refresh tokens for user {user_id}")
            raise ServiceUnavailableError("Failed to revoke refresh tokens") from e

        self._audit(
            SecurityEvent.REFRESH_TOKENS_REVOKED_ALL,
            user_id=user_id,
            details={"count": count},
        )
        return count
