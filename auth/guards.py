"""Bearer-token guards as FastAPI dependencies.

A guard resolves the caller's identity and returns it as an explicit
context object; handlers receive it as a parameter:

    @router.get("/me")
    def me(ctx: AccessContext = Depends(access_guard)): ...

Rejections raise AuthError subclasses, rendered as 401 by
api.errors.register_error_handlers.
"""

import logging
from dataclasses import dataclass

from starlette.requests import Request

from auth.exceptions import AttemptNotInProgressError, InvalidTokenError, UserInactiveError
from auth.security_logger import SecurityEvent, SecurityLogger
from auth.signup import SignupAttemptManager
from auth.store import CredentialStore
from auth.token_service import TokenService
from auth.types import AccessClaims, AttemptStatus, SignupAttempt, SignupClaims, User
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    """Token from an 'Authorization: Bearer <token>' header, or None."""
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX):].strip()
    return token or None


@dataclass(frozen=True)
class AccessContext:
    """Resolved identity of an access-token request."""

    user: User
    claims: AccessClaims


@dataclass(frozen=True)
class SignupContext:
    """Resolved signup attempt of a signup-token request."""

    attempt: SignupAttempt
    claims: SignupClaims


class AccessTokenGuard:
    """Requires a valid access token belonging to an ACTIVE user."""

    def __init__(
        self,
        token_service: TokenService,
        store: CredentialStore,
        security_logger: SecurityLogger,
    ):
        self._tokens = token_service
        self._store = store
        self._security_logger = security_logger

    def _reject(self, reason: str, error: Exception, user=None) -> Exception:
        self._security_logger.log(
            SecurityEvent.GUARD_REJECTED,
            user_id=user,
            details={"guard": "access", "reason": reason},
        )
        return error

    def __call__(self, request: Request) -> AccessContext:
        token = extract_bearer_token(request.headers.get("Authorization"))
        if token is None:
            raise self._reject("missing_bearer", InvalidTokenError("Access token required"))

        try:
            claims = self._tokens.verify_access_token(token)
        except InvalidTokenError as e:
            raise self._reject("token_invalid", e)

        user = self._store.get_user_by_id(claims.sub)
        if user is None:
            raise self._reject("user_not_found", InvalidTokenError("Invalid access token"), claims.sub)

        if not user.is_active:
            raise self._reject(
                f"user_{user.status.value.lower()}",
                UserInactiveError("User account is not active"),
                user.id,
            )

        return AccessContext(user=user, claims=claims)


class SignupTokenGuard:
    """Requires a valid signup token bound to a live IN_PROGRESS attempt."""

    def __init__(
        self,
        token_service: TokenService,
        signup_manager: SignupAttemptManager,
        security_logger: SecurityLogger,
        clock: Clock = now_utc,
    ):
        self._tokens = token_service
        self._signups = signup_manager
        self._security_logger = security_logger
        self._clock = clock

    def _reject(self, reason: str, error: Exception) -> Exception:
        self._security_logger.log(
            SecurityEvent.GUARD_REJECTED,
            details={"guard": "signup", "reason": reason},
        )
        return error

    def __call__(self, request: Request) -> SignupContext:
        token = extract_bearer_token(request.headers.get("Authorization"))
        if token is None:
            raise self._reject("missing_bearer", InvalidTokenError("Signup token required"))

        try:
            claims = self._tokens.verify_signup_token(token)
        except InvalidTokenError as e:
            raise self._reject("token_invalid", e)

        attempt = self._signups.get(claims.attempt_id)
        if attempt is None:
            raise self._reject("attempt_not_found", InvalidTokenError("Invalid signup token"))

        if not attempt.is_resumable(self._clock()):
            status = "expired" if attempt.status == AttemptStatus.IN_PROGRESS else attempt.status.value.lower()
            raise self._reject(
                f"attempt_{status}",
                AttemptNotInProgressError("Signup attempt is no longer in progress"),
            )

        return SignupContext(attempt=attempt, claims=claims)
