"""Typed exceptions for auth failures."""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""


class InvalidTokenError(AuthError):
    """
    Token is invalid, expired, malformed, or of the wrong kind.

    One error for every cause; the cause is only logged.
    """


class SessionRevokedError(AuthError):
    """Refresh token was revoked (logout, lockdown, or lost a rotation race)."""


class RotationIncompleteError(SessionRevokedError):
    """Old refresh token was revoked but its replacement could not be issued."""


class UserInactiveError(AuthError):
    """User account is not ACTIVE. Sessions not permitted."""


class ConflictError(AuthError):
    """A user or in-progress signup attempt already exists for this email."""


class UserExistsError(ConflictError):
    """An account with this email already exists."""


class AttemptInProgressError(ConflictError):
    """An unexpired signup attempt is already in progress for this email."""


class AttemptNotInProgressError(AuthError):
    """Signup attempt is missing, terminal, or expired."""


class SignupStateError(AuthError):
    """Stored signup state violates an invariant. Internal error, never guessed around."""


class ServiceUnavailableError(AuthError):
    """Credential store failed during issuance, rotation, or revocation."""


class DuplicateRecordError(Exception):
    """Storage-level uniqueness constraint violated."""

    def __init__(self, constraint: str):
        self.constraint = constraint
        super().__init__(f"Uniqueness constraint violated: {constraint}")
