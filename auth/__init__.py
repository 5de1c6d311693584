"""Authentication core: tokens, signup attempts, sessions, guards."""

from auth.exceptions import (
    AuthError,
    InvalidTokenError,
    SessionRevokedError,
    RotationIncompleteError,
    UserInactiveError,
    ConflictError,
    UserExistsError,
    AttemptInProgressError,
    AttemptNotInProgressError,
    SignupStateError,
    ServiceUnavailableError,
    DuplicateRecordError,
)
from auth.types import (
    User,
    UserStatus,
    UserSummary,
    RefreshToken,
    IssuedRefreshToken,
    SignupAttempt,
    SignupProfile,
    SignupRequest,
    AttemptStatus,
    AccessClaims,
    RefreshClaims,
    SignupClaims,
)
from auth.config import AuthConfig
from auth.tokens import TokenCodec, TokenKind
from auth.store import CredentialStore
from auth.database import AuthDatabase
from auth.memory_store import InMemoryCredentialStore
from auth.passwords import PasswordHasher
from auth.security_logger import SecurityLogger, SecurityEvent
from auth.token_service import TokenService
from auth.signup import SignupAttemptManager, normalize_email
from auth.outcomes import (
    RefreshOutcome,
    RefreshSucceeded,
    RefreshFailed,
    SessionFailureKind,
    SignupOutcome,
    SignupStarted,
    SignupFailed,
    SignupFailureKind,
)
from auth.service import SessionOrchestrator
from auth.guards import AccessContext, AccessTokenGuard, SignupContext, SignupTokenGuard
from auth.api import create_auth_router
