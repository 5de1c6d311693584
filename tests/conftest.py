"""Shared test fixtures for the auth core test suite."""

import pytest
from datetime import datetime, timedelta
from pathlib import Path

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from auth.config import AuthConfig
from auth.memory_store import InMemoryCredentialStore
from auth.passwords import PasswordHasher
from auth.security_logger import SecurityLogger
from auth.service import SessionOrchestrator
from auth.signup import SignupAttemptManager
from auth.token_service import TokenService
from auth.tokens import TokenCodec
from auth.types import User
from utils.timezone import now_utc


# =============================================================================
# TEST CONSTANTS
# =============================================================================

TEST_USER_EMAIL = "testuser@example.com"
TEST_PASSWORD = "correct horse battery"

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
SIGNUP_SECRET = "test-signup-secret-0123456789abcdef"


class FrozenClock:
    """Controllable clock. Starts at real now so JWT times line up."""

    def __init__(self, start: datetime | None = None):
        self.now = start or now_utc()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# =============================================================================
# CONFIG / CLOCK FIXTURES
# =============================================================================


@pytest.fixture
def config() -> AuthConfig:
    """Test auth config: distinct secrets, cheap bcrypt, plain-HTTP cookies."""
    return AuthConfig(
        access_token_secret=ACCESS_SECRET,
        refresh_token_secret=REFRESH_SECRET,
        signup_token_secret=SIGNUP_SECRET,
        bcrypt_rounds=4,
        cookie_secure=False,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


# =============================================================================
# CORE FIXTURES
# =============================================================================


@pytest.fixture
def store(clock) -> InMemoryCredentialStore:
    """Fresh in-process credential store per test."""
    return InMemoryCredentialStore(clock=clock)


@pytest.fixture
def security_logger(store, clock) -> SecurityLogger:
    return SecurityLogger(store, clock=clock)


@pytest.fixture
def codec(config) -> TokenCodec:
    return TokenCodec(config)


@pytest.fixture
def password_hasher(config) -> PasswordHasher:
    return PasswordHasher(config.bcrypt_rounds)


@pytest.fixture
def token_service(config, codec, store, security_logger, clock) -> TokenService:
    return TokenService(config, codec, store, security_logger, clock=clock)


@pytest.fixture
def signup_manager(config, store, password_hasher, security_logger, clock) -> SignupAttemptManager:
    return SignupAttemptManager(config, store, password_hasher, security_logger, clock=clock)


@pytest.fixture
def orchestrator(store, token_service, signup_manager, security_logger, clock) -> SessionOrchestrator:
    return SessionOrchestrator(store, token_service, signup_manager, security_logger, clock=clock)


# =============================================================================
# DATA FIXTURES
# =============================================================================


@pytest.fixture
def user(store, password_hasher) -> User:
    """An ACTIVE registered user."""
    return store.create_user(
        email=TEST_USER_EMAIL,
        first_name="Test",
        last_name="User",
        password_hash=password_hasher.hash(TEST_PASSWORD),
        email_verified=True,
    )
