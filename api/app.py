"""Application assembly: wire the auth core into a FastAPI app."""

import logging

from fastapi import FastAPI

from api.errors import register_error_handlers
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.guards import AccessTokenGuard, SignupTokenGuard
from auth.passwords import PasswordHasher
from auth.security_logger import SecurityLogger
from auth.service import SessionOrchestrator
from auth.signup import SignupAttemptManager
from auth.store import CredentialStore
from auth.token_service import TokenService
from auth.tokens import TokenCodec
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


def create_app(config: AuthConfig, store: CredentialStore, clock: Clock = now_utc) -> FastAPI:
    """Build the app with every collaborator sharing one store and clock."""
    security_logger = SecurityLogger(store, clock=clock)
    token_service = TokenService(config, TokenCodec(config), store, security_logger, clock=clock)
    signup_manager = SignupAttemptManager(
        config, store, PasswordHasher(config.bcrypt_rounds), security_logger, clock=clock
    )
    orchestrator = SessionOrchestrator(
        store, token_service, signup_manager, security_logger, clock=clock
    )

    app = FastAPI()
    register_error_handlers(app)
    app.include_router(
        create_auth_router(
            orchestrator,
            config,
            AccessTokenGuard(token_service, store, security_logger),
            SignupTokenGuard(token_service, signup_manager, security_logger, clock=clock),
        ),
        prefix="/auth",
    )

    # Collaborators exposed for jobs (sweep) and flows outside the router
    app.state.token_service = token_service
    app.state.signup_manager = signup_manager
    app.state.orchestrator = orchestrator

    logger.info("Auth app assembled")
    return app
