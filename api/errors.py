"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import (
    AttemptNotInProgressError,
    AuthError,
    InvalidTokenError,
    ServiceUnavailableError,
    UserInactiveError,
)

logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app.

    Handlers resolve by exception MRO, so the specific AuthError subclasses
    win over the AuthError fallback.
    """

    @app.exception_handler(InvalidTokenError)
    async def invalid_token_handler(request: Request, exc: InvalidTokenError):
        return _error(401, ErrorCodes.INVALID_TOKEN, "Invalid or expired token")

    @app.exception_handler(UserInactiveError)
    async def inactive_user_handler(request: Request, exc: UserInactiveError):
        return _error(401, ErrorCodes.ACCOUNT_INACTIVE, "User account is not active")

    @app.exception_handler(AttemptNotInProgressError)
    async def attempt_handler(request: Request, exc: AttemptNotInProgressError):
        return _error(401, ErrorCodes.SIGNUP_NOT_IN_PROGRESS, "Signup is no longer in progress")

    @app.exception_handler(ServiceUnavailableError)
    async def unavailable_handler(request: Request, exc: ServiceUnavailableError):
        logger.error(f"Service unavailable: {exc}")
        return _error(503, ErrorCodes.SERVICE_UNAVAILABLE, "Service temporarily unavailable")

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        logger.warning(f"Unauthenticated request rejected: {type(exc).__name__}")
        return _error(401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = sorted({".".join(str(p) for p in err["loc"][1:]) for err in exc.errors()})
        return _error(422, ErrorCodes.VALIDATION_ERROR, f"Invalid fields: {', '.join(fields)}")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _error(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
