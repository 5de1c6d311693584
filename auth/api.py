"""HTTP routes for authentication."""

from typing import assert_never

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from auth.config import AuthConfig
from auth.exceptions import ServiceUnavailableError
from auth.guards import AccessContext, AccessTokenGuard, SignupContext, SignupTokenGuard
from auth.outcomes import (
    RefreshFailed,
    RefreshSucceeded,
    SessionFailureKind,
    SignupFailed,
    SignupFailureKind,
    SignupStarted,
)
from auth.service import SessionOrchestrator
from auth.types import SignupRequest, UserSummary
from api.base import success_response, error_response, ErrorCodes


_SESSION_ERROR_CODES = {
    SessionFailureKind.NO_SESSION: ErrorCodes.NO_SESSION,
    SessionFailureKind.INVALID_SESSION: ErrorCodes.INVALID_SESSION,
    SessionFailureKind.REVOKED_SESSION: ErrorCodes.SESSION_REVOKED,
    SessionFailureKind.EXPIRED_SESSION: ErrorCodes.SESSION_EXPIRED,
    SessionFailureKind.INACTIVE_ACCOUNT: ErrorCodes.ACCOUNT_INACTIVE,
    SessionFailureKind.INTERNAL_ERROR: ErrorCodes.INTERNAL_ERROR,
}


def create_auth_router(
    orchestrator: SessionOrchestrator,
    config: AuthConfig,
    access_guard: AccessTokenGuard,
    signup_guard: SignupTokenGuard,
) -> APIRouter:
    """Create auth router with injected orchestrator and guards."""
    router = APIRouter(tags=["auth"])
    cookie_name = config.session_cookie_name

    def clear_session_cookie(response: Response) -> None:
        response.delete_cookie(
            key=cookie_name,
            path="/",
            secure=config.cookie_secure,
            httponly=True,
            samesite="lax",
        )

    @router.get("/refresh-application")
    def refresh_application(request: Request, response: Response):
        """Exchange the session cookie for a fresh access token.

        Replaces the cookie when the refresh token was rotated. Any failure
        is 401 and clears the cookie.
        """
        outcome = orchestrator.refresh_session(request.cookies.get(cookie_name))

        match outcome:
            case RefreshSucceeded():
                if outcome.rotated is not None:
                    response.set_cookie(
                        key=cookie_name,
                        value=outcome.rotated.token,
                        httponly=True,
                        secure=config.cookie_secure,
                        samesite="lax",
                        max_age=config.refresh_cookie_max_age,
                        path="/",
                    )
                return success_response({
                    "access_token": outcome.access_token,
                    "expires_in": outcome.expires_in,
                    "user": outcome.user.model_dump(mode="json"),
                })
            case RefreshFailed():
                failure = JSONResponse(
                    status_code=401,
                    content=error_response(
                        _SESSION_ERROR_CODES[outcome.kind],
                        outcome.message,
                    ).model_dump(mode="json"),
                )
                clear_session_cookie(failure)
                return failure
            case _:
                assert_never(outcome)

    @router.post("/signup")
    def signup(body: SignupRequest):
        """Start signup, or resume the live attempt for this email.

        Returns:
            - 200 with a signup token and the next step
            - 409 when an account already exists
            - 500 on internal failure
        """
        outcome = orchestrator.signup(
            email=body.email,
            first_name=body.first_name,
            last_name=body.last_name,
            password=body.password,
        )

        match outcome:
            case SignupStarted():
                return success_response({
                    "signup_token": outcome.signup_token,
                    "attempt_id": str(outcome.attempt_id),
                    "next_step": outcome.next_step,
                    "resumed_session": outcome.resumed_session,
                    "completed_steps": outcome.completed_steps,
                })
            case SignupFailed(kind=SignupFailureKind.ALREADY_EXISTS):
                return JSONResponse(
                    status_code=409,
                    content=error_response(
                        ErrorCodes.ALREADY_EXISTS,
                        outcome.message,
                    ).model_dump(mode="json"),
                )
            case SignupFailed():
                return JSONResponse(
                    status_code=500,
                    content=error_response(
                        ErrorCodes.INTERNAL_ERROR,
                        outcome.message,
                    ).model_dump(mode="json"),
                )
            case _:
                assert_never(outcome)

    @router.post("/logout")
    def logout(request: Request, response: Response):
        """Logout - revoke refresh token and clear cookie.

        The cookie is cleared even when revocation fails with a 503.
        """
        try:
            orchestrator.logout(request.cookies.get(cookie_name))
        except ServiceUnavailableError:
            failure = JSONResponse(
                status_code=503,
                content=error_response(
                    ErrorCodes.SERVICE_UNAVAILABLE,
                    "Service temporarily unavailable",
                ).model_dump(mode="json"),
            )
            clear_session_cookie(failure)
            return failure

        clear_session_cookie(response)
        return success_response({"message": "Logged out successfully"})

    @router.get("/me")
    def get_current_user(ctx: AccessContext = Depends(access_guard)):
        """Current authenticated user. Requires a valid access token."""
        return success_response({
            "user": UserSummary.from_user(ctx.user).model_dump(mode="json"),
        })

    @router.get("/signup/progress")
    def get_signup_progress(ctx: SignupContext = Depends(signup_guard)):
        """Progress of the caller's signup attempt. Requires a signup token."""
        attempt = ctx.attempt
        return success_response({
            "attempt_id": str(attempt.id),
            "email": attempt.email,
            "current_step": attempt.current_step,
            "completed_steps": list(attempt.completed_steps),
            "email_verified": attempt.email_verified,
            "phone_verified": attempt.phone_verified,
            "mfa_enabled": attempt.mfa_enabled,
            "expires_at": attempt.expires_at.isoformat(),
        })

    return router
