"""Tests for SessionOrchestrator - refresh, signup and logout outcomes."""

from unittest.mock import patch

import pytest

from auth.exceptions import AttemptInProgressError, ServiceUnavailableError
from auth.outcomes import (
    RefreshFailed,
    RefreshSucceeded,
    SessionFailureKind,
    SignupFailed,
    SignupFailureKind,
    SignupStarted,
)
from auth.tokens import TokenKind
from auth.types import AttemptStatus, SignupProfile, UserStatus


@pytest.fixture
def refresh_token(token_service, user):
    """A freshly issued refresh token for the ACTIVE test user."""
    return token_service.issue_refresh_token(user.id)


def _rejection_reasons(store) -> list[str]:
    return [
        e["details"]["reason"]
        for e in store.security_events
        if e["event_type"] == "session_rejected"
    ]


class TestRefreshSession:
    """Refresh flow, one failure kind per precondition."""

    def test_valid_token_yields_access_token(self, orchestrator, token_service, refresh_token, user):
        outcome = orchestrator.refresh_session(refresh_token.token)

        assert isinstance(outcome, RefreshSucceeded)
        assert outcome.expires_in == 900
        assert outcome.user.id == user.id
        assert outcome.user.email == user.email
        assert outcome.rotated is None
        assert token_service.verify_access_token(outcome.access_token).sub == user.id

    def test_user_summary_has_no_password_hash(self, orchestrator, refresh_token):
        outcome = orchestrator.refresh_session(refresh_token.token)
        assert "password_hash" not in outcome.user.model_dump()

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token_is_no_session(self, orchestrator, token):
        assert orchestrator.refresh_session(token) == RefreshFailed(SessionFailureKind.NO_SESSION)

    def test_garbage_token_is_invalid(self, orchestrator, store):
        outcome = orchestrator.refresh_session("not-a-token")
        assert outcome == RefreshFailed(SessionFailureKind.INVALID_SESSION)
        assert _rejection_reasons(store) == ["token_invalid"]

    def test_access_token_is_invalid(self, orchestrator, token_service, user):
        outcome = orchestrator.refresh_session(token_service.issue_access_token(user))
        assert outcome.kind == SessionFailureKind.INVALID_SESSION

    def test_unknown_row_is_invalid(self, orchestrator, store, refresh_token):
        del store.refresh_tokens[refresh_token.token_id]
        outcome = orchestrator.refresh_session(refresh_token.token)
        assert outcome.kind == SessionFailureKind.INVALID_SESSION
        assert _rejection_reasons(store) == ["token_not_found"]

    def test_token_not_matching_row_is_invalid(self, orchestrator, codec, refresh_token, user):
        """Validly signed, but not the token stored under that id."""
        forged = codec.encode(
            TokenKind.REFRESH,
            {"sub": str(user.id), "token_id": str(refresh_token.token_id), "jti": "other"},
        )
        outcome = orchestrator.refresh_session(forged)
        assert outcome.kind == SessionFailureKind.INVALID_SESSION

    def test_revoked_row_is_revoked(self, orchestrator, token_service, refresh_token):
        token_service.revoke(refresh_token.token_id)
        outcome = orchestrator.refresh_session(refresh_token.token)
        assert outcome == RefreshFailed(SessionFailureKind.REVOKED_SESSION)
        assert outcome.message == "Session has been revoked"

    def test_revoke_all_kills_every_session(self, orchestrator, token_service, user):
        first = token_service.issue_refresh_token(user.id)
        second = token_service.issue_refresh_token(user.id)
        token_service.revoke_all(user.id)

        for issued in (first, second):
            assert orchestrator.refresh_session(issued.token).kind == SessionFailureKind.REVOKED_SESSION

    def test_expired_row_is_expired(self, orchestrator, refresh_token, clock):
        """Row deadline passed while the JWT itself is still valid."""
        clock.advance(days=30)
        outcome = orchestrator.refresh_session(refresh_token.token)
        assert outcome == RefreshFailed(SessionFailureKind.EXPIRED_SESSION)

    @pytest.mark.parametrize("status", [UserStatus.INACTIVE, UserStatus.SUSPENDED, UserStatus.DELETED])
    def test_non_active_user_is_inactive(self, orchestrator, store, refresh_token, user, status):
        store.update_user_status(user.id, status)
        outcome = orchestrator.refresh_session(refresh_token.token)
        assert outcome == RefreshFailed(SessionFailureKind.INACTIVE_ACCOUNT)
        assert outcome.message == "User account is not active"

    def test_missing_user_is_invalid(self, orchestrator, store, refresh_token, user):
        del store.users[user.id]
        assert orchestrator.refresh_session(refresh_token.token).kind == SessionFailureKind.INVALID_SESSION

    def test_store_failure_is_internal_error(self, orchestrator, store, refresh_token):
        with patch.object(store, "get_refresh_token", side_effect=RuntimeError("db down")):
            outcome = orchestrator.refresh_session(refresh_token.token)
        assert outcome == RefreshFailed(SessionFailureKind.INTERNAL_ERROR)
        assert outcome.message == "An error occurred"

    def test_logs_refresh(self, orchestrator, store, refresh_token, user):
        orchestrator.refresh_session(refresh_token.token)
        event = store.security_events[-1]
        assert event["event_type"] == "session_refreshed"
        assert event["user_id"] == user.id


class TestRefreshRotation:
    """Old refresh tokens are rotated exactly once."""

    def test_young_token_not_rotated(self, orchestrator, refresh_token, clock):
        clock.advance(days=6)
        assert orchestrator.refresh_session(refresh_token.token).rotated is None

    def test_old_token_rotated(self, orchestrator, store, token_service, refresh_token, clock):
        clock.advance(days=7)
        outcome = orchestrator.refresh_session(refresh_token.token)

        assert isinstance(outcome, RefreshSucceeded)
        assert outcome.rotated is not None
        assert store.get_refresh_token(refresh_token.token_id).revoked is True
        assert token_service.verify_refresh_token(outcome.rotated.token).token_id == outcome.rotated.token_id

    def test_rotated_token_refreshes(self, orchestrator, refresh_token, clock):
        clock.advance(days=7)
        rotated = orchestrator.refresh_session(refresh_token.token).rotated
        outcome = orchestrator.refresh_session(rotated.token)
        assert isinstance(outcome, RefreshSucceeded)
        assert outcome.rotated is None

    def test_old_token_revoked_after_rotation(self, orchestrator, refresh_token, clock):
        clock.advance(days=7)
        orchestrator.refresh_session(refresh_token.token)
        outcome = orchestrator.refresh_session(refresh_token.token)
        assert outcome.kind == SessionFailureKind.REVOKED_SESSION

    def test_rotation_race_lost_is_revoked(self, orchestrator, store, refresh_token, clock):
        """Another request revoked the row between the liveness check and rotation."""
        clock.advance(days=7)
        with patch.object(store, "revoke_refresh_token", return_value=False):
            outcome = orchestrator.refresh_session(refresh_token.token)
        assert outcome.kind == SessionFailureKind.REVOKED_SESSION
        assert _rejection_reasons(store) == ["SessionRevokedError"]

    def test_incomplete_rotation_is_revoked(self, orchestrator, store, refresh_token, clock):
        clock.advance(days=7)
        with patch.object(store, "insert_refresh_token", side_effect=RuntimeError("db down")):
            outcome = orchestrator.refresh_session(refresh_token.token)
        assert outcome.kind == SessionFailureKind.REVOKED_SESSION
        assert store.get_refresh_token(refresh_token.token_id).revoked is True


class TestSignup:

    def test_new_email_starts_attempt(self, orchestrator, token_service, store):
        outcome = orchestrator.signup("New@Example.com", "New", "Person", "long-enough-password")

        assert isinstance(outcome, SignupStarted)
        assert outcome.resumed_session is False
        assert outcome.next_step == "email_verification"
        assert outcome.completed_steps == []

        claims = token_service.verify_signup_token(outcome.signup_token)
        assert claims.attempt_id == outcome.attempt_id
        assert claims.email == "new@example.com"
        assert claims.current_step == "email_verification"
        assert store.get_signup_attempt(outcome.attempt_id).first_name == "New"

    def test_second_signup_resumes(self, orchestrator, store):
        first = orchestrator.signup("new@example.com", "New", "Person", "long-enough-password")
        second = orchestrator.signup("new@example.com", "New", "Person", "long-enough-password")

        assert isinstance(second, SignupStarted)
        assert second.resumed_session is True
        assert second.attempt_id == first.attempt_id
        assert store.get_signup_attempt(first.attempt_id).attempt_count == 2

    def test_resume_reports_progress(self, orchestrator, signup_manager):
        first = orchestrator.signup("new@example.com", "New", "Person", "long-enough-password")
        signup_manager.advance_step(first.attempt_id, "phone_verification", "email_verification")

        second = orchestrator.signup("new@example.com", "New", "Person", "long-enough-password")
        assert second.next_step == "phone_verification"
        assert second.completed_steps == ["email_verification"]

    def test_existing_user_is_already_exists(self, orchestrator, user, store):
        outcome = orchestrator.signup(user.email, "Test", "User", "long-enough-password")
        assert outcome == SignupFailed(SignupFailureKind.ALREADY_EXISTS)
        assert outcome.message == "An account with this email already exists"
        assert store.security_events[-1]["event_type"] == "signup_rejected"
        assert store.signup_attempts == {}

    def test_expired_attempt_starts_fresh(self, orchestrator, signup_manager, store, clock):
        first = orchestrator.signup("new@example.com", "New", "Person", "long-enough-password")
        clock.advance(hours=2, seconds=1)
        signup_manager.sweep_expired()

        second = orchestrator.signup("new@example.com", "New", "Person", "long-enough-password")
        assert second.resumed_session is False
        assert second.attempt_id != first.attempt_id
        assert store.get_signup_attempt(first.attempt_id).status == AttemptStatus.EXPIRED

    def test_attempt_ending_before_resume_starts_fresh(self, orchestrator, signup_manager, store, clock):
        """Deadline passes between the lookup and the resume."""
        first = orchestrator.signup("new@example.com", "New", "Person", "long-enough-password")
        real_find = signup_manager.find_resumable

        def find_then_expire(email):
            found = real_find(email)
            clock.advance(hours=2)
            return found

        with patch.object(signup_manager, "find_resumable", side_effect=find_then_expire):
            second = orchestrator.signup("new@example.com", "New", "Person", "long-enough-password")

        assert isinstance(second, SignupStarted)
        assert second.resumed_session is False
        assert second.attempt_id != first.attempt_id
        assert store.get_signup_attempt(first.attempt_id).status == AttemptStatus.EXPIRED

    def test_lost_create_race_resumes_winner(self, orchestrator, signup_manager):
        """A concurrent request created the attempt between lookup and insert."""
        winner = signup_manager.create(
            "race@example.com",
            SignupProfile(first_name="Winner", last_name="Person", password="long-enough-password"),
        )
        real_find = signup_manager.find_resumable
        calls = []

        def find_after_race(email):
            calls.append(email)
            return None if len(calls) == 1 else real_find(email)

        with patch.object(signup_manager, "find_resumable", side_effect=find_after_race):
            outcome = orchestrator.signup("race@example.com", "New", "Person", "long-enough-password")

        assert isinstance(outcome, SignupStarted)
        assert outcome.resumed_session is True
        assert outcome.attempt_id == winner.id

    def test_store_failure_is_internal_error(self, orchestrator, store):
        with patch.object(store, "get_user_by_email", side_effect=RuntimeError("db down")):
            outcome = orchestrator.signup("new@example.com", "New", "Person", "long-enough-password")
        assert outcome == SignupFailed(SignupFailureKind.INTERNAL_ERROR)

    def test_unresolvable_conflict_is_internal_error(self, orchestrator, signup_manager):
        with patch.object(signup_manager, "create", side_effect=AttemptInProgressError("taken")):
            outcome = orchestrator.signup("new@example.com", "New", "Person", "long-enough-password")
        assert outcome.kind == SignupFailureKind.INTERNAL_ERROR


class TestLogout:

    def test_revokes_presented_token(self, orchestrator, store, refresh_token):
        assert orchestrator.logout(refresh_token.token) is True
        assert store.get_refresh_token(refresh_token.token_id).revoked is True

    def test_repeat_logout_is_false(self, orchestrator, refresh_token):
        orchestrator.logout(refresh_token.token)
        assert orchestrator.logout(refresh_token.token) is False

    @pytest.mark.parametrize("token", [None, "", "garbage"])
    def test_missing_or_invalid_token_is_false(self, orchestrator, token):
        assert orchestrator.logout(token) is False
    def test_store_failure_is_service_unavailable(self, orchestrator, store, refresh_token):
        with patch.object(store, "get_refresh_token", side_effect=RuntimeError("db down")):
            with pytest.raises(ServiceUnavailableError):
                orchestrator.logout(refresh_token.token)
