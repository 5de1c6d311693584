"""Tests for auth/exceptions.py - Typed exceptions for auth failures."""

import pytest

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


class TestExceptionInheritance:
    """All auth exceptions should inherit from AuthError."""

    @pytest.mark.parametrize("exc", [
        InvalidTokenError,
        SessionRevokedError,
        RotationIncompleteError,
        UserInactiveError,
        ConflictError,
        AttemptNotInProgressError,
        SignupStateError,
        ServiceUnavailableError,
    ])
    def test_inherits_auth_error(self, exc):
        assert issubclass(exc, AuthError)

    def test_conflicts_share_a_base(self):
        assert issubclass(UserExistsError, ConflictError)
        assert issubclass(AttemptInProgressError, ConflictError)

    def test_rotation_incomplete_is_a_revocation(self):
        """Callers handling SessionRevokedError also cover a half-done rotation."""
        with pytest.raises(SessionRevokedError):
            raise RotationIncompleteError("revoked, not reissued")


class TestDuplicateRecordError:
    """Storage-level uniqueness violation, outside the AuthError tree."""

    def test_carries_constraint_name(self):
        err = DuplicateRecordError("users_email_key")
        assert err.constraint == "users_email_key"
        assert "users_email_key" in str(err)

    def test_not_an_auth_error(self):
        assert not issubclass(DuplicateRecordError, AuthError)
