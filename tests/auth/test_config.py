"""Tests for auth/config.py - Auth configuration with validation."""

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from auth.config import AuthConfig


def _config(**overrides) -> AuthConfig:
    values = {
        "access_token_secret": "access-secret",
        "refresh_token_secret": "refresh-secret",
        "signup_token_secret": "signup-secret",
    }
    values.update(overrides)
    return AuthConfig(**values)


class TestAuthConfigDefaults:
    """Tests that AuthConfig has sensible defaults."""

    def test_token_lifetime_defaults(self):
        config = _config()
        assert config.access_token_expiry_minutes == 15
        assert config.refresh_token_expiry_days == 30
        assert config.signup_token_expiry_minutes == 120

    def test_rotation_default(self):
        assert _config().refresh_rotation_days == 7

    def test_signup_defaults(self):
        config = _config()
        assert config.signup_attempt_ttl_minutes == 120
        assert config.first_signup_step == "email_verification"

    def test_cookie_defaults(self):
        config = _config()
        assert config.session_cookie_name == "session"
        assert config.cookie_secure is True

    def test_refresh_cookie_max_age_is_thirty_days(self):
        assert _config().refresh_cookie_max_age == 30 * 24 * 60 * 60


class TestAuthConfigSecrets:
    """A config without three distinct secrets is a startup defect."""

    def test_missing_secret_rejected(self):
        with pytest.raises(ValidationError):
            AuthConfig(access_token_secret="a", refresh_token_secret="b")

    def test_empty_secret_rejected(self):
        with pytest.raises(ValidationError, match="required"):
            _config(signup_token_secret="")

    def test_shared_secret_rejected(self):
        with pytest.raises(ValidationError, match="own signing secret"):
            _config(refresh_token_secret="access-secret")

    def test_secrets_hidden_in_repr(self):
        assert "access-secret" not in repr(_config())


class TestAuthConfigValidation:
    """Tests that AuthConfig enforces validation bounds."""

    def test_access_expiry_min_bound(self):
        with pytest.raises(ValidationError):
            _config(access_token_expiry_minutes=0)

    def test_refresh_expiry_max_bound(self):
        with pytest.raises(ValidationError):
            _config(refresh_token_expiry_days=366)

    def test_signup_ttl_min_bound(self):
        with pytest.raises(ValidationError):
            _config(signup_attempt_ttl_minutes=4)

    def test_rotation_days_negative_rejected(self):
        with pytest.raises(ValidationError):
            _config(refresh_rotation_days=-1)

    def test_rotation_days_zero_allowed(self):
        assert _config(refresh_rotation_days=0).refresh_rotation_days == 0

    def test_unsupported_algorithm_rejected(self):
        with pytest.raises(ValidationError):
            _config(jwt_algorithm="none")

    def test_hs512_accepted(self):
        assert _config(jwt_algorithm="HS512").jwt_algorithm == "HS512"


class TestFromVault:
    """Signing secrets come from Vault; everything else from overrides."""

    def test_builds_from_vault_secrets(self):
        secrets = {"access_secret": "va", "refresh_secret": "vr", "signup_secret": "vs"}
        with patch("clients.vault_client.get_jwt_secrets", return_value=secrets):
            config = AuthConfig.from_vault(refresh_rotation_days=3)

        assert config.access_token_secret.get_secret_value() == "va"
        assert config.signup_token_secret.get_secret_value() == "vs"
        assert config.refresh_rotation_days == 3
