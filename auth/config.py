"""Authentication configuration."""

from pydantic import BaseModel, Field, SecretStr, model_validator


class AuthConfig(BaseModel):
    """
    Authentication configuration.

    All durations are in their natural units (minutes for short-lived
    tokens, days for refresh tokens) to make configuration intuitive.
    Each token kind is signed with its own secret; a config whose secrets
    are missing or shared is a startup defect and fails validation.
    """

    # Signing secrets
    access_token_secret: SecretStr = Field(..., description="Secret for access tokens")
    refresh_token_secret: SecretStr = Field(..., description="Secret for refresh tokens")
    signup_token_secret: SecretStr = Field(..., description="Secret for signup tokens")
    jwt_algorithm: str = Field(
        default="HS256",
        description="HMAC algorithm used for all token kinds",
        pattern=r"^HS(256|384|512)$",
    )

    # Token lifetimes
    access_token_expiry_minutes: int = Field(
        default=15,
        description="Access token lifetime",
        ge=1,
        le=1440,
    )
    refresh_token_expiry_days: int = Field(
        default=30,
        description="Refresh token lifetime (JWT and stored row)",
        ge=1,
        le=365,
    )
    signup_token_expiry_minutes: int = Field(
        default=120,
        description="Signup token lifetime",
        ge=5,
        le=1440,
    )

    # Refresh rotation
    refresh_rotation_days: int = Field(
        default=7,
        description="Rotate a refresh token once it is at least this old",
        ge=0,
    )

    # Signup attempts
    signup_attempt_ttl_minutes: int = Field(
        default=120,
        description="How long a signup attempt may stay in progress",
        ge=5,
        le=1440,
    )
    first_signup_step: str = Field(
        default="email_verification",
        description="Step a new signup attempt starts on",
        min_length=1,
    )

    # Password hashing collaborator
    bcrypt_rounds: int = Field(
        default=10,
        description="bcrypt cost factor",
        ge=4,
        le=31,
    )

    # Transport
    session_cookie_name: str = Field(
        default="session",
        description="Cookie carrying the refresh token",
    )
    cookie_secure: bool = Field(
        default=True,
        description="Mark the session cookie Secure (disable only for local HTTP)",
    )

    @model_validator(mode="after")
    def check_secrets(self) -> "AuthConfig":
        secrets = [
            self.access_token_secret.get_secret_value(),
            self.refresh_token_secret.get_secret_value(),
            self.signup_token_secret.get_secret_value(),
        ]
        if any(not secret for secret in secrets):
            raise ValueError("All token signing secrets are required")
        if len(set(secrets)) != len(secrets):
            raise ValueError("Each token kind needs its own signing secret")
        return self

    @property
    def refresh_cookie_max_age(self) -> int:
        """Session cookie max-age in seconds."""
        return self.refresh_token_expiry_days * 24 * 60 * 60

    @classmethod
    def from_vault(cls, **overrides) -> "AuthConfig":
        """Build config with signing secrets read from Vault."""
        from clients.vault_client import get_jwt_secrets

        secrets = get_jwt_secrets()
        return cls(
            access_token_secret=secrets["access_secret"],
            refresh_token_secret=secrets["refresh_secret"],
            signup_token_secret=secrets["signup_secret"],
            **overrides,
        )
