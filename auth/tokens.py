"""Signed token codec for access, refresh, and signup tokens.

Pure: no I/O. Every kind has its own secret and lifetime, and every token
carries a `type` claim that must match the kind the caller expects, so a
token minted for one purpose is never accepted for another.
"""

import logging
from datetime import timedelta
from enum import Enum
from typing import Any

import jwt

from auth.config import AuthConfig
from auth.exceptions import InvalidTokenError
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_REQUIRED_CLAIMS = ["exp", "iat", "type"]


class TokenKind(str, Enum):
    """Token discriminator carried in the `type` claim."""

    ACCESS = "access"
    REFRESH = "refresh"
    SIGNUP = "signup"


class TokenCodec:
    """Signs and verifies JWTs for the three token kinds."""

    def __init__(self, config: AuthConfig):
        self._algorithm = config.jwt_algorithm
        self._secrets = {
            TokenKind.ACCESS: config.access_token_secret.get_secret_value(),
            TokenKind.REFRESH: config.refresh_token_secret.get_secret_value(),
            TokenKind.SIGNUP: config.signup_token_secret.get_secret_value(),
        }
        self._lifetimes = {
            TokenKind.ACCESS: timedelta(minutes=config.access_token_expiry_minutes),
            TokenKind.REFRESH: timedelta(days=config.refresh_token_expiry_days),
            TokenKind.SIGNUP: timedelta(minutes=config.signup_token_expiry_minutes),
        }

    def lifetime(self, kind: TokenKind) -> timedelta:
        return self._lifetimes[kind]

    def encode(self, kind: TokenKind, claims: dict[str, Any]) -> str:
        """Sign claims as a token of the given kind.

        Adds `type`, `iat` and `exp`; any such keys in `claims` are overwritten.
        """
        now = now_utc()
        payload = {
            **claims,
            "type": kind.value,
            "iat": now,
            "exp": now + self._lifetimes[kind],
        }
        return jwt.encode(payload, self._secrets[kind], algorithm=self._algorithm)

    def decode(self, token: str, kind: TokenKind) -> dict[str, Any]:
        """Verify signature, expiry, and kind; return the payload.

        Raises:
            InvalidTokenError: For every failure cause. The cause is logged only.
        """
        try:
            payload = jwt.decode(
                token,
                self._secrets[kind],
                algorithms=[self._algorithm],
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            logger.warning(f"Rejected {kind.value} token: signature expired")
            raise InvalidTokenError("Invalid or expired token") from None
        except jwt.PyJWTError as e:
            logger.warning(f"Rejected {kind.value} token: {type(e).__name__}: {e}")
            raise InvalidTokenError("Invalid or expired token") from None

        if payload["type"] != kind.value:
            logger.warning(
                f"Rejected {kind.value} token: carries type {payload['type']!r}"
            )
            raise InvalidTokenError("Invalid or expired token")

        return payload
