"""Security event logging for the auth audit trail.

Every event goes to the application log and to the append-only
security_events store. Details carry the precise internal cause of a
rejection; they are never returned to clients.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

from auth.store import CredentialStore
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


class SecurityEvent(Enum):
    """Auth security event types."""

    REFRESH_TOKEN_ISSUED = "refresh_token_issued"
    REFRESH_TOKEN_ROTATED = "refresh_token_rotated"
    REFRESH_TOKEN_REVOKED = "refresh_token_revoked"
    REFRESH_TOKENS_REVOKED_ALL = "refresh_tokens_revoked_all"
    SESSION_REFRESHED = "session_refreshed"
    SESSION_REJECTED = "session_rejected"
    SIGNUP_STARTED = "signup_started"
    SIGNUP_RESUMED = "signup_resumed"
    SIGNUP_REJECTED = "signup_rejected"
    SIGNUP_COMPLETED = "signup_completed"
    SIGNUP_ATTEMPTS_EXPIRED = "signup_attempts_expired"
    GUARD_REJECTED = "guard_rejected"


_WARNING_EVENTS = {
    SecurityEvent.SESSION_REJECTED,
    SecurityEvent.SIGNUP_REJECTED,
    SecurityEvent.GUARD_REJECTED,
}


class SecurityLogger:
    """Append-only security event logger."""

    def __init__(self, store: CredentialStore, clock: Clock = now_utc):
        self._store = store
        self._clock = clock

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record event in the application log and the security_events store."""
        level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
        logger.log(level, f"{event.value} user_id={user_id} details={details or {}}")

        self._store.insert_security_event(
            event_type=event.value,
            email=email,
            user_id=user_id,
            details=details,
            created_at=self._clock(),
        )

    def get_recent_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Query recent security events with optional filters."""
        return self._store.get_security_events(
            email=email,
            user_id=user_id,
            event_type=event_type.value if event_type else None,
            limit=limit,
        )
