"""In-process credential store.

Backs local development and the test suite. Enforces the same uniqueness
rules as the PostgreSQL schema (one user per email, one IN_PROGRESS signup
attempt per email) under a single lock, so concurrent callers observe the
same arbiter they would against the database.
"""

import logging
import threading
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from auth.exceptions import DuplicateRecordError
from auth.types import AttemptStatus, RefreshToken, SignupAttempt, User, UserStatus
from utils.timezone import Clock, now_utc

logger = logging.getLogger(__name__)


class InMemoryCredentialStore:
    """Thread-safe dict-backed implementation of CredentialStore."""

    def __init__(self, clock: Clock = now_utc):
        self._clock = clock
        self._lock = threading.RLock()
        self.users: dict[UUID, User] = {}
        self.refresh_tokens: dict[UUID, RefreshToken] = {}
        self.signup_attempts: dict[UUID, SignupAttempt] = {}
        self.security_events: list[dict[str, Any]] = []

    # Users

    def get_user_by_id(self, user_id: UUID) -> User | None:
        with self._lock:
            user = self.users.get(user_id)
            return user.model_copy() if user else None

    def get_user_by_email(self, email: str) -> User | None:
        email = email.lower()
        with self._lock:
            for user in self.users.values():
                if user.email == email:
                    return user.model_copy()
        return None

    def create_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        email_verified: bool = False,
    ) -> User:
        email = email.lower()
        with self._lock:
            if any(u.email == email for u in self.users.values()):
                raise DuplicateRecordError("users_email_key")
            now = self._clock()
            user = User(
                id=uuid4(),
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash=password_hash,
                email_verified=email_verified,
                status=UserStatus.ACTIVE,
                created_at=now,
                updated_at=now,
            )
            self.users[user.id] = user
            return user.model_copy()

    def update_user_status(self, user_id: UUID, status: UserStatus) -> bool:
        with self._lock:
            user = self.users.get(user_id)
            if user is None:
                return False
            self.users[user_id] = user.model_copy(
                update={"status": status, "updated_at": self._clock()}
            )
            return True

    # Refresh tokens

    def insert_refresh_token(self, record: RefreshToken) -> None:
        with self._lock:
            if record.id in self.refresh_tokens:
                raise DuplicateRecordError("refresh_tokens_pkey")
            if any(t.token == record.token for t in self.refresh_tokens.values()):
                raise DuplicateRecordError("refresh_tokens_token_key")
            self.refresh_tokens[record.id] = record.model_copy()

    def get_refresh_token(self, token_id: UUID) -> RefreshToken | None:
        with self._lock:
            record = self.refresh_tokens.get(token_id)
            return record.model_copy() if record else None

    def revoke_refresh_token(self, token_id: UUID) -> bool:
        with self._lock:
            record = self.refresh_tokens.get(token_id)
            if record is None or record.revoked:
                return False
            self.refresh_tokens[token_id] = record.model_copy(update={"revoked": True})
            return True

    def revoke_user_refresh_tokens(self, user_id: UUID) -> int:
        with self._lock:
            live = [
                t for t in self.refresh_tokens.values()
                if t.user_id == user_id and not t.revoked
            ]
            for record in live:
                self.refresh_tokens[record.id] = record.model_copy(update={"revoked": True})
            return len(live)

    # Signup attempts

    def insert_signup_attempt(self, attempt: SignupAttempt) -> None:
        with self._lock:
            if attempt.status == AttemptStatus.IN_PROGRESS and any(
                a.email == attempt.email and a.status == AttemptStatus.IN_PROGRESS
                for a in self.signup_attempts.values()
            ):
                raise DuplicateRecordError("signup_attempts_email_in_progress_key")
            self.signup_attempts[attempt.id] = attempt.model_copy(deep=True)

    def get_signup_attempt(self, attempt_id: UUID) -> SignupAttempt | None:
        with self._lock:
            attempt = self.signup_attempts.get(attempt_id)
            return attempt.model_copy(deep=True) if attempt else None

    def find_in_progress_attempts(self, email: str, now: datetime) -> list[SignupAttempt]:
        email = email.lower()
        with self._lock:
            matches = [
                a.model_copy(deep=True)
                for a in self.signup_attempts.values()
                if a.email == email and a.is_resumable(now)
            ]
        return sorted(matches, key=lambda a: a.created_at, reverse=True)

    def _update_live_attempt(
        self, attempt_id: UUID, now: datetime, **changes: Any
    ) -> SignupAttempt | None:
        """Compare-and-set: apply changes only to an unexpired IN_PROGRESS row."""
        with self._lock:
            attempt = self.signup_attempts.get(attempt_id)
            if attempt is None or not attempt.is_resumable(now):
                return None
            updated = attempt.model_copy(update={**changes, "updated_at": now}, deep=True)
            self.signup_attempts[attempt_id] = updated
            return updated.model_copy(deep=True)

    def resume_signup_attempt(self, attempt_id: UUID, now: datetime) -> SignupAttempt | None:
        with self._lock:
            attempt = self.signup_attempts.get(attempt_id)
            if attempt is None:
                return None
            return self._update_live_attempt(
                attempt_id, now, attempt_count=attempt.attempt_count + 1
            )

    def advance_signup_step(
        self,
        attempt_id: UUID,
        new_step: str,
        completed_step: str | None,
        now: datetime,
    ) -> SignupAttempt | None:
        with self._lock:
            attempt = self.signup_attempts.get(attempt_id)
            if attempt is None:
                return None
            steps = list(attempt.completed_steps)
            if completed_step and completed_step not in steps:
                steps.append(completed_step)
            return self._update_live_attempt(
                attempt_id, now, current_step=new_step, completed_steps=steps
            )

    def set_signup_flags(
        self, attempt_id: UUID, flags: dict[str, bool], now: datetime
    ) -> SignupAttempt | None:
        return self._update_live_attempt(attempt_id, now, **flags)

    def complete_signup_attempt(self, attempt_id: UUID, now: datetime) -> SignupAttempt | None:
        return self._update_live_attempt(
            attempt_id, now, status=AttemptStatus.COMPLETED, completed_at=now
        )

    def expire_signup_attempts(self, now: datetime, email: str | None = None) -> int:
        with self._lock:
            stale = [
                a for a in self.signup_attempts.values()
                if a.status == AttemptStatus.IN_PROGRESS
                and a.expires_at <= now
                and (email is None or a.email == email.lower())
            ]
            for attempt in stale:
                self.signup_attempts[attempt.id] = attempt.model_copy(
                    update={"status": AttemptStatus.EXPIRED, "updated_at": now}
                )
            return len(stale)

    # Security events

    def insert_security_event(
        self,
        event_type: str,
        email: str | None,
        user_id: UUID | None,
        details: dict[str, Any] | None,
        created_at: datetime,
    ) -> None:
        with self._lock:
            self.security_events.append({
                "id": len(self.security_events) + 1,
                "event_type": event_type,
                "email": email,
                "user_id": user_id,
                "details": details,
                "created_at": created_at,
            })

    def get_security_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        with self._lock:
            events = [
                dict(e) for e in reversed(self.security_events)
                if (email is None or e["email"] == email)
                and (user_id is None or e["user_id"] == user_id)
                and (event_type is None or e["event_type"] == event_type)
            ]
        return events[:limit]
