"""PostgreSQL credential store.

Tables: users, refresh_tokens, signup_attempts, security_events (see
schema.sql). These are read before any user identity is established.
Uniqueness is enforced by the schema; violations surface as
DuplicateRecordError so services never see driver exceptions.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

import psycopg2.errors
from psycopg2.extras import Json

from auth.exceptions import DuplicateRecordError
from auth.types import AttemptStatus, RefreshToken, SignupAttempt, User, UserStatus
from clients.postgres_client import PostgresClient

logger = logging.getLogger(__name__)

_USER_COLUMNS = """id, email, first_name, last_name, password_hash, email_verified,
                   status, created_at, updated_at"""

_TOKEN_COLUMNS = "id, token, user_id, revoked, expires_at, created_at"

_ATTEMPT_COLUMNS = """id, email, first_name, last_name, password_hash, email_verified,
                      phone_verified, mfa_enabled, current_step, completed_steps, status,
                      attempt_count, created_at, updated_at, expires_at, completed_at"""

# Conditional-update guard for signup attempts: still live at %(now)s
_LIVE_ATTEMPT = "id = %(id)s AND status = 'IN_PROGRESS' AND expires_at > %(now)s"

_SIGNUP_FLAGS = {"email_verified", "phone_verified", "mfa_enabled"}


class AuthDatabase:
    """PostgreSQL implementation of CredentialStore."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def _insert(self, query: str, params: tuple | dict) -> list[dict[str, Any]]:
        try:
            return self._db.execute_returning(query, params)
        except psycopg2.errors.UniqueViolation as e:
            constraint = e.diag.constraint_name or "unknown"
            logger.info(f"Insert rejected by unique constraint {constraint}")
            raise DuplicateRecordError(constraint) from e

    # Users

    def get_user_by_id(self, user_id: UUID) -> User | None:
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (user_id,),
        )
        return User.model_validate(row) if row else None

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = lower(%s)",
            (email,),
        )
        return User.model_validate(row) if row else None

    def create_user(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        email_verified: bool = False,
    ) -> User:
        """Create new user with email (lowercased)."""
        rows = self._insert(
            f"""INSERT INTO users (email, first_name, last_name, password_hash, email_verified)
                VALUES (lower(%s), %s, %s, %s, %s)
                RETURNING {_USER_COLUMNS}""",
            (email, first_name, last_name, password_hash, email_verified),
        )
        return User.model_validate(rows[0])

    def update_user_status(self, user_id: UUID, status: UserStatus) -> bool:
        rows = self._db.execute_returning(
            "UPDATE users SET status = %s, updated_at = now() WHERE id = %s RETURNING id",
            (status.value, user_id),
        )
        return len(rows) > 0

    # Refresh tokens

    def insert_refresh_token(self, record: RefreshToken) -> None:
        self._insert(
            f"""INSERT INTO refresh_tokens ({_TOKEN_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING id""",
            (
                record.id,
                record.token,
                record.user_id,
                record.revoked,
                record.expires_at,
                record.created_at,
            ),
        )

    def get_refresh_token(self, token_id: UUID) -> RefreshToken | None:
        row = self._db.execute_single(
            f"SELECT {_TOKEN_COLUMNS} FROM refresh_tokens WHERE id = %s",
            (token_id,),
        )
        return RefreshToken.model_validate(row) if row else None

    def revoke_refresh_token(self, token_id: UUID) -> bool:
        rows = self._db.execute_returning(
            """UPDATE refresh_tokens SET revoked = true
               WHERE id = %s AND revoked = false
               RETURNING id""",
            (token_id,),
        )
        return len(rows) > 0

    def revoke_user_refresh_tokens(self, user_id: UUID) -> int:
        rows = self._db.execute_returning(
            """UPDATE refresh_tokens SET revoked = true
               WHERE user_id = %s AND revoked = false
               RETURNING id""",
            (user_id,),
        )
        return len(rows)

    # Signup attempts

    def insert_signup_attempt(self, attempt: SignupAttempt) -> None:
        self._insert(
            f"""INSERT INTO signup_attempts ({_ATTEMPT_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id""",
            (
                attempt.id,
                attempt.email,
                attempt.first_name,
                attempt.last_name,
                attempt.password_hash,
                attempt.email_verified,
                attempt.phone_verified,
                attempt.mfa_enabled,
                attempt.current_step,
                list(attempt.completed_steps),
                attempt.status.value,
                attempt.attempt_count,
                attempt.created_at,
                attempt.updated_at,
                attempt.expires_at,
                attempt.completed_at,
            ),
        )

    def get_signup_attempt(self, attempt_id: UUID) -> SignupAttempt | None:
        row = self._db.execute_single(
            f"SELECT {_ATTEMPT_COLUMNS} FROM signup_attempts WHERE id = %s",
            (attempt_id,),
        )
        return SignupAttempt.model_validate(row) if row else None

    def find_in_progress_attempts(self, email: str, now: datetime) -> list[SignupAttempt]:
        rows = self._db.execute(
            f"""SELECT {_ATTEMPT_COLUMNS} FROM signup_attempts
                WHERE email = lower(%s) AND status = 'IN_PROGRESS' AND expires_at > %s
                ORDER BY created_at DESC""",
            (email, now),
        )
        return [SignupAttempt.model_validate(row) for row in rows]

    def _update_live_attempt(self, set_clause: str, params: dict[str, Any]) -> SignupAttempt | None:
        rows = self._db.execute_returning(
            f"""UPDATE signup_attempts
                SET {set_clause}, updated_at = %(now)s
                WHERE {_LIVE_ATTEMPT}
                RETURNING {_ATTEMPT_COLUMNS}""",
            params,
        )
        return SignupAttempt.model_validate(rows[0]) if rows else None

    def resume_signup_attempt(self, attempt_id: UUID, now: datetime) -> SignupAttempt | None:
        return self._update_live_attempt(
            "attempt_count = attempt_count + 1",
            {"id": attempt_id, "now": now},
        )

    def advance_signup_step(
        self,
        attempt_id: UUID,
        new_step: str,
        completed_step: str | None,
        now: datetime,
    ) -> SignupAttempt | None:
        # Append in SQL so concurrent step updates cannot drop each other's entries
        return self._update_live_attempt(
            """current_step = %(step)s,
               completed_steps = CASE
                   WHEN %(done)s::text IS NULL OR %(done)s::text = ANY(completed_steps)
                   THEN completed_steps
                   ELSE array_append(completed_steps, %(done)s::text)
               END""",
            {"id": attempt_id, "now": now, "step": new_step, "done": completed_step},
        )

    def set_signup_flags(
        self, attempt_id: UUID, flags: dict[str, bool], now: datetime
    ) -> SignupAttempt | None:
        unknown = set(flags) - _SIGNUP_FLAGS
        if unknown:
            raise ValueError(f"Unknown signup flags: {', '.join(sorted(unknown))}")
        set_clause = ", ".join(f"{name} = %({name})s" for name in flags)
        return self._update_live_attempt(set_clause, {"id": attempt_id, "now": now, **flags})

    def complete_signup_attempt(self, attempt_id: UUID, now: datetime) -> SignupAttempt | None:
        return self._update_live_attempt(
            "status = %(status)s, completed_at = %(now)s",
            {"id": attempt_id, "now": now, "status": AttemptStatus.COMPLETED.value},
        )

    def expire_signup_attempts(self, now: datetime, email: str | None = None) -> int:
        query = """UPDATE signup_attempts
                   SET status = 'EXPIRED', updated_at = %s
                   WHERE status = 'IN_PROGRESS' AND expires_at <= %s"""
        params: tuple = (now, now)
        if email is not None:
            query += " AND email = lower(%s)"
            params += (email,)
        rows = self._db.execute_returning(query + " RETURNING id", params)
        return len(rows)

    # Security events

    def insert_security_event(
        self,
        event_type: str,
        email: str | None,
        user_id: UUID | None,
        details: dict[str, Any] | None,
        created_at: datetime,
    ) -> None:
        self._db.execute_returning(
            """INSERT INTO security_events (event_type, email, user_id, details, created_at)
               VALUES (%s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event_type,
                email,
                user_id,
                Json(details) if details else None,
                created_at,
            ),
        )

    def get_security_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Query recent security events with optional filters."""
        conditions = []
        params: list[Any] = []

        if email:
            conditions.append("email = %s")
            params.append(email)

        if user_id:
            conditions.append("user_id = %s")
            params.append(user_id)

        if event_type:
            conditions.append("event_type = %s")
            params.append(event_type)

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        params.append(limit)

        return self._db.execute(
            f"""SELECT id, event_type, email, user_id, details, created_at
                FROM security_events
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT %s""",
            tuple(params),
        )
