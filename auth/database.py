"""Database operations for authentication.

All writes that guard a state transition (verification, refresh-token
rotation) are single conditional UPDATEs so Postgres provides the atomicity.
"""

from datetime import datetime
from uuid import UUID

import psycopg2.errors

from clients.postgres_client import PostgresClient
from auth.exceptions import DuplicateEmailError, DuplicateUsernameError, InternalError
from auth.types import Role, User
from utils.timezone import now_utc, to_utc

_USER_COLUMNS = """id, name, email, username, password_hash, role, is_verified,
       verification_token_hash, verification_token_expires_at,
       consumed_verification_token_hash, refresh_token, created_at, updated_at"""


def _row_to_user(row: dict) -> User:
    expires_at = row["verification_token_expires_at"]
    return User(
        id=UUID(row["id"]) if isinstance(row["id"], str) else row["id"],
        name=row["name"],
        email=row["email"],
        username=row["username"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        is_verified=row["is_verified"],
        verification_token_hash=row["verification_token_hash"],
        verification_token_expires_at=to_utc(expires_at) if expires_at else None,
        consumed_verification_token_hash=row["consumed_verification_token_hash"],
        refresh_token=row["refresh_token"],
        created_at=to_utc(row["created_at"]),
        updated_at=to_utc(row["updated_at"]),
    )


class AuthDatabase:
    """Credential store over the users table."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def get_user_by_email(self, email: str) -> User | None:
        """Find user by email (case-insensitive)."""
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE email = lower(%s)",
            (email.strip(),),
        )
        return _row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> User | None:
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE username = %s",
            (username,),
        )
        return _row_to_user(row) if row else None

    def get_user_by_id(self, user_id: UUID) -> User | None:
        row = self._db.execute_single(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s",
            (str(user_id),),
        )
        return _row_to_user(row) if row else None

    def create_user(
        self,
        name: str,
        email: str,
        username: str,
        password_hash: str,
        verification_token_hash: str,
        verification_token_expires_at: datetime,
    ) -> User:
        """Insert an unverified user with an outstanding verification token.

        Raises:
            DuplicateEmailError / DuplicateUsernameError: If a concurrent
                registration won the unique constraint.
            InternalError: If the insert returned no row.
        """
        try:
            rows = self._db.execute_returning(
                f"""INSERT INTO users
                       (name, email, username, password_hash, is_verified,
                        verification_token_hash, verification_token_expires_at)
                    VALUES (%s, lower(%s), %s, %s, false, %s, %s)
                    RETURNING {_USER_COLUMNS}""",
                (
                    name,
                    email.strip(),
                    username,
                    password_hash,
                    verification_token_hash,
                    verification_token_expires_at,
                ),
            )
        except psycopg2.errors.UniqueViolation as e:
            if "username" in (e.diag.constraint_name or ""):
                raise DuplicateUsernameError()
            raise DuplicateEmailError()
        if not rows:
            raise InternalError("User not created")
        return _row_to_user(rows[0])

    def get_user_by_verification_hash(self, token_hash: str) -> User | None:
        """Find the user an unexpired or already-consumed token belongs to."""
        row = self._db.execute_single(
            f"""SELECT {_USER_COLUMNS} FROM users
                WHERE (verification_token_hash = %s AND verification_token_expires_at > %s)
                   OR consumed_verification_token_hash = %s""",
            (token_hash, now_utc(), token_hash),
        )
        return _row_to_user(row) if row else None

    def mark_verified(self, user_id: UUID) -> bool:
        """Flip is_verified and retire the outstanding token.

        Returns:
            True if this call did the transition, False if already verified.
        """
        rows = self._db.execute_returning(
            """UPDATE users
               SET is_verified = true,
                   consumed_verification_token_hash = verification_token_hash,
                   verification_token_hash = NULL,
                   verification_token_expires_at = NULL,
                   updated_at = %s
               WHERE id = %s AND is_verified = false
               RETURNING id""",
            (now_utc(), str(user_id)),
        )
        return len(rows) > 0

    def set_refresh_token(self, user_id: UUID, refresh_token: str) -> None:
        """Overwrite the stored refresh token, ending any previous session."""
        self._db.execute_returning(
            "UPDATE users SET refresh_token = %s, updated_at = %s WHERE id = %s RETURNING id",
            (refresh_token, now_utc(), str(user_id)),
        )

    def rotate_refresh_token(self, user_id: UUID, old_token: str, new_token: str) -> bool:
        """Compare-and-set the refresh token.

        Returns:
            True if old_token was still current and has been replaced.
        """
        rows = self._db.execute_returning(
            """UPDATE users
               SET refresh_token = %s, updated_at = %s
               WHERE id = %s AND refresh_token = %s
               RETURNING id""",
            (new_token, now_utc(), str(user_id), old_token),
        )
        return len(rows) > 0

    def clear_refresh_token(self, user_id: UUID) -> None:
        self._db.execute_returning(
            "UPDATE users SET refresh_token = NULL, updated_at = %s WHERE id = %s RETURNING id",
            (now_utc(), str(user_id)),
        )

    def clear_refresh_token_by_value(self, refresh_token: str) -> UUID | None:
        """Clear the session holding this exact token.

        Returns:
            The owning user's id, or None if no user holds it.
        """
        rows = self._db.execute_returning(
            """UPDATE users
               SET refresh_token = NULL, updated_at = %s
               WHERE refresh_token = %s
               RETURNING id""",
            (now_utc(), refresh_token),
        )
        if not rows:
            return None
        user_id = rows[0]["id"]
        return UUID(user_id) if isinstance(user_id, str) else user_id
