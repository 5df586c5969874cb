"""Audit trail of authentication events.

Rows in security_events are only ever inserted. Nothing here updates or
deletes them; the admin route reads them back through get_recent_events.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

from psycopg2.extras import Json

from clients.postgres_client import PostgresClient
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

_EVENT_COLUMNS = "id, event_type, email, user_id, ip_address, user_agent, details, created_at"


class SecurityEvent(Enum):
    """Stored as the event_type column."""

    USER_REGISTERED = "user_registered"
    VERIFICATION_EMAIL_SENT = "verification_email_sent"
    VERIFICATION_EMAIL_FAILED = "verification_email_failed"
    EMAIL_VERIFIED = "email_verified"
    LOGIN_SUCCEEDED = "login_succeeded"
    LOGIN_FAILED = "login_failed"
    TOKEN_REFRESHED = "token_refreshed"
    REFRESH_TOKEN_REUSE_DETECTED = "refresh_token_reuse_detected"
    LOGOUT = "logout"
    RATE_LIMITED = "rate_limited"


class SecurityLogger:
    """Writes and queries the security_events table."""

    def __init__(self, postgres: PostgresClient):
        self._db = postgres

    def log(
        self,
        event: SecurityEvent,
        email: str | None = None,
        user_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Record one event. `details` lands in a JSONB column."""
        logger.info(f"{event.value} user={user_id} ip={ip_address}")

        self._db.execute_returning(
            """INSERT INTO security_events
               (event_type, email, user_id, ip_address, user_agent, details, created_at)
               VALUES (%s, %s, %s, %s, %s, %s, %s)
               RETURNING id""",
            (
                event.value,
                email,
                str(user_id) if user_id else None,
                ip_address,
                user_agent,
                Json(details) if details else None,
                now_utc(),
            ),
        )

    def get_recent_events(
        self,
        email: str | None = None,
        user_id: UUID | None = None,
        event_type: SecurityEvent | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Newest first, narrowed by whichever filters are given."""
        filters = {
            "email": email,
            "user_id": str(user_id) if user_id else None,
            "event_type": event_type.value if event_type else None,
        }
        active = {column: value for column, value in filters.items() if value is not None}
        where = " AND ".join(f"{column} = %s" for column in active) or "TRUE"

        return self._db.execute(
            f"""SELECT {_EVENT_COLUMNS}
                FROM security_events
                WHERE {where}
                ORDER BY created_at DESC
                LIMIT %s""",
            (*active.values(), limit),
        )
