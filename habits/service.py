"""
Habit service.

Every habit belongs to the user whose access token authorized the request;
the owner is read from the user context, never from the request body.
"""

import logging
from uuid import uuid4

from auth.exceptions import InternalError
from clients.postgres_client import PostgresClient
from habits.types import Habit, HabitCreate
from utils.timezone import now_utc
from utils.user_context import get_current_user

logger = logging.getLogger(__name__)


class HabitService:
    """Service for habit operations."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def create(self, data: HabitCreate) -> Habit:
        """
        Create a new active habit for the current user.

        Args:
            data: Validated habit fields

        Returns:
            Created habit

        Raises:
            RuntimeError: If called outside an authenticated request
            InternalError: If the insert returned no row
        """
        user_id = get_current_user().id
        now = now_utc()

        rows = self.postgres.execute_returning(
            """
            INSERT INTO habits (
                id, user_id, name, description, frequency,
                target_count, is_active, created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s,
                %s, true, %s, %s
            )
            RETURNING *
            """,
            (
                uuid4(), user_id, data.name, data.description, data.frequency.value,
                data.target_count, now, now
            )
        )

        if not rows:
            raise InternalError("Habit not created")

        habit = Habit.model_validate(rows[0])
        logger.info(f"Created {habit.frequency.value} habit {habit.id} for user {user_id}")
        return habit
