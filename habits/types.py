"""Habit domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class HabitCreate(BaseModel):
    """Data required to create a habit. Accepts camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(..., min_length=3)
    description: str | None = None
    frequency: Frequency
    target_count: int = Field(..., gt=0)

    @field_validator("name", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class Habit(BaseModel):
    """Full habit entity as stored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: UUID
    user_id: UUID
    name: str
    description: str | None = None
    frequency: Frequency
    target_count: int
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
