"""HTTP routes for habits. Protected by AuthMiddleware."""

from fastapi import APIRouter

from api.base import success_response
from habits.service import HabitService
from habits.types import HabitCreate


def create_habits_router(habit_service: HabitService) -> APIRouter:
    router = APIRouter(prefix="/habits", tags=["habits"])

    @router.post("", status_code=201)
    async def create_habit(body: HabitCreate):
        habit = habit_service.create(body)
        return success_response(
            "Habit created successfully",
            data=habit.model_dump(mode="json", by_alias=True),
        )

    return router
