"""Habit tracking modules."""

from habits.types import Frequency, Habit, HabitCreate
from habits.service import HabitService
from habits.api import create_habits_router
