"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc
from utils.user_context import (
    get_current_user,
    set_current_user,
    clear_current_user,
    user_context,
)
