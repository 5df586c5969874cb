"""API modules for HTTP interface."""

from api.base import (
    APIResponse,
    success_response,
    error_response,
    ErrorCodes,
)
from api.errors import register_error_handlers
from api.health import create_health_router
from api.middleware import RequestIDMiddleware
