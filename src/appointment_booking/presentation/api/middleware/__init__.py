"""Middleware module for the appointment booking API."""

from .auth import get_current_actor, get_current_operator
from .logging import RequestResponseLoggingMiddleware

__all__ = [
    "get_current_actor",
    "get_current_operator",
    "RequestResponseLoggingMiddleware"
]
