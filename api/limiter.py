"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

A single shared instance means all routes share the same in-memory counter
store; per-module instances would each count separately and never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def signin_limit() -> str:
    return get_settings().signin_rate_limit


def reset_limit() -> str:
    return get_settings().reset_rate_limit
