"""
auth/permissions.py -- Role-based permission check.

has_permission() answers one question: does the user hold at least one of
the required role tags? It assumes identity has already been established;
callers check for a session first and raise NotAuthenticated themselves.
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.errors import Forbidden
from auth.models import Permission, User


def _tag(permission: Permission | str) -> str:
    return permission.value if isinstance(permission, Permission) else str(permission)


def has_permission(user: User, permissions_needed: Iterable[Permission | str]) -> bool:
    """Return True if user holds any of permissions_needed, else raise Forbidden.

    The Forbidden message lists both the required and the held permissions so
    the caller can show the user what is missing.
    """
    needed = [_tag(p) for p in permissions_needed]
    held = set(user.permissions)
    if any(p in held for p in needed):
        return True
    raise Forbidden(
        "You do not have sufficient permissions: "
        f"{', '.join(needed)}. You have: {', '.join(user.permissions) or 'none'}."
    )
