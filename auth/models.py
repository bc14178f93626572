"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in items/models.py -- dataclasses own domain shape; stores and services do
the work.

Layer rule: no imports from api/ or items/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Permission(str, Enum):
    """Role tags a user can hold."""

    ADMIN = "ADMIN"
    USER = "USER"
    ITEMCREATE = "ITEMCREATE"
    ITEMUPDATE = "ITEMUPDATE"
    ITEMDELETE = "ITEMDELETE"
    PERMISSIONUPDATE = "PERMISSIONUPDATE"


@dataclass
class User:
    """A shop account.

    email is always stored lowercase. password_hash is a bcrypt digest and
    never the plaintext. reset_token / reset_token_expiry are both set by a
    reset request and both cleared (None) when the token is redeemed.
    reset_token_expiry is epoch milliseconds.

    id is None before the record is written to the database.
    """

    email: str
    name: str = ""
    password_hash: str = ""
    permissions: list[str] = field(default_factory=list)
    id: str | None = None
    reset_token: str | None = None
    reset_token_expiry: int | None = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class AuthResult:
    """A user together with the freshly minted session token for them.

    Returned by signup, signin and reset confirmation. The HTTP layer writes
    token into the session cookie and serializes only user.
    """

    user: User
    token: str
