"""
auth/tokens.py -- Password hashing, session tokens, and the session cookie.

Security design decisions:
  Passwords: bcrypt directly, cost factor 10. Each hash carries its own
       random salt, so hashing the same password twice yields different
       digests. verify_password() never raises: a mismatch or a malformed
       stored hash is simply False.

  Session tokens: python-jose with HS256. The payload is {"userId": <id>}
       and nothing else -- there is deliberately no "exp" claim, the cookie's
       max_age is the only lifetime. SessionTokenIssuer receives the secret
       once at construction; there is no module-level secret to patch.

  Cookie: "token", httpOnly, samesite=lax, one-year max_age. Secure when
       SECURE_COOKIES=true.

Layer rule: no imports from api/ or items/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

import bcrypt
from jose import JWTError, jwt

from auth.errors import HashingError, InvalidSession

logger = logging.getLogger("shopfront.auth")

_ALGORITHM = "HS256"

BCRYPT_ROUNDS = 10

SESSION_COOKIE_NAME = "token"
# 1000 * 60 * 60 * 24 * 365 ms expressed in seconds, which Starlette expects.
SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises HashingError if the salt cannot be generated or bcrypt rejects the
    input. Recent bcrypt releases refuse passwords longer than 72 bytes; the
    API layer rejects those before they get here.
    """
    try:
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")
    except (OSError, ValueError) as exc:
        logger.error("Password hashing failed: %s", type(exc).__name__)
        raise HashingError() from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash. signin() verifies against this when the
# email is unknown so both failure paths pay the same bcrypt cost.
DUMMY_HASH: str = hash_password("shopfront_timing_dummy")


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


class SessionTokenIssuer:
    """Signs and verifies session tokens binding a user id.

    Usage:
        issuer = SessionTokenIssuer(get_settings().app_secret)
        token = issuer.issue(user.id)
        user_id = issuer.verify(token)
    """

    __slots__ = ("_secret",)

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("SessionTokenIssuer requires a non-empty secret")
        self._secret = secret

    def issue(self, user_id: str) -> str:
        """Return a signed token embedding user_id. No expiry claim is added."""
        return jwt.encode({"userId": user_id}, self._secret, algorithm=_ALGORITHM)

    def verify(self, token: str) -> str:
        """Return the user id carried by token.

        Raises InvalidSession if the signature does not verify, the token is
        malformed, or the userId claim is missing.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        except JWTError as exc:
            raise InvalidSession() from exc
        user_id = payload.get("userId")
        if not isinstance(user_id, str) or not user_id:
            raise InvalidSession()
        return user_id


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, secure: bool = False) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    max_age: one year.
    """
    response.set_cookie(
        SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=SESSION_COOKIE_MAX_AGE,
    )


def clear_session_cookie(response, secure: bool = False) -> None:
    """Delete the session cookie. Logout is purely client-side.

    The attributes must match set_session_cookie() or browsers treat the
    deletion as a different cookie and keep the session.
    """
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=secure,
    )
