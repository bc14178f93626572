"""
auth/errors.py -- Failure taxonomy for the auth core.

Every request-level failure the auth core can produce is an AuthError
subclass carrying a stable machine-readable code, the HTTP status the API
layer maps it to, and a human-readable message. Infrastructure faults
(database unreachable, SMTP down) are NOT AuthErrors: they propagate as
ordinary exceptions and surface as a generic 500.

Layer rule: no imports from api/ or items/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for user-visible auth failures."""

    code: str = "auth_error"
    status_code: int = 400
    default_message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAuthenticated(AuthError):
    code = "not_authenticated"
    status_code = 401
    default_message = "You must be logged in to do that!"


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    default_message = "You do not have sufficient permissions."


class UserNotFound(AuthError):
    code = "user_not_found"
    status_code = 404
    default_message = "No such user found."


class InvalidPassword(AuthError):
    code = "invalid_password"
    status_code = 401
    default_message = "Invalid Password!"


class PasswordMismatch(AuthError):
    code = "password_mismatch"
    status_code = 400
    default_message = "Your Passwords don't match!"


class InvalidOrExpiredToken(AuthError):
    code = "invalid_or_expired_token"
    status_code = 400
    default_message = "This token is either invalid or expired!"


class HashingError(AuthError):
    code = "hashing_error"
    status_code = 500
    default_message = "Could not hash the password."


class InvalidSession(AuthError):
    code = "invalid_session"
    status_code = 401
    default_message = "Your session is invalid. Please sign in again."


class EmailTaken(AuthError):
    code = "email_taken"
    status_code = 409
    default_message = "An account with that email already exists."
