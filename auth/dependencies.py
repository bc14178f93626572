"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session token is looked for in two places, in priority order:
  1. The "token" cookie -- set by signup / signin / reset-password.
  2. Authorization: Bearer <token> header -- for non-browser API clients.

get_session_user_id() returns None when no token was sent at all, so
anonymous requests reach the service layer, which decides whether a session
is required (me answers null, listUsers and createItem refuse). A token
that IS sent but does not verify raises InvalidSession rather than being
silently ignored.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the FastAPI dependency injection system. No imports from api/ or items/.
"""

from __future__ import annotations

from fastapi import Request

from auth.service import AuthService
from auth.tokens import SESSION_COOKIE_NAME, SessionTokenIssuer


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _read_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


def get_session_user_id(request: Request) -> str | None:
    """Return the verified user id of the request's session, or None.

    Raises InvalidSession if a token is present but fails verification.
    """
    token = _read_token(request)
    if token is None:
        return None
    issuer: SessionTokenIssuer = request.app.state.session_issuer
    return issuer.verify(token)
