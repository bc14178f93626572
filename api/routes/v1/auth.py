"""
api/routes/v1/auth.py -- Account, session and user-administration endpoints.

Routes:
  POST  /api/v1/auth/signup                    -- create account; sets session cookie
  POST  /api/v1/auth/signin                    -- password login; sets session cookie
  POST  /api/v1/auth/signout                   -- clears session cookie
  GET   /api/v1/auth/me                        -- current user, or null when anonymous
  POST  /api/v1/auth/request-reset             -- mail a password-reset link
  POST  /api/v1/auth/reset-password            -- redeem reset token; sets session cookie
  GET   /api/v1/auth/users                     -- list users (ADMIN or PERMISSIONUPDATE)
  PATCH /api/v1/auth/users/{id}/permissions    -- replace permissions (ADMIN or PERMISSIONUPDATE)

Every failure is an AuthError raised by the service; api/main.py turns it
into the {"error": {...}} envelope with the matching status code.

Security:
  signin and request-reset are rate-limited per IP.
  Responses that set a session cookie carry Cache-Control: no-store.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, reset_limit, signin_limit
from api.models import (
    MessageResponse,
    PermissionsUpdate,
    RequestResetRequest,
    ResetPasswordRequest,
    SigninRequest,
    SignupRequest,
    UserResponse,
)
from auth.dependencies import get_auth_service, get_session_user_id
from auth.models import AuthResult
from auth.service import AuthService
from auth.tokens import clear_session_cookie, set_session_cookie

# Auth policy:
# - POST  /auth/signup, /auth/signin, /auth/signout:  public
# - POST  /auth/request-reset, /auth/reset-password:  public (the reset token is the credential)
# - GET   /auth/me:                                   public, null when anonymous
# - GET   /auth/users:                                session + ADMIN/PERMISSIONUPDATE
# - PATCH /auth/users/{id}/permissions:               session + ADMIN/PERMISSIONUPDATE
router = APIRouter()


def _session_response(request: Request, result: AuthResult, status_code: int = 200) -> JSONResponse:
    """Serialize result.user and write result.token into the session cookie."""
    resp = JSONResponse(
        status_code=status_code,
        content=UserResponse.from_user(result.user).model_dump(),
    )
    set_session_cookie(resp, result.token, secure=request.app.state.settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=UserResponse, status_code=201)
def signup(
    request: Request,
    body: SignupRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Create an account with the USER permission and sign it in."""
    result = auth.signup(body.email, body.password, name=body.name)
    return _session_response(request, result, status_code=201)


@router.post("/auth/signin", response_model=UserResponse)
@limiter.limit(signin_limit)  # must be BELOW @router so the router registers the limited wrapper
def signin(
    request: Request,
    body: SigninRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Check email and password; set the session cookie."""
    result = auth.signin(body.email, body.password)
    return _session_response(request, result)


@router.post("/auth/signout", response_model=MessageResponse)
def signout(request: Request, auth: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Clear the session cookie. Tokens are stateless, so nothing else changes."""
    resp = JSONResponse(content=auth.signout())
    clear_session_cookie(resp, secure=request.app.state.settings.secure_cookies)
    return resp


@router.get("/auth/me", response_model=Optional[UserResponse])
def me(
    user_id: str | None = Depends(get_session_user_id),
    auth: AuthService = Depends(get_auth_service),
) -> Optional[UserResponse]:
    """Return the signed-in user, or null for anonymous requests."""
    user = auth.me(user_id)
    return UserResponse.from_user(user) if user is not None else None


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@router.post("/auth/request-reset", response_model=MessageResponse)
@limiter.limit(reset_limit)
def request_reset(
    request: Request,
    body: RequestResetRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Store a one-hour reset token on the account and mail the reset link."""
    return MessageResponse(**auth.request_reset(body.email))


@router.post("/auth/reset-password", response_model=UserResponse)
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> JSONResponse:
    """Redeem a reset token, set the new password, and sign the user in."""
    result = auth.confirm_reset(body.reset_token, body.password, body.confirm_password)
    return _session_response(request, result)


# ---------------------------------------------------------------------------
# User administration
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[UserResponse])
def list_users(
    user_id: str | None = Depends(get_session_user_id),
    auth: AuthService = Depends(get_auth_service),
) -> list[UserResponse]:
    """List all accounts. Requires ADMIN or PERMISSIONUPDATE."""
    return [UserResponse.from_user(u) for u in auth.list_users(user_id)]


@router.patch("/auth/users/{target_id}/permissions", response_model=UserResponse)
def update_permissions(
    target_id: str,
    body: PermissionsUpdate,
    user_id: str | None = Depends(get_session_user_id),
    auth: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Replace a user's permission set. Requires ADMIN or PERMISSIONUPDATE."""
    updated = auth.update_permissions(user_id, target_id, body.permissions)
    return UserResponse.from_user(updated)
