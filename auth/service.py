"""
auth/service.py -- Orchestration of the account flows.

AuthService is stateless across requests: it holds only collaborators
(store, issuer, reset manager) that are built once at startup. Each method
takes the already-resolved session user id (or None) from the HTTP layer and
either returns a result or raises an AuthError subclass.

Layer rule: no imports from api/ or items/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.exc import IntegrityError

from auth.errors import EmailTaken, InvalidPassword, NotAuthenticated, UserNotFound
from auth.models import AuthResult, Permission, User
from auth.permissions import has_permission
from auth.reset import ResetTokenManager
from auth.store import UserStore
from auth.tokens import DUMMY_HASH, SessionTokenIssuer, hash_password, verify_password

logger = logging.getLogger("shopfront.auth")

USER_ADMIN_PERMISSIONS = (Permission.ADMIN, Permission.PERMISSIONUPDATE)


class AuthService:
    def __init__(
        self,
        *,
        store: UserStore,
        issuer: SessionTokenIssuer,
        resets: ResetTokenManager,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.resets = resets

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def signup(self, email: str, password: str, name: str = "") -> AuthResult:
        """Create an account with the USER permission and start a session."""
        user = User(
            email=email.strip().lower(),
            name=name,
            password_hash=hash_password(password),
            permissions=[Permission.USER.value],
        )
        try:
            user = self.store.create_user(user)
        except IntegrityError as exc:
            raise EmailTaken() from exc
        logger.info("New account %s", user.id)
        return AuthResult(user=user, token=self.issuer.issue(user.id))

    def signin(self, email: str, password: str) -> AuthResult:
        """Check credentials and start a session.

        Unknown email and wrong password are reported separately, but both
        paths run exactly one bcrypt verification.
        """
        email = email.strip().lower()
        user = self.store.find_user_by_email(email)
        if user is None:
            verify_password(password, DUMMY_HASH)
            raise UserNotFound(f"No such user found for email {email}")
        if not verify_password(password, user.password_hash):
            raise InvalidPassword()
        return AuthResult(user=user, token=self.issuer.issue(user.id))

    def signout(self) -> dict:
        """Nothing to invalidate server-side; the route clears the cookie."""
        return {"message": "Goodbye!"}

    def me(self, user_id: str | None) -> User | None:
        if not user_id:
            return None
        return self.store.find_user_by_id(user_id)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def request_reset(self, email: str) -> dict:
        return self.resets.request_reset(email)

    def confirm_reset(self, reset_token: str, password: str, confirm_password: str) -> AuthResult:
        return self.resets.confirm_reset(reset_token, password, confirm_password)

    # ------------------------------------------------------------------
    # User administration
    # ------------------------------------------------------------------

    def require_user(self, user_id: str | None) -> User:
        """Return the session user or raise NotAuthenticated.

        A token for a user that no longer exists counts as no session.
        """
        if not user_id:
            raise NotAuthenticated()
        user = self.store.find_user_by_id(user_id)
        if user is None:
            raise NotAuthenticated()
        return user

    def list_users(self, user_id: str | None) -> list[User]:
        """Return every user. Requires ADMIN or PERMISSIONUPDATE."""
        current = self.require_user(user_id)
        has_permission(current, USER_ADMIN_PERMISSIONS)
        return self.store.list_users()

    def update_permissions(
        self,
        user_id: str | None,
        target_user_id: str,
        permissions: Iterable[Permission | str],
    ) -> User:
        """Replace target's permission set. Requires ADMIN or PERMISSIONUPDATE."""
        current = self.require_user(user_id)
        has_permission(current, USER_ADMIN_PERMISSIONS)

        tags: list[str] = []
        for p in permissions:
            tag = Permission(p).value
            if tag not in tags:
                tags.append(tag)
        if not self.store.update_user({"id": target_user_id}, permissions=tags):
            raise UserNotFound()
        logger.info("User %s set permissions of %s to %s", current.id, target_user_id, tags)
        updated = self.store.find_user_by_id(target_user_id)
        if updated is None:
            # Deleted between update and re-fetch.
            raise UserNotFound()
        return updated
