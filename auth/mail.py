"""
auth/mail.py -- Outbound mail for password-reset links.

Two delivery modes, picked from Settings.resolved_mail_mode:
  smtp    -- smtplib with STARTTLS and optional login, bounded by
             MAIL_TIMEOUT_SECONDS so a dead relay cannot hang a request.
  console -- no network; the message is logged. Local development only.

send() raises on delivery failure. Whether a failure matters is the
caller's decision: the reset flow logs it and carries on.
"""

from __future__ import annotations

import html
import logging
import smtplib
from email.message import EmailMessage

from core.config import Settings

logger = logging.getLogger("shopfront.mail")


def make_a_nice_email(text: str) -> str:
    """Wrap text (which may contain trusted HTML) in the shop's mail layout."""
    return f"""
    <div className="email" style="
      border: 1px solid black;
      padding: 20px;
      font-family: sans-serif;
      line-height: 2;
      font-size: 20px;
    ">
      <h2>Hello There!</h2>
      <p>{text}</p>
      <p>Shopfront</p>
    </div>
    """


def reset_email_body(frontend_url: str, reset_token: str) -> str:
    """Return the HTML body of the password-reset mail."""
    link = f"{frontend_url.rstrip('/')}/reset?resetToken={html.escape(reset_token)}"
    return make_a_nice_email(
        "Your Password Reset Token is here!\n\n" f'<a href="{link}">Click Here to Reset</a>'
    )


class MailSender:
    """Deliver HTML mail via SMTP or the log, depending on configuration."""

    def __init__(self, settings: Settings) -> None:
        self.mode = settings.resolved_mail_mode
        self.host = settings.mail_host.strip()
        self.port = settings.mail_port
        self.user = settings.mail_user.strip()
        self.password = settings.mail_password
        self.starttls = settings.mail_starttls
        self.sender = settings.mail_from
        self.timeout = settings.mail_timeout_seconds

    def send(self, to: str, subject: str, html_body: str) -> None:
        if self.mode == "smtp":
            self._send_smtp(to, subject, html_body)
            return
        logger.info("[console mail] to=%s subject=%r\n%s", to, subject, html_body)

    def _send_smtp(self, to: str, subject: str, html_body: str) -> None:
        if not self.host:
            raise RuntimeError("MAIL_HOST is required for SMTP delivery")
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html_body, subtype="html")
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.starttls:
                server.starttls()
            if self.user:
                server.login(self.user, self.password)
            server.send_message(message)
        logger.info("Mail sent to %s (%s)", to, subject)
