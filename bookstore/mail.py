"""Outgoing account emails sent through FastAPI-Mail."""

import logging

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

LOGGER = logging.getLogger(__name__)


def _render(heading: str, intro: str, link: str, action: str) -> str:
    return f"""
    <html>
      <body>
        <h2>{heading}</h2>
        <p>{intro}</p>
        <p><a href="{link}">{action}</a></p>
        <p>If you did not request this, please ignore this email.</p>
        <p>If the link doesn't work, copy and paste the following URL into your browser:</p>
        <p>{link}</p>
        <p>Thank you,<br/>The BookShop Team</p>
      </body>
    </html>
    """


class EmailNotifier:
    """Send purpose-specific messages containing confirmation links.

    Delivery failures are logged and re-raised so that callers see them.
    """

    def __init__(self, config: ConnectionConfig):
        self.config = config

    async def send_email_confirmation(self, to_email: str, link: str) -> None:
        """Send the link that confirms a newly registered address."""
        await self._send(
            to_email,
            "Please confirm your email address",
            _render(
                "Welcome!",
                "Please confirm your email by clicking the following link:",
                link,
                "Confirm Email",
            ),
        )

    async def send_password_reset(self, to_email: str, link: str) -> None:
        """Send password reset instructions."""
        await self._send(
            to_email,
            "Reset your password",
            _render(
                "Password reset",
                "You can reset your password by clicking the link below:",
                link,
                "Reset Password",
            ),
        )

    async def send_email_change_confirmation(self, to_email: str, link: str) -> None:
        """Send the link that confirms a change of email address."""
        await self._send(
            to_email,
            "Please confirm your email change",
            _render(
                "Email change",
                "Please confirm your email change by clicking the link below:",
                link,
                "Confirm Email Change",
            ),
        )

    async def send_account_deletion_confirmation(self, to_email: str, link: str) -> None:
        """Send the link that confirms account deletion."""
        await self._send(
            to_email,
            "Confirm your account deletion",
            _render(
                "Account deletion",
                "Please confirm your account deletion by clicking the link below:",
                link,
                "Confirm Account Deletion",
            ),
        )

    async def send_sensitive_change_confirmation(self, to_email: str, link: str) -> None:
        """Send the link that confirms a sensitive account change."""
        await self._send(
            to_email,
            "Confirm your sensitive change",
            _render(
                "Sensitive change",
                "Please confirm your sensitive change by clicking the link below:",
                link,
                "Confirm Change",
            ),
        )

    async def _send(self, to_email: str, subject: str, body: str) -> None:
        message = MessageSchema(
            subject=subject,
            recipients=[to_email],
            body=body,
            subtype=MessageType.html,
        )
        fm = FastMail(self.config)
        try:
            await fm.send_message(message)
        except Exception:
            LOGGER.exception("Failed to send %r email", subject)
            raise
        LOGGER.info("Sent %r email", subject)
