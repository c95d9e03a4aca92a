"""Absolute links for account confirmation workflows.

The builder only combines the configured public base address with a
route and an already encoded token; it never creates or checks tokens.
"""

from urllib.parse import quote

from .errors import ConfigurationError, InvalidArgumentError

EMAIL_CONFIRMATION_ROUTE = "auth/confirm-email"
PASSWORD_RESET_ROUTE = "auth/reset-password"
EMAIL_CHANGE_ROUTE = "auth/confirm-email-change"
ACCOUNT_DELETION_ROUTE = "auth/confirm-account-deletion"
SENSITIVE_CHANGE_ROUTE = "auth/confirm-sensitive-change"


class AuthLinkBuilder:
    """Build confirmation URLs rooted at the public base address.

    Args:
        base_url: Public address of the API, e.g. ``https://shop.example``.
            A bare host such as ``shop.example`` is served over https.

    Raises:
        ConfigurationError: If ``base_url`` is missing or blank.
    """

    def __init__(self, base_url: str | None):
        if not base_url or not base_url.strip():
            raise ConfigurationError("Public base URL is not configured.")
        base = base_url.strip().rstrip("/")
        if "://" not in base:
            base = f"https://{base}"
        self.base_url = base

    def build(self, route: str, token: str) -> str:
        """
        Build an absolute link carrying ``token`` as a query parameter.

        Args:
            route (str): Relative route, e.g. ``auth/confirm-email``.
            token (str): Encoded token to embed.

        Raises:
            InvalidArgumentError: If either argument is blank.

        Returns:
            str: Absolute URL.
        """
        if not route or not route.strip():
            raise InvalidArgumentError("Route cannot be empty.")
        if not token or not token.strip():
            raise InvalidArgumentError("Token cannot be empty.")
        return f"{self.base_url}/{route.strip().lstrip('/')}?token={quote(token, safe='')}"

    def email_confirmation_link(self, token: str) -> str:
        """Link confirming the email address of a new account."""
        return self.build(EMAIL_CONFIRMATION_ROUTE, token)

    def password_reset_link(self, token: str) -> str:
        """Link opening the password reset flow."""
        return self.build(PASSWORD_RESET_ROUTE, token)

    def email_change_link(self, token: str) -> str:
        """Link confirming a change of email address."""
        return self.build(EMAIL_CHANGE_ROUTE, token)

    def account_deletion_link(self, token: str) -> str:
        """Link confirming account deletion."""
        return self.build(ACCOUNT_DELETION_ROUTE, token)

    def sensitive_change_link(self, token: str) -> str:
        """Link confirming a sensitive account change."""
        return self.build(SENSITIVE_CHANGE_ROUTE, token)
