"""Purpose-bound account action tokens.

These tokens travel inside confirmation links (email confirmation,
password reset and so on). They are not session tokens.

A token is the JSON payload encrypted with AES-GCM under a key derived
from the root secret and a fixed, versioned protector purpose, then
base64url-encoded without padding. Validation never raises: every
failure yields ``None``.
"""

import base64
import binascii
import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .errors import ConfigurationError, InvalidArgumentError

LOGGER = logging.getLogger(__name__)

PROTECTOR_PURPOSE = "bookstore.auth.AuthTokenCodec.v1"

_NONCE_SIZE = 12
_TAG_SIZE = 16
_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]+")


class AuthTokenPurpose(str, Enum):
    """Action an account token authorizes."""

    EMAIL_CONFIRMATION = "EmailConfirmation"
    PASSWORD_RESET = "PasswordReset"
    EMAIL_CHANGE = "EmailChange"
    ACCOUNT_DELETION = "AccountDeletion"
    SENSITIVE_CHANGE = "SensitiveChange"


@dataclass(frozen=True)
class AuthActionToken:
    """Payload carried by an account action token.

    ``new_email`` is set only for :attr:`AuthTokenPurpose.EMAIL_CHANGE`.
    """

    user_id: int
    purpose: AuthTokenPurpose
    expires_at_utc: datetime
    new_email: str | None = None

    def to_json(self) -> str:
        """Serialize the payload to canonical JSON."""
        return json.dumps(
            {
                "userId": self.user_id,
                "purpose": self.purpose.value,
                "expiresAtUtc": self.expires_at_utc.isoformat(),
                "newEmail": self.new_email,
            },
            separators=(",", ":"),
            sort_keys=True,
        )

    @classmethod
    def from_json(cls, raw: str) -> "AuthActionToken | None":
        """Parse a payload, returning ``None`` when it is malformed."""
        try:
            data: Any = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None

        user_id = data.get("userId")
        purpose = data.get("purpose")
        expires = data.get("expiresAtUtc")
        new_email = data.get("newEmail")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            return None
        if not isinstance(purpose, str) or not isinstance(expires, str):
            return None
        if new_email is not None and not isinstance(new_email, str):
            return None
        try:
            purpose_value = AuthTokenPurpose(purpose)
            expires_at = datetime.fromisoformat(expires)
        except ValueError:
            return None
        return cls(
            user_id=user_id,
            purpose=purpose_value,
            expires_at_utc=expires_at,
            new_email=new_email,
        )


def is_utc(value: datetime) -> bool:
    """Return whether ``value`` is timezone-aware with a zero UTC offset."""
    return value.tzinfo is not None and value.utcoffset() == timedelta(0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(token: str) -> bytes | None:
    if not _TOKEN_RE.fullmatch(token):
        return None
    padded = token + "=" * (-len(token) % 4)
    try:
        data = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return None
    # Reject non-canonical spellings of the same bytes.
    if _b64url_encode(data) != token:
        return None
    return data


class AuthTokenCodec:
    """Create and validate purpose-bound account action tokens.

    Args:
        secret_key: Root key material. The AES key is derived from it with
            HKDF bound to :data:`PROTECTOR_PURPOSE`, so tokens cannot be
            opened by another protector sharing the same root key.
        clock: Callable returning the current aware UTC time.

    Raises:
        ConfigurationError: If ``secret_key`` is blank.
    """

    def __init__(self, secret_key: str, clock: Callable[[], datetime] = _utcnow):
        if not secret_key or not secret_key.strip():
            raise ConfigurationError("Token secret key is not configured.")
        self._purpose_bytes = PROTECTOR_PURPOSE.encode("utf-8")
        key = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=None,
            info=self._purpose_bytes,
        ).derive(secret_key.encode("utf-8"))
        self._aead = AESGCM(key)
        self._clock = clock

    def create_token(
        self,
        purpose: AuthTokenPurpose,
        user_id: int,
        expires_at_utc: datetime,
        new_email: str | None = None,
    ) -> str:
        """
        Encode an action token.

        Args:
            purpose (AuthTokenPurpose): Action the token authorizes.
            user_id (int): Positive identifier of the user.
            expires_at_utc (datetime): Aware UTC expiry instant.
            new_email (str | None): Required for email change tokens and
                rejected for every other purpose.

        Raises:
            InvalidArgumentError: If any precondition is violated.

        Returns:
            str: URL-safe opaque token.
        """
        try:
            purpose = AuthTokenPurpose(purpose)
        except ValueError as exc:
            raise InvalidArgumentError("Unknown token purpose.") from exc
        if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id <= 0:
            raise InvalidArgumentError("User ID must be a positive integer.")
        if not isinstance(expires_at_utc, datetime) or not is_utc(expires_at_utc):
            raise InvalidArgumentError("The expiry must be a UTC datetime.")
        if purpose is AuthTokenPurpose.EMAIL_CHANGE:
            if not new_email or not new_email.strip():
                raise InvalidArgumentError("A new email is required for email change tokens.")
        elif new_email is not None:
            raise InvalidArgumentError("A new email is only allowed for email change tokens.")

        payload = AuthActionToken(
            user_id=user_id,
            purpose=purpose,
            expires_at_utc=expires_at_utc,
            new_email=new_email,
        )
        nonce = os.urandom(_NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, payload.to_json().encode("utf-8"), self._purpose_bytes)
        return _b64url_encode(nonce + sealed)

    def try_validate_token(
        self, token: str, expected_purpose: AuthTokenPurpose
    ) -> AuthActionToken | None:
        """
        Decode and validate an action token.

        A token is valid when it decrypts, parses, matches
        ``expected_purpose``, carries a UTC expiry that is still in the
        future and, for email change tokens, a new email.

        Args:
            token (str): Token taken from a confirmation link.
            expected_purpose (AuthTokenPurpose): Purpose of the current action.

        Returns:
            AuthActionToken | None: The payload, or ``None`` if invalid.
        """
        if not isinstance(token, str) or not token.strip():
            return None

        raw = _b64url_decode(token)
        if raw is None or len(raw) < _NONCE_SIZE + _TAG_SIZE:
            return None

        nonce, sealed = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
        try:
            plaintext = self._aead.decrypt(nonce, sealed, self._purpose_bytes)
        except InvalidTag:
            LOGGER.debug("Rejected token that failed authentication")
            return None

        try:
            payload = AuthActionToken.from_json(plaintext.decode("utf-8"))
        except UnicodeDecodeError:
            return None
        if payload is None or not self._is_valid(payload, expected_purpose):
            return None
        return payload

    def _is_valid(self, payload: AuthActionToken, expected_purpose: AuthTokenPurpose) -> bool:
        if payload.purpose != expected_purpose:
            return False
        if not is_utc(payload.expires_at_utc):
            return False
        if self._clock() >= payload.expires_at_utc:
            return False
        if payload.user_id <= 0:
            return False
        if payload.purpose is AuthTokenPurpose.EMAIL_CHANGE:
            return bool(payload.new_email and payload.new_email.strip())
        return payload.new_email is None
