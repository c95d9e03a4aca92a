"""Account registration and email confirmation: service, wiring and routes."""

import logging
import re
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi_limiter.depends import RateLimiter
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import schemas
from .core import get_settings, get_mail_config
from .crud import UserRepository
from .database import get_db
from .errors import ConfigurationError, InvalidArgumentError, ConflictError, InvalidTokenError, NotFoundError
from .links import AuthLinkBuilder
from .mail import EmailNotifier
from .models import User, UserRole
from .tokens import AuthTokenCodec, AuthTokenPurpose

LOGGER = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
router = APIRouter(prefix="/auth", tags=["auth"])

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", re.IGNORECASE)
PASSWORD_PATTERN = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d]{8,}$")

USER_ROLE = "user"
ADMIN_ROLE = "admin"


def normalize(value: str) -> str:
    """Normalized identity form: trimmed and upper-cased."""
    return value.strip().upper()


class PasswordHasher:
    """Password hashing capability backed by passlib."""

    def hash(self, user: User, password: str) -> str:
        """Hash ``password`` for ``user``."""
        return pwd_context.hash(password)

    def verify(self, hashed_password: str, password: str) -> bool:
        """Compare a plain password with its hashed value."""
        return pwd_context.verify(password, hashed_password)


def validate_registration(username: str | None, email: str | None, password: str | None) -> None:
    """
    Check registration input shape, email format and password rules.

    Raises:
        InvalidArgumentError: On the first rule that fails.
    """
    if not username or not email or not password:
        raise InvalidArgumentError("Username, Email, and Password are required.")
    if not EMAIL_PATTERN.match(email):
        raise InvalidArgumentError("Invalid email format.")
    if not PASSWORD_PATTERN.match(password):
        raise InvalidArgumentError(
            "Password must be at least 8 characters long and contain both letters and numbers."
        )


class AuthService:
    """Registration and email confirmation flows.

    Args:
        users: Identity store.
        hasher: Password hashing capability.
        tokens: Account action token codec.
        links: Confirmation link builder.
        notifier: Outgoing email sender.
        token_lifetime: Validity of email confirmation tokens.
        clock: Callable returning the current aware UTC time.
    """

    def __init__(
        self,
        users: UserRepository,
        hasher: PasswordHasher,
        tokens: AuthTokenCodec,
        links: AuthLinkBuilder,
        notifier: EmailNotifier,
        token_lifetime: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.users = users
        self.hasher = hasher
        self.tokens = tokens
        self.links = links
        self.notifier = notifier
        self.token_lifetime = token_lifetime
        self.clock = clock

    async def register_user(self, username: str, email: str, password: str) -> int:
        """Register an account with the ``user`` role and return its id."""
        return await self._register(username, email, password, USER_ROLE)

    async def register_admin(self, username: str, email: str, password: str) -> int:
        """Register an account with the ``admin`` role and return its id."""
        return await self._register(username, email, password, ADMIN_ROLE)

    async def _register(self, username: str, email: str, password: str, role_name: str) -> int:
        """
        Validate, persist and send the confirmation email.

        The user is committed before the email goes out; a delivery
        failure propagates but the account stays registered.

        Raises:
            InvalidArgumentError: If the input is malformed.
            ConflictError: If the username or email is taken.
            ConfigurationError: If the role has not been seeded.
        """
        validate_registration(username, email, password)

        normalized_username = normalize(username)
        normalized_email = normalize(email)
        self._ensure_user_does_not_exist(normalized_username, normalized_email)

        user = self._create_user_entity(username, normalized_username, normalized_email, password)
        self._assign_role(user, role_name)

        created = self.users.add_user(user)
        LOGGER.info("Registered %s account", role_name, extra={"user_id": created.id})

        await self._send_confirmation(created)
        return created.id

    def confirm_email(self, token: str) -> None:
        """
        Mark the account referenced by ``token`` as email-confirmed.

        Confirming an already confirmed account is a no-op.

        Raises:
            InvalidArgumentError: If ``token`` is blank.
            InvalidTokenError: If the token fails validation.
            NotFoundError: If the user no longer exists.
        """
        if not token:
            raise InvalidArgumentError("Token is required.")

        payload = self.tokens.try_validate_token(token, AuthTokenPurpose.EMAIL_CONFIRMATION)
        if payload is None:
            raise InvalidTokenError()

        user = self.users.get_user_by_id(payload.user_id)
        if user is None:
            raise NotFoundError("User not found.")
        if user.is_email_confirmed:
            return

        user.is_email_confirmed = True
        user.updated_at = self.clock()
        self.users.update_user(user)
        LOGGER.info("Email confirmed", extra={"user_id": user.id})

    async def resend_confirmation(self, email: str) -> None:
        """
        Send a fresh confirmation link to an unconfirmed account.

        Raises:
            InvalidArgumentError: If ``email`` is blank.
            NotFoundError: If no account uses ``email``.
        """
        if not email or not email.strip():
            raise InvalidArgumentError("Email is required.")
        user = self.users.get_user_by_normalized_email(normalize(email))
        if user is None:
            raise NotFoundError("User not found.")
        if user.is_email_confirmed:
            return
        await self._send_confirmation(user)

    async def _send_confirmation(self, user: User) -> None:
        token = self.tokens.create_token(
            AuthTokenPurpose.EMAIL_CONFIRMATION,
            user.id,
            self.clock() + self.token_lifetime,
        )
        link = self.links.email_confirmation_link(token)
        await self.notifier.send_email_confirmation(user.email, link)

        user.email_confirmation_sent_at = self.clock()
        self.users.update_user(user)

    def _ensure_user_does_not_exist(self, normalized_username: str, normalized_email: str) -> None:
        if self.users.get_user_by_normalized_username(normalized_username) is not None:
            raise ConflictError("A user with the provided username already exists.")
        if self.users.get_user_by_normalized_email(normalized_email) is not None:
            raise ConflictError("A user with the provided email already exists.")

    def _create_user_entity(
        self, username: str, normalized_username: str, normalized_email: str, password: str
    ) -> User:
        now = self.clock()
        user = User(
            username=username,
            normalized_username=normalized_username,
            email=normalized_email,
            normalized_email=normalized_email,
            is_active=True,
            is_deleted=False,
            is_email_confirmed=False,
            created_at=now,
            updated_at=now,
        )
        user.password_hash = self.hasher.hash(user, password)
        return user

    def _assign_role(self, user: User, role_name: str) -> None:
        role = self.users.get_role_by_name(role_name)
        if role is None:
            raise ConfigurationError(f"Role '{role_name}' not found.")
        if any(assignment.role_id == role.id for assignment in user.user_roles):
            return
        user.user_roles.append(UserRole(role_id=role.id, role=role))


@lru_cache()
def get_token_codec() -> AuthTokenCodec:
    """Process-wide token codec built from settings."""
    return AuthTokenCodec(get_settings().TOKEN_SECRET_KEY)


@lru_cache()
def get_link_builder() -> AuthLinkBuilder:
    """Process-wide link builder built from settings."""
    return AuthLinkBuilder(get_settings().BASE_URL)


@lru_cache()
def get_email_notifier() -> EmailNotifier:
    """Process-wide email notifier built from settings."""
    return EmailNotifier(get_mail_config())


def get_auth_service(
    db: Session = Depends(get_db),
    tokens: AuthTokenCodec = Depends(get_token_codec),
    links: AuthLinkBuilder = Depends(get_link_builder),
    notifier: EmailNotifier = Depends(get_email_notifier),
) -> AuthService:
    """Assemble the auth service for one request."""
    return AuthService(
        users=UserRepository(db),
        hasher=PasswordHasher(),
        tokens=tokens,
        links=links,
        notifier=notifier,
        token_lifetime=timedelta(hours=get_settings().EMAIL_TOKEN_LIFETIME_HOURS),
    )


registration_limiter = RateLimiter(
    times=get_settings().REGISTER_RATE_LIMIT_TIMES,
    seconds=get_settings().REGISTER_RATE_LIMIT_SECONDS,
)


@router.post(
    "/register",
    response_model=schemas.RegisteredUser,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(registration_limiter)],
)
async def register_user(
    user_in: schemas.UserRegister,
    service: AuthService = Depends(get_auth_service),
):
    """Register a new user account and send the confirmation email."""
    user_id = await service.register_user(user_in.username, user_in.email, user_in.password)
    return schemas.RegisteredUser(id=user_id)


@router.post(
    "/admin/register",
    response_model=schemas.RegisteredUser,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(registration_limiter)],
)
async def register_admin(
    user_in: schemas.UserRegister,
    service: AuthService = Depends(get_auth_service),
):
    """Register a new administrator account and send the confirmation email."""
    user_id = await service.register_admin(user_in.username, user_in.email, user_in.password)
    return schemas.RegisteredUser(id=user_id)


@router.get("/confirm-email", status_code=status.HTTP_204_NO_CONTENT)
def confirm_email(
    token: str = Query(""),
    service: AuthService = Depends(get_auth_service),
):
    """Confirm an email address using the token from the confirmation link."""
    service.confirm_email(token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/confirm-email/resend",
    response_model=schemas.Message,
    status_code=status.HTTP_202_ACCEPTED,
    dependencies=[Depends(registration_limiter)],
)
async def resend_confirmation(
    request: schemas.EmailRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Resend the confirmation email to an unconfirmed account."""
    await service.resend_confirmation(request.email)
    return schemas.Message(message="Confirmation email sent if the account is unconfirmed")
