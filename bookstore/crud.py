"""Identity store operations for users and roles.

This module contains database interaction logic for the identity
entities, isolated from services and FastAPI route handlers.
"""

import logging

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import ConflictError

LOGGER = logging.getLogger(__name__)


class UserRepository:
    """Persistence for users, roles and role assignments.

    Every user lookup excludes soft-deleted users. Normalized fields are
    compared exactly, so callers must normalize before querying.
    """

    def __init__(self, db: Session):
        self.db = db

    def add_user(self, user: models.User) -> models.User:
        """
        Persist a new user together with its role assignments.

        Args:
            user (User): User entity to insert.

        Raises:
            ConflictError: If the username or email is already taken.

        Returns:
            User: The stored user with its identifier assigned.
        """
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("A user with the provided username or email already exists.") from exc
        self.db.refresh(user)
        return user

    def get_user_by_id(self, user_id: int) -> models.User | None:
        """
        Retrieve a user by primary key.

        Args:
            user_id (int): User identifier.

        Returns:
            User | None: User if found, otherwise ``None``.
        """
        return self.db.execute(
            select(models.User).where(
                models.User.id == user_id,
                models.User.is_deleted.is_(False),
            )
        ).scalar_one_or_none()

    def get_user_by_normalized_username(self, normalized_username: str) -> models.User | None:
        """Retrieve a user by normalized username."""
        return self.db.execute(
            select(models.User).where(
                models.User.normalized_username == normalized_username,
                models.User.is_deleted.is_(False),
            )
        ).scalar_one_or_none()

    def get_user_by_normalized_email(self, normalized_email: str) -> models.User | None:
        """Retrieve a user by normalized email."""
        return self.db.execute(
            select(models.User).where(
                models.User.normalized_email == normalized_email,
                models.User.is_deleted.is_(False),
            )
        ).scalar_one_or_none()

    def update_user(self, user: models.User) -> models.User | None:
        """
        Persist changes made to a user.

        Args:
            user (User): User with modified attributes.

        Returns:
            User | None: Updated user, or ``None`` if it no longer exists.
        """
        if user.id is None or self.get_user_by_id(user.id) is None:
            return None
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def get_role_by_name(self, name: str) -> models.Role | None:
        """Retrieve a role by its unique name."""
        return self.db.execute(
            select(models.Role).where(models.Role.name == name)
        ).scalar_one_or_none()

    def soft_delete(self, user: models.User) -> models.User:
        """
        Mark a user as deleted and drop all of its refresh tokens.

        Both changes are committed together.

        Args:
            user (User): User to delete.

        Returns:
            User: The soft-deleted user.
        """
        user.is_deleted = True
        user.updated_at = models.utcnow()
        self.db.add(user)
        self.db.execute(
            delete(models.RefreshToken).where(models.RefreshToken.user_id == user.id)
        )
        self.db.commit()
        LOGGER.info("User soft-deleted", extra={"user_id": user.id})
        return user
