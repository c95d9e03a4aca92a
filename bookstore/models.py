"""Database models for the identity store.

This module defines SQLAlchemy ORM models for users, roles, role
assignments and refresh tokens.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class User(Base):
    """
    SQLAlchemy model representing an application user.

    Username and email are stored both raw and normalized (trimmed,
    upper-cased); the normalized forms are unique among users that are
    not soft-deleted.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index(
            "uq_users_normalized_username",
            "normalized_username",
            unique=True,
            sqlite_where=text("is_deleted = 0"),
            postgresql_where=text("is_deleted = false"),
        ),
        Index(
            "uq_users_normalized_email",
            "normalized_email",
            unique=True,
            sqlite_where=text("is_deleted = 0"),
            postgresql_where=text("is_deleted = false"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False)
    normalized_username = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    normalized_email = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    is_email_confirmed = Column(Boolean, default=False, nullable=False)
    email_confirmation_sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    #: Role assignments owned by the user
    user_roles = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    #: Refresh tokens issued to the user
    tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
    )


class Role(Base):
    """
    SQLAlchemy model representing a role such as ``admin`` or ``user``.

    Roles are reference data seeded at start-up.
    """

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)

    user_roles = relationship("UserRole", back_populates="role")


class UserRole(Base):
    """Association between a user and a role (composite primary key)."""

    __tablename__ = "user_roles"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    role_id = Column(
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    user = relationship("User", back_populates="user_roles")
    role = relationship("Role", back_populates="user_roles")


class RefreshToken(Base):
    """
    SQLAlchemy model representing a refresh token of a user session.

    Only the hash of the token is stored. ``replaced_by_token_hash``
    links a rotated token to its successor.
    """

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token_hash = Column(String(255), unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    replaced_by_token_hash = Column(String(255), nullable=True)
    created_by_ip = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    user = relationship("User", back_populates="tokens")
