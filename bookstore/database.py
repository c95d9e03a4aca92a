"""Database configuration and session management.

This module initializes the SQLAlchemy engine, session factory,
and declarative base for the identity store, and provides a database
session dependency for FastAPI routes.
"""

import logging

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from .core import get_settings

LOGGER = logging.getLogger(__name__)

settings = get_settings()


engine = create_engine(
    settings.DATABASE_URL,
    future=True,
)
"""SQLAlchemy engine bound to the configured database URL."""


SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)
"""Factory for database sessions."""


Base = declarative_base()
"""Declarative base class for SQLAlchemy models."""


DEFAULT_ROLES = ("admin", "user")


def get_db():
    """
    Provide a SQLAlchemy database session.

    This function is used as a FastAPI dependency.
    It yields a database session and ensures it is
    properly closed after the request is completed.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def seed_roles(db: Session) -> None:
    """
    Insert the reference roles that registration relies on.

    Existing roles are left untouched, so the function can run on
    every start.

    Args:
        db (Session): Database session.
    """
    from .models import Role

    existing = set(db.scalars(select(Role.name)).all())
    missing = [name for name in DEFAULT_ROLES if name not in existing]
    for name in missing:
        db.add(Role(name=name))
    if missing:
        db.commit()
        LOGGER.info("Seeded roles: %s", ", ".join(missing))
