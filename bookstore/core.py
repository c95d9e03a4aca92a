"""Application configuration and settings management.

This module defines the application settings loaded from environment
variables and provides helper functions for accessing cached settings
and email configuration.
"""

from functools import lru_cache
from typing import List

from fastapi_mail import ConnectionConfig
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Identity store connection string (SQLAlchemy URL).
        MONGODB_URL: Catalog store connection string.
        MONGODB_DB: Catalog database name.
        MONGODB_COLLECTION: Collection holding book documents.
        TOKEN_SECRET_KEY: Root key material for account action tokens.
        EMAIL_TOKEN_LIFETIME_HOURS: Lifetime of email confirmation tokens.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        REDIS_URL: Redis connection URL for rate limiting.
        REGISTER_RATE_LIMIT_TIMES: Registrations allowed per window.
        REGISTER_RATE_LIMIT_SECONDS: Registration rate limit window.
        SMTP_FROM_EMAIL: Sender email address for outgoing emails.
        SMTP_USER: SMTP username.
        SMTP_PASSWORD: SMTP password.
        SMTP_PORT: SMTP server port.
        SMTP_HOST: SMTP server host.
        BASE_URL: Public base address used in confirmation links.
        LOG_LEVEL: Root logger level.
    """

    DATABASE_URL: str = "sqlite:///./bookstore.db"
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DB: str = "bookstore"
    MONGODB_COLLECTION: str = "books"
    TOKEN_SECRET_KEY: str = "dev-secret"
    EMAIL_TOKEN_LIFETIME_HOURS: int = 24
    ALLOWED_ORIGINS: List[str] = ["*"]
    REDIS_URL: str = "redis://redis:6379"
    REGISTER_RATE_LIMIT_TIMES: int = 5
    REGISTER_RATE_LIMIT_SECONDS: int = 60
    SMTP_FROM_EMAIL: str = "noreply@example.com"
    SMTP_USER: str = "user"
    SMTP_PASSWORD: str = "password"
    SMTP_PORT: int = 1025
    SMTP_HOST: str = "localhost"
    BASE_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"

    class Config:
        """Pydantic configuration for loading environment variables."""

        env_file = ".env"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()


def get_mail_config() -> ConnectionConfig:
    """Create and return email configuration for FastAPI-Mail.

    Returns:
        ConnectionConfig: Configured email connection settings.
    """

    settings = get_settings()
    return ConnectionConfig(
        MAIL_USERNAME=settings.SMTP_USER,
        MAIL_PASSWORD=settings.SMTP_PASSWORD,
        MAIL_FROM=settings.SMTP_FROM_EMAIL,
        MAIL_PORT=settings.SMTP_PORT,
        MAIL_SERVER=settings.SMTP_HOST,
        MAIL_FROM_NAME="BookShop",
        MAIL_STARTTLS=True,
        MAIL_SSL_TLS=False,
        USE_CREDENTIALS=True,
    )
