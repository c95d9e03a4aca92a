"""
Main application entry point for the BookShop API.

This module initializes the FastAPI application, sets up logging and
CORS, prepares the identity store, initializes the rate limiter with a
Redis backend, and includes routers for authentication and the book
catalog.
"""

import logging
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fakeredis.aioredis import FakeRedis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi_limiter import FastAPILimiter
from redis.exceptions import RedisError

from bookstore.auth import router as auth_router
from bookstore.books import router as books_router
from bookstore.core import get_settings
from bookstore.database import Base, SessionLocal, engine, seed_roles
from bookstore.errors import ServiceError, service_error_handler
from bookstore.logging_config import setup_logging
from bookstore import models  # noqa: F401  registers tables on Base

LOGGER = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application startup and shutdown.

    Creates tables, seeds roles and initializes the rate limiter. Falls
    back to FakeRedis if Redis is unavailable (e.g. offline development).
    """
    setup_logging(settings.LOG_LEVEL)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_roles(db)
    finally:
        db.close()

    redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
    try:
        await FastAPILimiter.init(redis_client)
    except (RedisError, OSError):
        LOGGER.warning("Redis unavailable at %s, using in-memory rate limiting", settings.REDIS_URL)
        await FastAPILimiter.init(FakeRedis(decode_responses=True))

    yield

    await FastAPILimiter.close()


# Initialize FastAPI application
app = FastAPI(title="BookShop API", lifespan=lifespan)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ServiceError, service_error_handler)

app.include_router(auth_router)
app.include_router(books_router)


@app.get("/")
def root():
    """
    Root endpoint for the API.

    Returns:
        dict: JSON message directing users to the Swagger UI.
    """
    return {"msg": "BookShop API. Visit /docs for Swagger UI"}
