"""Service error taxonomy and its HTTP mapping.

Services raise these errors and let them propagate untouched; the
handler registered on the application turns each kind into a status
code and a JSON body.
"""

import logging
from enum import Enum

from fastapi import Request, status
from fastapi.responses import JSONResponse

LOGGER = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Kinds of failures a service operation can report."""

    INVALID_ARGUMENT = "invalid_argument"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INVALID_TOKEN = "invalid_token"
    CONFIGURATION = "configuration"
    OPERATION_FAILED = "operation_failed"


STATUS_BY_KIND = {
    ErrorKind.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_TOKEN: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFIGURATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.OPERATION_FAILED: status.HTTP_409_CONFLICT,
}


class ServiceError(Exception):
    """Base class for failures reported by services.

    Attributes:
        kind: Category of the failure.
        message: Human readable description safe to return to clients.
    """

    kind = ErrorKind.OPERATION_FAILED
    default_message = "Operation failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidArgumentError(ServiceError):
    """Malformed or missing input the caller can correct."""

    kind = ErrorKind.INVALID_ARGUMENT
    default_message = "Invalid argument."


class ConflictError(ServiceError):
    """Uniqueness or concurrent mutation violation."""

    kind = ErrorKind.CONFLICT
    default_message = "Conflict."


class NotFoundError(ServiceError):
    """Referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND
    default_message = "Not found."


class InvalidTokenError(ServiceError):
    """Account action token failed validation.

    The message never says why the token was rejected.
    """

    kind = ErrorKind.INVALID_TOKEN
    default_message = "Invalid or expired token."


class ConfigurationError(ServiceError):
    """Required settings or seed data are missing."""

    kind = ErrorKind.CONFIGURATION
    default_message = "Service is misconfigured."


class OperationFailedError(ServiceError):
    """The store accepted the request but the mutation did not apply."""

    kind = ErrorKind.OPERATION_FAILED


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Translate a :class:`ServiceError` into a JSON response."""
    status_code = STATUS_BY_KIND[exc.kind]
    extra = {
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
        "error_kind": exc.kind.value,
    }
    if status_code >= 500 or exc.kind is ErrorKind.OPERATION_FAILED:
        LOGGER.error("%s: %s", type(exc).__name__, exc.message, extra=extra)
    else:
        LOGGER.warning("%s: %s", type(exc).__name__, exc.message, extra=extra)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": exc.kind.value},
    )
