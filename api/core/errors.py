"""
Application error taxonomy and its HTTP mapping.

Feature code raises these instead of `HTTPException` so that services and
repositories stay independent of FastAPI. `register_exception_handlers`
turns them into JSON responses:

- 401/400/404/409/500 -> {"error": ..., "message": ...}
- 403                  -> {"error": ...}
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import config

logger = logging.getLogger(__name__)


class AppError(RuntimeError):
    status_code = 500
    error = "Internal server error"
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, *, error: str | None = None) -> None:
        self.message = message or self.default_message
        if error is not None:
            self.error = error
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"error": self.error, "message": self.message}


class AuthenticationError(AppError):
    status_code = 401
    error = "Authentication failed"
    default_message = "Unable to verify token"


class MissingToken(AuthenticationError):
    error = "Authentication required"
    default_message = "No token provided"


class TokenExpired(AuthenticationError):
    error = "Token expired"
    default_message = "Please log in again"


class InvalidToken(AuthenticationError):
    error = "Invalid token"
    default_message = "Token verification failed"


class UserNotFound(AuthenticationError):
    error = "Invalid token"
    default_message = "User not found"


class AuthorizationError(AppError):
    status_code = 403
    error = "Admin access required"

    def to_body(self) -> dict:
        return {"error": self.error}


class ValidationError(AppError):
    status_code = 400
    error = "Validation failed"
    default_message = "Invalid input"


class PayloadTooLarge(AppError):
    status_code = 413
    error = "Payload too large"
    default_message = "Upload exceeds the size limit"


class NotFoundError(AppError):
    status_code = 404
    error = "Not found"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    error = "Conflict"
    default_message = "Resource already exists"


class UpstreamError(AppError):
    # Never surfaced as 5xx: an upstream IdP failure means we cannot authenticate.
    status_code = 401
    error = "Authentication failed"
    default_message = "Identity provider unavailable"


class PersistenceError(AppError):
    status_code = 500
    error = "Internal server error"
    default_message = "Something went wrong"


async def _app_error_handler(_: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed error=%s message=%s", exc.error, exc.message)
        body = {
            "error": exc.error,
            "message": exc.message if config.is_development() else PersistenceError.default_message,
        }
        return JSONResponse(status_code=exc.status_code, content=body)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _unique_violation_handler(_: Request, exc: asyncpg.UniqueViolationError) -> JSONResponse:
    logger.info("unique_violation constraint=%s", getattr(exc, "constraint_name", None))
    return JSONResponse(
        status_code=ConflictError.status_code,
        content={"error": ConflictError.error, "message": ConflictError.default_message},
    )


async def _postgres_error_handler(_: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    logger.exception("database_error sqlstate=%s", getattr(exc, "sqlstate", None), exc_info=exc)
    message = str(exc) if config.is_development() else PersistenceError.default_message
    return JSONResponse(
        status_code=PersistenceError.status_code,
        content={"error": PersistenceError.error, "message": message},
    )


async def _driver_error_handler(_: Request, exc: asyncpg.InterfaceError) -> JSONResponse:
    # Client-side driver failures (e.g. a value that does not fit the column type).
    logger.exception("database_driver_error error=%s", type(exc).__name__, exc_info=exc)
    message = str(exc) if config.is_development() else PersistenceError.default_message
    return JSONResponse(
        status_code=PersistenceError.status_code,
        content={"error": PersistenceError.error, "message": message},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(asyncpg.UniqueViolationError, _unique_violation_handler)
    app.add_exception_handler(asyncpg.PostgresError, _postgres_error_handler)
    app.add_exception_handler(asyncpg.InterfaceError, _driver_error_handler)
