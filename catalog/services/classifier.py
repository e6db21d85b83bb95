"""
Error classification - maps raw failures onto the AppError taxonomy.

Typed third-party exceptions (httpx, SQLAlchemy, json, pydantic) are mapped
directly; anything else falls back to keyword matching on the message.
"""

import asyncio
import json

import httpx
import pydantic
from sqlalchemy.exc import SQLAlchemyError

from catalog.services.errors import (
    AppError,
    NetworkError,
    StorageError,
    UnknownError,
    ValidationError,
)

# Client-permanent conditions, never retried
NON_RECOVERABLE_STATUS = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
}

NON_RECOVERABLE_KEYWORDS = ("unauthorized", "forbidden", "not found")


def http_status_error(
    status_code: int, reason: str = "", service_id: str | None = None
) -> NetworkError:
    """Build the network error for a non-2xx response."""
    if status_code in NON_RECOVERABLE_STATUS:
        code = NON_RECOVERABLE_STATUS[status_code]
        message = f"HTTP {status_code}: {code.replace('_', ' ').lower()}"
        return NetworkError(
            message,
            code=code,
            recoverable=False,
            status_code=status_code,
            service_id=service_id,
        )

    if status_code >= 500:
        message = f"HTTP {status_code}: server error {reason}".rstrip()
        code = "SERVER_ERROR"
    else:
        message = f"HTTP {status_code}: {reason}".rstrip(": ")
        code = f"HTTP_{status_code}"

    return NetworkError(
        message, code=code, status_code=status_code, service_id=service_id
    )


def is_recoverable(error: BaseException) -> bool:
    """Check whether an error is eligible for retry."""
    if isinstance(error, AppError):
        return error.recoverable

    message = str(error).lower()
    return not any(keyword in message for keyword in NON_RECOVERABLE_KEYWORDS)


def classify_error(error: BaseException, service_id: str | None = None) -> AppError:
    """
    Map any exception onto the AppError taxonomy.

    Args:
        error: The raw exception
        service_id: Upstream name attached to network errors

    Returns:
        The error itself if already classified, otherwise a new AppError
        whose ``__cause__`` is the original exception.
    """
    if isinstance(error, AppError):
        return error

    classified = _classify(error, service_id)
    classified.__cause__ = error
    return classified


def _classify(error: BaseException, service_id: str | None) -> AppError:
    if isinstance(error, httpx.HTTPStatusError):
        return http_status_error(
            error.response.status_code,
            error.response.reason_phrase,
            service_id=service_id,
        )

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        return NetworkError(
            f"Request timeout: {error}".rstrip(": "),
            code="TIMEOUT",
            service_id=service_id,
        )

    if isinstance(error, (httpx.RequestError, ConnectionError)):
        return NetworkError(
            f"Network error: {error}",
            code="NETWORK_ERROR",
            service_id=service_id,
        )

    if isinstance(error, (json.JSONDecodeError, pydantic.ValidationError)):
        return ValidationError(
            f"Invalid response: {error}",
            code="INVALID_RESPONSE",
        )

    if isinstance(error, (SQLAlchemyError, OSError)):
        return StorageError(f"Storage failure: {error}", code="STORAGE_ERROR")

    return _classify_by_message(error, service_id)


def _classify_by_message(error: BaseException, service_id: str | None) -> AppError:
    message = str(error) or type(error).__name__
    lower_message = message.lower()
    recoverable = is_recoverable(error)

    if any(word in lower_message for word in ("network", "fetch", "timeout")):
        return NetworkError(message, recoverable=recoverable, service_id=service_id)
    if "storage" in lower_message:
        return StorageError(message, recoverable=recoverable)
    if "invalid" in lower_message or "validation" in lower_message:
        return ValidationError(message, recoverable=recoverable)
    return UnknownError(message, recoverable=recoverable)
