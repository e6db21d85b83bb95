"""
Service layer exceptions.

Every failure that crosses a component boundary is an AppError carrying a
taxonomy tag, a recoverability flag and a derived user-facing message.
"""

from enum import Enum


class ErrorType(str, Enum):
    """Closed error taxonomy."""

    NETWORK = "network"
    STORAGE = "storage"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


def get_user_message(message: str, error_type: ErrorType) -> str:
    """Convert a technical error message to text suitable for end users."""
    lower_message = message.lower()

    if error_type == ErrorType.NETWORK:
        if "timeout" in lower_message or "timed out" in lower_message:
            return "Connection timed out. Please check your internet connection and try again."
        if "server" in lower_message or "circuit" in lower_message:
            return "Server is temporarily unavailable. Please try again later."
        if "network" in lower_message or "connect" in lower_message:
            return "Unable to connect to the internet. Please check your connection."
        return "Network error occurred. Please check your connection and try again."

    if error_type == ErrorType.STORAGE:
        return "Unable to save your preferences. Please try again."

    if error_type == ErrorType.VALIDATION:
        return "Invalid data received. Please refresh and try again."

    if "not found" in lower_message:
        return "The requested item could not be found."
    if "unauthorized" in lower_message or "forbidden" in lower_message:
        return "You are not authorized to perform this action."
    return "An unexpected error occurred. Please try again."


class AppError(Exception):
    """Base exception for all classified failures."""

    error_type: ErrorType = ErrorType.UNKNOWN

    def __init__(
        self,
        message: str,
        code: str | None = None,
        recoverable: bool = True,
        status_code: int | None = None,
        service_id: str | None = None,
    ):
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.status_code = status_code
        self.service_id = service_id
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return get_user_message(self.message, self.error_type)

    def to_dict(self) -> dict:
        return {
            "type": self.error_type.value,
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "recoverable": self.recoverable,
            "user_message": self.user_message,
        }


class UnknownError(AppError):
    """Failure that fits no other category."""

    pass


class NetworkError(AppError):
    """Connectivity failure or non-2xx response."""

    error_type = ErrorType.NETWORK


class StorageError(AppError):
    """Persistence read/write failed."""

    error_type = ErrorType.STORAGE


class ValidationError(AppError):
    """Malformed payload or invalid field."""

    error_type = ErrorType.VALIDATION


class RequestTimeoutError(NetworkError):
    """Request timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s",
            code="TIMEOUT",
            service_id=service_id,
        )


class CircuitOpenError(NetworkError):
    """Circuit breaker is open, request blocked."""

    def __init__(self, service_id: str, reset_after_seconds: float):
        self.reset_after_seconds = reset_after_seconds
        super().__init__(
            f"Circuit breaker open for service '{service_id}', "
            f"retry after {reset_after_seconds:.1f}s",
            code="CIRCUIT_OPEN",
            service_id=service_id,
        )
