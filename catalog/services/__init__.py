"""
Service layer - resilient data access for the product catalog.

Provides:
- RemoteDataClient: Product API client with circuit breaker, retry and cache
- CircuitBreaker: Stops calling a failing upstream
- RetryPolicy: Bounded exponential backoff
- ResponseCache: Time-boxed last-good-value fallback
- LocalPersistenceStore: Durable favorites and theme
- StateReconciler / FavoritesManager: In-memory favorites synced to storage
"""

from catalog.services.errors import (
    AppError,
    CircuitOpenError,
    ErrorType,
    NetworkError,
    RequestTimeoutError,
    StorageError,
    UnknownError,
    ValidationError,
)
from catalog.services.classifier import classify_error, is_recoverable
from catalog.services.reporting import (
    ErrorReport,
    ErrorReporter,
    LoggingErrorReporter,
)
from catalog.services.retry import RetryPolicy
from catalog.services.cache import CacheEntry, ResponseCache
from catalog.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from catalog.services.client import FetchResult, RemoteDataClient, ServiceConfig
from catalog.services.storage import LocalPersistenceStore
from catalog.services.reconciler import ReconcilePlan, ReconcileResult, StateReconciler
from catalog.services.favorites import FavoritesManager

__all__ = [
    # Errors
    "AppError",
    "CircuitOpenError",
    "ErrorType",
    "NetworkError",
    "RequestTimeoutError",
    "StorageError",
    "UnknownError",
    "ValidationError",
    "classify_error",
    "is_recoverable",
    # Reporting
    "ErrorReport",
    "ErrorReporter",
    "LoggingErrorReporter",
    # Retry
    "RetryPolicy",
    # Cache
    "CacheEntry",
    "ResponseCache",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    # Client
    "FetchResult",
    "RemoteDataClient",
    "ServiceConfig",
    # Persistence
    "LocalPersistenceStore",
    "ReconcilePlan",
    "ReconcileResult",
    "StateReconciler",
    "FavoritesManager",
]
