"""
RemoteDataClient - async product API client with resilience patterns.

Combines:
- CircuitBreaker gating every fetch
- RetryPolicy with exponential backoff inside the breaker
- ResponseCache as last-good-value fallback
- Per-record payload validation (bad records are dropped, not fatal)
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

import httpx
import pydantic
from loguru import logger

from catalog.models import Product
from catalog.services.cache import ResponseCache
from catalog.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)
from catalog.services.classifier import http_status_error
from catalog.services.errors import (
    AppError,
    NetworkError,
    RequestTimeoutError,
    ValidationError,
)
from catalog.services.reporting import ErrorReporter, LoggingErrorReporter
from catalog.services.retry import RetryPolicy
from catalog.settings import Settings

T = TypeVar("T")


@dataclass
class FetchResult(Generic[T]):
    """Result from a product fetch."""

    data: T
    from_cache: bool = False
    attempts: int = 0
    error: AppError | None = None  # Suppressed failure when served from cache
    service_id: str | None = None


@dataclass
class ServiceConfig:
    """Configuration for the product upstream."""

    service_id: str = "products"
    base_url: str = "https://fakestoreapi.com"
    timeout: float = 10.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_jitter: bool = False
    failure_threshold: int = 5
    reset_timeout: float = 60.0
    cache_ttl: float = 300.0
    headers: dict[str, str] | None = None

    @classmethod
    def from_settings(cls, settings: Settings, service_id: str = "products"):
        return cls(
            service_id=service_id,
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_base_delay=settings.retry_base_delay,
            retry_jitter=settings.retry_jitter,
            failure_threshold=settings.circuit_failure_threshold,
            reset_timeout=settings.circuit_reset_timeout,
            cache_ttl=settings.cache_ttl,
        )


class RemoteDataClient:
    """
    Product API client with circuit breaker, retry and cache fallback.

    Usage:
        async with RemoteDataClient(ServiceConfig.from_settings(settings)) as client:
            products = await client.fetch_products()

    Breaker and cache state belong to the instance; callers that need to
    share them share the client.
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        reporter: ErrorReporter | None = None,
        breakers: CircuitBreakerRegistry | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or ServiceConfig()
        self._reporter = reporter or LoggingErrorReporter()

        self._breakers = breakers or CircuitBreakerRegistry(
            CircuitBreakerConfig(
                failure_threshold=self.config.failure_threshold,
                reset_timeout=self.config.reset_timeout,
            ),
            clock=clock,
        )
        self._retry = RetryPolicy(
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay,
            jitter=self.config.retry_jitter,
        )
        self._cache: ResponseCache[tuple[Product, ...]] = ResponseCache(
            ttl=self.config.cache_ttl,
            name=self.config.service_id,
            clock=clock,
        )

        # HTTP client (lazy initialization unless injected)
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breakers.get(self.config.service_id)

    @property
    def cache(self) -> ResponseCache[tuple[Product, ...]]:
        return self._cache

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
            )
        return self._http_client

    async def fetch_products(self) -> list[Product]:
        """
        Fetch the normalized product list.

        Raises:
            AppError: If every attempt failed and no fresh cache entry exists
        """
        result = await self.fetch()
        return result.data

    async def fetch_product(self, product_id: int) -> Product | None:
        """Look up a single product, using a fresh cached list when there is one."""
        products = self._cache.get()
        if products is None:
            products = await self.fetch_products()
        return next((p for p in products if p.id == product_id), None)

    async def fetch(self) -> FetchResult[list[Product]]:
        """Fetch products, falling back to the cache when the upstream fails."""
        service_id = self.config.service_id
        attempts = 0

        async def attempt() -> list[Any]:
            nonlocal attempts
            attempts += 1
            return await self._request_products()

        async def with_retry() -> list[Any]:
            return await self._retry.run(
                attempt, context="Fetch products", service_id=service_id
            )

        try:
            raw = await self.breaker.execute(with_retry)
        except AppError as error:
            cached = self._cache.get()
            if cached is not None:
                logger.warning(
                    f"Request to {service_id} failed, using cached products: {error}"
                )
                self._reporter.report(
                    error, "Fetch products", level="low", fallback="cache"
                )
                return FetchResult(
                    data=list(cached),
                    from_cache=True,
                    attempts=attempts,
                    error=error,
                    service_id=service_id,
                )

            logger.error(f"Request to {service_id} failed with no cache: {error}")
            self._reporter.report(error, "Fetch products", level="high")
            raise

        products = self._transform_response(raw)
        # Cache a snapshot so callers mutating their list cannot alter it
        self._cache.set(tuple(products))
        return FetchResult(data=products, attempts=attempts, service_id=service_id)

    async def _request_products(self) -> list[Any]:
        """Execute one bounded-time GET and return the raw JSON array."""
        client = await self._get_http_client()
        service_id = self.config.service_id
        url = f"{self.config.base_url.rstrip('/')}/products"
        headers = {"Accept": "application/json", **(self.config.headers or {})}

        try:
            # Cancels the in-flight request once the deadline passes
            response = await asyncio.wait_for(
                client.get(url, headers=headers), timeout=self.config.timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(service_id, self.config.timeout) from e
        except httpx.RequestError as e:
            raise NetworkError(
                f"Network error: {e}", code="NETWORK_ERROR", service_id=service_id
            ) from e

        if not response.is_success:
            raise http_status_error(
                response.status_code, response.reason_phrase, service_id=service_id
            )

        if not response.content:
            raise ValidationError("Empty response body", code="INVALID_RESPONSE")

        try:
            data = response.json()
        except ValueError as e:
            raise ValidationError(
                f"Invalid JSON in response: {e}", code="INVALID_RESPONSE"
            ) from e

        if not isinstance(data, list):
            raise ValidationError(
                "Invalid API response: expected array of products",
                code="INVALID_RESPONSE",
            )
        return data

    def _transform_response(self, data: list[Any]) -> list[Product]:
        """Validate each record independently, dropping the invalid ones."""
        products = []

        for index, item in enumerate(data):
            try:
                products.append(Product.model_validate(item))
            except pydantic.ValidationError as e:
                problems = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc']) or 'record'}: {err['msg']}"
                    for err in e.errors()
                )
                logger.warning(f"Skipping invalid product at index {index}: {problems}")

        if len(products) != len(data):
            logger.info(f"Accepted {len(products)}/{len(data)} products")
        return products

    def clear_cache(self) -> None:
        self._cache.invalidate()

    def reset_circuit(self) -> bool:
        """Reset circuit breaker for the product upstream."""
        return self._breakers.reset(self.config.service_id)

    def get_service_status(self) -> dict[str, Any]:
        """Breaker state and cache freshness, for monitoring."""
        entry = self._cache.peek()
        return {
            "service_id": self.config.service_id,
            "circuit_breaker_state": self.breaker.state.value,
            "circuit_breaker": self.breaker.get_status(),
            "has_cached_data": entry is not None,
            "cache_age": self._cache.age(),
            "cache": self._cache.get_stats().to_dict(),
        }

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._http_client and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("RemoteDataClient closed")

    async def __aenter__(self) -> "RemoteDataClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
