"""
CircuitBreaker - Stops calling an upstream after repeated failures.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Upstream is failing, requests are blocked
- HALF_OPEN: One probe request is testing recovery

Transitions:
- CLOSED → OPEN: When failure_threshold is reached
- OPEN → HALF_OPEN: After reset_timeout has elapsed since the last failure
- HALF_OPEN → CLOSED: On a successful probe
- HALF_OPEN → OPEN: On a failed probe
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from catalog.services.errors import CircuitOpenError

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Blocking requests
    HALF_OPEN = "half-open"  # Probing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 5  # Failures before opening
    reset_timeout: float = 60.0  # Seconds after last failure before half-open


class CircuitBreaker:
    """
    Circuit breaker for a single upstream.

    Counters are only touched between awaits, so a single event loop needs
    no lock around them.

    Usage:
        cb = CircuitBreaker("products")
        data = await cb.execute(fetch_products)
    """

    def __init__(
        self,
        service_id: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.service_id = service_id
        self.config = config or CircuitBreakerConfig()
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run operation through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open (operation not invoked)
            Exception: Whatever operation raised, after bookkeeping
        """
        self._before_call()

        try:
            result = await operation()
        except asyncio.CancelledError:
            # Abandoned probe: let the next caller probe instead
            self._probe_in_flight = False
            raise
        except Exception:
            self.record_failure()
            raise

        self.record_success()
        return result

    def _before_call(self) -> None:
        if self._state == CircuitState.OPEN:
            if self._reset_timeout_elapsed():
                self._half_open()
            else:
                raise CircuitOpenError(
                    self.service_id, self.get_time_until_reset() or 0
                )

        if self._state == CircuitState.HALF_OPEN:
            if self._probe_in_flight:
                raise CircuitOpenError(self.service_id, 0)
            self._probe_in_flight = True

    def _reset_timeout_elapsed(self) -> bool:
        if self._last_failure_time is None:
            return True
        return self._clock() - self._last_failure_time >= self.config.reset_timeout

    def record_success(self) -> None:
        """Record a successful request."""
        if self._state == CircuitState.HALF_OPEN:
            self._close()

    def record_failure(self) -> None:
        """Record a failed request."""
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._state == CircuitState.HALF_OPEN:
            # A failed probe reopens without consulting the threshold
            self._open()
        elif self._state == CircuitState.CLOSED:
            if self._failure_count >= self.config.failure_threshold:
                self._open()
            else:
                logger.debug(
                    f"Circuit breaker '{self.service_id}' failure "
                    f"{self._failure_count}/{self.config.failure_threshold}"
                )

    def _half_open(self) -> None:
        self._state = CircuitState.HALF_OPEN
        self._probe_in_flight = False
        logger.info(
            f"Circuit breaker '{self.service_id}' HALF_OPEN, attempting recovery"
        )

    def _open(self) -> None:
        """Transition to OPEN state."""
        self._state = CircuitState.OPEN
        self._probe_in_flight = False
        logger.warning(
            f"Circuit breaker '{self.service_id}' OPENED after {self._failure_count} failures"
        )

    def _close(self) -> None:
        """Transition to CLOSED state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._probe_in_flight = False
        logger.info(f"Circuit breaker '{self.service_id}' CLOSED (recovered)")

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None
        self._probe_in_flight = False
        logger.info(f"Circuit breaker '{self.service_id}' manually reset")

    def get_time_until_reset(self) -> float | None:
        """Get seconds until circuit transitions to half-open."""
        if self._state != CircuitState.OPEN or self._last_failure_time is None:
            return None

        elapsed = self._clock() - self._last_failure_time
        return max(0.0, self.config.reset_timeout - elapsed)

    def get_status(self) -> dict[str, Any]:
        """Get current status as dictionary."""
        return {
            "service_id": self.service_id,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.config.failure_threshold,
            "last_failure": self._last_failure_time,
            "time_until_reset": self.get_time_until_reset(),
        }


class CircuitBreakerRegistry:
    """
    One circuit breaker per upstream name, owned by a client instance.

    Usage:
        registry = CircuitBreakerRegistry()
        cb = registry.get("products")
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._breakers: dict[str, CircuitBreaker] = {}
        self._default_config = default_config or CircuitBreakerConfig()
        self._clock = clock

    def get(
        self,
        service_id: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Get or create a circuit breaker for a service."""
        if service_id not in self._breakers:
            self._breakers[service_id] = CircuitBreaker(
                service_id,
                config or self._default_config,
                clock=self._clock,
            )
        return self._breakers[service_id]

    def reset(self, service_id: str) -> bool:
        """Reset a specific circuit breaker."""
        if service_id in self._breakers:
            self._breakers[service_id].reset()
            return True
        return False
