"""
RetryPolicy - bounded retries with exponential backoff.

delay(attempt) = base_delay * 2 ** attempt, so the defaults wait 1s, 2s, 4s.
Non-recoverable errors are raised on first occurrence.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from catalog.services.classifier import classify_error
from catalog.services.errors import AppError

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Configuration and driver for retrying an async operation."""

    max_retries: int = 3
    base_delay: float = 1.0  # Seconds before the first retry
    max_delay: float | None = None  # Optional cap on a single delay
    jitter: bool = False  # Add up to 10% random delay

    def calculate_delay(self, attempt: int) -> float:
        """Delay to wait after the given 0-based attempt fails."""
        delay = self.base_delay * (2**attempt)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        if self.jitter:
            delay += random.uniform(0, delay * 0.1)
        return delay

    def should_retry(self, error: AppError, attempt: int) -> bool:
        return error.recoverable and attempt < self.max_retries

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        context: str = "Operation",
        service_id: str | None = None,
    ) -> T:
        """
        Run operation, retrying recoverable failures.

        At most ``max_retries + 1`` attempts are made.

        Raises:
            AppError: The classified error of the last attempt
        """
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                error = classify_error(e, service_id=service_id)

                if not self.should_retry(error, attempt):
                    if not error.recoverable:
                        logger.warning(
                            f"{context} failed with non-recoverable error: {error}"
                        )
                    else:
                        logger.warning(
                            f"{context} failed after {attempt + 1} attempts: {error}"
                        )
                    raise error

                delay = self.calculate_delay(attempt)
                logger.warning(
                    f"{context} failed (attempt {attempt + 1}/{self.max_retries + 1}), "
                    f"retrying in {delay:.1f}s: {error}"
                )
                await asyncio.sleep(delay)
                attempt += 1
