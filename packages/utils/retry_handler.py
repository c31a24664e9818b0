"""Exponential backoff with jitter for async operations."""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRYABLE_ERRORS = frozenset(
    {
        "rate limit exceeded",
        "timeout",
        "network error",
        "server error",
        "service unavailable",
    }
)


@dataclass(frozen=True)
class RetryConfig:
    """Retry budget and backoff shape. Delays are in seconds."""

    max_retries: int = 3
    initial_delay: float = 0.1
    max_delay: float = 1.0
    backoff_factor: float = 2.0
    jitter_factor: float = 0.1


class RetryHandler:
    """Runs an async operation, retrying transient failures with backoff.

    An error is retried when its classification (by default the lowercased
    message) contains one of the retryable markers. Anything else, and the
    error of the final attempt, propagates unchanged.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[float, float], float] = random.uniform,
    ):
        self.config = config or RetryConfig()
        self.retryable_errors = set(DEFAULT_RETRYABLE_ERRORS)
        self._sleep = sleep
        self._rng = rng

    def calculate_delay(self, attempt: int) -> float:
        base_delay = self.config.initial_delay * (self.config.backoff_factor**attempt)
        jitter = base_delay * self.config.jitter_factor * self._rng(-1.0, 1.0)
        return max(0.0, min(base_delay + jitter, self.config.max_delay))

    def classify_error(self, error: BaseException) -> str:
        return str(error).lower()

    def is_retryable(self, classification: str) -> bool:
        return any(marker in classification for marker in self.retryable_errors)

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        error_classifier: Optional[Callable[[BaseException], str]] = None,
    ) -> T:
        """
        Execute an operation with retries.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            error_classifier: Optional override mapping an error to a classification

        Returns:
            The operation's result

        Raises:
            The last error raised by the operation, unwrapped
        """
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                classification = (
                    error_classifier(e) if error_classifier else None
                ) or self.classify_error(e)

                if not self.is_retryable(classification) or attempt >= self.config.max_retries:
                    raise

                delay = self.calculate_delay(attempt)
                logger.warning(
                    f"Attempt {attempt + 1}/{self.config.max_retries + 1} failed "
                    f"({classification}), retrying in {delay:.2f}s"
                )
                await self._sleep(delay)
                attempt += 1
