"""
Shared utilities for the AI document pipeline.
"""

from .errors import (
    BatchAbortedError,
    InvalidInputError,
    NoAvailableProviderError,
    ProviderError,
    RateLimitError,
    RetryableErrorType,
    RollbackError,
    UnauthorizedError,
    is_retryable_error,
    parse_provider_error,
)
from .rate_limiter import DEFAULT_RATE_LIMITS, RateLimitConfig, RateLimiter
from .retry_handler import RetryConfig, RetryHandler

__all__ = [
    "BatchAbortedError",
    "InvalidInputError",
    "NoAvailableProviderError",
    "ProviderError",
    "RateLimitError",
    "RetryableErrorType",
    "RollbackError",
    "UnauthorizedError",
    "is_retryable_error",
    "parse_provider_error",
    "DEFAULT_RATE_LIMITS",
    "RateLimitConfig",
    "RateLimiter",
    "RetryConfig",
    "RetryHandler",
]
