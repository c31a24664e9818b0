"""Custom exceptions for the AI document pipeline.

Upstream failures from the chat/embedding APIs come in many shapes (HTTP
status codes, nested JSON error bodies, transport exceptions). They are
normalized here into ProviderError with a retryable flag, so the retry
handler and the batch orchestrator can decide what to do without knowing
which provider raised them.
"""

from enum import Enum
from typing import Any, Optional, Tuple


class RetryableErrorType(str, Enum):
    """Transient failure categories eligible for automatic retry."""

    RATE_LIMIT = "RATE_LIMIT"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ProviderError(Exception):
    """Error raised by (or on behalf of) an upstream AI provider."""

    def __init__(
        self,
        message: str,
        provider: str,
        retryable: bool = False,
        type: Optional[RetryableErrorType] = None,
        status: Optional[int] = None,
    ):
        self.message = message
        self.provider = provider
        self.retryable = retryable
        self.type = type
        self.status = status
        super().__init__(message)


class RateLimitError(ProviderError):
    """Local or upstream rate limit exceeded."""

    def __init__(self, provider: str, retry_after: Optional[float] = None, message: Optional[str] = None):
        self.retry_after = retry_after
        if message is None:
            message = "Rate limit exceeded"
            if retry_after is not None:
                message = f"Rate limit exceeded. Retry after {retry_after:.2f}s"
        super().__init__(
            message,
            provider,
            retryable=True,
            type=RetryableErrorType.RATE_LIMIT,
            status=429,
        )


class InvalidInputError(ValueError):
    """Empty or malformed input. Never retried."""


class UnauthorizedError(PermissionError):
    """Caller failed the access check."""


class RollbackError(Exception):
    """Rolling back a document transaction failed.

    The document may be left partially written; operators need to see this
    separately from the processing error that triggered the rollback.
    """

    def __init__(self, document_id: str, original: Optional[BaseException] = None):
        self.document_id = document_id
        self.original = original
        message = f"Rollback failed for document {document_id}"
        if original is not None:
            message += f" (after: {original})"
        super().__init__(message)


class BatchAbortedError(Exception):
    """Batch processing was aborted by the caller."""

    def __init__(self, message: str = "Processing aborted by user"):
        super().__init__(message)


class NoAvailableProviderError(RuntimeError):
    """Every configured provider reported itself unavailable."""

    def __init__(self, message: str = "No available AI providers found"):
        super().__init__(message)


_RETRYABLE_MARKERS = (
    "rate limit",
    "quota exceeded",
    "timeout",
    "econnreset",
    "socket hang up",
    "service unavailable",
)

_NETWORK_MARKERS = ("econnreset", "socket hang up", "network")

# RetryHandler classification for each retryable type
_CLASSIFICATIONS = {
    RetryableErrorType.RATE_LIMIT: "rate limit exceeded",
    RetryableErrorType.TIMEOUT: "timeout",
    RetryableErrorType.NETWORK_ERROR: "network error",
    RetryableErrorType.SERVICE_UNAVAILABLE: "service unavailable",
    RetryableErrorType.INTERNAL_SERVER_ERROR: "server error",
}


def is_retryable_error(error: BaseException) -> bool:
    """Check whether an error is transient and worth retrying."""
    if getattr(error, "retryable", False):
        return True

    message = str(error).lower()
    if any(marker in message for marker in _RETRYABLE_MARKERS):
        return True

    return getattr(error, "status", None) == 429


def _as_status(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _extract_message_and_status(error: Any) -> Tuple[str, Optional[int]]:
    """Pull a message and an integer status out of an exception or error body."""
    if isinstance(error, dict):
        nested = error.get("error")
        message = error.get("message")
        status = _as_status(error.get("status"))

        if isinstance(nested, dict):
            message = message or nested.get("message")
            if status is None:
                status = _as_status(nested.get("status")) or _as_status(nested.get("code"))
        elif isinstance(nested, str):
            message = message or nested

        return message or "Unknown error", status

    message = str(error) or "Unknown error"
    status = _as_status(getattr(error, "status", None))
    if status is None:
        status = _as_status(getattr(error, "status_code", None))
    return message, status


def parse_provider_error(error: Any, provider: str) -> ProviderError:
    """Normalize a raw upstream error into a typed ProviderError.

    Args:
        error: Exception instance or decoded JSON error body
        provider: Name of the provider that produced the error

    Returns:
        ProviderError with retryable flag and type set
    """
    if isinstance(error, ProviderError):
        return error

    message, status = _extract_message_and_status(error)
    lowered = message.lower()

    if status == 429 or "rate limit" in lowered or "quota" in lowered:
        return ProviderError(
            message, provider, retryable=True, type=RetryableErrorType.RATE_LIMIT, status=429
        )

    if "timeout" in lowered:
        return ProviderError(
            message, provider, retryable=True, type=RetryableErrorType.TIMEOUT, status=status
        )

    if status is not None and status >= 500:
        return ProviderError(
            message,
            provider,
            retryable=True,
            type=RetryableErrorType.INTERNAL_SERVER_ERROR,
            status=status,
        )

    if any(marker in lowered for marker in _NETWORK_MARKERS):
        return ProviderError(
            message, provider, retryable=True, type=RetryableErrorType.NETWORK_ERROR, status=status
        )

    if "service unavailable" in lowered:
        return ProviderError(
            message,
            provider,
            retryable=True,
            type=RetryableErrorType.SERVICE_UNAVAILABLE,
            status=status,
        )

    return ProviderError(message, provider, retryable=False, status=status)


def classify_provider_error(error: BaseException) -> str:
    """Error classifier for RetryHandler that understands ProviderError types."""
    if isinstance(error, ProviderError) and error.retryable and error.type is not None:
        return _CLASSIFICATIONS[error.type]
    return str(error).lower()
