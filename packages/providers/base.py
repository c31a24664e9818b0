"""
Shared building blocks for AI providers.

Every provider (Deepseek, Groq, Gemini) exposes the same AIProvider interface
and composes a ProviderClient, which owns the retry handler, the token bucket
and the in-flight request counter. Gemini also uses its httpx transport; the
OpenAI-compatible providers go through the openai SDK instead.
"""

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Literal,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
    runtime_checkable,
)

import httpx
from pydantic import BaseModel, ConfigDict, Field

from packages.utils.errors import (
    InvalidInputError,
    ProviderError,
    RateLimitError,
    RetryableErrorType,
    classify_provider_error,
    parse_provider_error,
)
from packages.utils.rate_limiter import (
    DEFAULT_RATE_LIMITS,
    TEST_RATE_LIMIT,
    RateLimitConfig,
    RateLimiter,
)
from packages.utils.retry_handler import RetryConfig, RetryHandler

logger = logging.getLogger(__name__)

T = TypeVar("T")

TEST_RETRY_CONFIG = RetryConfig(
    max_retries=2, initial_delay=0.1, max_delay=0.5, backoff_factor=2, jitter_factor=0.1
)
PRODUCTION_RETRY_CONFIG = RetryConfig(
    max_retries=5, initial_delay=1.0, max_delay=10.0, backoff_factor=2, jitter_factor=0.1
)


class ChatMessage(BaseModel):
    """One turn of a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class ChatUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    """Normalized result of one chat completion."""

    model_config = ConfigDict(frozen=True)

    content: str
    usage: ChatUsage = Field(default_factory=ChatUsage)


class EmbeddingUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    total_tokens: int = 0


class EmbeddingResponse(BaseModel):
    """Normalized result of one embedding call."""

    model_config = ConfigDict(frozen=True)

    embedding: List[float]
    usage: EmbeddingUsage = Field(default_factory=EmbeddingUsage)


@dataclass(frozen=True)
class ProviderConfig:
    """Caller-owned provider configuration, immutable after construction.

    Attributes:
        api_key: Provider API key
        is_test: Use the small retry and rate-limit budgets meant for tests
        retry_config: Override the default retry budget
        max_concurrent_requests: In-flight request cap for this provider instance
        timeout: Per-request timeout in seconds
        base_url: Override the provider's API base URL
        model: Override the chat model
        embedding_model: Override the embedding model
        rate_limit: Override the token bucket parameters
        rate_limiter: RateLimiter shared with other providers (a private one otherwise)
        http_client: Preconfigured httpx client (e.g. with a mock transport)
    """

    api_key: str
    is_test: bool = False
    retry_config: Optional[RetryConfig] = None
    max_concurrent_requests: int = 5
    timeout: float = 30.0
    base_url: Optional[str] = None
    model: Optional[str] = None
    embedding_model: Optional[str] = None
    rate_limit: Optional[RateLimitConfig] = None
    rate_limiter: Optional[RateLimiter] = field(default=None, compare=False, repr=False)
    http_client: Optional[httpx.AsyncClient] = field(default=None, compare=False, repr=False)


@runtime_checkable
class AIProvider(Protocol):
    """Uniform interface over the chat/embedding APIs."""

    name: str

    async def chat(self, messages: Sequence[ChatMessage]) -> ChatResponse: ...

    def chat_stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]: ...

    async def generate_embedding(self, text: str) -> EmbeddingResponse: ...

    async def is_available(self) -> bool: ...


def validate_messages(messages: Sequence[ChatMessage]) -> None:
    """Reject empty conversations and a blank final message."""
    if not messages or not messages[-1].content.strip():
        raise InvalidInputError("Empty prompt")


def validate_text(text: str) -> None:
    if not text or not text.strip():
        raise InvalidInputError("Empty text")


def _error_message(response: httpx.Response) -> str:
    """Best-effort message from a provider error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP error {response.status_code}"

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
    return f"HTTP error {response.status_code}"


class ProviderClient:
    """
    Request helper shared by all providers.

    Handles:
    - Raw HTTP transport (httpx.AsyncClient, lazily created unless injected)
    - Retry with exponential backoff (RetryHandler)
    - Requests-per-minute throttling (RateLimiter, checked before every attempt)
    - In-flight request cap (max_concurrent_requests)
    - Error normalization (parse_provider_error)
    """

    def __init__(
        self,
        name: str,
        config: ProviderConfig,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the request helper.

        Args:
            name: Provider name, used as rate-limit key and in errors
            config: Provider configuration
            base_url: API base URL (without trailing slash)
            headers: Extra headers sent with every request
            params: Extra query parameters sent with every request
        """
        self.name = name
        self.config = config
        self.base_url = base_url.rstrip("/")
        self.headers = {"Content-Type": "application/json", **(headers or {})}
        self.params = params or {}

        retry_config = config.retry_config or (
            TEST_RETRY_CONFIG if config.is_test else PRODUCTION_RETRY_CONFIG
        )
        self.retry_handler = RetryHandler(retry_config)

        self.rate_limiter = config.rate_limiter or RateLimiter()
        if not self.rate_limiter.is_configured(name):
            rate_limit = config.rate_limit or (
                TEST_RATE_LIMIT if config.is_test else DEFAULT_RATE_LIMITS.get(name, TEST_RATE_LIMIT)
            )
            self.rate_limiter.set_config(name, rate_limit)

        self.max_concurrent_requests = config.max_concurrent_requests
        self.active_requests = 0

        self._client = config.http_client
        self._owns_client = config.http_client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy load the HTTP client on first access."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @asynccontextmanager
    async def guard(self) -> AsyncIterator[None]:
        """Hold one in-flight slot for the duration of the block."""
        if self.active_requests >= self.max_concurrent_requests:
            raise ProviderError("Too many concurrent requests", self.name)

        self.active_requests += 1
        try:
            yield
        finally:
            self.active_requests -= 1

    def ensure_rate_limit(self) -> None:
        """Consume a token or raise RateLimitError."""
        if not self.rate_limiter.check_limit(self.name):
            retry_after = self.rate_limiter.get_retry_after(self.name)
            logger.warning(f"{self.name}: rate limit exceeded, retry after {retry_after:.2f}s")
            raise RateLimitError(self.name, retry_after=retry_after)

    async def is_available(self) -> bool:
        """Check the token bucket without raising."""
        try:
            return self.rate_limiter.check_limit(self.name)
        except ValueError as e:
            logger.warning(f"{self.name}: availability check failed: {e}")
            return False

    async def with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run an operation under the rate limiter and retry handler."""

        async def attempt() -> T:
            self.ensure_rate_limit()
            return await operation()

        return await self.retry_handler.execute(attempt, classify_provider_error)

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _transport_error(self, error: httpx.HTTPError) -> ProviderError:
        if isinstance(error, httpx.TimeoutException):
            return ProviderError(
                f"Request timeout: {error}",
                self.name,
                retryable=True,
                type=RetryableErrorType.TIMEOUT,
            )
        return ProviderError(
            f"Network error: {error}",
            self.name,
            retryable=True,
            type=RetryableErrorType.NETWORK_ERROR,
        )

    async def post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Issue one JSON POST and return the decoded body.

        Raises:
            ProviderError: On transport failure or a non-2xx response
        """
        try:
            response = await self.client.post(
                self._url(path),
                json=payload,
                headers=self.headers,
                params=self.params,
                timeout=self.config.timeout,
            )
        except httpx.TransportError as e:
            raise self._transport_error(e) from e

        if not response.is_success:
            raise parse_provider_error(
                {"message": _error_message(response), "status": response.status_code},
                self.name,
            )

        return response.json()

    async def stream_lines(self, path: str, payload: Dict[str, Any]) -> AsyncIterator[str]:
        """
        Open one streaming POST and yield non-empty response lines.

        The response is released when the generator finishes, fails, or is
        closed early by the consumer.
        """
        try:
            async with self.client.stream(
                "POST",
                self._url(path),
                json=payload,
                headers=self.headers,
                params=self.params,
                timeout=self.config.timeout,
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise parse_provider_error(
                        {"message": _error_message(response), "status": response.status_code},
                        self.name,
                    )

                async for line in response.aiter_lines():
                    if line.strip():
                        yield line
        except httpx.TransportError as e:
            raise self._transport_error(e) from e


def parse_json_line(line: str) -> Optional[Dict[str, Any]]:
    """Decode one JSON document, returning None for partial or invalid lines."""
    try:
        data = json.loads(line)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
