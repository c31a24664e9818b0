"""
OpenAI-compatible chat/embedding providers.

Deepseek and Groq both serve the OpenAI API shape, so they talk to it through
the ``openai`` SDK pointed at their own base URL. SDK retries are disabled:
retrying, rate limiting and the in-flight cap stay with ProviderClient, and
SDK exceptions are translated into ProviderError.
"""

import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

import openai

from packages.providers.base import (
    ChatMessage,
    ChatResponse,
    ChatUsage,
    EmbeddingResponse,
    EmbeddingUsage,
    ProviderClient,
    ProviderConfig,
    validate_messages,
    validate_text,
)
from packages.utils.errors import ProviderError, RetryableErrorType, parse_provider_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


def to_openai_messages(messages: Sequence[ChatMessage]) -> List[Dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages]


def _status_message(error: openai.APIStatusError) -> str:
    # The SDK keeps the unwrapped "error" member of the body when there is one
    body = error.body
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    if isinstance(body, str) and body:
        return body
    return error.message


def translate_error(error: openai.APIError, provider: str) -> ProviderError:
    """
    Map an openai SDK exception onto the provider error taxonomy.

    - APIStatusError: typed by status code and message (429, 5xx, ...)
    - APITimeoutError: retryable TIMEOUT
    - APIConnectionError: retryable NETWORK_ERROR
    """
    if isinstance(error, openai.APIStatusError):
        return parse_provider_error(
            {"message": _status_message(error), "status": error.status_code}, provider
        )
    if isinstance(error, openai.APITimeoutError):
        return ProviderError(
            f"Request timeout: {error.message}",
            provider,
            retryable=True,
            type=RetryableErrorType.TIMEOUT,
        )
    if isinstance(error, openai.APIConnectionError):
        return ProviderError(
            f"Network error: {error.message}",
            provider,
            retryable=True,
            type=RetryableErrorType.NETWORK_ERROR,
        )
    return parse_provider_error({"message": error.message}, provider)


class OpenAICompatibleProvider:
    """Provider for APIs that follow the OpenAI chat/embedding format."""

    name = "openai-compatible"
    default_base_url = ""
    default_model = ""
    default_embedding_model = ""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.model = config.model or self.default_model
        self.embedding_model = config.embedding_model or self.default_embedding_model
        self.http = ProviderClient(self.name, config, base_url=config.base_url or self.default_base_url)
        self._client: Optional[openai.AsyncOpenAI] = None

    @property
    def client(self) -> openai.AsyncOpenAI:
        """Lazy load the SDK client on first access."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.http.base_url,
                timeout=self.config.timeout,
                max_retries=0,
                http_client=self.config.http_client,
            )
        return self._client

    async def _request(self, create: Callable[..., Awaitable[T]], **kwargs: Any) -> T:
        try:
            return await create(**kwargs)
        except openai.APIError as e:
            raise translate_error(e, self.name) from e

    async def chat(self, messages: Sequence[ChatMessage]) -> ChatResponse:
        validate_messages(messages)

        async with self.http.guard():
            completion = await self.http.with_retry(
                lambda: self._request(
                    self.client.chat.completions.create,
                    model=self.model,
                    messages=to_openai_messages(messages),
                    stream=False,
                )
            )

        usage = completion.usage
        return ChatResponse(
            content=completion.choices[0].message.content or "",
            usage=ChatUsage(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )
            if usage
            else ChatUsage(),
        )

    async def chat_stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        validate_messages(messages)

        async with self.http.guard():
            self.http.ensure_rate_limit()
            stream = await self._request(
                self.client.chat.completions.create,
                model=self.model,
                messages=to_openai_messages(messages),
                stream=True,
            )
            try:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    content = chunk.choices[0].delta.content
                    if content:
                        yield content
            except openai.APIError as e:
                raise translate_error(e, self.name) from e
            finally:
                await stream.close()

    async def generate_embedding(self, text: str) -> EmbeddingResponse:
        validate_text(text)

        async with self.http.guard():
            result = await self.http.with_retry(
                lambda: self._request(
                    self.client.embeddings.create,
                    model=self.embedding_model,
                    input=text,
                    encoding_format="float",
                )
            )

        usage = result.usage
        return EmbeddingResponse(
            embedding=result.data[0].embedding,
            usage=EmbeddingUsage(
                prompt_tokens=usage.prompt_tokens, total_tokens=usage.total_tokens
            )
            if usage
            else EmbeddingUsage(),
        )

    async def is_available(self) -> bool:
        return await self.http.is_available()

    async def aclose(self) -> None:
        # An injected http_client belongs to the caller
        if self._client is not None and self.config.http_client is None:
            await self._client.close()
        self._client = None
        await self.http.aclose()
