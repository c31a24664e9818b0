"""
Google Gemini chat and embedding provider.

Gemini differs from the OpenAI-shaped APIs:
- the API key travels as the ``key`` query parameter
- conversations are ``contents`` with ``parts``; the assistant role is ``model``
- system prompts go into ``systemInstruction``
- streaming returns newline-delimited JSON objects (no SSE, no sentinel)
"""

import logging
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from packages.providers.base import (
    ChatMessage,
    ChatResponse,
    ChatUsage,
    EmbeddingResponse,
    EmbeddingUsage,
    ProviderClient,
    ProviderConfig,
    parse_json_line,
    validate_messages,
    validate_text,
)

logger = logging.getLogger(__name__)


def format_messages(messages: Sequence[ChatMessage]) -> Dict[str, Any]:
    """Convert chat messages into a generateContent request body."""
    system_parts = [{"text": m.content} for m in messages if m.role == "system"]
    body: Dict[str, Any] = {
        "contents": [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.role != "system"
        ]
    }
    if system_parts:
        body["systemInstruction"] = {"parts": system_parts}
    return body


def extract_text(data: Dict[str, Any]) -> Optional[str]:
    """First candidate's first text part, if any."""
    candidates = data.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    if not parts:
        return None
    return parts[0].get("text")


class GeminiProvider:
    """Gemini generativelanguage API."""

    name = "gemini"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"
    default_model = "gemini-pro"
    default_embedding_model = "embedding-001"

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.model = config.model or self.default_model
        self.embedding_model = config.embedding_model or self.default_embedding_model
        self.http = ProviderClient(
            self.name,
            config,
            base_url=config.base_url or self.default_base_url,
            params={"key": config.api_key},
        )

    async def chat(self, messages: Sequence[ChatMessage]) -> ChatResponse:
        validate_messages(messages)
        body = format_messages(messages)

        async with self.http.guard():
            data = await self.http.with_retry(
                lambda: self.http.post_json(f"/models/{self.model}:generateContent", body)
            )

        usage = data.get("usageMetadata") or {}
        return ChatResponse(
            content=extract_text(data) or "",
            usage=ChatUsage(
                prompt_tokens=usage.get("promptTokenCount", 0),
                completion_tokens=usage.get("candidatesTokenCount", 0),
                total_tokens=usage.get("totalTokenCount", 0),
            ),
        )

    async def chat_stream(self, messages: Sequence[ChatMessage]) -> AsyncIterator[str]:
        validate_messages(messages)
        body = format_messages(messages)

        async with self.http.guard():
            self.http.ensure_rate_limit()
            lines = self.http.stream_lines(f"/models/{self.model}:streamGenerateContent", body)
            try:
                async for line in lines:
                    data = parse_json_line(line)
                    if data is None:
                        logger.debug(f"gemini: skipping undecodable stream line: {line[:80]}")
                        continue
                    text = extract_text(data)
                    if text:
                        yield text
            finally:
                await lines.aclose()

    async def generate_embedding(self, text: str) -> EmbeddingResponse:
        validate_text(text)

        async with self.http.guard():
            data = await self.http.with_retry(
                lambda: self.http.post_json(
                    f"/models/{self.embedding_model}:embedText", {"text": text}
                )
            )

        token_count = (data.get("usageMetadata") or {}).get("tokenCount", 0)
        return EmbeddingResponse(
            embedding=data["embedding"]["values"],
            usage=EmbeddingUsage(prompt_tokens=token_count, total_tokens=token_count),
        )

    async def is_available(self) -> bool:
        return await self.http.is_available()

    async def aclose(self) -> None:
        await self.http.aclose()
