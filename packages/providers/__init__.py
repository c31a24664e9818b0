"""
AI providers: uniform chat/embedding interface over Deepseek, Groq and Gemini.
"""

from .base import (
    AIProvider,
    ChatMessage,
    ChatResponse,
    ChatUsage,
    EmbeddingResponse,
    EmbeddingUsage,
    ProviderClient,
    ProviderConfig,
)
from .deepseek import DeepseekProvider
from .factory import PROVIDER_ORDER, ProviderFactory, get_provider_factory
from .gemini import GeminiProvider
from .groq import GroqProvider

__all__ = [
    "AIProvider",
    "ChatMessage",
    "ChatResponse",
    "ChatUsage",
    "EmbeddingResponse",
    "EmbeddingUsage",
    "ProviderClient",
    "ProviderConfig",
    "DeepseekProvider",
    "GroqProvider",
    "GeminiProvider",
    "ProviderFactory",
    "PROVIDER_ORDER",
    "get_provider_factory",
]
