"""Deepseek chat and embedding provider."""

from packages.providers.openai_compat import OpenAICompatibleProvider


class DeepseekProvider(OpenAICompatibleProvider):
    """Deepseek API (OpenAI-compatible, bearer auth)."""

    name = "deepseek"
    default_base_url = "https://api.deepseek.com/v1"
    default_model = "deepseek-chat"
    default_embedding_model = "deepseek-embed"
