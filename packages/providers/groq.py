"""Groq chat and embedding provider."""

from packages.providers.openai_compat import OpenAICompatibleProvider


class GroqProvider(OpenAICompatibleProvider):
    """Groq API, served under its OpenAI-compatible /openai/v1 prefix."""

    name = "groq"
    default_base_url = "https://api.groq.com/openai/v1"
    default_model = "mixtral-8x7b-32768"
    default_embedding_model = "nomic-embed-text-v1_5"
