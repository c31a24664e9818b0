"""Centralized configuration management for the AI document pipeline.

This module provides type-safe configuration with environment variable support
and sensible defaults for the AI providers (Deepseek, Groq, Gemini), document
chunking, batch processing and the Supabase persistence boundary.

Usage:
    from packages.config import settings

    chunk_size = settings.chunking.chunk_size
    configs = settings.providers.configs()
    concurrency = settings.batch.concurrency

Environment Variables:
    Documented on each config class below.
"""

# Load .env BEFORE any settings are read (must be first)
from dotenv import load_dotenv

load_dotenv()

import logging  # noqa: E402
import os  # noqa: E402
from dataclasses import dataclass, field  # noqa: E402
from functools import lru_cache  # noqa: E402
from pathlib import Path  # noqa: E402
from typing import TYPE_CHECKING, Dict, List, Optional  # noqa: E402

if TYPE_CHECKING:
    from packages.providers.base import ProviderConfig

logger = logging.getLogger(__name__)

# Project root is 2 levels up from packages/config/__init__.py
PROJECT_ROOT = Path(__file__).parent.parent.parent.resolve()


def _get_clean_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Read a secret-like variable (API keys, Supabase credentials).

    Blank values and values that look like a stray ``# comment`` from the
    .env file fall back to ``default``.
    """
    raw = os.getenv(key, "").strip()
    if not raw or raw.startswith("#"):
        return default

    if "#" in raw:
        logger.warning(f"{key} contains '#', ignoring it (check the .env file)")
        return default

    return raw


def _get_bool_env(key: str, default: str = "false") -> bool:
    return os.getenv(key, default).strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class ProviderSettings:
    """Connection settings for one AI provider.

    Each provider reads its own prefixed variables, e.g. for Deepseek:
        DEEPSEEK_API_KEY, DEEPSEEK_BASE_URL, DEEPSEEK_MODEL, DEEPSEEK_EMBEDDING_MODEL
    """

    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    embedding_model: Optional[str] = None

    @classmethod
    def from_env(cls, prefix: str) -> "ProviderSettings":
        return cls(
            api_key=_get_clean_env(f"{prefix}_API_KEY"),
            base_url=_get_clean_env(f"{prefix}_BASE_URL"),
            model=_get_clean_env(f"{prefix}_MODEL"),
            embedding_model=_get_clean_env(f"{prefix}_EMBEDDING_MODEL"),
        )


@dataclass(frozen=True)
class ProvidersConfig:
    """AI provider configuration shared by chat and embedding calls.

    Environment Variables:
        AI_PROVIDER_ORDER: Comma-separated preference order (default: "deepseek,groq,gemini")
        AI_REQUEST_TIMEOUT: Per-request timeout in seconds (default: 30)
        AI_MAX_CONCURRENT_REQUESTS: In-flight request cap per provider (default: 5)
        AI_TEST_MODE: Use the small retry/rate-limit budgets meant for tests (default: false)
        DEEPSEEK_* / GROQ_* / GEMINI_*: see ProviderSettings
    """

    deepseek: ProviderSettings = field(default_factory=lambda: ProviderSettings.from_env("DEEPSEEK"))
    groq: ProviderSettings = field(default_factory=lambda: ProviderSettings.from_env("GROQ"))
    gemini: ProviderSettings = field(default_factory=lambda: ProviderSettings.from_env("GEMINI"))
    order: List[str] = field(
        default_factory=lambda: [
            name.strip()
            for name in os.getenv("AI_PROVIDER_ORDER", "deepseek,groq,gemini").split(",")
            if name.strip()
        ]
    )
    timeout: float = field(default_factory=lambda: float(os.getenv("AI_REQUEST_TIMEOUT", "30")))
    max_concurrent_requests: int = field(
        default_factory=lambda: int(os.getenv("AI_MAX_CONCURRENT_REQUESTS", "5"))
    )
    is_test: bool = field(default_factory=lambda: _get_bool_env("AI_TEST_MODE"))

    def configs(self) -> Dict[str, "ProviderConfig"]:
        """Build a ProviderConfig for every provider that has an API key.

        Returns:
            Mapping of provider type to config, in preference order.
        """
        from packages.providers.base import ProviderConfig

        result: Dict[str, ProviderConfig] = {}
        for name in self.order:
            provider_settings = getattr(self, name, None)
            if not isinstance(provider_settings, ProviderSettings) or not provider_settings.api_key:
                continue
            result[name] = ProviderConfig(
                api_key=provider_settings.api_key,
                is_test=self.is_test,
                max_concurrent_requests=self.max_concurrent_requests,
                timeout=self.timeout,
                base_url=provider_settings.base_url,
                model=provider_settings.model,
                embedding_model=provider_settings.embedding_model,
            )
        return result


@dataclass(frozen=True)
class ChunkingConfig:
    """Document chunking configuration.

    Environment Variables:
        CHUNK_SIZE: Target chunk size in characters (default: 1000)
        CHUNK_OVERLAP: Overlap budget; every 10 units carry one word over (default: 200)
        CHUNK_MIN_LENGTH: Minimum chunk length in characters (default: 100)
    """

    chunk_size: int = field(default_factory=lambda: int(os.getenv("CHUNK_SIZE", "1000")))
    chunk_overlap: int = field(default_factory=lambda: int(os.getenv("CHUNK_OVERLAP", "200")))
    min_chunk_length: int = field(
        default_factory=lambda: int(os.getenv("CHUNK_MIN_LENGTH", "100"))
    )


@dataclass(frozen=True)
class BatchConfig:
    """Batch processing configuration.

    Environment Variables:
        BATCH_CONCURRENCY: Documents processed concurrently per window (default: 2)
        BATCH_MAX_RETRIES: Attempts per document on rate limiting (default: 3)
        BATCH_RETRY_DELAY: Seconds between rate-limited attempts (default: 1.0)

    The delay between windows is twice BATCH_RETRY_DELAY.
    """

    concurrency: int = field(default_factory=lambda: int(os.getenv("BATCH_CONCURRENCY", "2")))
    max_retries: int = field(default_factory=lambda: int(os.getenv("BATCH_MAX_RETRIES", "3")))
    retry_delay: float = field(
        default_factory=lambda: float(os.getenv("BATCH_RETRY_DELAY", "1.0"))
    )

    @property
    def window_delay(self) -> float:
        return self.retry_delay * 2


@dataclass(frozen=True)
class SearchConfig:
    """Similarity search configuration.

    Environment Variables:
        SEARCH_MATCH_THRESHOLD: Minimum similarity score (default: 0.7)
        SEARCH_MATCH_COUNT: Maximum number of matches (default: 5)
    """

    match_threshold: float = field(
        default_factory=lambda: float(os.getenv("SEARCH_MATCH_THRESHOLD", "0.7"))
    )
    match_count: int = field(default_factory=lambda: int(os.getenv("SEARCH_MATCH_COUNT", "5")))


@dataclass(frozen=True)
class SupabaseConfig:
    """Supabase connection configuration.

    Environment Variables:
        SUPABASE_URL: Project URL
        SUPABASE_SERVICE_KEY: Service role key
    """

    url: Optional[str] = field(default_factory=lambda: _get_clean_env("SUPABASE_URL"))
    service_key: Optional[str] = field(
        default_factory=lambda: _get_clean_env("SUPABASE_SERVICE_KEY")
    )


@dataclass(frozen=True)
class Settings:
    """Main application settings aggregating all domain configs.

    Usage:
        from packages.config import settings

        configs = settings.providers.configs()
        chunk_size = settings.chunking.chunk_size
    """

    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)


@lru_cache()
def get_settings() -> Settings:
    """Settings built once per process.

    Tests that change the environment call get_settings.cache_clear().
    """
    return Settings()


# Convenience export - import as: from packages.config import settings
settings = get_settings()

__all__ = [
    "Settings",
    "ProviderSettings",
    "ProvidersConfig",
    "ChunkingConfig",
    "BatchConfig",
    "SearchConfig",
    "SupabaseConfig",
    "get_settings",
    "settings",
    "PROJECT_ROOT",
]
