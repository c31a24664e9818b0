"""Provider factory: memoized provider instances and availability-based selection."""

import logging
from functools import lru_cache
from typing import Dict, Mapping, Optional, Sequence, Type, Union

from packages.providers.base import AIProvider, ProviderConfig
from packages.providers.deepseek import DeepseekProvider
from packages.providers.gemini import GeminiProvider
from packages.providers.groq import GroqProvider
from packages.utils.errors import NoAvailableProviderError

logger = logging.getLogger(__name__)

# Provider type to implementation
PROVIDER_REGISTRY: Dict[str, Type] = {
    "deepseek": DeepseekProvider,
    "groq": GroqProvider,
    "gemini": GeminiProvider,
}

# Preference order used by get_available_provider
PROVIDER_ORDER = ("deepseek", "groq", "gemini")

ProviderConfigs = Union[ProviderConfig, Mapping[str, ProviderConfig]]


class ProviderFactory:
    """Registry of provider instances keyed by (type, api_key).

    The same type and key always yield the identical instance, so rate
    limits and in-flight counters are shared by every caller using that key.
    """

    def __init__(
        self,
        registry: Optional[Mapping[str, Type]] = None,
        order: Sequence[str] = PROVIDER_ORDER,
    ):
        self.registry: Dict[str, Type] = dict(registry or PROVIDER_REGISTRY)
        self.order = tuple(order)
        self._instances: Dict[str, AIProvider] = {}

    def get_provider(self, provider_type: str, config: ProviderConfig) -> AIProvider:
        """
        Get (or create) the provider instance for a type and API key.

        Raises:
            ValueError: If the provider type is unknown
        """
        provider_cls = self.registry.get(provider_type)
        if provider_cls is None:
            raise ValueError(f"Unknown provider type: {provider_type}")

        key = f"{provider_type}:{config.api_key}"
        provider = self._instances.get(key)
        if provider is None:
            provider = provider_cls(config)
            self._instances[key] = provider
            logger.info(f"Created {provider_type} provider")
        return provider

    async def get_available_provider(
        self, configs: ProviderConfigs, order: Optional[Sequence[str]] = None
    ) -> AIProvider:
        """
        Return the first provider, in preference order, that reports capacity.

        Args:
            configs: One config used for every type, or a per-type mapping
                (types missing from the mapping are skipped)
            order: Override the preference order

        Raises:
            NoAvailableProviderError: If every candidate is unavailable
        """
        for provider_type in order or self.order:
            if isinstance(configs, ProviderConfig):
                config = configs
            else:
                config = configs.get(provider_type)
                if config is None:
                    continue

            provider = self.get_provider(provider_type, config)
            if await provider.is_available():
                logger.info(f"Selected AI provider: {provider_type}")
                return provider
            logger.warning(f"AI provider {provider_type} is not available")

        raise NoAvailableProviderError()

    def clear(self) -> None:
        self._instances.clear()

    async def aclose(self) -> None:
        """Close HTTP clients of every created provider and forget them."""
        for provider in self._instances.values():
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()
        self.clear()


@lru_cache()
def get_provider_factory() -> ProviderFactory:
    """Process-wide factory. Prefer passing a ProviderFactory explicitly."""
    return ProviderFactory()
