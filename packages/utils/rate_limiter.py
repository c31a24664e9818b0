"""Per-provider token bucket rate limiting."""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Token bucket parameters. retry_after is the suggested back-off in seconds."""

    requests_per_minute: int
    burst_limit: int
    retry_after: float


@dataclass
class TokenBucket:
    tokens: int
    last_refill: float


# Default configurations for each provider
DEFAULT_RATE_LIMITS: Dict[str, RateLimitConfig] = {
    "groq": RateLimitConfig(requests_per_minute=100, burst_limit=120, retry_after=1.0),
    "deepseek": RateLimitConfig(requests_per_minute=60, burst_limit=70, retry_after=2.0),
    "gemini": RateLimitConfig(requests_per_minute=60, burst_limit=70, retry_after=2.0),
}

TEST_RATE_LIMIT = RateLimitConfig(requests_per_minute=2, burst_limit=3, retry_after=0.5)


class RateLimiter:
    """Token buckets keyed by provider name.

    Tokens are refilled lazily on access: floor(elapsed * rpm / 60) tokens,
    capped at the burst limit. Refill and consume happen in one synchronous
    call, so they cannot interleave with other tasks on the event loop.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._configs: Dict[str, RateLimitConfig] = {}

    def set_config(self, provider: str, config: RateLimitConfig) -> None:
        self._configs[provider] = config
        self._buckets[provider] = TokenBucket(tokens=config.burst_limit, last_refill=self._clock())

    def is_configured(self, provider: str) -> bool:
        return provider in self._configs

    def _get(self, provider: str) -> tuple[TokenBucket, RateLimitConfig]:
        config = self._configs.get(provider)
        if config is None:
            raise ValueError(f"Rate limit not configured for provider: {provider}")
        return self._buckets[provider], config

    def _refill(self, bucket: TokenBucket, config: RateLimitConfig) -> None:
        now = self._clock()
        elapsed = now - bucket.last_refill
        tokens_to_add = math.floor(elapsed * config.requests_per_minute / 60)

        # Keep last_refill when nothing was added so partial progress accumulates
        if tokens_to_add > 0:
            bucket.tokens = min(config.burst_limit, bucket.tokens + tokens_to_add)
            bucket.last_refill = now
        elif bucket.tokens >= config.burst_limit:
            bucket.last_refill = now

    def check_limit(self, provider: str) -> bool:
        """Consume one token if available.

        Returns:
            True if the request may proceed, False if the bucket is empty
        """
        bucket, config = self._get(provider)
        self._refill(bucket, config)

        if bucket.tokens > 0:
            bucket.tokens -= 1
            return True

        logger.debug(f"Rate limit bucket empty for {provider}")
        return False

    def get_retry_after(self, provider: str) -> float:
        """Seconds until the next token, or 0 if one is available now."""
        bucket, config = self._get(provider)
        self._refill(bucket, config)
        if bucket.tokens > 0:
            return 0.0

        return math.ceil(60000 / config.requests_per_minute) / 1000

    def reset(self, provider: str) -> None:
        config = self._configs.get(provider)
        if config is None:
            return
        self._buckets[provider] = TokenBucket(tokens=config.burst_limit, last_refill=self._clock())
