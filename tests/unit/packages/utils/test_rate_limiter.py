"""Tests for the token bucket rate limiter."""

import pytest

from packages.utils.rate_limiter import DEFAULT_RATE_LIMITS, RateLimitConfig, RateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    limiter = RateLimiter(clock=clock)
    limiter.set_config("test", RateLimitConfig(requests_per_minute=60, burst_limit=3, retry_after=1.0))
    return limiter


class TestCheckLimit:
    def test_burst_then_empty(self, limiter):
        assert [limiter.check_limit("test") for _ in range(3)] == [True, True, True]
        assert limiter.check_limit("test") is False

    def test_refills_one_token_per_interval(self, limiter, clock):
        for _ in range(3):
            limiter.check_limit("test")

        clock.advance(1.0)  # 60 rpm -> one token per second
        assert limiter.check_limit("test") is True
        assert limiter.check_limit("test") is False

    def test_partial_intervals_accumulate(self, limiter, clock):
        for _ in range(3):
            limiter.check_limit("test")

        clock.advance(0.6)
        assert limiter.check_limit("test") is False
        clock.advance(0.6)
        assert limiter.check_limit("test") is True

    def test_refill_capped_at_burst(self, limiter, clock):
        limiter.check_limit("test")
        clock.advance(3600)
        assert [limiter.check_limit("test") for _ in range(4)] == [True, True, True, False]

    def test_unconfigured_provider_raises(self, limiter):
        with pytest.raises(ValueError, match="not configured"):
            limiter.check_limit("unknown")

    def test_buckets_are_independent(self, limiter):
        limiter.set_config("other", RateLimitConfig(requests_per_minute=60, burst_limit=1, retry_after=1.0))
        for _ in range(3):
            limiter.check_limit("test")

        assert limiter.check_limit("other") is True


class TestRetryAfter:
    def test_zero_when_tokens_available(self, limiter):
        assert limiter.get_retry_after("test") == 0.0

    def test_one_interval_when_empty(self, limiter):
        for _ in range(3):
            limiter.check_limit("test")
        assert limiter.get_retry_after("test") == pytest.approx(1.0)

    def test_rounds_up_to_milliseconds(self, clock):
        limiter = RateLimiter(clock=clock)
        limiter.set_config("slow", RateLimitConfig(requests_per_minute=7, burst_limit=1, retry_after=1.0))
        limiter.check_limit("slow")
        assert limiter.get_retry_after("slow") == pytest.approx(8.572)

    def test_unconfigured_provider_raises(self, limiter):
        with pytest.raises(ValueError):
            limiter.get_retry_after("unknown")


class TestReset:
    def test_reset_restores_full_bucket(self, limiter):
        for _ in range(3):
            limiter.check_limit("test")

        limiter.reset("test")
        assert limiter.check_limit("test") is True


def test_default_limits_cover_all_providers():
    assert set(DEFAULT_RATE_LIMITS) == {"deepseek", "groq", "gemini"}
