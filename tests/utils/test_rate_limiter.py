"""
Tests for Rate Limiter.
"""

import pytest
import asyncio

from deckslayer.utils.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitPolicy,
    RateLimitResult,
    resolve_identifier,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestInMemoryRateLimiter:
    """Test suite for InMemoryRateLimiter."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def rate_limiter(self, clock):
        return InMemoryRateLimiter(clock=clock)

    def test_first_request_allowed(self, rate_limiter):
        """First request opens a window and is allowed."""
        result = rate_limiter.check("user-1", max_requests=5, window_seconds=60)

        assert result.allowed is True
        assert result.remaining == 4
        assert result.reset_in_ms == 60_000

    def test_requests_within_limit(self, rate_limiter):
        for i in range(5):
            result = rate_limiter.check("user-1", 5, 60)
            assert result.allowed is True
            assert result.remaining == 5 - (i + 1)

    def test_request_over_limit_is_denied(self, rate_limiter):
        """N requests pass, request N+1 is denied with nothing remaining."""
        for _ in range(10):
            assert rate_limiter.check("user-1", 10, 60).allowed is True

        result = rate_limiter.check("user-1", 10, 60)

        assert result.allowed is False
        assert result.remaining == 0

    def test_denied_requests_do_not_extend_window(self, rate_limiter, clock):
        for _ in range(3):
            rate_limiter.check("user-1", 2, 60)

        clock.advance(30)
        result = rate_limiter.check("user-1", 2, 60)

        assert result.allowed is False
        assert result.reset_in_ms == 30_000

    def test_window_resets_after_boundary(self, rate_limiter, clock):
        """After the reset time a fresh window starts with a full allowance."""
        for _ in range(11):
            rate_limiter.check("user-1", 10, 60)

        clock.advance(60.001)
        result = rate_limiter.check("user-1", 10, 60)

        assert result.allowed is True
        assert result.remaining == 9

    def test_exactly_at_reset_time_is_same_window(self, rate_limiter, clock):
        """The window only resets once now is strictly past reset_at."""
        rate_limiter.check("user-1", 1, 60)

        clock.advance(60)

        assert rate_limiter.check("user-1", 1, 60).allowed is False

    def test_identifiers_are_independent(self, rate_limiter):
        rate_limiter.check("user-1", 1, 60)

        assert rate_limiter.check("user-1", 1, 60).allowed is False
        assert rate_limiter.check("user-2", 1, 60).allowed is True

    def test_policies_use_separate_buckets(self, rate_limiter):
        analysis = RateLimitPolicy(name="analysis", max_requests=1, window_seconds=60)
        rebuttal = RateLimitPolicy(name="rebuttal", max_requests=1, window_seconds=60)

        assert rate_limiter.check_policy("user-1", analysis).allowed is True
        assert rate_limiter.check_policy("user-1", rebuttal).allowed is True
        assert rate_limiter.check_policy("user-1", analysis).allowed is False

    def test_sweep_removes_only_expired_entries(self, rate_limiter, clock):
        rate_limiter.check("old", 5, 10)
        clock.advance(20)
        rate_limiter.check("fresh", 5, 10)

        removed = rate_limiter.sweep_expired()

        assert removed == 1
        assert len(rate_limiter) == 1

    @pytest.mark.asyncio
    async def test_sweeper_stops_on_cancel(self, rate_limiter):
        task = asyncio.create_task(rate_limiter.run_sweeper(interval_seconds=0.01))
        await asyncio.sleep(0.05)

        task.cancel()
        await asyncio.wait_for(task, timeout=1.0)

        assert task.done()


class TestRateLimitResult:

    def test_retry_after_rounds_up(self):
        assert RateLimitResult(allowed=False, remaining=0, reset_in_ms=1500).retry_after == 2

    def test_retry_after_is_at_least_one_second(self):
        assert RateLimitResult(allowed=False, remaining=0, reset_in_ms=0).retry_after == 1


class TestResolveIdentifier:

    def test_user_id_wins(self):
        assert resolve_identifier("user-1", "1.2.3.4", "5.6.7.8") == "user-1"

    def test_first_forwarded_hop(self):
        assert resolve_identifier(None, "1.2.3.4, 10.0.0.1", "5.6.7.8") == "1.2.3.4"

    def test_client_host_fallback(self):
        assert resolve_identifier(None, None, "5.6.7.8") == "5.6.7.8"

    def test_anonymous_bucket(self):
        assert resolve_identifier(None, "", None) == "anonymous"
