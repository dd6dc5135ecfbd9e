"""
Rate Limiting

Per-identifier fixed-window request counter held in process memory.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from loguru import logger


@dataclass(frozen=True)
class RateLimitPolicy:
    """Limit applied to one group of endpoints."""
    name: str
    max_requests: int
    window_seconds: float


@dataclass
class RateLimitResult:
    """
    Result of rate limit check.

    Attributes:
        allowed: Whether the request is allowed
        remaining: Number of requests remaining in current window
        reset_in_ms: Milliseconds until the current window resets
    """
    allowed: bool
    remaining: int
    reset_in_ms: int

    @property
    def retry_after(self) -> int:
        """Whole seconds a blocked client should wait (at least 1)."""
        return max(1, math.ceil(self.reset_in_ms / 1000))


@dataclass
class _WindowEntry:
    count: int
    reset_at: float


class InMemoryRateLimiter:
    """
    In-memory fixed-window rate limiter.

    The first request of an identifier opens a window of `window_seconds`;
    requests are counted until the window's reset time has passed, at which
    point the next request opens a fresh window. The count is never decayed
    inside a window.

    State is local to the process and only touched from the event loop, so
    `check` does no locking. Suitable for single-instance deployments.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """
        Initialize in-memory rate limiter.

        Args:
            clock: Source of monotonic seconds, injectable for tests
        """
        self._clock = clock
        self._entries: Dict[str, _WindowEntry] = {}

    def check(self, identifier: str, max_requests: int, window_seconds: float) -> RateLimitResult:
        """
        Count one request for `identifier` and decide whether it is allowed.

        Args:
            identifier: User id, client address, or "anonymous"
            max_requests: Requests allowed per window
            window_seconds: Window length

        Returns:
            Rate limit result
        """
        now = self._clock()
        entry = self._entries.get(identifier)

        if entry is None or now > entry.reset_at:
            self._entries[identifier] = _WindowEntry(count=1, reset_at=now + window_seconds)
            return RateLimitResult(
                allowed=True,
                remaining=max_requests - 1,
                reset_in_ms=int(window_seconds * 1000)
            )

        reset_in_ms = int((entry.reset_at - now) * 1000)

        if entry.count >= max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_in_ms=reset_in_ms)

        entry.count += 1

        return RateLimitResult(
            allowed=True,
            remaining=max_requests - entry.count,
            reset_in_ms=reset_in_ms
        )

    def check_policy(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Apply a named policy in its own bucket namespace ("analysis:<id>")."""
        return self.check(f"{policy.name}:{identifier}", policy.max_requests, policy.window_seconds)

    def sweep_expired(self) -> int:
        """
        Drop entries whose window has passed.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now > entry.reset_at]

        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug(f"Rate limiter swept {len(expired)} expired entries")

        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    async def run_sweeper(self, interval_seconds: float = 300.0) -> None:
        """
        Periodically sweep expired entries until cancelled.

        Args:
            interval_seconds: Seconds between sweeps
        """
        logger.info("Rate limit sweeper started", extra={"interval": interval_seconds})

        while True:
            try:
                await asyncio.sleep(interval_seconds)
                self.sweep_expired()
            except asyncio.CancelledError:
                logger.info("Rate limit sweeper cancelled")
                break


def resolve_identifier(
    user_id: Optional[str],
    forwarded_for: Optional[str],
    client_host: Optional[str]
) -> str:
    """
    Pick the rate limit bucket for a request.

    Precedence: authenticated user id, then the first address of
    X-Forwarded-For, then the socket peer, then a shared "anonymous" bucket.
    """
    if user_id:
        return user_id

    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    if client_host:
        return client_host

    return "anonymous"
