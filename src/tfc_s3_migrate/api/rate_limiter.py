"""Rate limiting for Terraform Cloud API calls."""

import asyncio
import threading
import time


class RateLimiter:
    """Token bucket rate limiter for API requests.

    Shared by the synchronous planning calls and the concurrent state
    downloads, so the bucket itself is guarded by a thread lock.
    """

    def __init__(self, requests_per_second: float = 20.0):
        """Initialize rate limiter.

        Args:
            requests_per_second: Maximum requests per second allowed
        """
        self.requests_per_second = requests_per_second
        self.tokens = requests_per_second
        self.last_update = time.monotonic()
        self._lock = threading.Lock()

    def _reserve(self) -> float:
        """Take a token and return how long the caller must wait for it."""
        with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_update

            self.tokens = min(
                self.requests_per_second,
                self.tokens + elapsed * self.requests_per_second,
            )
            self.last_update = now

            self.tokens -= 1
            if self.tokens >= 0:
                return 0.0
            return -self.tokens / self.requests_per_second

    async def acquire(self) -> None:
        """Acquire a token for making a request (async version).

        Blocks until a token is available.
        """
        wait = self._reserve()
        if wait > 0:
            await asyncio.sleep(wait)

    def acquire_sync(self) -> None:
        """Acquire a token for making a request (synchronous version).

        Blocks until a token is available.
        """
        wait = self._reserve()
        if wait > 0:
            time.sleep(wait)

    def _available_tokens(self) -> float:
        """Tokens in the bucket now, refill included, without taking one."""
        with self._lock:
            elapsed = time.monotonic() - self.last_update
            return min(
                self.requests_per_second,
                self.tokens + elapsed * self.requests_per_second,
            )

    def can_proceed(self) -> bool:
        """Check if a request can proceed without blocking."""
        return self._available_tokens() >= 1

    def time_until_next_request(self) -> float:
        """Get time until next request can be made.

        Returns:
            Seconds until next request is allowed
        """
        tokens = self._available_tokens()
        if tokens >= 1:
            return 0.0

        return (1 - tokens) / self.requests_per_second
