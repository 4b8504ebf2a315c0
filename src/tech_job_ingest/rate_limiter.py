import asyncio
import logging
import random
import time
from collections import deque
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MINUTE = 60.0
HOUR = 3600.0


class RateLimitConfig(BaseModel):
    """Request budget for one job source. Delays are in seconds."""

    max_requests_per_minute: int = Field(default=30, gt=0)
    max_requests_per_hour: int = Field(default=200, gt=0)
    base_delay: float = Field(default=2.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    jitter: float = Field(default=1.0, ge=0)


class RateLimiter:
    """
    Paces outbound requests against a sliding per-minute and per-hour budget.

    One instance is shared by every call site that talks to the same source.
    Consecutive errors add an exponential backoff on top of the base delay;
    a success resets it. State lives for the lifetime of the process only.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._request_times: deque[float] = deque()
        self._consecutive_errors = 0
        self._lock = asyncio.Lock()

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    def _prune(self, now: float) -> None:
        while self._request_times and now - self._request_times[0] >= HOUR:
            self._request_times.popleft()

    def _window_wait(self, now: float) -> float:
        """Seconds until the budget admits another request, 0 if it already does."""
        self._prune(now)

        recent = [t for t in self._request_times if now - t < MINUTE]
        if len(recent) >= self.config.max_requests_per_minute:
            wait = MINUTE - (now - recent[0])
            logger.info(f"Rate limit: waiting {wait:.1f}s for per-minute limit")
            return max(wait, 0.0)

        if len(self._request_times) >= self.config.max_requests_per_hour:
            wait = HOUR - (now - self._request_times[0])
            logger.info(f"Rate limit: waiting {wait:.1f}s for per-hour limit")
            return max(wait, 0.0)

        return 0.0

    def backoff_delay(self) -> float:
        """Extra delay caused by consecutive errors."""
        if self._consecutive_errors == 0:
            return 0.0
        return min(
            self.config.base_delay * self.config.backoff_multiplier**self._consecutive_errors,
            self.config.max_delay,
        )

    async def _wait(self) -> None:
        # Re-check after every sleep: the window may still be full.
        while True:
            wait = self._window_wait(self._clock())
            if wait <= 0:
                break
            await self._sleep(wait)

        delay = self.config.base_delay + random.uniform(0, self.config.jitter)
        backoff = self.backoff_delay()
        if backoff:
            logger.info(
                f"Backing off {backoff:.1f}s after {self._consecutive_errors} consecutive errors"
            )
        total = delay + backoff
        if total > 0:
            await self._sleep(total)

    async def wait_for_slot(self) -> None:
        """Suspend the caller until a request may be issued within budget."""
        async with self._lock:
            await self._wait()

    def record_request(self) -> None:
        self._request_times.append(self._clock())

    def record_success(self) -> None:
        self._consecutive_errors = 0

    def record_error(self) -> None:
        self._consecutive_errors += 1

    async def acquire(self) -> None:
        """Wait for a slot and count the request against the budget."""
        async with self._lock:
            await self._wait()
            self.record_request()
