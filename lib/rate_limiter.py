"""
Rolling-window rate limiter for outbound generation calls.

At most `max_requests` admissions are allowed within any trailing
`interval_ms` window. The window lives either in process memory or in a
shared PostgreSQL table; the shared variant takes precedence when configured
and degrades to the in-process one if the store stops answering.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Awaitable, Callable, Optional

import asyncpg

logger = logging.getLogger(__name__)

MIN_WAIT_MS = 50
DEFAULT_LIMITER_NAME = "gemini-generate"


def _wall_clock_ms() -> float:
    return time.time() * 1000


class RateLimitStoreUnavailable(Exception):
    """The shared window could not be read or written."""


class RateLimitWindow(ABC):
    """One admission window. Prune, count and record happen as one step."""

    def __init__(self, max_requests: int, interval_ms: int):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if interval_ms < 1:
            raise ValueError("interval_ms must be positive")
        self.max_requests = max_requests
        self.interval_ms = interval_ms

    def _wait_for(self, now_ms: float, oldest_ms: float) -> float:
        return max(self.interval_ms - (now_ms - oldest_ms), MIN_WAIT_MS)

    @abstractmethod
    async def try_admit(self, now_ms: float) -> Optional[float]:
        """
        Admit and record `now_ms` if a slot is free.

        Returns:
            None when admitted, otherwise the suggested wait in milliseconds
        """
        pass


class InMemoryWindow(RateLimitWindow):
    """Window held in this process; one independent window per process."""

    def __init__(self, max_requests: int, interval_ms: int):
        super().__init__(max_requests, interval_ms)
        self._timestamps: deque[float] = deque()

    async def try_admit(self, now_ms: float) -> Optional[float]:
        # No await between prune and record, so this is atomic on the event loop
        while self._timestamps and now_ms - self._timestamps[0] >= self.interval_ms:
            self._timestamps.popleft()

        if len(self._timestamps) < self.max_requests:
            self._timestamps.append(now_ms)
            return None

        return self._wait_for(now_ms, self._timestamps[0])

    def snapshot(self) -> list[float]:
        """Timestamps currently held, oldest first."""
        return list(self._timestamps)


class PostgresWindow(RateLimitWindow):
    """
    Window shared by every process pointing at the same database.

    Each admission check runs in one transaction holding a transaction-scoped
    advisory lock on the limiter name, so concurrent processes serialize on
    prune + count + record and cannot over-admit.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        max_requests: int,
        interval_ms: int,
        name: str = DEFAULT_LIMITER_NAME,
    ):
        super().__init__(max_requests, interval_ms)
        self._pool = pool
        self.name = name

    async def try_admit(self, now_ms: float) -> Optional[float]:
        now = int(now_ms)
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        "SELECT pg_advisory_xact_lock(hashtext($1))", self.name
                    )
                    await conn.execute(
                        """
                        DELETE FROM rate_limit_events
                        WHERE limiter_name = $1 AND admitted_at_ms <= $2
                        """,
                        self.name,
                        now - self.interval_ms,
                    )
                    row = await conn.fetchrow(
                        """
                        SELECT COUNT(*) AS admitted, MIN(admitted_at_ms) AS oldest
                        FROM rate_limit_events
                        WHERE limiter_name = $1
                        """,
                        self.name,
                    )
                    if row["admitted"] < self.max_requests:
                        await conn.execute(
                            """
                            INSERT INTO rate_limit_events (limiter_name, admitted_at_ms)
                            VALUES ($1, $2)
                            """,
                            self.name,
                            now,
                        )
                        return None
                    return self._wait_for(now, row["oldest"])
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise RateLimitStoreUnavailable(str(e)) from e


class RateLimiter:
    """
    Gate in front of the model API.

    `acquire_slot()` suspends the caller until the active window admits it.
    A shared window that fails is dropped for the rest of the process's life
    and the in-process window takes over; store errors never reach callers.
    """

    def __init__(
        self,
        max_requests: int = 2,
        interval_ms: int = 60000,
        shared: Optional[RateLimitWindow] = None,
        clock: Callable[[], float] = _wall_clock_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_requests = max_requests
        self.interval_ms = interval_ms
        self.local = InMemoryWindow(max_requests, interval_ms)
        self.shared = shared
        self._clock = clock
        self._sleep = sleep

    @property
    def backend(self) -> str:
        return "shared" if self.shared is not None else "local"

    async def _try_admit(self, now_ms: float) -> Optional[float]:
        if self.shared is not None:
            try:
                return await self.shared.try_admit(now_ms)
            except RateLimitStoreUnavailable as e:
                logger.warning(
                    "Shared rate-limit store unavailable (%s); falling back to in-process limiting",
                    e,
                )
                self.shared = None
        return await self.local.try_admit(now_ms)

    async def acquire_slot(self) -> None:
        """Wait until a slot is free, then record the admission and return."""
        while True:
            wait_ms = await self._try_admit(self._clock())
            if wait_ms is None:
                return
            logger.warning(
                "Gemini rate limit reached (%d/%dms). Waiting %dms before next request...",
                self.max_requests, self.interval_ms, wait_ms,
            )
            await self._sleep(wait_ms / 1000)
