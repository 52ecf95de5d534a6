"""
Retry orchestration for model calls.

Wraps a single generation call with bounded exponential backoff and composes
that loop with API key rotation:

- attempts on one key are retried while the error is retriable
- a non-retriable error aborts the whole operation immediately
- exhausting the attempts on one key moves on to the next key
- exhausting every key re-raises the last error
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRIABLE_PROVIDER_CODES = frozenset({"UNAVAILABLE", "RESOURCE_EXHAUSTED", "ABORTED"})

_RETRIABLE_MESSAGE_RE = re.compile(
    r"overload|unavailable|time[ d-]?out|timed out|try again later",
    re.IGNORECASE,
)


class ModelError(Exception):
    """A failed call to the generation model.

    Built by the provider adapter at the HTTP boundary so the classifier sees
    one stable shape instead of probing arbitrary exception objects.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.provider_code = provider_code.upper() if provider_code else None

    def describe(self) -> str:
        """Short reason string for log lines."""
        if self.status_code is not None:
            return f"HTTP {self.status_code}"
        if self.provider_code:
            return self.provider_code
        return self.message or "unknown error"

    def __repr__(self) -> str:
        return (
            f"ModelError(status_code={self.status_code!r}, "
            f"provider_code={self.provider_code!r}, message={self.message!r})"
        )


def is_retriable(error: BaseException) -> bool:
    """Classify a failure as transient (worth retrying) or fatal."""
    if not isinstance(error, ModelError):
        return False

    status = error.status_code
    if status is not None and (status == 429 or status >= 500):
        return True

    if error.provider_code in RETRIABLE_PROVIDER_CODES:
        return True

    return bool(_RETRIABLE_MESSAGE_RE.search(error.message or ""))


@dataclass(frozen=True)
class RetryPolicy:
    """Attempts per key and the backoff base between them."""

    max_attempts: int = 3
    base_delay_ms: int = 1000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must not be negative")

    def delay_before(self, attempt: int) -> int:
        """Backoff in ms before the given 1-based attempt (0 for the first)."""
        if attempt <= 1:
            return 0
        return self.base_delay_ms * 2 ** (attempt - 2)

    def worst_case_backoff_ms(self, pool_size: int = 1) -> int:
        """Upper bound on time spent sleeping between attempts for one request."""
        per_key = sum(self.delay_before(a) for a in range(2, self.max_attempts + 1))
        return max(pool_size, 1) * per_key


async def call_with_retry(
    attempt_fn: Callable[[], Awaitable[T]],
    classifier: Callable[[BaseException], bool] = is_retriable,
    max_attempts: int = 3,
    base_delay_ms: int = 1000,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "model",
) -> T:
    """
    Run attempt_fn until it succeeds, a fatal error occurs, or attempts run out.

    Args:
        attempt_fn: Zero-argument coroutine factory performing one attempt
        classifier: Returns True when an error is worth retrying
        max_attempts: Total attempts, including the first
        base_delay_ms: Backoff base; attempt n waits base * 2^(n-2) ms
        sleep: Awaitable sleep in seconds (injectable for tests)
        label: Name used in log lines

    Returns:
        The first successful result

    Raises:
        The last error raised by attempt_fn
    """
    policy = RetryPolicy(max_attempts=max_attempts, base_delay_ms=base_delay_ms)

    attempt = 1
    while True:
        try:
            return await attempt_fn()
        except Exception as error:
            if attempt >= policy.max_attempts or not classifier(error):
                raise
            delay_ms = policy.delay_before(attempt + 1)
            reason = error.describe() if isinstance(error, ModelError) else str(error)
            logger.warning(
                "%s request failed on attempt %d/%d (%s). Retrying in %dms...",
                label, attempt, policy.max_attempts, reason, delay_ms,
            )
            await sleep(delay_ms / 1000)
            attempt += 1


async def call_with_key_rotation(
    keys: Sequence[str],
    attempt_fn: Callable[[str], Awaitable[T]],
    policy: RetryPolicy,
    classifier: Callable[[BaseException], bool] = is_retriable,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Try each key in order, retrying transient failures on each one.

    Args:
        keys: Credentials in the order they should be tried
        attempt_fn: Coroutine factory performing one attempt with a given key
        policy: Attempts per key and backoff base
        classifier: Returns True when an error is worth retrying
        sleep: Awaitable sleep in seconds (injectable for tests)

    Returns:
        The first successful result

    Raises:
        ValueError: If no keys are given
        The first non-retriable error, or the last error once every key is spent
    """
    if not keys:
        raise ValueError("No API keys to try")

    last_error: Optional[BaseException] = None
    for index, key in enumerate(keys):
        try:
            return await call_with_retry(
                lambda: attempt_fn(key),
                classifier=classifier,
                max_attempts=policy.max_attempts,
                base_delay_ms=policy.base_delay_ms,
                sleep=sleep,
                label=f"Gemini (key {index + 1}/{len(keys)})",
            )
        except Exception as error:
            if not classifier(error):
                raise
            last_error = error
            if index + 1 < len(keys):
                logger.warning(
                    "Key %d/%d exhausted its retries; rotating to the next key",
                    index + 1, len(keys),
                )

    raise last_error
