"""Bounded retry with explicit error contracts.

Two loops share one policy type:
- ``retry_async`` wraps a driver's HTTP attempt (the client's ``max_retries``)
- ``retry_call`` wraps the blocking metrics check-then-act sequence
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import random
import time
from typing import TYPE_CHECKING, TypeVar

import httpx

from llm_orchestrator._http import RETRYABLE_STATUS_CODES
from llm_orchestrator.errors import _walk_exception_chain

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy with exponential backoff and optional jitter."""

    max_attempts: int = 3
    initial_delay_s: float = 0.5
    backoff_multiplier: float = 2.0
    max_delay_s: float = 5.0
    jitter: bool = True  # "full jitter" when enabled
    max_elapsed_s: float | None = 30.0

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy.max_attempts must be >= 1")
        if self.initial_delay_s < 0:
            raise ValueError("RetryPolicy.initial_delay_s must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("RetryPolicy.backoff_multiplier must be > 0")
        if self.max_delay_s < 0:
            raise ValueError("RetryPolicy.max_delay_s must be >= 0")
        if self.max_elapsed_s is not None and self.max_elapsed_s < 0:
            raise ValueError("RetryPolicy.max_elapsed_s must be >= 0 or None")


def retry_after_from_response(response: httpx.Response | None) -> float | None:
    """Parse a numeric ``Retry-After`` header, if present."""
    if response is None:
        return None
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    return value if value >= 0 else None


def _retry_after_from_error(exc: BaseException) -> float | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return retry_after_from_response(exc.response)
    return None


def should_retry_transport(exc: BaseException) -> bool:
    """Return True when an HTTP attempt should be repeated.

    Contract:
    - Cancellation is never retried.
    - HTTP status errors are retried only for known transient status codes.
    - Timeouts and transport-level failures are retried.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False

    for e in _walk_exception_chain(exc):
        if isinstance(e, httpx.HTTPStatusError):
            return e.response.status_code in RETRYABLE_STATUS_CODES
        if isinstance(e, (TimeoutError, httpx.TimeoutException, httpx.TransportError)):
            return True
    return False


def _compute_backoff_delay(policy: RetryPolicy, *, retry_index: int) -> float:
    # retry_index starts at 1 for the first retry sleep.
    base = policy.initial_delay_s * (
        policy.backoff_multiplier ** max(0, retry_index - 1)
    )
    base = min(policy.max_delay_s, base)
    if base <= 0:
        return 0.0
    if not policy.jitter:
        return base
    # Full jitter: random in [0, base] to avoid thundering herd.
    return random.random() * base  # noqa: S311


def _next_delay(
    policy: RetryPolicy, exc: BaseException, *, attempt: int, start: float
) -> float | None:
    """Return the sleep before the next attempt, or None when the budget is spent."""
    delay = _compute_backoff_delay(policy, retry_index=attempt)
    retry_after = _retry_after_from_error(exc)
    if retry_after is not None:
        delay = max(delay, retry_after)

    if policy.max_elapsed_s is not None:
        remaining = policy.max_elapsed_s - (time.monotonic() - start)
        if remaining <= 0:
            return None
        delay = min(delay, remaining)
    return delay


async def retry_async(
    factory: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool] = should_retry_transport,
) -> T:
    """Run an async factory with bounded retries."""
    start = time.monotonic()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await factory()
        except Exception as exc:
            if not should_retry(exc) or attempt >= policy.max_attempts:
                raise
            delay = _next_delay(policy, exc, attempt=attempt, start=start)
            if delay is None:
                raise
            if delay > 0:
                await asyncio.sleep(delay)

    raise RuntimeError("retry_async exhausted without an exception")  # pragma: no cover


def retry_call(
    fn: Callable[[], T],
    *,
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool],
) -> T:
    """Blocking twin of ``retry_async`` for database work."""
    start = time.monotonic()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if not should_retry(exc) or attempt >= policy.max_attempts:
                raise
            delay = _next_delay(policy, exc, attempt=attempt, start=start)
            if delay is None:
                raise
            if delay > 0:
                time.sleep(delay)

    raise RuntimeError("retry_call exhausted without an exception")  # pragma: no cover
