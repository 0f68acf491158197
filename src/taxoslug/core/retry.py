"""Bounded exponential-backoff retry for async operations.

Each attempt produces an explicit :class:`Success` or :class:`Failure`
result and the loop branches on that tag. A failure stops the loop when it
is the final attempt or when its classification is not retryable.

Attempts are numbered from 0, so ``max_attempts=3`` allows up to four
invocations. The delay before the retry that follows attempt ``n`` is
``base_delay * 2**n`` plus a random jitter in ``[0, max_jitter)``.

Example:
    mapping = await with_retry(fetch_taxonomy, max_attempts=3, base_delay=1.0)
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, NoReturn, TypeVar, Union

from pydantic import BaseModel, Field

from taxoslug.core.errors import ErrorDescriptor, classify, should_retry

if TYPE_CHECKING:
    from taxoslug.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_JITTER = 1.0  # seconds

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Success(Generic[T]):
    """Operation completed with a value."""

    value: T
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Operation failed; ``error`` is the last exception raised."""

    error: Exception
    descriptor: ErrorDescriptor
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> NoReturn:
        raise self.error


Result = Union[Success[T], Failure]


class RetryPolicy(BaseModel):
    """Retry schedule for one kind of operation."""

    model_config = {"frozen": True}

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=0)
    base_delay: float = Field(default=DEFAULT_BASE_DELAY, ge=0)
    max_jitter: float = Field(default=DEFAULT_MAX_JITTER, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_jitter=settings.retry_max_jitter,
        )


def backoff_delay(
    attempt: int,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_jitter: float = DEFAULT_MAX_JITTER,
) -> float:
    """Seconds to wait after a failed ``attempt`` (0-based)."""
    jitter = random.uniform(0, max_jitter) if max_jitter > 0 else 0.0
    return base_delay * (2**attempt) + jitter


async def _attempt(operation: Callable[[], Awaitable[T]], attempt: int) -> Result[T]:
    try:
        value = await operation()
    except Exception as e:
        return Failure(error=e, descriptor=classify(e), attempts=attempt + 1)
    return Success(value=value, attempts=attempt + 1)


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    *,
    max_jitter: float = DEFAULT_MAX_JITTER,
    sleep: Sleep = asyncio.sleep,
) -> Result[T]:
    """Run ``operation`` under the retry schedule and return the final result.

    Never raises for failures of ``operation``; cancellation still
    propagates.
    """
    attempt = 0
    while True:
        result = await _attempt(operation, attempt)
        if isinstance(result, Success):
            return result

        if attempt >= max_attempts or not should_retry(result.error):
            return result

        delay = backoff_delay(attempt, base_delay, max_jitter)
        logger.warning(
            "Attempt %d failed (%s), retrying in %.2fs",
            attempt + 1,
            result.descriptor.kind.value,
            delay,
        )
        await sleep(delay)
        attempt += 1


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    *,
    max_jitter: float = DEFAULT_MAX_JITTER,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``operation`` with retry, returning its value or raising its last error."""
    result = await run_with_retry(
        operation,
        max_attempts,
        base_delay,
        max_jitter=max_jitter,
        sleep=sleep,
    )
    if isinstance(result, Failure):
        raise result.error
    return result.value
