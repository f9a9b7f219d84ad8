"""Retry with exponential backoff under a deadline.

Soft exhaustion comes back as a ``RetryFailure`` value; errors the caller
classifies as fatal (``is_fatal``) are re-raised on first sight.
"""
from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar, Union

from .settings import Settings

T = TypeVar('T')

logger = logging.getLogger('retry')

# patched in tests to record backoff delays
_sleep = asyncio.sleep


@dataclass(frozen=True)
class RetryFailure:
    error: Optional[BaseException]
    attempts: int
    timed_out: bool = False

    def describe(self) -> str:
        why = 'deadline exceeded' if self.timed_out else 'attempts exhausted'
        detail = f": {type(self.error).__name__}: {self.error}" if self.error else ''
        return f"{why} after {self.attempts} attempt(s){detail}"


RetryOutcome = Union[T, RetryFailure]


def backoff_delay(base_delay: float, attempt: int) -> float:
    return base_delay * 2 ** (attempt - 1)


async def retry(operation: Callable[[], Awaitable[T]], *, max_attempts: int = 3, base_delay: float = 0.2,
                deadline: Optional[float] = None,
                on_retry: Optional[Callable[[BaseException, int], None]] = None,
                is_fatal: Optional[Callable[[BaseException], bool]] = None,
                clock: Callable[[], float] = time.monotonic) -> RetryOutcome:
    if max_attempts < 1:
        raise ValueError('max_attempts must be >= 1')
    started = clock()
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        if attempt > 1 and deadline is not None and clock() - started >= deadline:
            # time is up: do not start another browser action
            logger.debug(f"retry deadline {deadline}s reached before attempt {attempt}")
            return RetryFailure(last_error, attempt - 1, timed_out=True)
        try:
            return await operation()
        except Exception as e:
            if is_fatal is not None and is_fatal(e):
                raise
            last_error = e
            if attempt == max_attempts:
                break
            if on_retry is not None:
                on_retry(e, attempt)
            await _sleep(backoff_delay(base_delay, attempt))
    return RetryFailure(last_error, max_attempts)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.2
    deadline: Optional[float] = None

    async def run(self, operation: Callable[[], Awaitable[T]], *,
                  on_retry: Optional[Callable[[BaseException, int], None]] = None,
                  is_fatal: Optional[Callable[[BaseException], bool]] = None) -> RetryOutcome:
        return await retry(operation, max_attempts=self.max_attempts, base_delay=self.base_delay,
                           deadline=self.deadline, on_retry=on_retry, is_fatal=is_fatal)

    @classmethod
    def for_list(cls, settings: Settings) -> 'RetryPolicy':
        return cls(settings.list_retry_attempts, settings.list_retry_base_delay, settings.list_retry_deadline)

    @classmethod
    def for_details(cls, settings: Settings) -> 'RetryPolicy':
        return cls(settings.details_retry_attempts, settings.details_retry_base_delay, settings.details_retry_deadline)
