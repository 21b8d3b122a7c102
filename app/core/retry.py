"""
Bounded retry with attempt-indexed backoff.

RetryPolicy.run() calls an operation up to max_attempts times, sleeping
backoff(attempt, delay) seconds after each retryable failure. The last error is
re-raised once attempts are exhausted or the predicate rejects the error.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from app.exceptions import DuplicateRecordError, NotFoundError, PersistenceError

T = TypeVar("T")

logger = logging.getLogger(__name__)


def linear_backoff(attempt: int, delay: float) -> float:
    """Wait attempt * delay: 1x after the first failure, 2x after the second."""
    return attempt * delay


def is_transient(exc: BaseException) -> bool:
    """Retry storage failures, but not missing rows or lost insert races."""
    if isinstance(exc, (NotFoundError, DuplicateRecordError)):
        return False
    return isinstance(exc, PersistenceError)


def retry_everything(exc: BaseException) -> bool:
    return True


class RetryPolicy:
    def __init__(
        self,
        max_attempts: int = 3,
        delay_seconds: float = 1.0,
        backoff: Callable[[int, float], float] = linear_backoff,
        retryable: Callable[[BaseException], bool] = is_transient,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.delay_seconds = delay_seconds
        self.backoff = backoff
        self.retryable = retryable
        self.sleep = sleep

    def with_attempts(self, max_attempts: Optional[int]) -> "RetryPolicy":
        if max_attempts is None or max_attempts == self.max_attempts:
            return self
        return RetryPolicy(
            max_attempts=max_attempts,
            delay_seconds=self.delay_seconds,
            backoff=self.backoff,
            retryable=self.retryable,
            sleep=self.sleep,
        )

    def run(
        self,
        operation: Callable[[int], T],
        description: str = "operation",
        on_failure: Optional[Callable[[BaseException], None]] = None,
    ) -> T:
        """
        Run operation(attempt) until it succeeds or attempts run out.

        on_failure is called after every failed attempt (e.g. to roll back a
        session) before deciding whether to retry.
        """
        attempt = 1
        while True:
            try:
                result = operation(attempt)
            except Exception as exc:
                if on_failure is not None:
                    on_failure(exc)
                retry = self.retryable(exc) and attempt < self.max_attempts
                logger.warning(
                    "%s failed (attempt %d/%d): %s",
                    description,
                    attempt,
                    self.max_attempts,
                    exc,
                    extra={"attempt": attempt},
                )
                if not retry:
                    raise
                self.sleep(self.backoff(attempt, self.delay_seconds))
                attempt += 1
                continue
            logger.debug(
                "%s succeeded (attempt %d/%d)",
                description,
                attempt,
                self.max_attempts,
                extra={"attempt": attempt},
            )
            return result
