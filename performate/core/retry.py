from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from performate.config import settings
from performate.core.errors import PartialFailureError, StorageError


logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryPolicy:
    def __init__(self, max_retries: int = 2, initial_delay_ms: int = 100) -> None:
        self.max_retries = max(0, int(max_retries))
        self.initial_delay_ms = max(0, int(initial_delay_ms))

    def delay_seconds(self, attempt: int) -> float:
        return (self.initial_delay_ms * (2 ** attempt)) / 1000.0

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_retries


default_retry_policy = RetryPolicy(
    max_retries=settings.retry_max_attempts,
    initial_delay_ms=settings.retry_initial_delay_ms,
)


def retry_operation(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy = default_retry_policy,
    on_retry: Callable[[StorageError], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying only on StorageError with exponential backoff.

    ``on_retry`` runs before each new attempt, e.g. to roll back the session.
    The last StorageError is re-raised once the policy is exhausted.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except StorageError as exc:
            if isinstance(exc, PartialFailureError) or not policy.should_retry(attempt):
                logger.warning('retry_exhausted attempts=%s error=%s', attempt + 1, exc)
                raise
            delay = policy.delay_seconds(attempt)
            logger.info('retry_scheduled attempt=%s delay_s=%.3f error=%s', attempt + 1, delay, exc)
            if on_retry is not None:
                on_retry(exc)
            sleep(delay)
            attempt += 1
