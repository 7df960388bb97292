from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

LOG = logging.getLogger(__name__)

T = TypeVar("T")

# Lower-cased substrings of error messages that indicate a transient failure.
RETRYABLE_MARKERS: tuple[str, ...] = (
    "timeout",
    "network",
    "econnreset",
    "etimedout",
    "enotfound",
    "econnrefused",
    "protocol error",
    "navigation timeout",
    "target closed",
    "net::err_",
)


def is_retryable_error(err: BaseException) -> bool:
    """Classification used for log wording only; every exception is retried."""
    if isinstance(err, (TimeoutError, ConnectionError)):
        return True
    message = f"{type(err).__name__}: {err}".lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """
    retries: extra attempts after the first one.
    Delays grow initial_delay * multiplier**n and are capped at max_delay
    (1s, 2s, 4s, 8s, 10s, ... with the defaults).
    """

    retries: int = 2
    initial_delay: float = 1.0
    max_delay: float = 10.0
    multiplier: float = 2.0

    def retrying(self, *, sleep: Callable[[float], Awaitable[Any]] | None = None) -> AsyncRetrying:
        kwargs: dict[str, Any] = {
            "stop": stop_after_attempt(max(0, self.retries) + 1),
            "wait": wait_exponential(
                multiplier=self.initial_delay,
                exp_base=self.multiplier,
                max=self.max_delay,
            ),
            "retry": retry_if_exception_type(Exception),
            "before_sleep": before_sleep_log(LOG, logging.WARNING),
            "reraise": True,
        }
        if sleep is not None:
            kwargs["sleep"] = sleep
        return AsyncRetrying(**kwargs)


async def run_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[Any]] | None = None,
) -> T:
    """Await fn() until it succeeds or the policy is exhausted; the last error is re-raised."""
    return await policy.retrying(sleep=sleep)(fn)
