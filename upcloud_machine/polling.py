"""
Bounded Polling
===============

Waits for an externally observed condition (an address being assigned,
a server reaching "stopped") with a deadline and exponential backoff.

Only "not ready yet" is retried. An exception raised while fetching
aborts the wait immediately and propagates to the caller unchanged.
"""

import logging
import time
from typing import Any, Callable, Optional, TypeVar

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)
from tenacity.stop import stop_base

from .errors import WaitTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _stop_after_idle(stop_base):
    """Stop once the delays asked of sleep() add up to the limit."""

    def __init__(self, max_idle: float):
        self.max_idle = max_idle

    def __call__(self, retry_state) -> bool:
        return retry_state.idle_for >= self.max_idle


class _NotReady(Exception):
    """Condition not met yet - retry."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__()


def wait_until(
    fetch: Callable[[], T],
    accept: Callable[[T], Any],
    description: str,
    timeout: float = 600.0,
    max_attempts: Optional[int] = None,
    initial_interval: float = 1.0,
    max_interval: float = 10.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Poll until a condition holds.

    Args:
        fetch: Produces a fresh snapshot on every call
        accept: Returns something truthy once the snapshot is acceptable
        description: What is being waited for, used in logs and errors
        timeout: Give up after this many seconds
        max_attempts: Optionally give up after this many fetches
        initial_interval: First delay between fetches, in seconds
        max_interval: Upper bound on the delay between fetches
        sleep: Sleep function (injectable for tests); the delays it is asked
            for count against the timeout even if it returns at once

    Returns:
        The truthy value returned by accept()

    Raises:
        WaitTimeoutError: If the condition did not hold in time
    """
    # Wall clock or requested delays, whichever runs out first
    stop = stop_after_delay(timeout) | _stop_after_idle(timeout)
    if max_attempts is not None:
        stop = stop | stop_after_attempt(max_attempts)

    attempts = 0
    started = time.monotonic()

    @retry(
        stop=stop,
        wait=wait_exponential(multiplier=initial_interval, min=initial_interval, max=max_interval),
        retry=retry_if_exception_type(_NotReady),
        reraise=True,
        sleep=sleep,
    )
    def _poll() -> Any:
        nonlocal attempts
        attempts += 1
        value = fetch()
        result = accept(value)
        if not result:
            logger.debug(f"Still waiting for {description} (attempt {attempts})")
            raise _NotReady(value)
        return result

    try:
        return _poll()
    except _NotReady as e:
        elapsed = time.monotonic() - started
        raise WaitTimeoutError(description, attempts, elapsed, e.value) from None
