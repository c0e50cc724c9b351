"""Bounded retry for typed fetches.

Transient transport failures are retried with exponential backoff. A version
mismatch is never retried: it is the signal to switch protocol paths, so it
propagates immediately along with any other error.
"""

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from roomsync.domain.exceptions import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fetch_with_retry(
    fetch_fn: Callable[[], T],
    retries: int = 3,
    delay: float = 0.5,
    backoff: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Execute a fetch, retrying on TransportError.

    Args:
        fetch_fn: Zero-argument callable performing the request
        retries: Additional attempts after the first one (default: 3)
        delay: Seconds to wait before the first retry
        backoff: Multiplier applied to the delay after each retry
        sleep: Sleep function (injectable for tests)

    Returns:
        Result from fetch_fn

    Raises:
        TransportError: If every attempt failed
        VersionMismatchError: Immediately, without retrying
    """
    attempt = 0
    current_delay = delay

    while True:
        try:
            return fetch_fn()
        except TransportError as e:
            if attempt >= retries:
                if retries:
                    logger.error("Fetch failed after %d retries: %s", retries, e.message)
                raise

            attempt += 1
            logger.warning(
                "Transient fetch error (%s). Retry %d/%d in %.1fs.",
                e.message,
                attempt,
                retries,
                current_delay,
            )
            if current_delay > 0:
                sleep(current_delay)
            current_delay *= backoff
