"""
Bounded retry for remote calls (record source, model provider, blob store).

Only rate limiting (429) and server errors (>= 500) are retried. The delay is
linear in the attempt index with no jitter; the last error is re-raised as-is.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def extract_status(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status"):
        v = getattr(exc, attr, None)
        if isinstance(v, int):
            return v
        if isinstance(v, str) and v.isdigit():
            return int(v)
    response = getattr(exc, "response", None)
    v = getattr(response, "status_code", None)
    if isinstance(v, int):
        return v
    return None


def is_retryable_status(status: Optional[int]) -> bool:
    return status == 429 or (status is not None and status >= 500)


def is_retryable_error(exc: BaseException) -> bool:
    return is_retryable_status(extract_status(exc))


def linear_backoff(base_delay: float) -> Callable[[int], float]:
    def _delay(attempt: int) -> float:
        return max(0.0, float(base_delay)) * attempt

    return _delay


def with_retry(
    fn: Callable[[], T],
    *,
    tries: int = 3,
    base_delay: float = 0.8,
    retryable: Callable[[BaseException], bool] = is_retryable_error,
    backoff: Optional[Callable[[int], float]] = None,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "",
) -> T:
    """
    Call `fn` up to `tries` times.

    `backoff(attempt)` receives the 1-based index of the attempt that just failed.
    """
    delay_for = backoff or linear_backoff(base_delay)
    attempts = max(1, int(tries))
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as e:
            if attempt >= attempts or not retryable(e):
                raise
            delay = delay_for(attempt)
            logger.warning(
                "retrying %s attempt=%s/%s status=%s delay=%.2fs err=%s",
                label or "call",
                attempt,
                attempts,
                extract_status(e),
                delay,
                e,
            )
            sleep(delay)
    raise RuntimeError("unreachable")  # pragma: no cover


__all__ = ["extract_status", "is_retryable_error", "is_retryable_status", "linear_backoff", "with_retry"]
