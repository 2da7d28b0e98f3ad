"""Backoff for transient provider failures.

Only errors the predicate accepts are retried. By default that is
``UnavailableError``: rate limits and bad input surface immediately.
"""

import logging
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from portfolio_tracker.core.errors import is_retryable

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryConfig:
    """
    How often and how patiently to retry a provider call.

    The defaults give the price lookup schedule of 1s then 2s, capped at 30s.

    Parameters
    ----------
    max_retries : int
        Extra attempts after the first call
    base_delay : float
        Seconds to wait before the first retry
    max_delay : float
        Upper bound on any single wait
    exponential_base : float
        Growth factor between consecutive waits

    """

    def __init__(
        self,
        max_retries: int = 2,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
    ) -> None:
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base

    def get_delay(self, attempt: int) -> float:
        """Seconds to sleep after failed attempt number ``attempt`` (0-based)."""
        return min(self.base_delay * self.exponential_base**attempt, self.max_delay)


NO_RETRY = RetryConfig(max_retries=0)


def call_with_retry(
    func: Callable[..., T],
    *args: Any,
    config: RetryConfig | None = None,
    retry_on: Callable[[BaseException], bool] = is_retryable,
    **kwargs: Any,
) -> T:
    """
    Call a function, retrying retryable failures with exponential backoff.

    Errors rejected by ``retry_on`` (rate limits, invalid input) propagate
    immediately.

    Parameters
    ----------
    func : Callable[..., T]
        Function to call
    config : RetryConfig | None
        Schedule to follow, ``RetryConfig()`` if None
    retry_on : Callable[[BaseException], bool]
        Whether a raised error is transient

    Returns
    -------
    T
        Result of the first successful call

    """
    config = config or RetryConfig()

    for attempt in range(config.max_retries + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if not retry_on(e) or attempt == config.max_retries:
                raise

            delay = config.get_delay(attempt)
            logger.debug(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                getattr(func, "__name__", "call"),
                attempt + 1,
                config.max_retries + 1,
                delay,
                e,
            )
            time.sleep(delay)

    msg = "max_retries must not be negative"
    raise ValueError(msg)


def with_retry(
    config: RetryConfig | None = None,
    retry_on: Callable[[BaseException], bool] = is_retryable,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Wrap a function so every call goes through ``call_with_retry``."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return call_with_retry(func, *args, config=config, retry_on=retry_on, **kwargs)

        return wrapper

    return decorator
