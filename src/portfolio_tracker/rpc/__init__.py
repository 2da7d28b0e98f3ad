"""HTTP layer with provider wrapper, retry logic and caching."""

from portfolio_tracker.rpc.cache import CacheEntry, TTLCache
from portfolio_tracker.rpc.provider import HTTPProvider
from portfolio_tracker.rpc.retry import NO_RETRY, RetryConfig, call_with_retry, with_retry

__all__ = [
    "NO_RETRY",
    "CacheEntry",
    "HTTPProvider",
    "RetryConfig",
    "TTLCache",
    "call_with_retry",
    "with_retry",
]
