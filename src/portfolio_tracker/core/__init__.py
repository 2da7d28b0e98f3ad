"""Core functionality including models, errors, aggregation, refresh and registry."""

from portfolio_tracker.core.aggregator import (
    AssetPosition,
    calculate_portfolio_summary,
    collect_positions,
    recent_transactions,
)
from portfolio_tracker.core.errors import (
    AuthenticationError,
    InvalidAddressError,
    NotFoundError,
    PortfolioTrackerError,
    ProviderError,
    RateLimitedError,
    UnavailableError,
)
from portfolio_tracker.core.models import (
    Address,
    Chain,
    ChainPosition,
    Direction,
    FetchStatus,
    PortfolioSummary,
    PriceQuote,
    RefreshOutcome,
    Tag,
    TokenBalance,
    Transaction,
)
from portfolio_tracker.core.refresher import AddressRefresher, RefreshQueue
from portfolio_tracker.core.registry import ChainAdapterRegistry, fetch_address

__all__ = [
    "Address",
    "AddressRefresher",
    "AssetPosition",
    "AuthenticationError",
    "Chain",
    "ChainAdapterRegistry",
    "ChainPosition",
    "Direction",
    "FetchStatus",
    "InvalidAddressError",
    "NotFoundError",
    "PortfolioSummary",
    "PortfolioTrackerError",
    "PriceQuote",
    "ProviderError",
    "RateLimitedError",
    "RefreshOutcome",
    "RefreshQueue",
    "Tag",
    "TokenBalance",
    "Transaction",
    "UnavailableError",
    "calculate_portfolio_summary",
    "collect_positions",
    "fetch_address",
    "recent_transactions",
]
