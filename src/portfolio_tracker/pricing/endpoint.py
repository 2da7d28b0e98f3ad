"""Pricing through the tracker's own price endpoint."""

from collections.abc import Iterable

import httpx

from portfolio_tracker.core.errors import RateLimitedError
from portfolio_tracker.core.models import PriceQuote
from portfolio_tracker.pricing.base import RATE_LIMIT_MESSAGE
from portfolio_tracker.rpc.provider import HTTPProvider
from portfolio_tracker.rpc.retry import RetryConfig


class PriceEndpointPricing:
    """
    Reads prices from a running tracker server's ``/api/prices`` endpoint.

    Lets several clients share the server-side price cache instead of each
    calling the price aggregator.

    Parameters
    ----------
    base_url : str
        Server base URL (e.g., 'http://localhost:8000')
    client : httpx.Client | None
        HTTP client to use instead of a fresh one
    retry_config : RetryConfig | None
        Retry behavior for unavailable responses

    """

    provider_name = "price endpoint"

    def __init__(
        self,
        base_url: str,
        client: httpx.Client | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = HTTPProvider(self.provider_name, retry_config=retry_config, client=client)

    def get_prices(self, symbols: Iterable[str]) -> dict[str, PriceQuote]:
        """
        Fetch quotes for a set of symbols.

        Parameters
        ----------
        symbols : Iterable[str]
            Symbols to price

        Returns
        -------
        dict[str, PriceQuote]
            Quotes keyed by symbol

        """
        unique = sorted({symbol for symbol in symbols if symbol})
        if not unique:
            return {}

        try:
            data = self.http.get_json(f"{self.base_url}/api/prices", params={"symbols": ",".join(unique)}) or {}
        except RateLimitedError as e:
            raise RateLimitedError(RATE_LIMIT_MESSAGE, self.provider_name, retry_after=e.retry_after) from e

        return {symbol: PriceQuote.model_validate(quote) for symbol, quote in data.items()}

    def close(self) -> None:
        """Close HTTP client."""
        self.http.close()
