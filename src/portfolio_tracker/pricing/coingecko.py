"""CoinGecko pricing service for fetching USD prices and 24h changes."""

import logging
from collections.abc import Iterable

import httpx

from portfolio_tracker.config import DEFAULT_COINGECKO_API_URL
from portfolio_tracker.core.errors import RateLimitedError
from portfolio_tracker.core.models import PriceQuote
from portfolio_tracker.data import get_price_ids
from portfolio_tracker.pricing.base import RATE_LIMIT_MESSAGE
from portfolio_tracker.rpc.provider import HTTPProvider
from portfolio_tracker.rpc.retry import RetryConfig

logger = logging.getLogger(__name__)


class CoinGeckoPricing:
    """
    Fetches prices from the CoinGecko simple price API.

    Symbols are mapped to CoinGecko ids through the canonical price-id table;
    all mapped ids are requested in a single batched call.

    Parameters
    ----------
    base_url : str
        CoinGecko API base URL
    client : httpx.Client | None
        HTTP client to use instead of a fresh one
    retry_config : RetryConfig | None
        Retry behavior for unavailable responses; rate limits are never retried

    """

    provider_name = "CoinGecko"

    def __init__(
        self,
        base_url: str = DEFAULT_COINGECKO_API_URL,
        client: httpx.Client | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.http = HTTPProvider(
            self.provider_name,
            retry_config=retry_config or RetryConfig(max_retries=2, base_delay=1.0, max_delay=30.0),
            headers={"Accept": "application/json"},
            client=client,
        )

    def get_prices(self, symbols: Iterable[str]) -> dict[str, PriceQuote]:
        """
        Fetch USD prices for multiple symbols.

        Parameters
        ----------
        symbols : Iterable[str]
            Symbols to price (e.g., ['BTC', 'ETH', 'USDC'])

        Returns
        -------
        dict[str, PriceQuote]
            Quotes keyed by the requested symbol; symbols without a CoinGecko
            id or without a returned price are absent

        Raises
        ------
        RateLimitedError
            If CoinGecko answers 429
        UnavailableError
            If CoinGecko is down after retries
        ProviderError
            For any other failure

        Examples
        --------
        >>> pricing = CoinGeckoPricing()
        >>> prices = pricing.get_prices({"BTC", "ETH"})
        >>> prices["BTC"].price

        """
        price_ids = get_price_ids()
        symbol_ids = {}
        for symbol in dict.fromkeys(symbols):
            coin_id = price_ids.get(symbol.upper()) if symbol else None
            if coin_id:
                symbol_ids[symbol] = coin_id
            else:
                logger.debug("No price id for symbol %s", symbol)

        if not symbol_ids:
            return {}

        data = self._fetch_batch_prices(sorted(set(symbol_ids.values())))

        result = {}
        for symbol, coin_id in symbol_ids.items():
            entry = data.get(coin_id) or {}
            if "usd" not in entry:
                continue
            result[symbol] = PriceQuote(
                symbol=symbol,
                price=float(entry["usd"]),
                change_24h=float(entry.get("usd_24h_change") or 0.0),
            )
        return result

    def get_price(self, symbol: str) -> PriceQuote | None:
        """
        Fetch the quote of a single symbol.

        Parameters
        ----------
        symbol : str
            Symbol to price

        Returns
        -------
        PriceQuote | None
            Quote, or None when the symbol is unknown

        """
        return self.get_prices([symbol]).get(symbol)

    def _fetch_batch_prices(self, coin_ids: list[str]) -> dict:
        params = {
            "ids": ",".join(coin_ids),
            "vs_currencies": "usd",
            "include_24hr_change": "true",
        }
        try:
            return self.http.get_json(f"{self.base_url}/simple/price", params=params) or {}
        except RateLimitedError as e:
            raise RateLimitedError(RATE_LIMIT_MESSAGE, self.provider_name, retry_after=e.retry_after) from e

    def close(self) -> None:
        """Close HTTP client."""
        self.http.close()

    def __enter__(self) -> "CoinGeckoPricing":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()
