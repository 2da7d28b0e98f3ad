"""Pricing services for USD valuation."""

from typing import Any

from portfolio_tracker.config import Settings
from portfolio_tracker.pricing.base import RATE_LIMIT_MESSAGE, PriceResolver, symbols_for_addresses
from portfolio_tracker.pricing.coingecko import CoinGeckoPricing
from portfolio_tracker.pricing.endpoint import PriceEndpointPricing


def create_pricing(settings: Settings, **kwargs: Any) -> PriceResolver:
    """
    Build the price service selected by the settings.

    Parameters
    ----------
    settings : Settings
        Runtime settings
    **kwargs : Any
        Passed to the service constructor (client, retry_config)

    Returns
    -------
    PriceResolver
        Internal endpoint client when PRICE_API_URL is set, else CoinGecko

    """
    if settings.price_api_url:
        return PriceEndpointPricing(settings.price_api_url, **kwargs)
    return CoinGeckoPricing(settings.coingecko_api_url, **kwargs)


__all__ = [
    "RATE_LIMIT_MESSAGE",
    "CoinGeckoPricing",
    "PriceEndpointPricing",
    "PriceResolver",
    "create_pricing",
    "symbols_for_addresses",
]
