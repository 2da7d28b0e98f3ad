"""Price resolver interface and symbol selection."""

from collections.abc import Iterable
from typing import Protocol

from portfolio_tracker.core.aggregator import collect_positions
from portfolio_tracker.core.models import Address, PriceQuote

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait a moment before refreshing prices again."


class PriceResolver(Protocol):
    """
    Interface of price services.

    Methods
    -------
    get_prices(symbols)
        Fetch quotes for a set of symbols in one batch
    close()
        Release HTTP resources

    """

    def get_prices(self, symbols: Iterable[str]) -> dict[str, PriceQuote]:
        """
        Fetch current USD quotes.

        Parameters
        ----------
        symbols : Iterable[str]
            Symbols to price; duplicates and order are irrelevant

        Returns
        -------
        dict[str, PriceQuote]
            Quotes keyed by the requested symbol; unknown symbols are absent

        """
        ...

    def close(self) -> None:
        """Release HTTP resources."""
        ...


def symbols_for_addresses(addresses: Iterable[Address]) -> set[str]:
    """
    Symbols worth pricing for a set of addresses.

    Parameters
    ----------
    addresses : Iterable[Address]
        Tracked addresses

    Returns
    -------
    set[str]
        Native and token symbols with a positive balance somewhere

    """
    return {position.symbol for position in collect_positions(addresses)}
