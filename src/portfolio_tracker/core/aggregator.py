"""Portfolio aggregation over tracked addresses and current prices."""

from collections.abc import Iterable, Mapping
from typing import NamedTuple

from portfolio_tracker.core.models import (
    Address,
    AssetType,
    Chain,
    ChainAllocation,
    HoldingChain,
    PortfolioAsset,
    PortfolioSummary,
    PriceQuote,
    RecentTransaction,
    TokenHolding,
)
from portfolio_tracker.data import get_chain_info

TOP_HOLDINGS_COUNT = 10
RECENT_TRANSACTIONS_COUNT = 20


class AssetPosition(NamedTuple):
    """A positive native or token balance of one address on one chain."""

    chain: Chain
    symbol: str
    name: str
    balance: float
    type: AssetType


def collect_positions(addresses: Iterable[Address]) -> list[AssetPosition]:
    """
    Enumerate every positive balance of the given addresses.

    Each per-chain record contributes one native position when its balance is
    positive and one position per token with a positive balance. Zero and
    missing balances are left out entirely.

    Parameters
    ----------
    addresses : Iterable[Address]
        Tracked addresses

    Returns
    -------
    list[AssetPosition]
        Positions in address, chain and token order

    """
    positions = []
    for address in addresses:
        for record in address.positions:
            info = get_chain_info(record.chain)
            native_symbol = info.get("native_symbol", "")
            if record.balance and record.balance > 0 and native_symbol:
                positions.append(
                    AssetPosition(
                        chain=record.chain,
                        symbol=native_symbol,
                        name=info.get("native_name", native_symbol),
                        balance=record.balance,
                        type=AssetType.NATIVE,
                    )
                )

            for token in record.tokens:
                amount = token.amount
                if amount > 0:
                    positions.append(
                        AssetPosition(
                            chain=record.chain,
                            symbol=token.symbol,
                            name=token.name,
                            balance=amount,
                            type=AssetType.TOKEN,
                        )
                    )
    return positions


class _PriceLookup:
    """Exact symbol match first, then case-insensitive."""

    def __init__(self, prices: Mapping[str, PriceQuote]) -> None:
        self._exact = prices
        self._upper = {symbol.upper(): quote for symbol, quote in prices.items()}

    def get(self, symbol: str) -> PriceQuote | None:
        return self._exact.get(symbol) or self._upper.get(symbol.upper())


def _percentage(value: float, total: float) -> float:
    return value / total * 100 if total > 0 else 0.0


def calculate_portfolio_summary(
    addresses: Iterable[Address],
    prices: Mapping[str, PriceQuote],
    top_n: int = TOP_HOLDINGS_COUNT,
) -> PortfolioSummary:
    """
    Compute the portfolio summary of a set of addresses.

    Pure and deterministic: the same addresses and prices always produce the
    same summary. Assets without a known price are valued at $0 rather than
    dropped, and every percentage derives from the current total.

    Parameters
    ----------
    addresses : Iterable[Address]
        Tracked addresses with their latest positions
    prices : Mapping[str, PriceQuote]
        Current quotes keyed by symbol
    top_n : int
        Number of top holdings to keep

    Returns
    -------
    PortfolioSummary
        Totals, weighted 24h change, chain allocations and top holdings

    """
    lookup = _PriceLookup(prices)
    positions = collect_positions(addresses)

    valued: list[tuple[AssetPosition, float]] = []
    total_value = 0.0
    weighted_change = 0.0
    for position in positions:
        quote = lookup.get(position.symbol)
        price = quote.price if quote else 0.0
        change = quote.change_24h if quote else 0.0
        usd_value = position.balance * price

        valued.append((position, usd_value))
        total_value += usd_value
        weighted_change += usd_value * change / 100

    assets = [
        PortfolioAsset(
            symbol=position.symbol,
            balance=position.balance,
            usd_value=usd_value,
            percentage=_percentage(usd_value, total_value),
            chain=position.chain,
            type=position.type,
        )
        for position, usd_value in valued
    ]

    return PortfolioSummary(
        total_value=total_value,
        change_24h=_percentage(weighted_change, total_value),
        total_assets=len(assets),
        chain_allocations=_chain_allocations(assets, total_value),
        top_holdings=_token_holdings(valued, total_value)[:top_n],
        native_assets=[asset for asset in assets if asset.type == AssetType.NATIVE],
    )


def _token_holdings(valued: list[tuple[AssetPosition, float]], total_value: float) -> list[TokenHolding]:
    grouped: dict[str, TokenHolding] = {}
    for position, usd_value in valued:
        key = position.symbol.upper()
        holding = grouped.get(key)
        if holding is None:
            holding = grouped[key] = TokenHolding(
                symbol=position.symbol,
                name=position.name,
                total_balance=0.0,
                usd_value=0.0,
            )
        holding.total_balance += position.balance
        holding.usd_value += usd_value
        holding.chains.append(HoldingChain(chain=position.chain, balance=position.balance, usd_value=usd_value))

    holdings = list(grouped.values())
    for holding in holdings:
        holding.percentage = _percentage(holding.usd_value, total_value)
    holdings.sort(key=lambda h: (-h.usd_value, h.symbol))
    return holdings


def _chain_allocations(assets: list[PortfolioAsset], total_value: float) -> list[ChainAllocation]:
    grouped: dict[Chain, list[PortfolioAsset]] = {}
    for asset in assets:
        grouped.setdefault(asset.chain, []).append(asset)

    allocations = []
    for chain, chain_assets in grouped.items():
        info = get_chain_info(chain)
        usd_value = sum(asset.usd_value for asset in chain_assets)
        allocations.append(
            ChainAllocation(
                chain=chain,
                label=info.get("label", chain),
                color=info.get("color", "bg-gray-500"),
                usd_value=usd_value,
                percentage=_percentage(usd_value, total_value),
                assets=chain_assets,
            )
        )
    allocations.sort(key=lambda a: (-a.usd_value, a.chain))
    return allocations


def recent_transactions(addresses: Iterable[Address], limit: int = RECENT_TRANSACTIONS_COUNT) -> list[RecentTransaction]:
    """
    Flatten the transactions of all addresses, newest first.

    Timestamps are compared in milliseconds, whatever unit each chain reports.

    Parameters
    ----------
    addresses : Iterable[Address]
        Tracked addresses
    limit : int
        Maximum number of transactions

    Returns
    -------
    list[RecentTransaction]
        Transactions with their wallet and chain

    """
    entries = [
        RecentTransaction(
            transaction=transaction,
            chain=record.chain,
            wallet_label=address.label,
            wallet_address=address.address,
        )
        for address in addresses
        for record in address.positions
        for transaction in record.last_transactions
    ]
    entries.sort(key=lambda entry: entry.transaction.timestamp_ms, reverse=True)
    return entries[:limit]


def format_currency(value: float) -> str:
    """Format a USD amount, e.g. '$1,234.50' or '-$3.00'."""
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_percentage(value: float) -> str:
    """Format a signed percentage, e.g. '+2.50%'."""
    return f"{'+' if value >= 0 else ''}{value:.2f}%"


def format_number(value: float, decimals: int = 6) -> str:
    """Format a number with grouping and at most `decimals` fraction digits."""
    text = f"{value:,.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
