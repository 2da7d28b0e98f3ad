"""Data models for tracked addresses, chain balances, prices and portfolio summaries."""

from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Chain(StrEnum):
    """Blockchain network an address or balance belongs to."""

    BITCOIN = "bitcoin"
    ETHEREUM = "ethereum"
    ARBITRUM = "arbitrum"
    POLYGON = "polygon"
    OPTIMISM = "optimism"
    BASE = "base"
    SOLANA = "solana"


EVM_CHAINS = (Chain.ETHEREUM, Chain.ARBITRUM, Chain.POLYGON, Chain.OPTIMISM, Chain.BASE)

# Unix timestamps below this are seconds, above it milliseconds.
_MILLISECOND_THRESHOLD = 10**12


class Direction(StrEnum):
    """Direction of a transaction relative to the tracked address."""

    SENT = "sent"
    RECEIVED = "received"


class AssetType(StrEnum):
    """Native chain currency or a token built on the chain."""

    NATIVE = "native"
    TOKEN = "token"


class FetchStatus(StrEnum):
    """Refresh state of a single address."""

    PENDING = "pending"
    FETCHING = "fetching"
    SUCCESS = "success"
    ERROR = "error"
    RATE_LIMITED = "rate_limited"


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(UTC)


class Tag(BaseModel):
    """
    User-defined label attached to addresses.

    Attributes
    ----------
    id : str
        Unique tag identifier
    name : str
        Display name
    color : str
        Display color (CSS class or hex)
    created_at : datetime
        Creation time

    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str
    color: str
    created_at: datetime = Field(default_factory=utcnow)


class TokenBalance(BaseModel):
    """
    Token held by an address on one chain.

    Attributes
    ----------
    contract_address : str
        ERC-20 contract or SPL mint address
    symbol : str
        Token symbol (e.g., 'USDC')
    name : str
        Full token name
    balance : str
        Balance in display units, kept as a decimal string
    decimals : int
        Number of decimal places of the raw balance

    """

    contract_address: str
    symbol: str
    name: str
    balance: str
    decimals: int = 18

    @property
    def amount(self) -> float:
        """Balance as a float, 0 when the string is not a number."""
        try:
            return float(Decimal(self.balance))
        except (InvalidOperation, ValueError):
            return 0.0


class Transaction(BaseModel):
    """
    Recent transaction of a tracked address.

    Attributes
    ----------
    hash : str
        Transaction hash or signature
    timestamp : int
        Unix time; seconds for Bitcoin and Solana, milliseconds for EVM chains
    value : float
        Transferred amount in display units
    direction : Direction
        Sent or received
    asset : str | None
        Asset symbol, None meaning the chain's native asset

    """

    hash: str
    timestamp: int
    value: float
    direction: Direction
    asset: str | None = None

    @property
    def timestamp_ms(self) -> int:
        """Timestamp normalized to milliseconds."""
        if self.timestamp < _MILLISECOND_THRESHOLD:
            return self.timestamp * 1000
        return self.timestamp

    def asset_symbol(self, native_symbol: str) -> str:
        """Asset symbol, falling back to the given native symbol."""
        return self.asset or native_symbol


class ChainPosition(BaseModel):
    """
    Balance, tokens and recent transactions of an address on one chain.

    Attributes
    ----------
    chain : Chain
        Chain the data was fetched from
    balance : float | None
        Native balance in display units, None until first fetch
    tokens : list[TokenBalance]
        Token balances
    last_transactions : list[Transaction]
        Recent transactions, newest first
    last_updated : datetime | None
        Time of the fetch
    error : str | None
        Set when this chain failed while others in the same refresh succeeded

    """

    chain: Chain
    balance: float | None = None
    tokens: list[TokenBalance] = Field(default_factory=list)
    last_transactions: list[Transaction] = Field(default_factory=list)
    last_updated: datetime | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        """Whether this record is a placeholder for a failed fetch."""
        return self.error is not None


class Address(BaseModel):
    """
    Tracked wallet.

    Every address owns an ordered list of per-chain positions. Addresses on the
    'ethereum' umbrella chain carry one position per EVM network; all other
    addresses carry at most one position, for their own chain.

    Attributes
    ----------
    id : str
        Unique identifier
    label : str
        User-facing name
    address : str
        Chain-specific address string
    chain : Chain
        Chain the address was registered on
    network : str
        Network variant
    description : str | None
        Free-form note
    tags : list[Tag]
        Attached tags
    positions : list[ChainPosition]
        Per-chain balances from the latest refresh
    last_updated : datetime | None
        Time of the latest successful refresh

    """

    id: str = Field(default_factory=lambda: uuid4().hex)
    label: str
    address: str
    chain: Chain
    network: str = "mainnet"
    description: str | None = None
    tags: list[Tag] = Field(default_factory=list)
    positions: list[ChainPosition] = Field(default_factory=list)
    last_updated: datetime | None = None

    @model_validator(mode="after")
    def _check_positions(self) -> "Address":
        if self.chain == Chain.ETHEREUM:
            if any(position.chain not in EVM_CHAINS for position in self.positions):
                msg = "Ethereum addresses can only hold EVM chain positions"
                raise ValueError(msg)
            return self
        if len(self.positions) > 1 or any(position.chain != self.chain for position in self.positions):
            msg = f"A {self.chain} address holds exactly one position for its own chain"
            raise ValueError(msg)
        return self

    @property
    def own_position(self) -> ChainPosition | None:
        """Position for the chain the address was registered on."""
        return next((position for position in self.positions if position.chain == self.chain), None)

    @property
    def balance(self) -> float | None:
        """Native balance on the address's own chain."""
        position = self.own_position
        return position.balance if position else None

    @property
    def tokens(self) -> list[TokenBalance]:
        """Tokens on the address's own chain."""
        position = self.own_position
        return position.tokens if position else []

    @property
    def last_transactions(self) -> list[Transaction]:
        """Recent transactions on the address's own chain."""
        position = self.own_position
        return position.last_transactions if position else []

    def with_positions(self, positions: list[ChainPosition], updated_at: datetime | None = None) -> "Address":
        """
        Return a copy holding the given positions.

        Positions are replaced wholesale, never merged with the previous ones.

        Parameters
        ----------
        positions : list[ChainPosition]
            Freshly fetched positions
        updated_at : datetime | None
            Refresh time, defaults to now

        Returns
        -------
        Address
            Updated copy

        """
        return Address.model_validate(
            {
                **self.model_dump(),
                "positions": [position.model_dump() for position in positions],
                "last_updated": updated_at or utcnow(),
            }
        )


class PriceQuote(BaseModel):
    """
    Current USD price of an asset.

    Attributes
    ----------
    symbol : str
        Symbol as requested
    price : float
        USD price
    change_24h : float
        24h change in percent (serialized as 'change24h')

    """

    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    price: float
    change_24h: float = Field(default=0.0, alias="change24h")


class PortfolioAsset(BaseModel):
    """One native or token balance of the portfolio, valued in USD."""

    symbol: str
    balance: float
    usd_value: float
    percentage: float = 0.0
    chain: Chain
    type: AssetType


class ChainAllocation(BaseModel):
    """
    USD value held on one chain.

    Attributes
    ----------
    chain : Chain
        Chain
    label : str
        Display label
    color : str
        Display color
    usd_value : float
        Total USD value on this chain
    percentage : float
        Share of the total portfolio value
    assets : list[PortfolioAsset]
        Assets contributing to this chain

    """

    chain: Chain
    label: str
    color: str
    usd_value: float
    percentage: float = 0.0
    assets: list[PortfolioAsset] = Field(default_factory=list)


class HoldingChain(BaseModel):
    """Per-chain slice of a token holding."""

    chain: Chain
    balance: float
    usd_value: float


class TokenHolding(BaseModel):
    """
    One asset aggregated across all addresses and chains.

    Attributes
    ----------
    symbol : str
        Asset symbol
    name : str
        Asset name
    total_balance : float
        Sum of balances across chains
    usd_value : float
        Sum of USD values across chains
    percentage : float
        Share of the total portfolio value
    chains : list[HoldingChain]
        Per-chain breakdown, one entry per contributing position

    """

    symbol: str
    name: str
    total_balance: float
    usd_value: float
    percentage: float = 0.0
    chains: list[HoldingChain] = Field(default_factory=list)


class PortfolioSummary(BaseModel):
    """
    Portfolio-wide view derived from addresses and prices.

    Attributes
    ----------
    total_value : float
        Total USD value
    change_24h : float
        Value-weighted 24h change in percent
    total_assets : int
        Number of native and token positions
    chain_allocations : list[ChainAllocation]
        Value per chain, largest first
    top_holdings : list[TokenHolding]
        Largest holdings across chains
    native_assets : list[PortfolioAsset]
        Native currency positions

    """

    total_value: float = 0.0
    change_24h: float = 0.0
    total_assets: int = 0
    chain_allocations: list[ChainAllocation] = Field(default_factory=list)
    top_holdings: list[TokenHolding] = Field(default_factory=list)
    native_assets: list[PortfolioAsset] = Field(default_factory=list)


class RecentTransaction(BaseModel):
    """A transaction together with the wallet and chain it belongs to."""

    transaction: Transaction
    chain: Chain
    wallet_label: str
    wallet_address: str


class RefreshOutcome(BaseModel):
    """
    Result of refreshing one address.

    Attributes
    ----------
    address_id : str
        Refreshed address
    status : FetchStatus
        Current state
    error : str | None
        User-facing error text
    retry_at : datetime | None
        Earliest sensible retry time after a rate limit
    failed_chains : list[Chain]
        Chains that failed while others succeeded

    """

    address_id: str
    status: FetchStatus
    error: str | None = None
    retry_at: datetime | None = None
    failed_chains: list[Chain] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        """Whether the refresh succeeded for only some chains."""
        return self.status == FetchStatus.SUCCESS and bool(self.failed_chains)
