"""Base chain adapter class with common functionality."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, ClassVar, TypeVar

import httpx

from portfolio_tracker.config import Settings
from portfolio_tracker.core.errors import ProviderError, RateLimitedError
from portfolio_tracker.core.models import Address, Chain, ChainPosition
from portfolio_tracker.rpc.provider import HTTPProvider
from portfolio_tracker.rpc.retry import RetryConfig

T = TypeVar("T")

logger = logging.getLogger(__name__)

DISPLAY_PRECISION = Decimal("0.000001")


def to_display_amount(raw: int, decimals: int) -> Decimal:
    """Convert a raw integer amount to display units rounded to 6 decimals."""
    amount = Decimal(raw) / (Decimal(10) ** decimals)
    return amount.quantize(DISPLAY_PRECISION, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal) -> str:
    """Decimal string without trailing zeros or exponent."""
    if amount == 0:
        return "0"
    return format(amount.normalize(), "f")


class BaseChainAdapter(ABC):
    """
    Abstract base class for chain adapters.

    An adapter turns a user-entered address into normalized per-chain
    positions (native balance, tokens, recent transactions).

    Attributes
    ----------
    name : str
        Unique adapter identifier (must be set in subclass)
    supported_chains : tuple[Chain, ...]
        Chains served by this adapter (must be set in subclass)
    provider_name : str
        Upstream provider used in error messages

    """

    name: ClassVar[str] = ""
    supported_chains: ClassVar[tuple[Chain, ...]] = ()
    provider_name: ClassVar[str] = ""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        """
        Initialize the adapter.

        Parameters
        ----------
        settings : Settings | None
            Runtime settings, read from the environment if None
        client : httpx.Client | None
            HTTP client to use instead of a fresh one
        retry_config : RetryConfig | None
            Retry behavior for transient provider failures

        """
        if not self.name:
            msg = f"{self.__class__.__name__} must define 'name' attribute"
            raise ValueError(msg)
        if not self.supported_chains:
            msg = f"{self.__class__.__name__} must define 'supported_chains' attribute"
            raise ValueError(msg)
        self.settings = settings or Settings.from_env()
        self.http = HTTPProvider(
            self.provider_name or self.name,
            timeout=self.settings.request_timeout,
            retry_config=retry_config,
            client=client,
        )

    def supports(self, chain: Chain | str) -> bool:
        """Whether this adapter serves the given chain."""
        return chain in self.supported_chains

    @abstractmethod
    def fetch(self, address: Address) -> list[ChainPosition]:
        """
        Fetch fresh positions for an address.

        Must be implemented by subclasses.

        Parameters
        ----------
        address : Address
            Tracked address

        Returns
        -------
        list[ChainPosition]
            Positions replacing the address's current ones

        """
        ...

    def _degrade(self, what: str, func: Callable[..., list[T]], *args: Any) -> list[T]:
        """
        Run a secondary sub-fetch, degrading failures to an empty list.

        Rate limits still propagate so the caller can report them.
        """
        try:
            return func(*args)
        except RateLimitedError:
            raise
        except ProviderError as e:
            logger.warning("%s: failed to fetch %s, continuing without them: %s", self.name, what, e)
            return []

    def close(self) -> None:
        """Close HTTP client."""
        self.http.close()

    def __enter__(self) -> "BaseChainAdapter":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Context manager exit."""
        self.close()
