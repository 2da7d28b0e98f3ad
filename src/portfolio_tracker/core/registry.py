"""Chain adapter registry with auto-registration pattern."""

from typing import Any, Protocol

from portfolio_tracker.core.errors import PortfolioTrackerError
from portfolio_tracker.core.models import Address, Chain, ChainPosition


class ChainAdapterInterface(Protocol):
    """
    Interface that all chain adapters must implement.

    Attributes
    ----------
    name : str
        Unique adapter identifier (e.g., 'bitcoin', 'evm')
    supported_chains : tuple[Chain, ...]
        Chains served by the adapter

    Methods
    -------
    fetch(address)
        Fetch fresh positions for a tracked address
    close()
        Release HTTP resources

    """

    name: str
    supported_chains: tuple[Chain, ...]

    def fetch(self, address: Address) -> list[ChainPosition]:
        """
        Fetch fresh positions for a tracked address.

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

    def close(self) -> None:
        """Release HTTP resources."""
        ...


class ChainAdapterRegistry:
    """
    Registry for chain adapters with auto-registration.

    Adapters register themselves using the @ChainAdapterRegistry.register
    decorator, keyed by every chain they support.

    """

    _adapters: dict[Chain, type] = {}

    @classmethod
    def register(cls, adapter_class: type) -> type:
        """
        Decorator to register a chain adapter.

        Parameters
        ----------
        adapter_class : type
            Adapter class to register

        Returns
        -------
        type
            The adapter class (for decorator chaining)

        Examples
        --------
        >>> @ChainAdapterRegistry.register
        ... class BitcoinAdapter(BaseChainAdapter):
        ...     name = "bitcoin"
        ...     supported_chains = (Chain.BITCOIN,)

        """
        if not getattr(adapter_class, "supported_chains", None):
            msg = f"Adapter {adapter_class.__name__} must define 'supported_chains' attribute"
            raise ValueError(msg)

        for chain in adapter_class.supported_chains:
            cls._adapters[Chain(chain)] = adapter_class
        return adapter_class

    @classmethod
    def get_adapter_class(cls, chain: Chain | str) -> type | None:
        """
        Get adapter class serving a chain.

        Parameters
        ----------
        chain : Chain | str
            Chain name

        Returns
        -------
        type | None
            Adapter class or None if no adapter serves the chain

        """
        try:
            return cls._adapters.get(Chain(chain))
        except ValueError:
            return None

    @classmethod
    def get_all_adapters(cls) -> list[type]:
        """
        Get all registered adapter classes, each once.

        Returns
        -------
        list[type]
            Adapter classes in registration order

        """
        return list(dict.fromkeys(cls._adapters.values()))

    @classmethod
    def list_chains(cls) -> list[Chain]:
        """
        Get all chains with a registered adapter.

        Returns
        -------
        list[Chain]
            Supported chains

        """
        return list(cls._adapters)

    @classmethod
    def create_adapters(cls, **kwargs: Any) -> dict[Chain, Any]:
        """
        Instantiate every registered adapter once and map chains to instances.

        Parameters
        ----------
        **kwargs : Any
            Passed to each adapter constructor (settings, client, retry_config)

        Returns
        -------
        dict[Chain, Any]
            Adapter instance per chain; chains served by the same class share
            one instance

        """
        instances = {adapter_class: adapter_class(**kwargs) for adapter_class in cls.get_all_adapters()}
        return {chain: instances[adapter_class] for chain, adapter_class in cls._adapters.items()}


def fetch_address(address: Address, adapters: dict[Chain, Any]) -> list[ChainPosition]:
    """
    Fetch fresh positions for an address using the adapter of its chain.

    Parameters
    ----------
    address : Address
        Tracked address
    adapters : dict[Chain, Any]
        Adapter instance per chain

    Returns
    -------
    list[ChainPosition]
        Fetched positions

    Raises
    ------
    PortfolioTrackerError
        If no adapter serves the address's chain

    """
    adapter = adapters.get(address.chain)
    if adapter is None:
        msg = f"No adapter available for chain '{address.chain}'"
        raise PortfolioTrackerError(msg)
    return adapter.fetch(address)


def close_adapters(adapters: dict[Chain, Any]) -> None:
    """Close every distinct adapter instance."""
    for adapter in {id(adapter): adapter for adapter in adapters.values()}.values():
        adapter.close()
