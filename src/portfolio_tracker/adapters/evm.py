"""EVM adapter over the Alchemy JSON-RPC and indexing API."""

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Literal

from portfolio_tracker.adapters.base import BaseChainAdapter, format_amount, to_display_amount
from portfolio_tracker.core.errors import (
    InvalidAddressError,
    PortfolioTrackerError,
    ProviderError,
    RateLimitedError,
    UnavailableError,
    describe_error,
)
from portfolio_tracker.core.models import (
    EVM_CHAINS,
    Address,
    Chain,
    ChainPosition,
    Direction,
    TokenBalance,
    Transaction,
    utcnow,
)
from portfolio_tracker.core.registry import ChainAdapterRegistry
from portfolio_tracker.data import (
    get_alchemy_network,
    get_evm_networks,
    get_native_symbol,
    get_scam_contracts,
    get_supported_evm_tokens,
)

logger = logging.getLogger(__name__)

RECENT_TRANSFER_COUNT = 5
TRANSFER_CATEGORIES = ["external", "erc20", "erc721", "erc1155"]

_LEGACY_BTC_RE = re.compile(r"^[13][a-km-zA-HJ-NP-Z1-9]{25,34}$")
_BECH32_BTC_RE = re.compile(r"^bc1[a-z0-9]{39,59}$")


def normalize_evm_address(address: str) -> str:
    """
    Normalize a user-entered EVM address.

    Parameters
    ----------
    address : str
        Address as entered

    Returns
    -------
    str
        Lower-cased, '0x'-prefixed address

    Raises
    ------
    InvalidAddressError
        If the string is a Bitcoin address

    """
    clean = address.strip()
    if _LEGACY_BTC_RE.match(clean) or _BECH32_BTC_RE.match(clean):
        msg = "Bitcoin addresses cannot be used with Ethereum networks"
        raise InvalidAddressError(msg)

    lowered = clean.lower()
    return lowered if lowered.startswith("0x") else f"0x{lowered}"


def _hex_to_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    text = str(value)
    return int(text, 16) if text.startswith("0x") else int(text or "0")


@ChainAdapterRegistry.register
class EvmAdapter(BaseChainAdapter):
    """
    Native balance, ERC-20 tokens and recent transfers on EVM networks.

    An 'ethereum' address is refreshed across every EVM network; an address
    registered directly on an L2 is refreshed on that network only.

    """

    name = "evm"
    supported_chains = EVM_CHAINS
    provider_name = "Alchemy"

    def fetch(self, address: Address) -> list[ChainPosition]:
        """
        Fetch positions for an EVM address.

        Parameters
        ----------
        address : Address
            Tracked address on an EVM chain

        Returns
        -------
        list[ChainPosition]
            One position per EVM network for 'ethereum' addresses, otherwise
            one position for the address's own network

        """
        if address.chain == Chain.ETHEREUM:
            return self.fetch_all_networks(address.address)
        return [self.fetch_network(address.address, address.chain)]

    def rpc_url(self, network: Chain | str) -> str:
        return self.settings.alchemy_url(get_alchemy_network(network))

    def fetch_network(self, address: str, network: Chain | str) -> ChainPosition:
        """
        Fetch native balance, tokens and transfers on one network.

        Parameters
        ----------
        address : str
            EVM address as entered
        network : Chain | str
            EVM network

        Returns
        -------
        ChainPosition
            Position on the network

        Raises
        ------
        InvalidAddressError
            If the address is not an EVM address
        ProviderError
            If the native balance cannot be fetched

        """
        normalized = normalize_evm_address(address)
        chain = Chain(network)
        url = self.rpc_url(chain)

        raw_balance = _hex_to_int(self.http.rpc(url, "eth_getBalance", [normalized, "latest"]))
        balance = float(to_display_amount(raw_balance, 18))

        tokens = self._degrade(f"{chain} tokens", self.fetch_tokens, url, normalized)
        transactions = self._degrade(f"{chain} transfers", self.fetch_transfers, url, normalized, chain)

        return ChainPosition(
            chain=chain,
            balance=balance,
            tokens=tokens,
            last_transactions=transactions,
            last_updated=utcnow(),
        )

    def fetch_all_networks(
        self,
        address: str,
        on_error: Literal["placeholder", "omit"] = "placeholder",
    ) -> list[ChainPosition]:
        """
        Fetch one address on every EVM network independently.

        Parameters
        ----------
        address : str
            EVM address as entered
        on_error : {'placeholder', 'omit'}
            Represent a failed network with a zeroed position carrying the
            error, or leave it out

        Returns
        -------
        list[ChainPosition]
            Positions in network order

        Raises
        ------
        InvalidAddressError
            If the address is not an EVM address
        RateLimitedError
            If every network was rate limited
        UnavailableError
            If every network failed

        """
        normalize_evm_address(address)
        networks = [Chain(network) for network in get_evm_networks()]

        results: dict[Chain, ChainPosition] = {}
        errors: dict[Chain, PortfolioTrackerError] = {}

        with ThreadPoolExecutor(max_workers=len(networks)) as executor:
            future_to_network = {
                executor.submit(self.fetch_network, address, network): network for network in networks
            }

            for future in as_completed(future_to_network):
                network = future_to_network[future]
                try:
                    results[network] = future.result()
                except PortfolioTrackerError as e:
                    logger.warning("Failed to fetch %s data for %s: %s", network, address, e)
                    errors[network] = e

        if not results:
            failures = list(errors.values())
            if failures and all(isinstance(e, RateLimitedError) for e in failures):
                raise failures[0]
            msg = "Failed to fetch data from any Ethereum network. Please try again later."
            raise UnavailableError(msg, self.provider_name)

        positions = []
        for network in networks:
            if network in results:
                positions.append(results[network])
            elif on_error == "placeholder":
                positions.append(
                    ChainPosition(
                        chain=network,
                        balance=0.0,
                        last_updated=utcnow(),
                        error=describe_error(errors[network]),
                    )
                )
        return positions

    def fetch_tokens(self, url: str, address: str) -> list[TokenBalance]:
        """
        Fetch supported ERC-20 balances of an address.

        Zero balances and known scam contracts are skipped before metadata is
        requested; only allow-listed symbols with a positive balance are kept.

        Parameters
        ----------
        url : str
            Network RPC URL
        address : str
            Normalized address

        Returns
        -------
        list[TokenBalance]
            Token balances in provider order

        """
        result = self.http.rpc(url, "alchemy_getTokenBalances", [address, "erc20"]) or {}
        scam_contracts = get_scam_contracts()

        candidates = []
        for entry in result.get("tokenBalances", []):
            contract = entry.get("contractAddress", "")
            raw = _hex_to_int(entry.get("tokenBalance"))
            if raw == 0:
                continue
            if contract.lower() in scam_contracts:
                logger.info("Skipping known scam token contract %s", contract)
                continue
            candidates.append((contract, raw))

        if not candidates:
            return []

        tokens: dict[str, TokenBalance] = {}
        with ThreadPoolExecutor(max_workers=min(len(candidates), 8)) as executor:
            future_to_contract = {
                executor.submit(self._token_balance, url, contract, raw): contract for contract, raw in candidates
            }
            for future in as_completed(future_to_contract):
                token = future.result()
                if token is not None:
                    tokens[future_to_contract[future]] = token

        supported = get_supported_evm_tokens()
        return [
            tokens[contract]
            for contract, _ in candidates
            if contract in tokens and tokens[contract].symbol.upper() in supported and tokens[contract].amount > 0
        ]

    def _token_balance(self, url: str, contract: str, raw: int) -> TokenBalance | None:
        try:
            metadata = self.http.rpc(url, "alchemy_getTokenMetadata", [contract]) or {}
        except RateLimitedError:
            raise
        except ProviderError as e:
            logger.warning("Failed to fetch metadata for token %s: %s", contract, e)
            return None

        decimals = metadata.get("decimals") or 18
        return TokenBalance(
            contract_address=contract,
            symbol=metadata.get("symbol") or "UNKNOWN",
            name=metadata.get("name") or "Unknown Token",
            balance=format_amount(to_display_amount(raw, decimals)),
            decimals=decimals,
        )

    def fetch_transfers(self, url: str, address: str, chain: Chain) -> list[Transaction]:
        """
        Fetch the most recent transfers in both directions.

        Parameters
        ----------
        url : str
            Network RPC URL
        address : str
            Normalized address
        chain : Chain
            Network, for the native asset fallback

        Returns
        -------
        list[Transaction]
            Up to five transfers sorted by descending block, timestamps in
            milliseconds

        """
        transfers = []
        for direction, address_key in ((Direction.SENT, "fromAddress"), (Direction.RECEIVED, "toAddress")):
            params = {
                "fromBlock": "0x0",
                "toBlock": "latest",
                address_key: address,
                "category": TRANSFER_CATEGORIES,
                "maxCount": hex(RECENT_TRANSFER_COUNT),
                "order": "desc",
            }
            result = self.http.rpc(url, "alchemy_getAssetTransfers", [params]) or {}
            transfers.extend((direction, transfer) for transfer in result.get("transfers", []))

        transfers.sort(key=lambda item: _hex_to_int(item[1].get("blockNum")), reverse=True)
        transfers = transfers[:RECENT_TRANSFER_COUNT]

        block_times = self._block_timestamps(url, {transfer.get("blockNum") for _, transfer in transfers})
        native_symbol = get_native_symbol(chain) or "ETH"
        now_ms = int(time.time() * 1000)

        return [
            Transaction(
                hash=transfer.get("hash", ""),
                timestamp=block_times.get(transfer.get("blockNum"), now_ms),
                value=float(transfer.get("value") or 0),
                direction=direction,
                asset=transfer.get("asset") or native_symbol,
            )
            for direction, transfer in transfers
        ]

    def _block_timestamps(self, url: str, block_numbers: set[str | None]) -> dict[str, int]:
        timestamps = {}
        for block_number in sorted(filter(None, block_numbers)):
            try:
                block = self.http.rpc(url, "eth_getBlockByNumber", [block_number, False])
            except RateLimitedError:
                raise
            except ProviderError as e:
                logger.debug("Failed to fetch block %s: %s", block_number, e)
                continue
            if block and block.get("timestamp") is not None:
                timestamps[block_number] = _hex_to_int(block["timestamp"]) * 1000
        return timestamps
