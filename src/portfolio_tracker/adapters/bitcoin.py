"""Bitcoin adapter over the mempool.space REST API."""

import logging
import time
from typing import Any

from portfolio_tracker.adapters.base import BaseChainAdapter
from portfolio_tracker.core.errors import ProviderError
from portfolio_tracker.core.models import Address, Chain, ChainPosition, Direction, Transaction, utcnow
from portfolio_tracker.core.registry import ChainAdapterRegistry

logger = logging.getLogger(__name__)

SATOSHIS_PER_BTC = 100_000_000
RECENT_TRANSACTION_COUNT = 5


def classify_bitcoin_transaction(tx: dict[str, Any], address: str) -> Transaction:
    """
    Classify a mempool.space transaction relative to a tracked address.

    An address spending one of the inputs sent the transaction; its value is
    what left for other addresses. Otherwise the address received the sum of
    the outputs paying it.

    Parameters
    ----------
    tx : dict[str, Any]
        Transaction as returned by ``/address/{address}/txs``
    address : str
        Tracked address

    Returns
    -------
    Transaction
        Normalized transaction, timestamp in seconds

    """
    inputs = tx.get("vin") or []
    outputs = tx.get("vout") or []

    is_sender = any((vin.get("prevout") or {}).get("scriptpubkey_address") == address for vin in inputs)
    if is_sender:
        satoshis = sum(out.get("value", 0) for out in outputs if out.get("scriptpubkey_address") != address)
        direction = Direction.SENT
    else:
        satoshis = sum(out.get("value", 0) for out in outputs if out.get("scriptpubkey_address") == address)
        direction = Direction.RECEIVED

    # Unconfirmed transactions have no block time yet
    block_time = (tx.get("status") or {}).get("block_time") or int(time.time())

    return Transaction(
        hash=tx["txid"],
        timestamp=int(block_time),
        value=satoshis / SATOSHIS_PER_BTC,
        direction=direction,
        asset="BTC",
    )


@ChainAdapterRegistry.register
class BitcoinAdapter(BaseChainAdapter):
    """
    Balance and recent transactions of a Bitcoin address.

    The address summary is required; a failing transaction list degrades to
    an empty list.

    """

    name = "bitcoin"
    supported_chains = (Chain.BITCOIN,)
    provider_name = "mempool.space"

    @property
    def base_url(self) -> str:
        return self.settings.mempool_api_url.rstrip("/")

    def fetch(self, address: Address) -> list[ChainPosition]:
        """
        Fetch the balance and latest transactions of a Bitcoin address.

        Parameters
        ----------
        address : Address
            Tracked Bitcoin address

        Returns
        -------
        list[ChainPosition]
            Single Bitcoin position

        """
        btc_address = address.address.strip()
        logger.debug("Fetching Bitcoin address %s", btc_address)

        summary = self.http.get_json(f"{self.base_url}/address/{btc_address}")
        funded = (summary.get("chain_stats") or {}).get("funded_txo_sum", 0)

        transactions = self._degrade("transactions", self.fetch_transactions, btc_address)

        return [
            ChainPosition(
                chain=Chain.BITCOIN,
                balance=funded / SATOSHIS_PER_BTC,
                tokens=[],
                last_transactions=transactions,
                last_updated=utcnow(),
            )
        ]

    def fetch_transactions(self, btc_address: str) -> list[Transaction]:
        """
        Fetch and classify the most recent transactions of an address.

        Parameters
        ----------
        btc_address : str
            Bitcoin address

        Returns
        -------
        list[Transaction]
            Up to five transactions, newest first

        """
        txs = self.http.get_json(f"{self.base_url}/address/{btc_address}/txs")
        if not isinstance(txs, list):
            msg = f"Unexpected transaction list from {self.provider_name}"
            raise ProviderError(msg, self.provider_name)
        try:
            return [classify_bitcoin_transaction(tx, btc_address) for tx in txs[:RECENT_TRANSACTION_COUNT]]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            msg = f"Malformed transaction from {self.provider_name}: {e!r}"
            raise ProviderError(msg, self.provider_name) from e
