"""Solana adapter over the Solana JSON-RPC API."""

import logging
import re
import time
from decimal import Decimal
from typing import Any

import base58

from portfolio_tracker.adapters.base import BaseChainAdapter, format_amount, to_display_amount
from portfolio_tracker.core.errors import InvalidAddressError, ProviderError, RateLimitedError
from portfolio_tracker.core.models import Address, Chain, ChainPosition, Direction, TokenBalance, Transaction, utcnow
from portfolio_tracker.core.registry import ChainAdapterRegistry
from portfolio_tracker.data import get_solana_tokens

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

SIGNATURE_LIMIT = 10
RECENT_TRANSACTION_COUNT = 5
# Deltas below this are treated as fee-only transactions
NOISE_THRESHOLD_SOL = 0.001
DEFAULT_FEE_SOL = 0.000005
MIN_REPORTED_SOL = 0.000001

_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def validate_solana_address(address: str) -> str:
    """
    Validate a Solana address.

    Parameters
    ----------
    address : str
        Address as entered

    Returns
    -------
    str
        Stripped address

    Raises
    ------
    InvalidAddressError
        If the address is not base58 or does not decode to 32 bytes

    """
    clean = address.strip()
    if not _BASE58_RE.match(clean):
        msg = "Invalid Solana address format"
        raise InvalidAddressError(msg)

    try:
        decoded = base58.b58decode(clean)
    except ValueError as e:
        msg = f"Invalid base58 encoding: {e}"
        raise InvalidAddressError(msg) from e

    if len(decoded) != 32:
        msg = "Solana address must be 32 bytes when decoded"
        raise InvalidAddressError(msg)
    return clean


def classify_balance_delta(pre: int, post: int, fee: int | None = None) -> tuple[Direction, float] | None:
    """
    Derive direction and value from the tracked account's lamport balances.

    Changes smaller than the noise threshold are fee-only transactions and are
    reported as an outgoing fee, never as received.

    Parameters
    ----------
    pre : int
        Lamports before the transaction
    post : int
        Lamports after the transaction
    fee : int | None
        Transaction fee in lamports

    Returns
    -------
    tuple[Direction, float] | None
        Direction and value in SOL, or None when the value is negligible

    """
    change = (post - pre) / LAMPORTS_PER_SOL
    value = abs(change)
    direction = Direction.RECEIVED if change > 0 else Direction.SENT

    if value < NOISE_THRESHOLD_SOL:
        fee_sol = (fee or 0) / LAMPORTS_PER_SOL
        value = fee_sol if fee_sol > 0 else DEFAULT_FEE_SOL
        direction = Direction.SENT

    if value <= MIN_REPORTED_SOL:
        return None
    return direction, value


def _account_keys(tx: dict[str, Any]) -> list[str]:
    message = (tx.get("transaction") or {}).get("message") or {}
    keys = message.get("accountKeys") or message.get("staticAccountKeys") or []
    # jsonParsed encoding returns objects, json encoding plain strings
    keys = [key["pubkey"] if isinstance(key, dict) else key for key in keys]

    loaded = (tx.get("meta") or {}).get("loadedAddresses") or {}
    return keys + list(loaded.get("writable", [])) + list(loaded.get("readonly", []))


@ChainAdapterRegistry.register
class SolanaAdapter(BaseChainAdapter):
    """SOL balance, supported SPL tokens and recent transactions of a Solana address."""

    name = "solana"
    supported_chains = (Chain.SOLANA,)
    provider_name = "Solana RPC"

    def fetch(self, address: Address) -> list[ChainPosition]:
        """
        Fetch the balance, tokens and latest transactions of a Solana address.

        Parameters
        ----------
        address : Address
            Tracked Solana address

        Returns
        -------
        list[ChainPosition]
            Single Solana position

        """
        owner = validate_solana_address(address.address)
        url = self.settings.solana_url()

        result = self.http.rpc(url, "getBalance", [owner, {"commitment": "confirmed"}]) or {}
        lamports = result.get("value", 0) if isinstance(result, dict) else int(result)
        balance = float(to_display_amount(lamports, 9))

        tokens = self._degrade("token accounts", self.fetch_tokens, url, owner)
        transactions = self._degrade("transactions", self.fetch_transactions, url, owner)

        return [
            ChainPosition(
                chain=Chain.SOLANA,
                balance=balance,
                tokens=tokens,
                last_transactions=transactions,
                last_updated=utcnow(),
            )
        ]

    def fetch_tokens(self, url: str, owner: str) -> list[TokenBalance]:
        """
        Fetch balances of supported SPL tokens.

        Balances of several accounts holding the same mint are summed.

        Parameters
        ----------
        url : str
            RPC endpoint
        owner : str
            Wallet address

        Returns
        -------
        list[TokenBalance]
            Positive balances of supported mints

        """
        result = self.http.rpc(
            url,
            "getTokenAccountsByOwner",
            [owner, {"programId": TOKEN_PROGRAM_ID}, {"encoding": "jsonParsed"}],
        )
        supported = get_solana_tokens()

        raw_totals: dict[str, int] = {}
        decimals_by_mint: dict[str, int] = {}
        for account in (result or {}).get("value", []):
            info = ((account.get("account") or {}).get("data") or {}).get("parsed", {}).get("info", {})
            mint = info.get("mint")
            if mint not in supported:
                continue
            token_amount = info.get("tokenAmount") or {}
            raw_totals[mint] = raw_totals.get(mint, 0) + int(token_amount.get("amount", "0"))
            decimals_by_mint[mint] = int(token_amount.get("decimals", supported[mint].get("decimals", 0)))

        tokens = []
        for mint, raw in raw_totals.items():
            amount = to_display_amount(raw, decimals_by_mint[mint])
            if amount <= Decimal(0):
                continue
            meta = supported[mint]
            tokens.append(
                TokenBalance(
                    contract_address=mint,
                    symbol=meta["symbol"],
                    name=meta.get("name", meta["symbol"]),
                    balance=format_amount(amount),
                    decimals=decimals_by_mint[mint],
                )
            )
        return tokens

    def fetch_transactions(self, url: str, owner: str) -> list[Transaction]:
        """
        Derive recent SOL movements from the latest transaction signatures.

        Failed transactions are skipped, as is any signature whose details
        cannot be fetched.

        Parameters
        ----------
        url : str
            RPC endpoint
        owner : str
            Wallet address

        Returns
        -------
        list[Transaction]
            Transactions, newest first, timestamps in seconds

        """
        signatures = self.http.rpc(url, "getSignaturesForAddress", [owner, {"limit": SIGNATURE_LIMIT}]) or []

        transactions = []
        for entry in signatures[:RECENT_TRANSACTION_COUNT]:
            signature = entry.get("signature")
            try:
                tx = self.http.rpc(
                    url,
                    "getTransaction",
                    [signature, {"commitment": "confirmed", "maxSupportedTransactionVersion": 0}],
                )
            except RateLimitedError:
                raise
            except ProviderError as e:
                logger.warning("Failed to fetch transaction %s: %s", signature, e)
                continue

            transaction = self._classify(tx, owner, entry)
            if transaction is not None:
                transactions.append(transaction)
        return transactions

    def _classify(self, tx: dict[str, Any] | None, owner: str, entry: dict[str, Any]) -> Transaction | None:
        meta = (tx or {}).get("meta")
        if not meta or meta.get("err"):
            return None

        keys = _account_keys(tx)
        if owner not in keys:
            logger.debug("Address not among account keys of %s", entry.get("signature"))
            return None

        index = keys.index(owner)
        pre_balances = meta.get("preBalances") or []
        post_balances = meta.get("postBalances") or []
        pre = pre_balances[index] if index < len(pre_balances) else 0
        post = post_balances[index] if index < len(post_balances) else 0

        classified = classify_balance_delta(pre, post, meta.get("fee"))
        if classified is None:
            return None

        direction, value = classified
        block_time = entry.get("blockTime") or tx.get("blockTime") or int(time.time())
        return Transaction(
            hash=entry["signature"],
            timestamp=int(block_time),
            value=value,
            direction=direction,
            asset="SOL",
        )
