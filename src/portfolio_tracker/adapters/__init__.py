"""Chain adapters turning addresses into normalized balances, tokens and transactions."""

from portfolio_tracker.adapters.base import BaseChainAdapter
from portfolio_tracker.adapters.bitcoin import BitcoinAdapter, classify_bitcoin_transaction
from portfolio_tracker.adapters.evm import EvmAdapter, normalize_evm_address
from portfolio_tracker.adapters.solana import SolanaAdapter, classify_balance_delta, validate_solana_address

__all__ = [
    "BaseChainAdapter",
    "BitcoinAdapter",
    "EvmAdapter",
    "SolanaAdapter",
    "classify_balance_delta",
    "classify_bitcoin_transaction",
    "normalize_evm_address",
    "validate_solana_address",
]
