"""Static chain metadata, token lists and demo data."""

from portfolio_tracker.data.loader import (
    explorer_address_url,
    explorer_tx_url,
    get_alchemy_network,
    get_all_supported_chains,
    get_chain_info,
    get_evm_networks,
    get_native_symbol,
    get_price_ids,
    get_scam_contracts,
    get_solana_tokens,
    get_supported_evm_tokens,
    load_chain_config,
    load_demo_data,
)

__all__ = [
    "explorer_address_url",
    "explorer_tx_url",
    "get_alchemy_network",
    "get_all_supported_chains",
    "get_chain_info",
    "get_evm_networks",
    "get_native_symbol",
    "get_price_ids",
    "get_scam_contracts",
    "get_solana_tokens",
    "get_supported_evm_tokens",
    "load_chain_config",
    "load_demo_data",
]
