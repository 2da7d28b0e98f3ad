"""Chain metadata and token list loader."""

from functools import cache
from pathlib import Path
from typing import Any

import yaml


@cache
def load_chain_config() -> dict[str, Any]:
    """
    Load chain metadata, token lists and price identifiers from chains.yaml.

    Returns
    -------
    dict[str, Any]
        Parsed configuration

    """
    path = Path(__file__).parent / "chains.yaml"
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def get_chain_info(chain: str) -> dict[str, Any]:
    """
    Get display and provider metadata for a chain.

    Parameters
    ----------
    chain : str
        Chain name (e.g., 'bitcoin', 'base')

    Returns
    -------
    dict[str, Any]
        Label, color, native symbol and explorer templates. Unknown chains get
        a neutral fallback with the chain name as label.

    """
    chains = load_chain_config()["chains"]
    if chain in chains:
        return chains[chain]
    return {"label": chain, "color": "bg-gray-500", "native_symbol": "", "native_name": chain}


def get_native_symbol(chain: str) -> str:
    """Native asset symbol of a chain, or an empty string when unknown."""
    return get_chain_info(chain).get("native_symbol", "")


def get_all_supported_chains() -> list[str]:
    """
    Get list of all supported chain names.

    Returns
    -------
    list[str]
        List of chain names

    """
    return list(load_chain_config()["chains"].keys())


def get_evm_networks() -> list[str]:
    """EVM networks an 'ethereum' address is refreshed across, in display order."""
    return list(load_chain_config()["evm_networks"])


def get_alchemy_network(chain: str) -> str:
    """
    Get the provider network slug used in RPC URLs.

    Raises
    ------
    KeyError
        If the chain has no provider network

    """
    return load_chain_config()["chains"][chain]["alchemy_network"]


def get_supported_evm_tokens() -> frozenset[str]:
    """Upper-cased ERC-20 symbols kept after a token balance fetch."""
    return frozenset(str(symbol).upper() for symbol in load_chain_config()["supported_evm_tokens"])


def get_scam_contracts() -> frozenset[str]:
    """Lower-cased contract addresses that are never reported."""
    return frozenset(address.lower() for address in load_chain_config()["scam_contracts"])


def get_solana_tokens() -> dict[str, dict[str, Any]]:
    """
    Get the supported SPL token mints.

    Returns
    -------
    dict[str, dict[str, Any]]
        Mapping of mint address to symbol, name and decimals

    """
    return dict(load_chain_config()["solana_tokens"])


def get_price_ids() -> dict[str, str]:
    """
    Get the symbol to CoinGecko id mapping.

    Returns
    -------
    dict[str, str]
        Upper-cased symbol to price provider identifier

    """
    return {str(symbol).upper(): str(coin_id) for symbol, coin_id in load_chain_config()["price_ids"].items()}


def explorer_tx_url(chain: str, tx_hash: str) -> str:
    """Block explorer link for a transaction, '#' for unknown chains."""
    template = get_chain_info(chain).get("explorer_tx")
    return template.format(hash=tx_hash) if template else "#"


def explorer_address_url(chain: str, address: str) -> str:
    """Block explorer link for an address, '#' for unknown chains."""
    template = get_chain_info(chain).get("explorer_address")
    return template.format(address=address) if template else "#"


@cache
def load_demo_data() -> dict[str, Any]:
    """
    Load the demo wallet set from demo_addresses.yaml.

    Returns
    -------
    dict[str, Any]
        Parsed demo data with an 'addresses' list

    """
    path = Path(__file__).parent / "demo_addresses.yaml"
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)
