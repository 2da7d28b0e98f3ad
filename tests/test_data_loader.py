"""Tests for data loading and configuration."""

import pytest

from portfolio_tracker.core.models import Chain
from portfolio_tracker.data import (
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
    load_demo_data,
)


def test_get_all_supported_chains():
    """Test every chain of the model has metadata."""
    chains = get_all_supported_chains()

    assert set(chains) == {chain.value for chain in Chain}


def test_chain_info_structure():
    """Test that chain info has required structure."""
    for chain in get_all_supported_chains():
        info = get_chain_info(chain)

        assert info["label"]
        assert info["color"].startswith("bg-")
        assert info["native_symbol"]
        assert "{hash}" in info["explorer_tx"]
        assert "{address}" in info["explorer_address"]


def test_unknown_chain_fallback():
    """Test unknown chains get neutral metadata."""
    info = get_chain_info("dogechain")

    assert info["label"] == "dogechain"
    assert get_native_symbol("dogechain") == ""
    assert explorer_tx_url("dogechain", "0x1") == "#"


def test_native_symbols():
    """Test native symbols per chain."""
    assert get_native_symbol("bitcoin") == "BTC"
    assert get_native_symbol("ethereum") == "ETH"
    assert get_native_symbol("arbitrum") == "ETH"
    assert get_native_symbol("polygon") == "POL"
    assert get_native_symbol("solana") == "SOL"


def test_evm_networks_order():
    """Test the fixed network order of ethereum refreshes."""
    assert get_evm_networks() == ["ethereum", "arbitrum", "polygon", "optimism", "base"]


def test_alchemy_network():
    """Test provider network slugs."""
    assert get_alchemy_network("ethereum") == "eth-mainnet"
    assert get_alchemy_network("base") == "base-mainnet"

    with pytest.raises(KeyError):
        get_alchemy_network("bitcoin")


def test_explorer_urls():
    """Test explorer link templates."""
    assert explorer_tx_url("bitcoin", "abc") == "https://mempool.space/tx/abc"
    assert explorer_tx_url("solana", "sig") == "https://solscan.io/tx/sig"
    assert explorer_address_url("base", "0x1") == "https://basescan.org/address/0x1"


def test_token_lists():
    """Test allow-lists and deny-lists are normalized."""
    supported = get_supported_evm_tokens()
    assert {"USDC", "WETH", "WBTC", "1INCH"} <= supported
    assert all(symbol == symbol.upper() for symbol in supported)

    assert "0x00000000f9fd50c832d79facfe6f4e8ce90a5efb" in get_scam_contracts()

    solana_tokens = get_solana_tokens()
    assert solana_tokens["EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"]["symbol"] == "USDC"
    assert all({"symbol", "name", "decimals"} <= set(meta) for meta in solana_tokens.values())


def test_price_ids():
    """Test one canonical upper-cased price id table."""
    price_ids = get_price_ids()

    assert price_ids["BTC"] == "bitcoin"
    assert price_ids["STETH"] == "staked-ether"
    assert price_ids["MSOL"] == "msol"
    assert price_ids["POL"] == price_ids["MATIC"] == "polygon-ecosystem-token"
    assert all(symbol == symbol.upper() for symbol in price_ids)


def test_every_listed_token_has_a_price_id():
    """Test allow-listed and Solana tokens can all be priced."""
    price_ids = get_price_ids()

    for symbol in get_supported_evm_tokens():
        assert symbol in price_ids, f"{symbol} has no price id"
    for meta in get_solana_tokens().values():
        assert meta["symbol"].upper() in price_ids


def test_load_demo_data():
    """Test the demo data file parses."""
    data = load_demo_data()

    assert len(data["addresses"]) == 4
    assert all({"id", "label", "address", "chain"} <= set(entry) for entry in data["addresses"])
