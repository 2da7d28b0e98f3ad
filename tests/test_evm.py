"""Tests for the EVM adapter."""

import httpx
import pytest

from portfolio_tracker.adapters import EvmAdapter, normalize_evm_address
from portfolio_tracker.core.errors import InvalidAddressError, RateLimitedError, UnavailableError
from portfolio_tracker.core.models import Address, Chain, Direction
from portfolio_tracker.rpc import NO_RETRY

ADDRESS = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
SHIB = "0x95ad61b0a150d79219dcf64e1e6cc01f0b64c4ce"
SCAM = "0x00000000f9fd50c832d79facfe6f4e8ce90a5efb"

METADATA = {
    USDC: {"symbol": "USDC", "name": "USD Coin", "decimals": 6},
    SHIB: {"symbol": "SHIB", "name": "Shiba Inu", "decimals": 18},
}


def _empty_network_results() -> dict:
    return {
        "eth_getBalance": hex(10**18),
        "alchemy_getTokenBalances": {"address": ADDRESS, "tokenBalances": []},
        "alchemy_getAssetTransfers": {"transfers": []},
    }


def _rpc_error(code: int, message: str) -> httpx.Response:
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}})


def _adapter(settings, client) -> EvmAdapter:
    return EvmAdapter(settings=settings, client=client, retry_config=NO_RETRY)


def test_normalize_evm_address():
    """Test addresses are lower-cased and 0x-prefixed."""
    assert normalize_evm_address("  0xD8dA6BF26964aF9D7eEd9e03E53415D37aA96045 ") == ADDRESS
    assert normalize_evm_address("D8dA6BF26964aF9D7eEd9e03E53415D37aA96045") == ADDRESS


@pytest.mark.parametrize(
    "btc_address",
    ["1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa", "bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq"],
)
def test_normalize_rejects_bitcoin(btc_address):
    """Test Bitcoin addresses are refused on EVM networks."""
    with pytest.raises(InvalidAddressError, match="Bitcoin addresses cannot be used"):
        normalize_evm_address(btc_address)


def test_fetch_network(settings, rpc_client):
    """Test balance, filtered tokens and sorted transfers on one network."""

    def transfers(params, request):
        query = params[0]
        assert query["maxCount"] == "0x5"
        assert query["category"] == ["external", "erc20", "erc721", "erc1155"]
        if "fromAddress" in query:
            return {"transfers": [{"hash": "0xsent", "blockNum": "0x10", "value": 0.5, "asset": None}]}
        return {"transfers": [{"hash": "0xrecv", "blockNum": "0x20", "value": 100, "asset": "USDC"}]}

    def block(params, request):
        return {"number": params[0], "timestamp": hex(1_700_000_000 + int(params[0], 16))}

    results = {
        "eth_getBalance": hex(1_500_000_000_000_000_000),
        "alchemy_getTokenBalances": {
            "tokenBalances": [
                {"contractAddress": USDC, "tokenBalance": hex(2_500_000)},
                {"contractAddress": SHIB, "tokenBalance": hex(10**20)},
                {"contractAddress": SCAM, "tokenBalance": hex(10**18)},
                {"contractAddress": "0xdead", "tokenBalance": "0x0"},
            ]
        },
        "alchemy_getTokenMetadata": lambda params, request: METADATA[params[0]],
        "alchemy_getAssetTransfers": transfers,
        "eth_getBlockByNumber": block,
    }
    calls = []
    adapter = _adapter(settings, rpc_client(results, calls))

    position = adapter.fetch_network("0xD8dA6BF26964aF9D7eEd9e03E53415D37aA96045", Chain.ETHEREUM)

    assert position.chain == Chain.ETHEREUM
    assert position.balance == 1.5
    assert [(t.symbol, t.balance, t.decimals) for t in position.tokens] == [("USDC", "2.5", 6)]

    assert [tx.hash for tx in position.last_transactions] == ["0xrecv", "0xsent"]
    received, sent = position.last_transactions
    assert received.direction == Direction.RECEIVED
    assert received.asset == "USDC"
    assert received.timestamp == (1_700_000_000 + 0x20) * 1000
    assert sent.direction == Direction.SENT
    assert sent.asset == "ETH"

    assert {host for host, _, _ in calls} == {"eth-mainnet.g.alchemy.com"}
    # Zero and scam balances never reach the metadata call
    metadata_contracts = {params[0] for _, method, params in calls if method == "alchemy_getTokenMetadata"}
    assert metadata_contracts == {USDC, SHIB}


def test_fetch_network_degrades_token_failure(settings, rpc_client):
    """Test a failing token lookup leaves an empty token list."""
    results = _empty_network_results()
    results["alchemy_getTokenBalances"] = lambda params, request: _rpc_error(-32000, "internal error")

    position = _adapter(settings, rpc_client(results)).fetch_network(ADDRESS, Chain.BASE)

    assert position.balance == 1.0
    assert position.tokens == []


def test_fetch_network_token_rate_limit_propagates(settings, rpc_client):
    """Test a rate-limited sub-fetch is not swallowed."""
    results = _empty_network_results()
    results["alchemy_getTokenBalances"] = lambda params, request: _rpc_error(429, "Too many requests")

    with pytest.raises(RateLimitedError):
        _adapter(settings, rpc_client(results)).fetch_network(ADDRESS, Chain.BASE)


def test_fetch_l2_address_fetches_own_network(settings, rpc_client):
    """Test an address registered on an L2 is fetched on that network only."""
    calls = []
    adapter = _adapter(settings, rpc_client(_empty_network_results(), calls))
    address = Address(label="Arb", address=ADDRESS, chain=Chain.ARBITRUM)

    positions = adapter.fetch(address)

    assert [p.chain for p in positions] == [Chain.ARBITRUM]
    assert {host for host, _, _ in calls} == {"arb-mainnet.g.alchemy.com"}


def test_fetch_all_networks_in_order(settings, rpc_client):
    """Test an ethereum address is fetched on every network in fixed order."""
    adapter = _adapter(settings, rpc_client(_empty_network_results()))
    address = Address(label="Main", address=ADDRESS, chain=Chain.ETHEREUM)

    positions = adapter.fetch(address)

    assert [p.chain for p in positions] == [
        Chain.ETHEREUM,
        Chain.ARBITRUM,
        Chain.POLYGON,
        Chain.OPTIMISM,
        Chain.BASE,
    ]
    assert all(p.balance == 1.0 and not p.failed for p in positions)


def _polygon_down(settings, rpc_client) -> EvmAdapter:
    results = _empty_network_results()

    def balance(params, request):
        if request.url.host.startswith("polygon"):
            return httpx.Response(503)
        return hex(10**18)

    results["eth_getBalance"] = balance
    return _adapter(settings, rpc_client(results))


def test_fetch_all_networks_partial_failure(settings, rpc_client):
    """Test a failing network becomes a zeroed placeholder carrying the error."""
    positions = _polygon_down(settings, rpc_client).fetch_all_networks(ADDRESS)

    assert len(positions) == 5
    polygon = positions[2]
    assert polygon.chain == Chain.POLYGON
    assert polygon.balance == 0.0
    assert polygon.failed
    assert "temporarily unavailable" in polygon.error
    assert not any(p.failed for p in positions if p.chain != Chain.POLYGON)


def test_fetch_all_networks_omit_failures(settings, rpc_client):
    """Test failed networks can be left out instead."""
    positions = _polygon_down(settings, rpc_client).fetch_all_networks(ADDRESS, on_error="omit")

    assert [p.chain for p in positions] == [Chain.ETHEREUM, Chain.ARBITRUM, Chain.OPTIMISM, Chain.BASE]


def test_fetch_all_networks_total_failure(settings, rpc_client):
    """Test every network failing raises one unavailable error."""
    results = _empty_network_results()
    results["eth_getBalance"] = lambda params, request: httpx.Response(500)

    with pytest.raises(UnavailableError, match="Failed to fetch data from any Ethereum network"):
        _adapter(settings, rpc_client(results)).fetch_all_networks(ADDRESS)


def test_fetch_all_networks_all_rate_limited(settings, rpc_client):
    """Test every network rate limited surfaces as rate limited."""
    results = _empty_network_results()
    results["eth_getBalance"] = lambda params, request: httpx.Response(429)

    with pytest.raises(RateLimitedError):
        _adapter(settings, rpc_client(results)).fetch_all_networks(ADDRESS)


def test_fetch_rejects_bitcoin_address(settings, rpc_client):
    """Test a Bitcoin address registered as ethereum fails before any request."""
    calls = []
    adapter = _adapter(settings, rpc_client(_empty_network_results(), calls))
    address = Address(label="Oops", address="1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa", chain=Chain.ETHEREUM)

    with pytest.raises(InvalidAddressError):
        adapter.fetch(address)
    assert calls == []
