"""Pytest configuration for portfolio-tracker tests."""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from portfolio_tracker.config import Settings
from portfolio_tracker.core.models import Address, Chain, ChainPosition, PriceQuote, TokenBalance


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with a provider key and fake endpoints, never demo mode."""
    return Settings(
        alchemy_api_key="test-key",
        solana_rpc_url="https://solana.test",
        mempool_api_url="https://mempool.test/api",
        coingecko_api_url="https://coingecko.test/api/v3",
        store_path=tmp_path / "store.json",
    )


@pytest.fixture
def http_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    """Build an httpx client answering through a handler function."""

    def make(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler))

    return make


@pytest.fixture
def rpc_client() -> Callable[..., httpx.Client]:
    """
    Build an httpx client answering JSON-RPC calls by method name.

    Each entry of ``results`` is either a plain result, an ``httpx.Response``
    returned as-is, or a callable ``(params, request)`` returning one of those.
    Every call is appended to ``calls`` as ``(host, method, params)``.
    """

    def make(results: dict[str, Any], calls: list | None = None) -> httpx.Client:
        def handler(request: httpx.Request) -> httpx.Response:
            payload = json.loads(request.content)
            if calls is not None:
                calls.append((request.url.host, payload["method"], payload["params"]))

            result = results[payload["method"]]
            if callable(result):
                result = result(payload["params"], request)
            if isinstance(result, httpx.Response):
                return result
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})

        return httpx.Client(transport=httpx.MockTransport(handler))

    return make


@pytest.fixture
def btc_address() -> Address:
    return Address(
        id="btc-1",
        label="Cold storage",
        address="bc1qar0srrr7xfkvy5l643lydnw9re59gtzzwf5mdq",
        chain=Chain.BITCOIN,
        positions=[ChainPosition(chain=Chain.BITCOIN, balance=0.5)],
    )


@pytest.fixture
def eth_address() -> Address:
    return Address(
        id="eth-1",
        label="Main wallet",
        address="0xd8da6bf26964af9d7eed9e03e53415d37aa96045",
        chain=Chain.ETHEREUM,
        positions=[
            ChainPosition(
                chain=Chain.ETHEREUM,
                balance=2.0,
                tokens=[
                    TokenBalance(
                        contract_address="0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
                        symbol="USDC",
                        name="USD Coin",
                        balance="1000",
                        decimals=6,
                    )
                ],
            ),
            ChainPosition(chain=Chain.ARBITRUM, balance=1.0),
            ChainPosition(chain=Chain.POLYGON, balance=0.0),
        ],
    )


@pytest.fixture
def prices() -> dict[str, PriceQuote]:
    return {
        "BTC": PriceQuote(symbol="BTC", price=60000.0, change_24h=2.0),
        "ETH": PriceQuote(symbol="ETH", price=3000.0, change_24h=-1.0),
        "USDC": PriceQuote(symbol="USDC", price=1.0, change_24h=0.0),
    }
