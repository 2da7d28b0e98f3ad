"""Tests for the HTTP API."""

import base64

import pytest
from fastapi.testclient import TestClient

from portfolio_tracker.api import create_app
from portfolio_tracker.core.errors import ProviderError, RateLimitedError, UnavailableError
from portfolio_tracker.core.models import PriceQuote
from portfolio_tracker.pricing import RATE_LIMIT_MESSAGE
from portfolio_tracker.storage import JsonFileStore


class FakePricing:
    """Serves fixed quotes or raises a fixed error, counting calls."""

    def __init__(self, quotes: dict[str, PriceQuote] | None = None, error: Exception | None = None) -> None:
        self.quotes = quotes or {}
        self.error = error
        self.calls = []
        self.closed = False

    def get_prices(self, symbols):
        self.calls.append(set(symbols))
        if self.error is not None:
            raise self.error
        return {symbol: self.quotes[symbol] for symbol in symbols if symbol in self.quotes}

    def close(self):
        self.closed = True


@pytest.fixture
def store(tmp_path, btc_address, eth_address) -> JsonFileStore:
    store = JsonFileStore(tmp_path / "store.json")
    store.add_address(btc_address)
    store.add_address(eth_address)
    return store


def _client(settings, pricing, store=None) -> TestClient:
    return TestClient(create_app(settings, pricing=pricing, store=store or JsonFileStore(settings.store_path)))


def test_health(settings):
    """Test the health route."""
    response = _client(settings, FakePricing()).get("/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "demo_mode": False}


def test_prices(settings, prices):
    """Test quotes come back keyed by symbol with cache headers."""
    pricing = FakePricing(prices)
    client = _client(settings, pricing)

    response = client.get("/api/prices", params={"symbols": "BTC, ETH,NOTLISTED"})

    assert response.status_code == 200
    assert response.json() == {
        "BTC": {"symbol": "BTC", "price": 60000.0, "change24h": 2.0},
        "ETH": {"symbol": "ETH", "price": 3000.0, "change24h": -1.0},
    }
    assert response.headers["cache-control"] == "public, s-maxage=300, stale-while-revalidate=60"
    assert pricing.calls == [{"BTC", "ETH", "NOTLISTED"}]


def test_prices_are_cached(settings, prices):
    """Test the same symbol set is served from cache."""
    pricing = FakePricing(prices)
    client = _client(settings, pricing)

    client.get("/api/prices", params={"symbols": "BTC,ETH"})
    client.get("/api/prices", params={"symbols": "ETH,BTC"})

    assert len(pricing.calls) == 1


def test_prices_missing_symbols(settings):
    """Test the symbols parameter is required."""
    client = _client(settings, FakePricing())

    response = client.get("/api/prices")
    assert response.status_code == 400
    assert response.json() == {"error": "Missing symbols parameter"}

    assert client.get("/api/prices", params={"symbols": ""}).status_code == 400


@pytest.mark.parametrize(
    ("error", "status", "message"),
    [
        (RateLimitedError("slow down", "CoinGecko", retry_after=30), 429, RATE_LIMIT_MESSAGE),
        (UnavailableError("down", "CoinGecko", 503), 503, "CoinGecko service is temporarily unavailable"),
        (ProviderError("forbidden", "CoinGecko", 403), 403, "Failed to fetch prices (403)"),
        (RuntimeError("bug"), 500, "Internal server error"),
    ],
)
def test_prices_errors(settings, error, status, message):
    """Test upstream failures map to distinct responses."""
    response = _client(settings, FakePricing(error=error)).get("/api/prices", params={"symbols": "BTC"})

    assert response.status_code == status
    assert response.json()["error"].startswith(message)


def test_rate_limit_retry_after_header(settings):
    """Test the upstream retry hint is forwarded."""
    error = RateLimitedError("slow down", "CoinGecko", retry_after=30)
    response = _client(settings, FakePricing(error=error)).get("/api/prices", params={"symbols": "BTC"})

    assert response.headers["retry-after"] == "30"


def test_auth(settings):
    """Test the shared-password check."""
    client = _client(settings.model_copy(update={"tracker_password": "hunter2"}), FakePricing())

    assert client.post("/api/auth", json={"password": "hunter2"}).json() == {"success": True}

    wrong = client.post("/api/auth", json={"password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Invalid password"}

    for body in ({}, ["hunter2"], {"password": None}):
        missing = client.post("/api/auth", json=body)
        assert missing.status_code == 401
        assert missing.json() == {"error": "Invalid password"}

    invalid = client.post("/api/auth", content="not json", headers={"content-type": "application/json"})
    assert invalid.status_code == 500
    assert invalid.json() == {"error": "Authentication failed"}


def test_auth_not_configured(settings):
    """Test auth fails closed without a configured password."""
    response = _client(settings, FakePricing()).post("/api/auth", json={"password": "anything"})

    assert response.status_code == 500
    assert response.json() == {"error": "Authentication not configured"}


def test_basic_auth_middleware(settings):
    """Test non-API routes require basic credentials when enabled."""
    secured = settings.model_copy(
        update={"auth_required": True, "basic_auth_user": "admin", "basic_auth_password": "secret"}
    )
    client = _client(secured, FakePricing())

    challenged = client.get("/")
    assert challenged.status_code == 401
    assert challenged.headers["www-authenticate"].startswith("Basic")

    token = base64.b64encode(b"admin:secret").decode()
    assert client.get("/", headers={"Authorization": f"Basic {token}"}).status_code == 200

    wrong = base64.b64encode(b"admin:guess").decode()
    assert client.get("/", headers={"Authorization": f"Basic {wrong}"}).status_code == 401

    # API routes stay open
    assert client.get("/api/prices").status_code == 400


def test_summary(settings, prices, store):
    """Test the summary values stored addresses at current prices."""
    pricing = FakePricing(prices)
    response = _client(settings, pricing, store).get("/api/summary")

    assert response.status_code == 200
    body = response.json()
    assert body["total_value"] == pytest.approx(40000.0)
    assert body["total_assets"] == 4
    assert [a["chain"] for a in body["chain_allocations"]] == ["bitcoin", "ethereum", "arbitrum"]
    assert pricing.calls == [{"BTC", "ETH", "USDC"}]


def test_summary_price_failure(settings, store):
    """Test the summary reports price failures like the price route."""
    pricing = FakePricing(error=RateLimitedError("slow down", "CoinGecko"))

    response = _client(settings, pricing, store).get("/api/summary")

    assert response.status_code == 429


def test_lifespan_closes_pricing(settings):
    """Test the price service is closed on shutdown."""
    pricing = FakePricing()
    with _client(settings, pricing) as client:
        client.get("/")

    assert pricing.closed
