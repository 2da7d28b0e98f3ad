"""Tests for the HTTP provider wrapper and error classification."""

import httpx
import pytest

from portfolio_tracker.core.errors import (
    InvalidAddressError,
    NotFoundError,
    PortfolioTrackerError,
    ProviderError,
    RateLimitedError,
    UnavailableError,
    describe_error,
    error_from_response,
)
from portfolio_tracker.rpc import NO_RETRY, HTTPProvider, RetryConfig

URL = "https://provider.test/rpc"


def _provider(http_client, handler, retry_config=NO_RETRY) -> HTTPProvider:
    return HTTPProvider("TestProvider", retry_config=retry_config, client=http_client(handler))


@pytest.mark.parametrize(
    ("status", "error_type"),
    [(429, RateLimitedError), (404, NotFoundError), (400, NotFoundError), (500, UnavailableError), (503, UnavailableError)],
)
def test_error_from_response(status, error_type):
    """Test HTTP statuses map to the error taxonomy."""
    error = error_from_response("TestProvider", httpx.Response(status))

    assert type(error) is error_type
    assert error.status_code == status
    assert error.provider == "TestProvider"


def test_rate_limit_retry_after():
    """Test Retry-After is parsed, invalid values ignored."""
    assert error_from_response("P", httpx.Response(429, headers={"Retry-After": "12"})).retry_after == 12
    assert error_from_response("P", httpx.Response(429, headers={"Retry-After": "soon"})).retry_after is None


def test_request_errors(http_client):
    """Test error responses raise classified errors."""
    provider = _provider(http_client, lambda request: httpx.Response(403))

    with pytest.raises(ProviderError, match=r"Failed to fetch data from TestProvider \(403\)"):
        provider.get_json(URL)


@pytest.mark.parametrize("exc_type", [httpx.ConnectError, httpx.ReadTimeout])
def test_transport_errors_are_unavailable(http_client, exc_type):
    """Test network failures and timeouts are unavailable, and retried."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise exc_type("boom", request=request)

    provider = _provider(http_client, handler, RetryConfig(max_retries=1, base_delay=0))

    with pytest.raises(UnavailableError):
        provider.get_json(URL)
    assert len(calls) == 2


def test_get_json(http_client):
    """Test JSON bodies are decoded and empty bodies read as None."""
    assert _provider(http_client, lambda request: httpx.Response(200, json={"a": 1})).get_json(URL) == {"a": 1}
    assert _provider(http_client, lambda request: httpx.Response(204)).get_json(URL) is None


def test_invalid_json(http_client):
    """Test a non-JSON body is a provider error."""
    provider = _provider(http_client, lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(ProviderError, match="Invalid JSON"):
        provider.get_json(URL)


def test_rpc_result_and_ids(rpc_client):
    """Test JSON-RPC results are unwrapped and request ids increase."""
    calls = []
    provider = HTTPProvider("TestProvider", retry_config=NO_RETRY, client=rpc_client({"eth_chainId": "0x1"}, calls))

    assert provider.rpc(URL, "eth_chainId", []) == "0x1"
    assert provider.rpc(URL, "eth_chainId", []) == "0x1"
    assert len(calls) == 2


def _rpc_error(code, message):
    return lambda request: httpx.Response(
        200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}}
    )


@pytest.mark.parametrize(
    ("code", "message", "error_type"),
    [
        (429, "Too Many Requests", RateLimitedError),
        (-32005, "Your app has exceeded its compute units per second capacity", RateLimitedError),
        (-32602, "invalid address", InvalidAddressError),
        (-32000, "header not found", UnavailableError),
        (-32603, "internal error", UnavailableError),
        (-32601, "method not found", ProviderError),
    ],
)
def test_rpc_errors(http_client, code, message, error_type):
    """Test JSON-RPC error bodies map to the error taxonomy."""
    provider = _provider(http_client, _rpc_error(code, message))

    with pytest.raises(error_type):
        provider.rpc(URL, "eth_getBalance", ["0x0", "latest"])


def test_rpc_transient_error_is_retried(http_client):
    """Test transient RPC errors are retried."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return _rpc_error(-32000, "header not found")(request)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x10"})

    provider = _provider(http_client, handler, RetryConfig(max_retries=2, base_delay=0))

    assert provider.rpc(URL, "eth_blockNumber", []) == "0x10"
    assert len(calls) == 2


def test_describe_error():
    """Test rate limits and outages read differently."""
    limited = RateLimitedError("Rate limit exceeded for Alchemy.", "Alchemy", retry_after=30)

    assert describe_error(limited) == "Rate limit exceeded for Alchemy. (retry in 30s)"
    assert "temporarily unavailable" in describe_error(UnavailableError(""))
    assert describe_error(PortfolioTrackerError("No adapter")) == "No adapter"
    assert describe_error(KeyError("x")).startswith("Unexpected error")
