"""Tests for runtime settings."""

from pathlib import Path

from portfolio_tracker.config import DEFAULT_COINGECKO_API_URL, DEFAULT_MEMPOOL_API_URL, Settings

ENV_VARS = [
    "ALCHEMY_API_KEY",
    "SOLANA_RPC_URL",
    "MEMPOOL_API_URL",
    "COINGECKO_API_URL",
    "PRICE_API_URL",
    "CRYPTO_TRACKER_PASSWORD",
    "AUTH_REQUIRED",
    "BASIC_AUTH_USER",
    "BASIC_AUTH_PASSWORD",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "PORTFOLIO_STORE_PATH",
    "DEMO_MODE",
    "PRICE_CACHE_TTL",
]


def _clear_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    """Test an empty environment gives demo mode and public endpoints."""
    _clear_env(monkeypatch)
    settings = Settings.from_env()

    assert settings.is_demo_mode
    assert not settings.has_supabase
    assert not settings.auth_required
    assert settings.mempool_api_url == DEFAULT_MEMPOOL_API_URL
    assert settings.coingecko_api_url == DEFAULT_COINGECKO_API_URL
    assert settings.price_cache_ttl == 300
    assert settings.store_path == Path("~/.portfolio_tracker/store.json")


def test_from_env(monkeypatch):
    """Test every variable is read."""
    _clear_env(monkeypatch)
    monkeypatch.setenv("ALCHEMY_API_KEY", "key")
    monkeypatch.setenv("AUTH_REQUIRED", "TRUE")
    monkeypatch.setenv("CRYPTO_TRACKER_PASSWORD", "hunter2")
    monkeypatch.setenv("SUPABASE_URL", "https://project.test")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("PORTFOLIO_STORE_PATH", "/tmp/tracker.json")
    monkeypatch.setenv("PRICE_CACHE_TTL", "60")
    monkeypatch.setenv("MEMPOOL_API_URL", "  ")

    settings = Settings.from_env()

    assert not settings.is_demo_mode
    assert settings.auth_required
    assert settings.tracker_password == "hunter2"
    assert settings.has_supabase
    assert settings.store_path == Path("/tmp/tracker.json")
    assert settings.price_cache_ttl == 60
    # Blank values fall back to defaults
    assert settings.mempool_api_url == DEFAULT_MEMPOOL_API_URL


def test_demo_mode_forced(monkeypatch):
    """Test DEMO_MODE wins over a configured key."""
    _clear_env(monkeypatch)
    monkeypatch.setenv("ALCHEMY_API_KEY", "key")
    monkeypatch.setenv("DEMO_MODE", "true")

    assert Settings.from_env().is_demo_mode


def test_provider_urls():
    """Test provider endpoint URLs embed the key."""
    settings = Settings(alchemy_api_key="key")

    assert settings.alchemy_url("arb-mainnet") == "https://arb-mainnet.g.alchemy.com/v2/key"
    assert settings.solana_url() == "https://solana-mainnet.g.alchemy.com/v2/key"
    assert Settings(alchemy_api_key="key", solana_rpc_url="https://rpc.test").solana_url() == "https://rpc.test"


def test_can_fetch():
    """Test which chains are reachable without a provider key."""
    keyless = Settings()
    assert keyless.can_fetch("bitcoin")
    assert not keyless.can_fetch("ethereum")
    assert not keyless.can_fetch("solana")

    assert Settings(solana_rpc_url="https://rpc.test").can_fetch("solana")
    assert Settings(alchemy_api_key="key").can_fetch("base")
