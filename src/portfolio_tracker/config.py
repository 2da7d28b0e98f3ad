"""Runtime settings gathered from environment variables."""

import os
from pathlib import Path

from pydantic import BaseModel

DEFAULT_MEMPOOL_API_URL = "https://mempool.space/api"
DEFAULT_COINGECKO_API_URL = "https://api.coingecko.com/api/v3"
DEFAULT_STORE_PATH = Path("~/.portfolio_tracker/store.json")


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() == "true"


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


class Settings(BaseModel):
    """
    Provider keys, endpoints, auth and persistence settings.

    Attributes
    ----------
    alchemy_api_key : str | None
        Key for the EVM and Solana provider. Absence enables demo mode.
    solana_rpc_url : str | None
        Override for the Solana JSON-RPC endpoint
    mempool_api_url : str
        Bitcoin explorer base URL
    coingecko_api_url : str
        Price aggregator base URL
    price_api_url : str | None
        Internal price endpoint; when set, prices are read through it
    tracker_password : str | None
        Shared password checked by the auth endpoint
    auth_required : bool
        Whether non-API routes require HTTP Basic credentials
    basic_auth_user : str | None
        Basic auth user name
    basic_auth_password : str | None
        Basic auth password
    supabase_url : str | None
        Hosted store URL
    supabase_anon_key : str | None
        Hosted store key
    store_path : Path
        Local JSON store used when no hosted store is configured
    demo_mode : bool
        Force demo data even when a provider key is present
    price_cache_ttl : float
        Seconds a price response stays cached by the endpoint
    request_timeout : float
        Outbound HTTP timeout in seconds

    """

    alchemy_api_key: str | None = None
    solana_rpc_url: str | None = None
    mempool_api_url: str = DEFAULT_MEMPOOL_API_URL
    coingecko_api_url: str = DEFAULT_COINGECKO_API_URL
    price_api_url: str | None = None
    tracker_password: str | None = None
    auth_required: bool = False
    basic_auth_user: str | None = None
    basic_auth_password: str | None = None
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    store_path: Path = DEFAULT_STORE_PATH
    demo_mode: bool = False
    price_cache_ttl: float = 300.0
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the process environment.

        Returns
        -------
        Settings
            Settings with unset variables left at their defaults

        """
        return cls(
            alchemy_api_key=_optional("ALCHEMY_API_KEY"),
            solana_rpc_url=_optional("SOLANA_RPC_URL"),
            mempool_api_url=_optional("MEMPOOL_API_URL") or DEFAULT_MEMPOOL_API_URL,
            coingecko_api_url=_optional("COINGECKO_API_URL") or DEFAULT_COINGECKO_API_URL,
            price_api_url=_optional("PRICE_API_URL"),
            tracker_password=_optional("CRYPTO_TRACKER_PASSWORD"),
            auth_required=_flag("AUTH_REQUIRED"),
            basic_auth_user=_optional("BASIC_AUTH_USER"),
            basic_auth_password=_optional("BASIC_AUTH_PASSWORD"),
            supabase_url=_optional("SUPABASE_URL"),
            supabase_anon_key=_optional("SUPABASE_ANON_KEY"),
            store_path=Path(_optional("PORTFOLIO_STORE_PATH") or DEFAULT_STORE_PATH),
            demo_mode=_flag("DEMO_MODE"),
            price_cache_ttl=float(os.getenv("PRICE_CACHE_TTL") or 300),
        )

    @property
    def is_demo_mode(self) -> bool:
        """Demo data is shown when forced or when no provider key is configured."""
        return self.demo_mode or not self.alchemy_api_key

    def can_fetch(self, chain: str) -> bool:
        """Whether the endpoints for a chain are usable with the configured keys."""
        if chain == "bitcoin":
            return True
        if chain == "solana" and self.solana_rpc_url:
            return True
        return bool(self.alchemy_api_key)

    @property
    def has_supabase(self) -> bool:
        """Whether the hosted store is fully configured."""
        return bool(self.supabase_url and self.supabase_anon_key)

    def alchemy_url(self, network: str) -> str:
        """
        JSON-RPC URL of the Alchemy endpoint for a network slug.

        Parameters
        ----------
        network : str
            Alchemy network slug (e.g., 'eth-mainnet')

        Returns
        -------
        str
            Endpoint URL including the API key

        """
        return f"https://{network}.g.alchemy.com/v2/{self.alchemy_api_key or ''}"

    def solana_url(self) -> str:
        """Solana JSON-RPC endpoint, the override or the Alchemy one."""
        return self.solana_rpc_url or self.alchemy_url("solana-mainnet")
