"""Address and tag persistence backends."""

from typing import Any

from portfolio_tracker.config import Settings
from portfolio_tracker.storage.base import (
    PortfolioStore,
    address_from_row,
    address_to_row,
    tag_from_row,
    tag_to_row,
)
from portfolio_tracker.storage.demo import DemoStore, get_demo_addresses
from portfolio_tracker.storage.json_file import JsonFileStore
from portfolio_tracker.storage.supabase import SupabaseStore


def create_store(settings: Settings, **kwargs: Any) -> PortfolioStore:
    """
    Build the store selected by the settings.

    Parameters
    ----------
    settings : Settings
        Runtime settings
    **kwargs : Any
        Passed to the hosted store constructor (client, retry_config)

    Returns
    -------
    PortfolioStore
        Demo store when DEMO_MODE is set, the hosted store when configured,
        else the local JSON file store. A missing provider key alone keeps
        the real store

    """
    if settings.demo_mode:
        return DemoStore()
    if settings.has_supabase:
        return SupabaseStore(settings.supabase_url, settings.supabase_anon_key, **kwargs)
    return JsonFileStore(settings.store_path)


__all__ = [
    "DemoStore",
    "JsonFileStore",
    "PortfolioStore",
    "SupabaseStore",
    "address_from_row",
    "address_to_row",
    "create_store",
    "get_demo_addresses",
    "tag_from_row",
    "tag_to_row",
]
