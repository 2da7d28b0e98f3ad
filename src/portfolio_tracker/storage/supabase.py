"""Hosted relational store accessed through the Supabase PostgREST API."""

import logging
from typing import Any

import httpx

from portfolio_tracker.core.errors import NotFoundError
from portfolio_tracker.core.models import Address, ChainPosition, Tag, utcnow
from portfolio_tracker.rpc.provider import HTTPProvider
from portfolio_tracker.rpc.retry import RetryConfig
from portfolio_tracker.storage.base import address_from_row, address_to_row, tag_from_row, tag_to_row

logger = logging.getLogger(__name__)


class SupabaseStore:
    """
    Stores addresses and tags in the ``addresses`` and ``tags`` tables.

    Token, transaction and per-network data live in JSON columns on the
    address row.

    Parameters
    ----------
    url : str
        Project URL
    anon_key : str
        Project API key
    client : httpx.Client | None
        HTTP client to use instead of a fresh one
    retry_config : RetryConfig | None
        Retry behavior for unavailable responses

    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        client: httpx.Client | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self.rest_url = f"{url.rstrip('/')}/rest/v1"
        self.headers = {
            "apikey": anon_key,
            "Authorization": f"Bearer {anon_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        self.http = HTTPProvider("Supabase", retry_config=retry_config, headers=self.headers, client=client)

    def _table(self, name: str) -> str:
        return f"{self.rest_url}/{name}"

    def _call(self, method: str, table: str, **kwargs: Any) -> list[dict]:
        kwargs.setdefault("headers", self.headers)
        return self.http.request_json(method, self._table(table), **kwargs) or []

    def _tags_by_id(self) -> dict[str, Tag]:
        return {tag.id: tag for tag in self.list_tags()}

    def list_addresses(self) -> list[Address]:
        rows = self._call("GET", "addresses", params={"select": "*", "order": "created_at.asc"})
        tags = self._tags_by_id()
        return [address_from_row(row, tags) for row in rows]

    def get_address(self, address_id: str) -> Address | None:
        rows = self._call("GET", "addresses", params={"select": "*", "id": f"eq.{address_id}"})
        if not rows:
            return None
        return address_from_row(rows[0], self._tags_by_id())

    def add_address(self, address: Address) -> Address:
        rows = self._call("POST", "addresses", json=[address_to_row(address)])
        logger.debug("Inserted address %s", address.id)
        return address_from_row(rows[0], self._tags_by_id()) if rows else address

    def update_address(self, address: Address) -> Address:
        rows = self._call("PATCH", "addresses", params={"id": f"eq.{address.id}"}, json=address_to_row(address))
        if not rows:
            msg = f"Address '{address.id}' not found"
            raise NotFoundError(msg, "Supabase")
        return address_from_row(rows[0], self._tags_by_id())

    def delete_address(self, address_id: str) -> None:
        self._call("DELETE", "addresses", params={"id": f"eq.{address_id}"})

    def update_positions(self, address_id: str, positions: list[ChainPosition]) -> Address:
        address = self.get_address(address_id)
        if address is None:
            msg = f"Address '{address_id}' not found"
            raise NotFoundError(msg, "Supabase")
        return self.update_address(address.with_positions(positions, utcnow()))

    def list_tags(self) -> list[Tag]:
        rows = self._call("GET", "tags", params={"select": "*", "order": "created_at.asc"})
        return [tag_from_row(row) for row in rows]

    def add_tag(self, tag: Tag) -> Tag:
        rows = self._call("POST", "tags", json=[tag_to_row(tag)])
        return tag_from_row(rows[0]) if rows else tag

    def update_tag(self, tag: Tag) -> Tag:
        rows = self._call("PATCH", "tags", params={"id": f"eq.{tag.id}"}, json=tag_to_row(tag))
        if not rows:
            msg = f"Tag '{tag.id}' not found"
            raise NotFoundError(msg, "Supabase")
        return tag_from_row(rows[0])

    def delete_tag(self, tag_id: str) -> None:
        self._call("DELETE", "tags", params={"id": f"eq.{tag_id}"})

    def close(self) -> None:
        """Close HTTP client."""
        self.http.close()
