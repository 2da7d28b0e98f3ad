"""Demo wallets shown when no provider key is configured."""

import time
from datetime import UTC, datetime
from typing import Any

from portfolio_tracker.core.models import Address, ChainPosition, Tag, utcnow
from portfolio_tracker.data import load_demo_data

_DEMO_TAG_CREATED = datetime(2024, 1, 1, tzinfo=UTC)


def _transaction(entry: dict[str, Any], now_ms: int) -> dict[str, Any]:
    data = {key: value for key, value in entry.items() if key != "hours_ago"}
    if "timestamp" not in data:
        data["timestamp"] = now_ms - int(entry.get("hours_ago", 0) * 3600 * 1000)
    return data


def get_demo_addresses() -> list[Address]:
    """
    Build the demo address set.

    Transaction times are placed relative to now so the demo always shows
    recent activity.

    Returns
    -------
    list[Address]
        Demo addresses with balances, tokens and transactions

    """
    now = utcnow()
    now_ms = int(time.time() * 1000)

    addresses = []
    for entry in load_demo_data()["addresses"]:
        positions = [
            {
                **position,
                "last_transactions": [_transaction(tx, now_ms) for tx in position.get("last_transactions", [])],
                "last_updated": now,
            }
            for position in entry.get("positions", [])
        ]
        addresses.append(
            Address(
                id=entry["id"],
                label=entry["label"],
                address=entry["address"],
                chain=entry["chain"],
                description=entry.get("description"),
                tags=[Tag(created_at=_DEMO_TAG_CREATED, **tag) for tag in entry.get("tags", [])],
                positions=positions,
                last_updated=now,
            )
        )
    return addresses


class DemoStore:
    """
    Read-mostly in-memory store seeded with the demo addresses.

    Changes live only as long as the process.

    """

    def __init__(self) -> None:
        self._addresses = {address.id: address for address in get_demo_addresses()}
        self._tags = {tag.id: tag for address in self._addresses.values() for tag in address.tags}

    def list_addresses(self) -> list[Address]:
        return list(self._addresses.values())

    def get_address(self, address_id: str) -> Address | None:
        return self._addresses.get(address_id)

    def add_address(self, address: Address) -> Address:
        self._addresses[address.id] = address
        return address

    def update_address(self, address: Address) -> Address:
        self._addresses[address.id] = address
        return address

    def delete_address(self, address_id: str) -> None:
        self._addresses.pop(address_id, None)

    def update_positions(self, address_id: str, positions: list[ChainPosition]) -> Address:
        address = self._addresses[address_id].with_positions(positions)
        self._addresses[address_id] = address
        return address

    def list_tags(self) -> list[Tag]:
        return list(self._tags.values())

    def add_tag(self, tag: Tag) -> Tag:
        self._tags[tag.id] = tag
        return tag

    def update_tag(self, tag: Tag) -> Tag:
        self._tags[tag.id] = tag
        return tag

    def delete_tag(self, tag_id: str) -> None:
        self._tags.pop(tag_id, None)
