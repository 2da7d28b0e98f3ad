"""Store interface and row conversion shared by the store backends."""

from datetime import datetime
from typing import Any, Protocol

from portfolio_tracker.core.models import Address, Chain, ChainPosition, Tag, TokenBalance, Transaction


class PortfolioStore(Protocol):
    """
    Interface of address and tag persistence.

    Methods
    -------
    list_addresses()
        All tracked addresses
    get_address(address_id)
        One address or None
    add_address(address)
        Persist a new address
    update_address(address)
        Replace a stored address
    delete_address(address_id)
        Remove an address
    update_positions(address_id, positions)
        Replace the positions of an address after a refresh
    list_tags(), add_tag(tag), update_tag(tag), delete_tag(tag_id)
        Tag management

    """

    def list_addresses(self) -> list[Address]: ...

    def get_address(self, address_id: str) -> Address | None: ...

    def add_address(self, address: Address) -> Address: ...

    def update_address(self, address: Address) -> Address: ...

    def delete_address(self, address_id: str) -> None: ...

    def update_positions(self, address_id: str, positions: list[ChainPosition]) -> Address: ...

    def list_tags(self) -> list[Tag]: ...

    def add_tag(self, tag: Tag) -> Tag: ...

    def update_tag(self, tag: Tag) -> Tag: ...

    def delete_tag(self, tag_id: str) -> None: ...


def _parse_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def address_to_row(address: Address) -> dict[str, Any]:
    """
    Convert an address to a database row.

    The address's own-chain balance, tokens and transactions go to flat
    columns; 'ethereum' addresses additionally store every per-network
    position in the ``chain_data`` JSON column.

    Parameters
    ----------
    address : Address
        Address to store

    Returns
    -------
    dict[str, Any]
        Row for the ``addresses`` table

    """
    own = address.own_position
    return {
        "id": address.id,
        "label": address.label,
        "address": address.address,
        "chain": str(address.chain),
        "network": address.network,
        "description": address.description,
        "balance": own.balance if own else None,
        "last_updated": address.last_updated.isoformat() if address.last_updated else None,
        "tokens": [token.model_dump(mode="json") for token in own.tokens] if own else [],
        "last_transactions": [tx.model_dump(mode="json") for tx in own.last_transactions] if own else [],
        "chain_data": (
            [position.model_dump(mode="json") for position in address.positions]
            if address.chain == Chain.ETHEREUM
            else None
        ),
        "tags": [tag.id for tag in address.tags],
    }


def address_from_row(row: dict[str, Any], tags_by_id: dict[str, Tag] | None = None) -> Address:
    """
    Convert a database row back to an address.

    Parameters
    ----------
    row : dict[str, Any]
        Row of the ``addresses`` table
    tags_by_id : dict[str, Tag] | None
        Known tags; unknown tag ids are dropped

    Returns
    -------
    Address
        Address with its positions

    """
    tags_by_id = tags_by_id or {}
    chain = Chain(row["chain"])
    last_updated = _parse_datetime(row.get("last_updated"))

    if row.get("chain_data"):
        positions = [ChainPosition.model_validate(position) for position in row["chain_data"]]
    elif row.get("balance") is not None or row.get("tokens") or row.get("last_transactions"):
        positions = [
            ChainPosition(
                chain=chain,
                balance=row.get("balance"),
                tokens=[TokenBalance.model_validate(token) for token in row.get("tokens") or []],
                last_transactions=[Transaction.model_validate(tx) for tx in row.get("last_transactions") or []],
                last_updated=last_updated,
            )
        ]
    else:
        positions = []

    return Address(
        id=row["id"],
        label=row["label"],
        address=row["address"],
        chain=chain,
        network=row.get("network") or "mainnet",
        description=row.get("description"),
        tags=[tags_by_id[tag_id] for tag_id in row.get("tags") or [] if tag_id in tags_by_id],
        positions=positions,
        last_updated=last_updated,
    )


def tag_to_row(tag: Tag) -> dict[str, Any]:
    """Convert a tag to a row of the ``tags`` table."""
    return {"id": tag.id, "name": tag.name, "color": tag.color, "created_at": tag.created_at.isoformat()}


def tag_from_row(row: dict[str, Any]) -> Tag:
    """Convert a row of the ``tags`` table to a tag."""
    data = {"id": row["id"], "name": row["name"], "color": row["color"]}
    created_at = _parse_datetime(row.get("created_at"))
    if created_at is not None:
        data["created_at"] = created_at
    return Tag(**data)
