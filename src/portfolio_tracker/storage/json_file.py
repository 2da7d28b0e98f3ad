"""Local JSON file store."""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from portfolio_tracker.core.errors import NotFoundError
from portfolio_tracker.core.models import Address, ChainPosition, Tag, utcnow

logger = logging.getLogger(__name__)


class JsonFileStore:
    """
    Stores addresses and tags in one JSON document on disk.

    Writes go to a temporary file that replaces the document, so a crash never
    leaves a truncated store. A lock serializes concurrent refreshes.

    Parameters
    ----------
    path : Path | str
        Store file; created on first write

    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self._lock = threading.RLock()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"addresses": [], "tags": []}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        data.setdefault("addresses", [])
        data.setdefault("tags", [])
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def list_addresses(self) -> list[Address]:
        with self._lock:
            return [Address.model_validate(row) for row in self._load()["addresses"]]

    def get_address(self, address_id: str) -> Address | None:
        return next((address for address in self.list_addresses() if address.id == address_id), None)

    def add_address(self, address: Address) -> Address:
        with self._lock:
            data = self._load()
            if any(row["id"] == address.id for row in data["addresses"]):
                msg = f"Address '{address.id}' already exists"
                raise ValueError(msg)
            data["addresses"].append(address.model_dump(mode="json"))
            self._save(data)
        logger.debug("Added address %s (%s)", address.label, address.chain)
        return address

    def update_address(self, address: Address) -> Address:
        with self._lock:
            data = self._load()
            for index, row in enumerate(data["addresses"]):
                if row["id"] == address.id:
                    data["addresses"][index] = address.model_dump(mode="json")
                    self._save(data)
                    return address
        msg = f"Address '{address.id}' not found"
        raise NotFoundError(msg, "store")

    def delete_address(self, address_id: str) -> None:
        with self._lock:
            data = self._load()
            remaining = [row for row in data["addresses"] if row["id"] != address_id]
            if len(remaining) == len(data["addresses"]):
                msg = f"Address '{address_id}' not found"
                raise NotFoundError(msg, "store")
            data["addresses"] = remaining
            self._save(data)

    def update_positions(self, address_id: str, positions: list[ChainPosition]) -> Address:
        with self._lock:
            address = self.get_address(address_id)
            if address is None:
                msg = f"Address '{address_id}' not found"
                raise NotFoundError(msg, "store")
            return self.update_address(address.with_positions(positions, utcnow()))

    def list_tags(self) -> list[Tag]:
        with self._lock:
            return [Tag.model_validate(row) for row in self._load()["tags"]]

    def add_tag(self, tag: Tag) -> Tag:
        with self._lock:
            data = self._load()
            data["tags"].append(tag.model_dump(mode="json"))
            self._save(data)
        return tag

    def update_tag(self, tag: Tag) -> Tag:
        with self._lock:
            data = self._load()
            if not any(row["id"] == tag.id for row in data["tags"]):
                msg = f"Tag '{tag.id}' not found"
                raise NotFoundError(msg, "store")
            dumped = tag.model_dump(mode="json")
            data["tags"] = [dumped if row["id"] == tag.id else row for row in data["tags"]]
            # Addresses embed their tags
            for row in data["addresses"]:
                row["tags"] = [dumped if t["id"] == tag.id else t for t in row.get("tags", [])]
            self._save(data)
        return tag

    def delete_tag(self, tag_id: str) -> None:
        with self._lock:
            data = self._load()
            data["tags"] = [row for row in data["tags"] if row["id"] != tag_id]
            for row in data["addresses"]:
                row["tags"] = [t for t in row.get("tags", []) if t["id"] != tag_id]
            self._save(data)
