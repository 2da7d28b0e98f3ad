"""In-memory expiring cache for upstream responses such as price quotes."""

import hashlib
import json
import threading
import time
from typing import Any


class CacheEntry:
    """
    A stored response and the moment it stops being fresh.

    Parameters
    ----------
    value : Any
        Stored response
    ttl : float
        Seconds the response stays fresh
    created_at : float | None
        Epoch seconds when stored, now if None

    """

    def __init__(self, value: Any, ttl: float, created_at: float | None = None) -> None:
        self.value = value
        self.ttl = ttl
        self.created_at = created_at if created_at is not None else time.time()

    def is_expired(self) -> bool:
        """Whether the entry has outlived its ttl."""
        return time.time() - self.created_at > self.ttl


class TTLCache:
    """
    Expiring key/value store shared by request-handling threads.

    The price endpoint keeps one of these per app and keys it on the sorted
    symbol set, so ``BTC,ETH`` and ``ETH,BTC`` hit the same entry.

    Parameters
    ----------
    default_ttl : float
        Freshness window in seconds for entries stored without an explicit ttl

    """

    def __init__(self, default_ttl: float = 300) -> None:
        self.default_ttl = default_ttl
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def make_key(self, namespace: str, params: Any) -> str:
        """
        Derive a stable key from a namespace and JSON-serializable request data.

        Dict ordering does not affect the key. List ordering does, so callers
        sort symbol lists first.

        Parameters
        ----------
        namespace : str
            Kind of response, e.g. ``"prices"``
        params : Any
            Request data identifying the response

        Returns
        -------
        str
            Hex digest

        """
        payload = json.dumps({"namespace": namespace, "params": params}, sort_keys=True)
        return hashlib.sha256(payload.encode()).hexdigest()

    def get(self, key: str) -> Any | None:
        """Return the fresh value under ``key``, dropping it if stale."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """
        Store ``value`` under ``key``.

        Parameters
        ----------
        key : str
            Key from ``make_key``
        value : Any
            Response to keep
        ttl : float | None
            Freshness window, ``default_ttl`` if None

        """
        entry = CacheEntry(value, self.default_ttl if ttl is None else ttl)
        with self._lock:
            self._entries[key] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup_expired(self) -> int:
        """
        Drop every stale entry.

        Returns
        -------
        int
            How many entries were dropped

        """
        with self._lock:
            stale = [key for key, entry in self._entries.items() if entry.is_expired()]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)
