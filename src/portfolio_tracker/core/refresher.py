"""Address refresh orchestration with explicit fan-out/fan-in."""

import logging
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta
from typing import Any

from portfolio_tracker.core.errors import PortfolioTrackerError, RateLimitedError, describe_error
from portfolio_tracker.core.models import Address, Chain, FetchStatus, RefreshOutcome, utcnow
from portfolio_tracker.core.registry import fetch_address

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_BACKOFF = 60.0

StatusCallback = Callable[[RefreshOutcome], None]


class RefreshQueue:
    """
    Thread-safe record of the refresh state of each address.

    Instances are callable, so a queue can be passed directly as the
    ``on_status`` callback of an :class:`AddressRefresher`.

    """

    def __init__(self) -> None:
        self._entries: dict[str, RefreshOutcome] = {}
        self._lock = threading.Lock()

    def __call__(self, outcome: RefreshOutcome) -> None:
        self.update(outcome)

    def update(self, outcome: RefreshOutcome) -> None:
        """Record the latest state of an address."""
        with self._lock:
            self._entries[outcome.address_id] = outcome

    def add(self, address_id: str) -> None:
        """Queue an address as pending."""
        self.update(RefreshOutcome(address_id=address_id, status=FetchStatus.PENDING))

    def start(self, address_id: str) -> None:
        """Mark an address as being fetched."""
        self.update(RefreshOutcome(address_id=address_id, status=FetchStatus.FETCHING))

    def succeed(self, address_id: str, failed_chains: list[Chain] | None = None) -> None:
        """Mark an address as refreshed."""
        self.update(
            RefreshOutcome(address_id=address_id, status=FetchStatus.SUCCESS, failed_chains=failed_chains or [])
        )

    def fail(self, address_id: str, error: str) -> None:
        """Mark an address as failed."""
        self.update(RefreshOutcome(address_id=address_id, status=FetchStatus.ERROR, error=error))

    def rate_limit(self, address_id: str, error: str, retry_at: datetime | None = None) -> None:
        """Mark an address as rate limited."""
        self.update(
            RefreshOutcome(address_id=address_id, status=FetchStatus.RATE_LIMITED, error=error, retry_at=retry_at)
        )

    def get(self, address_id: str) -> RefreshOutcome | None:
        """Latest state of an address."""
        with self._lock:
            return self._entries.get(address_id)

    def snapshot(self) -> list[RefreshOutcome]:
        """All entries in insertion order."""
        with self._lock:
            return list(self._entries.values())

    def in_progress(self) -> bool:
        """Whether any address is pending or being fetched."""
        with self._lock:
            return any(
                entry.status in (FetchStatus.PENDING, FetchStatus.FETCHING) for entry in self._entries.values()
            )

    def clear_completed(self) -> None:
        """Drop successful entries, keeping failures and work in progress."""
        with self._lock:
            self._entries = {
                address_id: entry
                for address_id, entry in self._entries.items()
                if entry.status != FetchStatus.SUCCESS
            }


class AddressRefresher:
    """
    Refreshes addresses through their chain adapters and stores the result.

    Status changes are pushed to an injected callback instead of any shared
    global hook.

    Parameters
    ----------
    store : Any
        Portfolio store receiving the fresh positions
    adapters : dict[Chain, Any]
        Adapter instance per chain
    on_status : StatusCallback | None
        Called with every status change
    max_workers : int
        Maximum concurrent address refreshes

    """

    def __init__(
        self,
        store: Any,
        adapters: dict[Chain, Any],
        on_status: StatusCallback | None = None,
        max_workers: int = 4,
    ) -> None:
        self.store = store
        self.adapters = adapters
        self.on_status = on_status
        self.max_workers = max_workers

    def _notify(self, outcome: RefreshOutcome) -> RefreshOutcome:
        if self.on_status is not None:
            self.on_status(outcome)
        return outcome

    def refresh(self, address: Address) -> RefreshOutcome:
        """
        Fetch fresh positions for one address and replace the stored ones.

        Errors are reported as outcomes, never raised: a rate limit yields a
        RATE_LIMITED outcome with a retry time, any other tracker error an
        ERROR outcome with user-facing text.

        Parameters
        ----------
        address : Address
            Address to refresh

        Returns
        -------
        RefreshOutcome
            Final state of the refresh

        """
        self._notify(RefreshOutcome(address_id=address.id, status=FetchStatus.FETCHING))

        try:
            positions = fetch_address(address, self.adapters)
            self.store.update_positions(address.id, positions)
        except RateLimitedError as e:
            retry_after = e.retry_after if e.retry_after is not None else DEFAULT_RATE_LIMIT_BACKOFF
            logger.warning("Rate limited while refreshing %s: %s", address.label, e)
            return self._notify(
                RefreshOutcome(
                    address_id=address.id,
                    status=FetchStatus.RATE_LIMITED,
                    error=describe_error(e),
                    retry_at=utcnow() + timedelta(seconds=retry_after),
                )
            )
        except PortfolioTrackerError as e:
            logger.warning("Failed to refresh %s: %s", address.label, e)
            return self._notify(
                RefreshOutcome(address_id=address.id, status=FetchStatus.ERROR, error=describe_error(e))
            )

        failed_chains = [position.chain for position in positions if position.failed]
        if failed_chains:
            logger.info("Refreshed %s with failed chains: %s", address.label, ", ".join(failed_chains))
        return self._notify(
            RefreshOutcome(address_id=address.id, status=FetchStatus.SUCCESS, failed_chains=failed_chains)
        )

    def refresh_all(self, addresses: Iterable[Address]) -> list[RefreshOutcome]:
        """
        Refresh every address concurrently and wait for all of them.

        One address failing never aborts the others. Returns only once every
        refresh has finished.

        Parameters
        ----------
        addresses : Iterable[Address]
            Addresses to refresh

        Returns
        -------
        list[RefreshOutcome]
            One outcome per address, in input order

        """
        addresses = list(addresses)
        if not addresses:
            return []

        for address in addresses:
            self._notify(RefreshOutcome(address_id=address.id, status=FetchStatus.PENDING))

        outcomes: dict[str, RefreshOutcome] = {}
        with ThreadPoolExecutor(max_workers=min(len(addresses), self.max_workers)) as executor:
            future_to_address = {executor.submit(self.refresh, address): address for address in addresses}

            for future in as_completed(future_to_address):
                address = future_to_address[future]
                try:
                    outcomes[address.id] = future.result()
                except Exception as e:
                    # Store or programming errors still must not abort the batch
                    logger.exception("Unexpected error refreshing %s", address.label)
                    outcomes[address.id] = self._notify(
                        RefreshOutcome(address_id=address.id, status=FetchStatus.ERROR, error=describe_error(e))
                    )

        return [outcomes[address.id] for address in addresses]
