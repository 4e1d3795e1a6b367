"""Thread-safe set of watched deposit addresses."""

import threading
from collections.abc import Iterable

import structlog

log = structlog.get_logger(__name__)


class WatchSet:
    """Addresses to report deposits for, plus senders to ignore.

    Watched addresses only ever grow. Ignored senders are fixed at
    construction. Writers are serialized behind a lock and readers take a
    frozen snapshot, so a poll cycle sees one consistent view even while
    request handlers add addresses from other threads.

    Example:
        watch_set = WatchSet(["ADDR1"], ignore_senders=["HOT_WALLET"])
        watch_set.add("ADDR2")
        snapshot = watch_set.snapshot()
        "ADDR2" in snapshot  # True
    """

    def __init__(
        self,
        addresses: Iterable[str] = (),
        ignore_senders: Iterable[str] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._addresses: frozenset[str] = frozenset(addresses)
        self._ignore_senders: frozenset[str] = frozenset(ignore_senders)

    def add(self, address: str) -> bool:
        """Add an address to the watch set.

        Idempotent. Copy-on-write: the published snapshot is replaced, never
        mutated, so snapshots already handed out stay stable.

        Returns:
            True if the address was new, False if it was already watched.
        """
        with self._lock:
            if address in self._addresses:
                return False
            self._addresses = self._addresses | {address}
            size = len(self._addresses)

        log.info("watch_set_address_added", address=address, watched_count=size)
        return True

    def snapshot(self) -> frozenset[str]:
        """Current watched addresses as an immutable set."""
        with self._lock:
            return self._addresses

    @property
    def ignore_senders(self) -> frozenset[str]:
        return self._ignore_senders

    def is_ignored(self, sender: str) -> bool:
        return sender in self._ignore_senders

    def __contains__(self, address: object) -> bool:
        return address in self.snapshot()

    def __len__(self) -> int:
        return len(self.snapshot())
