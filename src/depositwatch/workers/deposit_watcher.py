"""Deposit watcher background worker.

Polls the ledger indexer on a fixed interval and turns the raw transaction
feed into a deduplicated stream of deposit events:

    indexer search (min-round = cursor, or after-time = start time)
    → filter each record against the watch set
    → skip ids already reported at their round
    → record, then emit deposit_native / deposit_asset
    → evict rounds behind the current round, advance the cursor

The worker:
- Runs one cycle at a time; the interval is the gap between the end of one
  cycle and the start of the next
- Keeps polling after any failure (a failed cycle leaves the cursor and the
  seen registry untouched and is simply retried)
- Skips a malformed record on its own instead of dropping the whole page
- Accepts new watched addresses at any time, from any thread
- Emits nothing once stop() has been called

Example:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        watcher = DepositWatcher(IndexerClient(), addresses, ignore_senders)
        watcher.start()
        yield
        await watcher.stop()
"""

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from depositwatch.core.deposits.emitter import DepositListener, EventEmitter
from depositwatch.core.deposits.models import DepositEvent, DepositKind
from depositwatch.core.deposits.seen_registry import SeenRegistry
from depositwatch.core.deposits.watch_set import WatchSet
from depositwatch.core.exceptions import MalformedRecordError
from depositwatch.services.indexer.models import SearchResult, TransactionRecord

log = structlog.get_logger(__name__)

DEFAULT_INTERVAL_MS = 1000


class TransactionSearch(Protocol):
    """What the watcher needs from the indexer client."""

    async def search(
        self,
        min_round: int | None = None,
        after_time: datetime | None = None,
    ) -> SearchResult: ...


class DepositWatcher:
    """Long-running poll loop producing exactly-once deposit events.

    Attributes:
        indexer: Transaction search client.
        watch_set: Watched addresses and ignored senders.
        seen: Round-keyed registry of already reported transaction ids.
        emitter: Publish/subscribe hub the deposits are emitted on.
        interval: Seconds between the end of a cycle and the next one.
        start_time: Deposits confirmed before this instant are never reported.
        last_round: Poll cursor; None until the first successful cycle.
        running: True while the loop is active.
    """

    def __init__(
        self,
        indexer: TransactionSearch,
        addresses: Iterable[str],
        ignore_senders: Iterable[str] = (),
        interval_ms: int = DEFAULT_INTERVAL_MS,
        emitter: EventEmitter | None = None,
        autostart: bool | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            indexer: Client exposing ``search(min_round=..., after_time=...)``.
            addresses: Initial deposit addresses to watch.
            ignore_senders: Senders whose transfers are never deposits
                (e.g. our own hot wallet).
            interval_ms: Milliseconds between cycles (default: 1000).
            emitter: Shared emitter; a private one is created if omitted.
            autostart: Schedule the first cycle right away. Defaults to
                doing so whenever an event loop is running; True without a
                running loop raises RuntimeError.
        """
        if interval_ms <= 0:
            msg = f"interval_ms must be positive, got {interval_ms}"
            raise ValueError(msg)

        self.indexer = indexer
        self.watch_set = WatchSet(addresses, ignore_senders)
        self.seen = SeenRegistry()
        self.emitter = emitter or EventEmitter()
        self.interval = interval_ms / 1000
        self.start_time = datetime.now(UTC)
        self.last_round: int | None = None
        self.running = False

        self._stop_event = asyncio.Event()
        self._stopped = False
        self._task: asyncio.Task[None] | None = None

        # Status tracking
        self._last_run: datetime | None = None
        self._emitted_last_run = 0
        self._consecutive_errors = 0
        self._current_state = "idle"  # idle | polling | stopped | error

        log.info(
            "deposit_watcher_initialized",
            watched_count=len(self.watch_set),
            ignored_count=len(self.watch_set.ignore_senders),
            interval_ms=interval_ms,
            start_time=self.start_time.isoformat(),
        )

        if autostart is None:
            autostart = _loop_is_running()
        if autostart:
            self.start()

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    def add_watched_address(self, address: str) -> bool:
        """Watch a new deposit address, starting with the next cycle.

        Idempotent and safe to call from any thread while a cycle is in
        flight. Returns True if the address was not watched before.
        """
        return self.watch_set.add(address)

    def on(self, kind: DepositKind | str, listener: DepositListener) -> None:
        self.emitter.subscribe(kind, listener)

    def off(self, kind: DepositKind | str, listener: DepositListener) -> bool:
        return self.emitter.unsubscribe(kind, listener)

    def get_status(self) -> dict[str, Any]:
        """Get watcher status for monitoring.

        Returns:
            Status dict with:
                - running: Loop running state
                - last_run: Completion time of the last successful cycle
                - cursor: Current poll cursor (round), or None
                - emitted_count: Deposits emitted in the last successful cycle
                - error_count: Consecutive failed cycles
                - current_state: 'idle' | 'polling' | 'stopped' | 'error'
                - watched_count: Number of watched addresses
                - seen_count: Transaction ids held in the seen registry
        """
        return {
            "running": self.running,
            "last_run": self._last_run,
            "cursor": self.last_round,
            "emitted_count": self._emitted_last_run,
            "error_count": self._consecutive_errors,
            "current_state": self._current_state,
            "watched_count": len(self.watch_set),
            "seen_count": len(self.seen),
        }

    # ------------------------------------------------------------------
    # Loop control
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        """Schedule the poll loop as a background task on the running loop."""
        if self._task is not None and not self._task.done():
            return self._task
        self._task = asyncio.get_running_loop().create_task(
            self.run(), name="deposit-watcher"
        )
        return self._task

    async def run(self) -> None:
        """Main loop - runs until stop() is called.

        The first cycle starts immediately. Every cycle, successful or not,
        is followed by a sleep of ``interval`` seconds that stop() cuts short.
        """
        if self._stopped:
            log.warning("deposit_watcher_run_after_stop")
            return

        log.info("deposit_watcher_starting")
        self.running = True

        while not self._stop_event.is_set():
            await self._run_cycle()

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except TimeoutError:
                pass

        self.running = False
        self._current_state = "stopped"
        log.info("deposit_watcher_stopped")

    async def stop(self) -> None:
        """Stop polling. No event is emitted once this has been called."""
        log.info("deposit_watcher_stopping")
        self._stopped = True
        self._stop_event.set()
        self.running = False
        self._current_state = "stopped"

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            # An in-flight search may hang on the transport
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ------------------------------------------------------------------
    # Poll cycle
    # ------------------------------------------------------------------

    async def _run_cycle(self) -> None:
        """Run one cycle, logging instead of raising on failure."""
        self._current_state = "polling"
        try:
            emitted = await self.poll_once()
        except Exception as e:
            self._consecutive_errors += 1
            self._current_state = "error"
            log.error(
                "deposit_poll_failed",
                error=str(e),
                error_type=type(e).__name__,
                cursor=self.last_round,
                consecutive_errors=self._consecutive_errors,
                next_poll_seconds=self.interval,
            )
            return

        self._consecutive_errors = 0
        self._emitted_last_run = emitted
        self._last_run = datetime.now(UTC)
        if not self._stopped:
            self._current_state = "idle"

    async def poll_once(self) -> int:
        """Execute a single poll cycle.

        Returns:
            Number of deposit events emitted.

        Raises:
            TransientQueryError: If the search failed. Cursor and seen
                registry are left as they were.
        """
        if self._stopped:
            return 0

        if self.last_round is not None:
            result = await self.indexer.search(min_round=self.last_round)
        else:
            result = await self.indexer.search(after_time=self.start_time)

        # stop() may have been called while the search was in flight
        if self._stopped:
            return 0

        watched = self.watch_set.snapshot()
        emitted = 0

        for raw in result.records:
            try:
                event = self._accept(raw, watched)
            except MalformedRecordError as e:
                log.warning(
                    "deposit_record_malformed",
                    tx_id=e.record_id,
                    error=str(e),
                )
                continue

            if event is None:
                continue

            if self._stopped:
                return emitted

            failures = self.emitter.emit(event.kind, event)
            emitted += 1
            log.info(
                "deposit_detected",
                kind=event.kind.value,
                tx_id=event.transaction_id,
                receiver=event.receiver,
                amount=event.amount,
                asset_id=event.asset_id,
                subscriber_failures=len(failures),
            )

        current_round = result.current_round
        if current_round != self.last_round:
            evicted = self.seen.evict_before(current_round)
            if evicted:
                log.debug(
                    "seen_rounds_evicted",
                    evicted_rounds=evicted,
                    current_round=current_round,
                )
        self.last_round = current_round

        log.debug(
            "deposit_poll_completed",
            record_count=len(result.records),
            emitted=emitted,
            cursor=current_round,
            truncated=result.truncated,
        )
        return emitted

    def _accept(self, raw: Any, watched: frozenset[str]) -> DepositEvent | None:
        """Filter one raw record and record it as seen if it is a new deposit.

        Returns:
            The DepositEvent to emit, or None if the record is not one.

        Raises:
            MalformedRecordError: If the record cannot be read.
        """
        tx = TransactionRecord.from_raw(raw)

        # Start-time and type checks come before any registry access
        if tx.round_time < self.start_time.timestamp():
            return None

        if not tx.is_transfer:
            return None

        transfer = tx.transfer
        receiver, amount = transfer.receiver, transfer.amount

        if receiver not in watched:
            return None

        if self.watch_set.is_ignored(tx.sender):
            return None

        # Asset opt-in: zero-amount transfer to self
        if tx.is_asset_transfer and tx.sender == receiver and amount == 0:
            return None

        if self.seen.has_seen(tx.confirmed_round, tx.id):
            return None

        self.seen.record(tx.confirmed_round, tx.id)

        return DepositEvent(
            transaction_id=tx.id,
            sender=tx.sender,
            receiver=receiver,
            amount=amount,
            asset_id=tx.asset_transfer.asset_id if tx.is_asset_transfer else None,
        )


def _loop_is_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
