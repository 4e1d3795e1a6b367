"""Synchronous publish/subscribe for deposit events."""

import threading
from collections.abc import Callable

import structlog

from depositwatch.core.deposits.models import DepositEvent, DepositKind
from depositwatch.core.exceptions import SubscriberError

log = structlog.get_logger(__name__)

DepositListener = Callable[[DepositEvent], object]


class EventEmitter:
    """Ordered subscriber lists keyed by deposit kind.

    Listeners are plain callables invoked synchronously, in registration
    order, each inside its own try block. A listener that raises is logged
    and reported back to the caller, the remaining listeners still run.
    Listeners must not block: the poll loop waits for emit() to return.

    Example:
        emitter = EventEmitter()
        emitter.subscribe(DepositKind.NATIVE, print)
        emitter.emit(DepositKind.NATIVE, event)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[DepositKind, list[DepositListener]] = {
            kind: [] for kind in DepositKind
        }

    def subscribe(self, kind: DepositKind | str, listener: DepositListener) -> None:
        """Register a listener for one event kind."""
        kind = DepositKind(kind)
        with self._lock:
            self._listeners[kind] = [*self._listeners[kind], listener]
        log.debug("deposit_listener_subscribed", kind=kind.value)

    def unsubscribe(self, kind: DepositKind | str, listener: DepositListener) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        kind = DepositKind(kind)
        with self._lock:
            current = self._listeners[kind]
            if listener not in current:
                return False
            remaining = list(current)
            remaining.remove(listener)
            self._listeners[kind] = remaining
        log.debug("deposit_listener_unsubscribed", kind=kind.value)
        return True

    def listener_count(self, kind: DepositKind | str) -> int:
        with self._lock:
            return len(self._listeners[DepositKind(kind)])

    def emit(self, kind: DepositKind | str, event: DepositEvent) -> list[SubscriberError]:
        """Deliver an event to every listener registered for ``kind``.

        Args:
            kind: Event kind to publish under.
            event: The deposit to deliver.

        Returns:
            One SubscriberError per listener that raised (empty on full success).
        """
        kind = DepositKind(kind)
        with self._lock:
            listeners = self._listeners[kind]

        failures: list[SubscriberError] = []
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                log.warning(
                    "deposit_subscriber_failed",
                    kind=kind.value,
                    tx_id=event.transaction_id,
                    error=str(e),
                )
                error = SubscriberError(str(e), kind=kind.value)
                error.__cause__ = e
                failures.append(error)
        return failures
