"""Server-Sent Events stream of deposit notifications."""

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import structlog
from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from depositwatch.api.dependencies import DepositWatcherDep
from depositwatch.core.deposits.models import DepositEvent, DepositKind
from depositwatch.workers.deposit_watcher import DepositWatcher

log = structlog.get_logger(__name__)

router = APIRouter(tags=["updates"])

# Deposits buffered per connection before the oldest are dropped
MAX_PENDING_UPDATES = 256


def format_update(event: DepositEvent) -> str:
    """Serialize a deposit as the SSE data payload."""
    payload: dict[str, Any] = {
        "type": event.kind.value,
        "txInfo": event.model_dump(mode="json"),
    }
    return json.dumps(payload)


class DepositStream:
    """Bridges watcher listeners to one SSE connection through a queue.

    The listeners only enqueue, so a slow client never holds up the poll
    cycle. The queue is bounded: once a client falls ``maxsize`` events
    behind, the oldest pending event is dropped for each new one. Use as a
    context manager to guarantee unsubscription.
    """

    def __init__(self, watcher: DepositWatcher, maxsize: int = MAX_PENDING_UPDATES) -> None:
        self.watcher = watcher
        self.queue: asyncio.Queue[DepositEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self._loop = asyncio.get_running_loop()

    def _push(self, event: DepositEvent) -> None:
        self._loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: DepositEvent) -> None:
        if self.queue.full():
            stale = self.queue.get_nowait()
            self.dropped += 1
            log.warning(
                "updates_client_lagging",
                dropped_tx_id=stale.transaction_id,
                dropped_total=self.dropped,
                maxsize=self.queue.maxsize,
            )
        self.queue.put_nowait(event)

    def __enter__(self) -> "DepositStream":
        for kind in DepositKind:
            self.watcher.on(kind, self._push)
        return self

    def __exit__(self, *exc_info: object) -> None:
        for kind in DepositKind:
            self.watcher.off(kind, self._push)


@router.get("/updates")
async def deposit_updates(request: Request, watcher: DepositWatcherDep) -> EventSourceResponse:
    """Stream deposit events until the client disconnects."""

    async def event_generator() -> AsyncIterator[dict[str, str]]:
        with DepositStream(watcher) as stream:
            log.info("updates_client_connected")
            try:
                while not await request.is_disconnected():
                    event = await stream.queue.get()
                    yield {"data": format_update(event)}
            finally:
                log.info("updates_client_disconnected")

    return EventSourceResponse(event_generator())
