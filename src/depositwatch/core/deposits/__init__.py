"""Deposit detection building blocks.

The poll loop itself lives in depositwatch.workers.deposit_watcher; this
package holds the state it owns and the events it publishes.
"""

from depositwatch.core.deposits.emitter import EventEmitter
from depositwatch.core.deposits.models import DepositEvent, DepositKind
from depositwatch.core.deposits.seen_registry import SeenRegistry
from depositwatch.core.deposits.watch_set import WatchSet

__all__ = [
    "DepositEvent",
    "DepositKind",
    "EventEmitter",
    "SeenRegistry",
    "WatchSet",
]
