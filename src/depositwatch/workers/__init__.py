"""Background workers.

Workers:
    - DepositWatcher: Polls the indexer and emits exactly-once deposit events
"""

from depositwatch.workers.deposit_watcher import DepositWatcher

__all__ = ["DepositWatcher"]
