"""Round-keyed registry of transaction ids that were already reported."""

from collections import defaultdict


class SeenRegistry:
    """Mapping of confirmed round to the transaction ids emitted at it.

    Only the poll loop touches the registry, so it carries no lock.
    Memory stays bounded because rounds behind the ledger's current round
    are evicted after every cycle that moves the cursor: searches are
    bounded below by the cursor, so those rounds can never come back.
    """

    def __init__(self) -> None:
        self._rounds: defaultdict[int, set[str]] = defaultdict(set)

    def has_seen(self, confirmed_round: int, tx_id: str) -> bool:
        ids = self._rounds.get(confirmed_round)
        return ids is not None and tx_id in ids

    def record(self, confirmed_round: int, tx_id: str) -> None:
        self._rounds[confirmed_round].add(tx_id)

    def evict_before(self, current_round: int) -> int:
        """Drop every round strictly below ``current_round``.

        Returns:
            Number of rounds evicted.
        """
        stale = [r for r in self._rounds if r < current_round]
        for r in stale:
            del self._rounds[r]
        return len(stale)

    def rounds(self) -> list[int]:
        return sorted(self._rounds)

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._rounds.values())
