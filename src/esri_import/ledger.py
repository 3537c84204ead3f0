"""Dedup ledger - source ids that have already produced entities.

The ledger lives as long as its owner (the service keeps one for the whole
process, so re-querying a service after a map move never duplicates
features already imported). It only grows; reset() exists for tests and
for an explicit "forget what was imported" request.
"""

from __future__ import annotations

from typing import Any, Iterator


class DedupLedger:
    """Set of converted source identifiers."""

    def __init__(self) -> None:
        self._seen: set[Any] = set()

    def __contains__(self, source_id: Any) -> bool:
        return source_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._seen)

    def mark(self, source_id: Any) -> None:
        self._seen.add(source_id)

    def reset(self) -> None:
        self._seen.clear()
