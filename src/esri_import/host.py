"""Host editor interface and an in-memory implementation.

The import driver only talks to an EditorHost: it asks for entity ids and
commits described entities, one transaction per feature. A real editor
plugs its own undoable action system in here; MemoryHost is the default
store used by the service, the CLI and the tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Union

from loguru import logger

from esri_import.entities import IdAllocator, Vertex, Way
from esri_import.errors import HostCommitError

Entity = Union[Vertex, Way]


class EditorHost(ABC):
    """What the importer needs from the editor."""

    @abstractmethod
    def next_id(self, prefix: str) -> str:
        """Assign a fresh id for a new entity ("n" for vertices, "w" for ways)."""

    @abstractmethod
    def commit_batch(self, staged: list[tuple[Entity, str]]) -> None:
        """Add all staged entities as one undoable transaction.

        Entities are applied in order. Either all of them land or none do.

        Raises:
            HostCommitError: If the transaction violates a store invariant.
        """

    def commit(self, entity: Entity, description: str) -> None:
        self.commit_batch([(entity, description)])


@dataclass
class HistoryEntry:
    """One committed transaction."""
    descriptions: list[str]
    entity_ids: list[str] = field(default_factory=list)


class MemoryHost(EditorHost):
    """Dict-backed entity store with a linear undo history."""

    def __init__(self) -> None:
        self._ids = IdAllocator()
        self._entities: dict[str, Entity] = {}
        self._history: list[HistoryEntry] = []

    def next_id(self, prefix: str) -> str:
        return self._ids.next(prefix)

    def commit_batch(self, staged: list[tuple[Entity, str]]) -> None:
        if not staged:
            return
        pending: dict[str, Entity] = {}
        for entity, _ in staged:
            if entity.id in self._entities or entity.id in pending:
                raise HostCommitError(f"Duplicate entity id {entity.id}")
            if isinstance(entity, Way):
                missing = [n for n in entity.nodes if n not in self._entities and n not in pending]
                if missing:
                    raise HostCommitError(
                        f"Way {entity.id} references uncommitted nodes: {', '.join(missing)}"
                    )
            pending[entity.id] = entity

        self._entities.update(pending)
        self._history.append(HistoryEntry(
            descriptions=[description for _, description in staged],
            entity_ids=list(pending),
        ))
        logger.debug(f"Committed {len(pending)} entities ({staged[-1][1]})")

    def undo(self) -> HistoryEntry | None:
        """Remove the entities of the most recent transaction."""
        if not self._history:
            return None
        entry = self._history.pop()
        for entity_id in entry.entity_ids:
            self._entities.pop(entity_id, None)
        return entry

    @property
    def history(self) -> list[HistoryEntry]:
        return list(self._history)

    def get(self, entity_id: str) -> Entity | None:
        return self._entities.get(entity_id)

    def entities(self) -> list[Entity]:
        return list(self._entities.values())

    def vertices(self) -> list[Vertex]:
        return [e for e in self._entities.values() if isinstance(e, Vertex)]

    def ways(self) -> list[Way]:
        return [e for e in self._entities.values() if isinstance(e, Way)]

    def clear(self) -> None:
        self._entities.clear()
        self._history.clear()
