"""Vertex and Way entities for the editable map graph.

Ids follow the editor convention for new, unsaved entities: a type letter
and a negative sequence number ("n-1", "w-3"). IdAllocator hands them out;
each host owns one so ids stay unique within its store.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field


class IdAllocator:
    """Per-type negative id sequences."""

    def __init__(self) -> None:
        self._counters: dict[str, itertools.count] = {}

    def next(self, prefix: str) -> str:
        counter = self._counters.setdefault(prefix, itertools.count(1))
        return f"{prefix}-{next(counter)}"


@dataclass
class Vertex:
    """A node at (lon, lat). Interior vertices of a way carry no tags."""

    id: str
    loc: tuple[float, float]
    tags: dict = field(default_factory=dict)
    visible: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "node",
            "loc": list(self.loc),
            "tags": dict(self.tags),
            "visible": self.visible,
        }


@dataclass
class Way:
    """An ordered list of vertex ids, linear or (with area=yes) areal."""

    id: str
    nodes: list[str]
    tags: dict = field(default_factory=dict)
    visible: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "way",
            "nodes": list(self.nodes),
            "tags": dict(self.tags),
            "visible": self.visible,
        }
