"""Entity synthesizer - coordinates and rings to Vertex / Way entities.

Every coordinate of a ring gets its own new vertex; nothing is shared with
other features even when coordinates coincide. Entities are staged in
creation order (vertices before the way that uses them) and handed to the
driver with drain(), which commits them as one transaction.
"""

from __future__ import annotations

from typing import Any

from esri_import.entities import Vertex, Way
from esri_import.geometry import validate_position
from esri_import.host import EditorHost, Entity


class EntitySynthesizer:
    """Builds entities against a host's id space without committing them."""

    def __init__(self, host: EditorHost) -> None:
        self._host = host
        self._staged: list[tuple[Entity, str]] = []

    def make_point(
        self,
        coord,
        tags: dict[str, Any] | None = None,
        description: str = "adding point",
    ) -> Vertex:
        """Stage one vertex at ``coord``.

        Raises:
            MalformedGeometry: If ``coord`` is not a finite [lon, lat] pair.
        """
        loc = validate_position(coord)
        vertex = Vertex(id=self._host.next_id("n"), loc=loc, tags=dict(tags or {}))
        self._staged.append((vertex, description))
        return vertex

    def make_way(
        self,
        ring,
        tags: dict[str, Any] | None = None,
        is_areal: bool = False,
        description: str = "adding way",
    ) -> Way:
        """Stage an untagged vertex per coordinate, then a way through them."""
        nodes = [
            self.make_point(coord, {}, description="adding node inside a way").id
            for coord in ring
        ]
        way_tags = dict(tags or {})
        if is_areal and not way_tags.get("area"):
            way_tags["area"] = "yes"
        way = Way(id=self._host.next_id("w"), nodes=nodes, tags=way_tags)
        self._staged.append((way, description))
        return way

    @property
    def staged(self) -> list[tuple[Entity, str]]:
        return list(self._staged)

    def drain(self) -> list[tuple[Entity, str]]:
        """Return and clear everything staged so far."""
        staged, self._staged = self._staged, []
        return staged

    def discard(self) -> None:
        self._staged.clear()
