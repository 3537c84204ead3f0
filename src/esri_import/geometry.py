"""Geometry normalizer - GeoJSON geometry to ordered coordinate rings.

GeometryKind  -- closed enum of the five supported geometry types
Ring          -- one ordered coordinate sequence plus its areal flag
normalize()   -- geometry kind + coordinates -> list of Rings

Polygon holes are dropped: only the outer ring of each polygon becomes a
ring, since the entity model has no multipolygon relations.
All coordinates are GeoJSON order: [lon, lat] or [lon, lat, alt].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from esri_import.errors import MalformedGeometry, UnknownGeometryKind


class GeometryKind(Enum):
    """Geometry types the importer turns into entities."""
    POINT = "Point"
    LINE_STRING = "LineString"
    MULTI_LINE_STRING = "MultiLineString"
    POLYGON = "Polygon"
    MULTI_POLYGON = "MultiPolygon"

    @classmethod
    def parse(cls, name) -> "GeometryKind":
        """Look up a kind by its GeoJSON type name.

        Raises:
            UnknownGeometryKind: If the name is not a supported type.
        """
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnknownGeometryKind(f"Unsupported geometry type: {name!r}") from None


@dataclass(frozen=True)
class Ring:
    """An ordered coordinate sequence taken from one geometry."""
    coordinates: list[tuple[float, float]]
    is_areal: bool


def validate_position(position) -> tuple[float, float]:
    """Return (lon, lat) for a GeoJSON position.

    A position is a list of 2 or 3 finite numbers. Altitude is accepted
    and dropped.

    Raises:
        MalformedGeometry: If the position is not a finite numeric pair.
    """
    if not isinstance(position, (list, tuple)) or len(position) not in (2, 3):
        raise MalformedGeometry(f"Invalid position: {position!r}")
    for value in position:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedGeometry(f"Non-numeric coordinate in {position!r}")
        if not math.isfinite(value):
            raise MalformedGeometry(f"Non-finite coordinate in {position!r}")
    return (float(position[0]), float(position[1]))


def _sequence(value, what: str) -> list:
    if not isinstance(value, (list, tuple)):
        raise MalformedGeometry(f"Expected a list of {what}, got {value!r}")
    return list(value)


def _line(coords) -> list[tuple[float, float]]:
    positions = _sequence(coords, "positions")
    if not positions:
        raise MalformedGeometry("Ring has no positions")
    return [validate_position(p) for p in positions]


def _outer_ring(polygon) -> list[tuple[float, float]]:
    rings = _sequence(polygon, "rings")
    if not rings:
        raise MalformedGeometry("Polygon has no rings")
    return _line(rings[0])


def _point(coords) -> list[Ring]:
    return [Ring([validate_position(coords)], is_areal=False)]


def _line_string(coords) -> list[Ring]:
    return [Ring(_line(coords), is_areal=False)]


def _multi_line_string(coords) -> list[Ring]:
    return [Ring(_line(line), is_areal=False) for line in _sequence(coords, "lines")]


def _polygon(coords) -> list[Ring]:
    return [Ring(_outer_ring(coords), is_areal=True)]


def _multi_polygon(coords) -> list[Ring]:
    return [Ring(_outer_ring(poly), is_areal=True) for poly in _sequence(coords, "polygons")]


_NORMALIZERS: dict[GeometryKind, Callable[[object], list[Ring]]] = {
    GeometryKind.POINT: _point,
    GeometryKind.LINE_STRING: _line_string,
    GeometryKind.MULTI_LINE_STRING: _multi_line_string,
    GeometryKind.POLYGON: _polygon,
    GeometryKind.MULTI_POLYGON: _multi_polygon,
}


def normalize(geometry_kind, coordinates) -> list[Ring]:
    """Split a geometry into rings.

    Args:
        geometry_kind: A GeometryKind or its GeoJSON type name.
        coordinates: The geometry's ``coordinates`` member.

    Returns:
        One Ring per way (or the single point) the geometry produces.
        Unknown type names produce no rings.

    Raises:
        MalformedGeometry: If the coordinates don't fit the declared kind.
    """
    try:
        kind = GeometryKind.parse(geometry_kind)
    except UnknownGeometryKind:
        return []
    return _NORMALIZERS[kind](coordinates)
