"""ImportLayer - the service-data layer shown alongside the editable map.

Holds the most recent feature collection (from a service query or a dropped
file), whether the layer is enabled, and the helpers the UI needs around it:
the field table for the mapping editor and the data extent for "zoom to
data".
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from esri_import.driver import iter_features
from esri_import.esri_json import load_collection, point_in_ring
from esri_import.field_mapper import FieldMapper
from esri_import.query import BBox


@dataclass(frozen=True)
class Extent:
    """Bounding box of layer data in degrees."""
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    @property
    def center(self) -> tuple[float, float]:
        return (
            (self.min_lon + self.max_lon) / 2.0,
            (self.min_lat + self.max_lat) / 2.0,
        )

    def to_dict(self) -> dict:
        return {
            "bbox": [self.min_lon, self.min_lat, self.max_lon, self.max_lat],
            "center": list(self.center),
        }


def iter_positions(coordinates) -> Iterator[tuple[float, float]]:
    """Yield every [lon, lat] position in a nested coordinate array."""
    if not isinstance(coordinates, (list, tuple)) or not coordinates:
        return
    if isinstance(coordinates[0], (int, float)) and not isinstance(coordinates[0], bool):
        if len(coordinates) >= 2:
            yield (float(coordinates[0]), float(coordinates[1]))
        return
    for child in coordinates:
        yield from iter_positions(child)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _position_runs(coordinates) -> Iterator[list[tuple[float, float]]]:
    """Yield each innermost position list (a line or a ring) of a geometry."""
    if not isinstance(coordinates, (list, tuple)) or not coordinates:
        return
    first = coordinates[0]
    if _is_number(first):
        if len(coordinates) >= 2 and _is_number(coordinates[1]):
            yield [(float(first), float(coordinates[1]))]
        return
    if isinstance(first, (list, tuple)) and first and _is_number(first[0]):
        run = [
            (float(p[0]), float(p[1])) for p in coordinates
            if isinstance(p, (list, tuple)) and len(p) >= 2 and _is_number(p[0]) and _is_number(p[1])
        ]
        if run:
            yield run
        return
    for child in coordinates:
        yield from _position_runs(child)


def _segment_hits_box(a, b, box: BBox) -> bool:
    """Liang-Barsky clip: does segment a-b touch the box? a == b tests a point."""
    (x0, y0), (x1, y1) = a, b
    dx, dy = x1 - x0, y1 - y0
    t0, t1 = 0.0, 1.0
    for p, q in (
        (-dx, x0 - box.min_x),
        (dx, box.max_x - x0),
        (-dy, y0 - box.min_y),
        (dy, box.max_y - y0),
    ):
        if p == 0:
            if q < 0:
                return False
            continue
        t = q / p
        if p < 0:
            if t > t1:
                return False
            t0 = max(t0, t)
        else:
            if t < t0:
                return False
            t1 = min(t1, t)
    return True


class ImportLayer:
    """Current service data plus its enabled flag."""

    def __init__(self) -> None:
        self.enabled = True
        self.collection: dict[str, Any] = {}

    @property
    def has_data(self) -> bool:
        return bool(self.collection) and bool(self.collection.get("features"))

    def set_collection(self, collection: dict | None) -> bool:
        """Replace the layer data. Empty collections are ignored.

        Returns:
            True if the data was replaced.
        """
        if not collection or not collection.get("features"):
            return False
        self.collection = collection
        return True

    def load_file(self, path: str | Path) -> dict:
        """Load a dropped GeoJSON or ESRI JSON file into the layer.

        Raises:
            ValueError: If the file is not a JSON object.
        """
        path = Path(path)
        try:
            doc = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"{path.name} is not valid JSON: {e}") from e
        if not isinstance(doc, dict):
            raise ValueError(f"{path.name} does not hold a feature collection")

        collection = load_collection(doc)
        if not self.set_collection(collection):
            logger.info(f"{path.name}: no features")
        return collection

    def sample_properties(self) -> dict[str, Any]:
        """Properties of the first feature, used to build the field table."""
        for feature in iter_features(self.collection):
            if isinstance(feature, dict):
                return dict(feature.get("properties") or {})
        return {}

    def field_rows(self, mapper: FieldMapper) -> list[dict[str, Any]]:
        sample = self.sample_properties()
        if not sample:
            logger.info("No feature to build field table from")
        return mapper.field_rows(sample)

    def _positions(self) -> Iterator[tuple[float, float]]:
        for feature in iter_features(self.collection):
            if not isinstance(feature, dict):
                continue
            geometry = feature.get("geometry")
            if isinstance(geometry, dict):
                yield from iter_positions(geometry.get("coordinates"))

    def extent(self) -> Extent | None:
        """Extent of all positions in the layer, or None without data."""
        positions = list(self._positions())
        if not positions:
            return None
        lons = [p[0] for p in positions]
        lats = [p[1] for p in positions]
        return Extent(min(lons), min(lats), max(lons), max(lats))

    def needs_fit(self, viewport: BBox) -> bool:
        """True when none of the data is visible in the viewport.

        Data is visible if a point lies inside the viewport, a line or ring
        segment crosses it, or a polygon encloses the viewport center.
        """
        if not self.has_data:
            return False
        center = ((viewport.min_x + viewport.max_x) / 2.0, (viewport.min_y + viewport.max_y) / 2.0)
        for feature in iter_features(self.collection):
            geometry = feature.get("geometry") if isinstance(feature, dict) else None
            if not isinstance(geometry, dict):
                continue
            kind = geometry.get("type")
            coordinates = geometry.get("coordinates")
            if kind in ("Point", "MultiPoint"):
                if any(_segment_hits_box(p, p, viewport) for p in iter_positions(coordinates)):
                    return False
                continue
            for run in _position_runs(coordinates):
                if any(_segment_hits_box(a, b, viewport) for a, b in zip(run, run[1:] or run)):
                    return False
            if kind == "Polygon":
                polygons = [coordinates]
            elif kind == "MultiPolygon":
                polygons = coordinates if isinstance(coordinates, list) else []
            else:
                polygons = []
            for polygon in polygons:
                rings = list(_position_runs(polygon))
                if sum(point_in_ring(ring, center) for ring in rings if len(ring) > 2) % 2:
                    return False
        return True
