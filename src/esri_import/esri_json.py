"""Translate ArcGIS REST (ESRI JSON) query results to GeoJSON.

ESRI geometry members map to GeoJSON types:

  x / y   -> Point
  points  -> MultiPoint
  paths   -> LineString (one path) or MultiLineString
  rings   -> Polygon (one outer ring) or MultiPolygon

ESRI outer rings run clockwise and holes counter-clockwise; each hole is
attached to the outer ring that contains it.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

_ESRI_KEYS = ("geometryType", "spatialReference", "objectIdFieldName", "fieldAliases")


def is_esri_json(doc: Any) -> bool:
    """True for an ESRI feature set, False for GeoJSON or anything else."""
    if not isinstance(doc, dict):
        return False
    if doc.get("type") in ("FeatureCollection", "Feature"):
        return False
    if any(key in doc for key in _ESRI_KEYS):
        return True
    features = doc.get("features")
    if not isinstance(features, list):
        return False
    return bool(features) and isinstance(features[0], dict) and "attributes" in features[0]


def _signed_area(ring: list) -> float:
    total = 0.0
    for (x1, y1, *_), (x2, y2, *_) in zip(ring, ring[1:] + ring[:1]):
        total += (x2 - x1) * (y2 + y1)
    return total


def _is_clockwise(ring: list) -> bool:
    return _signed_area(ring) > 0


def point_in_ring(ring, point) -> bool:
    """Ray-casting point-in-ring test."""
    x, y = point[0], point[1]
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def rings_to_polygons(rings: list) -> list[list]:
    """Group ESRI rings into GeoJSON polygons (outer ring first, then holes)."""
    rings = [r for r in rings if r]
    outers = [r for r in rings if _is_clockwise(r)]
    holes = [r for r in rings if not _is_clockwise(r)]
    if not outers:
        # Orientation not honoured by the service; treat every ring as a shell.
        return [[r] for r in holes]

    polygons = [[outer] for outer in outers]
    for hole in holes:
        owner = next(
            (poly for poly in polygons if point_in_ring(poly[0], hole[0])),
            polygons[-1],
        )
        owner.append(hole)
    return polygons


def geometry_to_geojson(geom: dict | None) -> dict | None:
    """Convert one ESRI geometry object, or None if it has no usable shape.

    Raises:
        TypeError, ValueError: If ring coordinates are not numeric pairs.
    """
    if not geom or not isinstance(geom, dict):
        return None
    if "x" in geom and "y" in geom:
        if geom["x"] is None or geom["y"] is None:
            return None
        return {"type": "Point", "coordinates": [geom["x"], geom["y"]]}
    if "points" in geom:
        return {"type": "MultiPoint", "coordinates": geom["points"]}
    if "paths" in geom:
        paths = geom["paths"]
        if len(paths) == 1:
            return {"type": "LineString", "coordinates": paths[0]}
        return {"type": "MultiLineString", "coordinates": paths}
    if "rings" in geom:
        polygons = rings_to_polygons(geom["rings"])
        if len(polygons) == 1:
            return {"type": "Polygon", "coordinates": polygons[0]}
        return {"type": "MultiPolygon", "coordinates": polygons}
    return None


def esri_to_geojson(esri_json: dict) -> dict:
    """Convert an ESRI feature set to a GeoJSON FeatureCollection.

    The object-id attribute named by ``objectIdFieldName`` (when the service
    reports one) also becomes the GeoJSON feature ``id``. A feature whose
    geometry cannot be translated gets ``geometry: None``; entries that are
    not objects are passed through for the importer to reject.
    """
    id_field = esri_json.get("objectIdFieldName")
    geojson: dict[str, Any] = {"type": "FeatureCollection", "features": []}

    features = esri_json.get("features")
    if not isinstance(features, list):
        features = []

    for feature in features:
        if not isinstance(feature, dict):
            geojson["features"].append(feature)
            continue
        attributes = feature.get("attributes")
        attributes = dict(attributes) if isinstance(attributes, dict) else {}
        try:
            geometry = geometry_to_geojson(feature.get("geometry"))
        except (TypeError, ValueError, IndexError, KeyError, ZeroDivisionError) as e:
            logger.warning(f"ESRI geometry of {attributes.get(id_field)} not translated: {e!r}")
            geometry = None
        geo_feature: dict[str, Any] = {
            "type": "Feature",
            "properties": attributes,
            "geometry": geometry,
        }
        if id_field and attributes.get(id_field) is not None:
            geo_feature["id"] = attributes[id_field]
        geojson["features"].append(geo_feature)

    return geojson


def load_collection(doc: dict) -> dict:
    """Return ``doc`` as GeoJSON, translating it first if it is ESRI JSON."""
    if is_esri_json(doc):
        return esri_to_geojson(doc)
    return doc
