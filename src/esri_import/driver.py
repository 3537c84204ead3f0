"""Import driver - feature collection in, committed entities and a report out.

For each feature, in arrival order:

  1. resolve its source id (missing -> failed MissingSourceId)
  2. skip it if the ledger already has the id
  3. remap its properties through the FieldMapper
  4. normalize the geometry and synthesize entities into a staging buffer
  5. commit the buffer as one host transaction, then mark the ledger

Nothing is committed for a feature that fails, and its id stays out of the
ledger, so a later import retries it. Errors are recorded per feature and
never stop the rest of the collection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from loguru import logger

from esri_import.errors import EsriImportError, MalformedGeometry, MissingSourceId
from esri_import.field_mapper import DEFAULT_SOURCE_ID_FIELD, FieldMapper
from esri_import.geometry import GeometryKind, normalize
from esri_import.host import EditorHost
from esri_import.ledger import DedupLedger
from esri_import.synthesizer import EntitySynthesizer

_WAY_DESCRIPTIONS = {
    GeometryKind.LINE_STRING: "adding way",
    GeometryKind.MULTI_LINE_STRING: "adding way within MultiLineString",
    GeometryKind.POLYGON: "adding way within Polygon",
    GeometryKind.MULTI_POLYGON: "adding way within MultiPolygon",
}


class DriverState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


@dataclass
class FeatureResult:
    """Outcome of one feature: "imported", "skipped" or "failed"."""
    status: str
    source_id: Any
    entity_ids: list[str] = field(default_factory=list)
    error_kind: str | None = None
    message: str = ""

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"status": self.status, "source_id": self.source_id}
        if self.status == "imported":
            out["entity_ids"] = list(self.entity_ids)
        if self.status == "failed":
            out["error_kind"] = self.error_kind
            out["message"] = self.message
        return out


@dataclass
class ImportReport:
    """Per-feature results of one import call, in feature order."""
    results: list[FeatureResult] = field(default_factory=list)

    def _with_status(self, status: str) -> list[FeatureResult]:
        return [r for r in self.results if r.status == status]

    @property
    def imported(self) -> list[FeatureResult]:
        return self._with_status("imported")

    @property
    def skipped(self) -> list[FeatureResult]:
        return self._with_status("skipped")

    @property
    def failed(self) -> list[FeatureResult]:
        return self._with_status("failed")

    @property
    def entity_ids(self) -> list[str]:
        return [eid for r in self.imported for eid in r.entity_ids]

    def counts(self) -> dict[str, int]:
        return {
            "imported": len(self.imported),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
        }

    def to_dict(self) -> dict:
        return {
            "counts": self.counts(),
            "results": [r.to_dict() for r in self.results],
        }


def iter_features(collection) -> Iterable:
    """Features of a FeatureCollection, a lone Feature, or a plain list."""
    if collection is None:
        return []
    if isinstance(collection, list):
        return collection
    if isinstance(collection, dict):
        if collection.get("type") == "Feature":
            return [collection]
        return collection.get("features") or []
    raise TypeError(f"Expected a feature collection, got {type(collection).__name__}")


class ImportDriver:
    """Converts feature collections into entities on an EditorHost.

    The mapper and ledger are passed in so their lifetime is the caller's
    choice: the service keeps one of each for the whole process.
    """

    def __init__(
        self,
        host: EditorHost,
        mapper: FieldMapper | None = None,
        ledger: DedupLedger | None = None,
        source_id_field: str = DEFAULT_SOURCE_ID_FIELD,
    ) -> None:
        self.host = host
        self.mapper = mapper if mapper is not None else FieldMapper()
        self.ledger = ledger if ledger is not None else DedupLedger()
        self.source_id_field = source_id_field
        self.state = DriverState.IDLE

    def import_feature_collection(self, collection) -> ImportReport:
        """Import every feature not already in the ledger."""
        if self.state is not DriverState.IDLE:
            raise RuntimeError("An import is already in progress")

        report = ImportReport()
        self.state = DriverState.SCANNING
        try:
            for feature in iter_features(collection):
                report.results.append(self._import_feature(feature))
        finally:
            self.state = DriverState.IDLE

        counts = report.counts()
        logger.info(
            f"Import: {counts['imported']} imported, {counts['skipped']} skipped, "
            f"{counts['failed']} failed"
        )
        return report

    def reset(self) -> None:
        """Forget every imported source id."""
        self.ledger.reset()

    def _source_id(self, feature: dict, properties: dict) -> Any:
        source_id = properties.get(self.source_id_field)
        if source_id is None or source_id == "":
            source_id = feature.get("id")
        if source_id is None or source_id == "":
            raise MissingSourceId(
                f"Feature has no '{self.source_id_field}' property or id"
            )
        if isinstance(source_id, bool) or not isinstance(source_id, (str, int, float)):
            raise MissingSourceId(f"Unusable source id: {source_id!r}")
        return source_id

    def _import_feature(self, feature) -> FeatureResult:
        source_id = None
        synthesizer = EntitySynthesizer(self.host)
        try:
            if not isinstance(feature, dict):
                raise MalformedGeometry(f"Feature is not an object: {feature!r}")
            properties = feature.get("properties")
            if not isinstance(properties, dict):
                properties = {}
            source_id = self._source_id(feature, properties)

            if source_id in self.ledger:
                logger.debug(f"Skipping already imported feature {source_id}")
                return FeatureResult("skipped", source_id)

            tags, _ = self.mapper.apply(properties, self.source_id_field)
            self._synthesize(feature, tags, synthesizer)

            staged = synthesizer.drain()
            self.host.commit_batch(staged)
        except EsriImportError as e:
            synthesizer.discard()
            logger.warning(f"Feature {source_id} failed: {e.kind}: {e}")
            return FeatureResult("failed", source_id, error_kind=e.kind, message=str(e))

        self.ledger.mark(source_id)
        return FeatureResult("imported", source_id, [entity.id for entity, _ in staged])

    def _synthesize(self, feature: dict, tags: dict, synthesizer: EntitySynthesizer) -> None:
        geometry = feature.get("geometry")
        if not isinstance(geometry, dict):
            raise MalformedGeometry("Feature has no geometry")

        kind = GeometryKind.parse(geometry.get("type"))
        rings = normalize(kind, geometry.get("coordinates"))
        if not rings:
            raise MalformedGeometry(f"{kind.value} geometry is empty")

        for ring in rings:
            if kind is GeometryKind.POINT and len(ring.coordinates) == 1:
                synthesizer.make_point(ring.coordinates[0], tags)
            else:
                synthesizer.make_way(
                    ring.coordinates,
                    tags,
                    is_areal=ring.is_areal,
                    description=_WAY_DESCRIPTIONS[kind],
                )
