"""Import ArcGIS feature service data as editable map entities.

Features become vertices (points) and ways (lines, polygon outer rings)
on an EditorHost. Already-imported features are skipped by source id, and
service attributes are renamed to tags through a user-edited FieldMapper.
"""

from esri_import.driver import FeatureResult, ImportDriver, ImportReport
from esri_import.entities import Vertex, Way
from esri_import.errors import (
    EsriImportError,
    HostCommitError,
    MalformedGeometry,
    MissingSourceId,
    ServiceFetchError,
    UnknownGeometryKind,
)
from esri_import.field_mapper import FieldMapper
from esri_import.host import EditorHost, MemoryHost
from esri_import.ledger import DedupLedger

__all__ = [
    "DedupLedger",
    "EditorHost",
    "EsriImportError",
    "FeatureResult",
    "FieldMapper",
    "HostCommitError",
    "ImportDriver",
    "ImportReport",
    "MalformedGeometry",
    "MemoryHost",
    "MissingSourceId",
    "ServiceFetchError",
    "UnknownGeometryKind",
    "Vertex",
    "Way",
]
