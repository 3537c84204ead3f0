"""Tests for ImportDriver - dedup, dispatch, atomic commits, the report."""

import pytest

from esri_import.driver import ImportDriver, iter_features
from esri_import.entities import Vertex, Way
from esri_import.errors import HostCommitError
from esri_import.field_mapper import FieldMapper
from esri_import.host import MemoryHost
from esri_import.ledger import DedupLedger


def feature(geom_type, coordinates, oid, **props):
    return {
        "type": "Feature",
        "geometry": {"type": geom_type, "coordinates": coordinates},
        "properties": {"OBJECTID": oid, **props},
    }


def collection(*features):
    return {"type": "FeatureCollection", "features": list(features)}


class RejectingHost(MemoryHost):
    """Refuses any transaction that carries a vertex tagged ``reject``."""

    def commit_batch(self, staged):
        if any(entity.tags.get("reject") for entity, _ in staged):
            raise HostCommitError("store refused the transaction")
        super().commit_batch(staged)


OUTER = [[0, 0], [1, 0], [1, 1], [0, 0]]
HOLE = [[0.2, 0.2], [0.4, 0.2], [0.4, 0.4], [0.2, 0.2]]


@pytest.fixture
def host():
    return MemoryHost()


@pytest.fixture
def driver(host):
    return ImportDriver(host, FieldMapper(), DedupLedger())


@pytest.mark.unit
class TestGeometryDispatch:
    """Each geometry kind produces the right entities."""

    def test_point(self, driver, host):
        report = driver.import_feature_collection(
            collection(feature("Point", [10, 20], 1, name="Hydrant"))
        )
        [result] = report.results
        assert result.status == "imported"
        assert len(result.entity_ids) == 1
        vertex = host.get(result.entity_ids[0])
        assert isinstance(vertex, Vertex)
        assert vertex.loc == (10.0, 20.0)
        assert vertex.tags == {"name": "Hydrant"}

    def test_line_string(self, driver, host):
        report = driver.import_feature_collection(
            collection(feature("LineString", [[0, 0], [1, 1], [2, 2]], 2, highway="service"))
        )
        assert len(host.vertices()) == 3
        [way] = host.ways()
        assert [host.get(n).loc for n in way.nodes] == [(0.0, 0.0), (1.0, 1.0), (2.0, 2.0)]
        assert "area" not in way.tags
        assert way.tags == {"highway": "service"}
        assert way.visible is True
        assert report.results[0].entity_ids == way.nodes + [way.id]

    def test_polygon_hole_discarded(self, driver, host):
        driver.import_feature_collection(collection(feature("Polygon", [OUTER, HOLE], 3)))
        assert len(host.vertices()) == 4
        [way] = host.ways()
        assert way.tags == {"area": "yes"}
        assert all(host.get(n).tags == {} for n in way.nodes)

    def test_polygon_keeps_existing_area(self, driver, host):
        driver.import_feature_collection(collection(feature("Polygon", [OUTER], 3, area="no")))
        assert host.ways()[0].tags["area"] == "no"

    def test_multi_polygon_independent_vertices(self, driver, host):
        driver.import_feature_collection(collection(
            feature("MultiPolygon", [[OUTER], [OUTER]], 4, landuse="grass")
        ))
        ways = host.ways()
        assert len(ways) == 2
        assert set(ways[0].nodes).isdisjoint(ways[1].nodes)
        assert all(w.tags == {"landuse": "grass", "area": "yes"} for w in ways)

    def test_multi_line_string(self, driver, host):
        driver.import_feature_collection(collection(
            feature("MultiLineString", [[[0, 0], [1, 1]], [[2, 2], [3, 3], [4, 4]]], 5)
        ))
        assert [len(w.nodes) for w in host.ways()] == [2, 3]
        assert len(host.vertices()) == 5

    def test_descriptions(self, driver, host):
        driver.import_feature_collection(collection(
            feature("Point", [0, 0], 1),
            feature("Polygon", [OUTER], 2),
            feature("MultiLineString", [[[0, 0], [1, 1]]], 3),
        ))
        history = host.history
        assert history[0].descriptions == ["adding point"]
        assert history[1].descriptions[-1] == "adding way within Polygon"
        assert history[1].descriptions[0] == "adding node inside a way"
        assert history[2].descriptions[-1] == "adding way within MultiLineString"

    def test_one_transaction_per_feature(self, driver, host):
        driver.import_feature_collection(collection(
            feature("MultiPolygon", [[OUTER], [OUTER]], 4),
        ))
        assert len(host.history) == 1
        assert len(host.history[0].entity_ids) == 10


@pytest.mark.unit
class TestDedup:
    """Repeated imports skip features already converted."""

    def test_reimport_skips_everything(self, driver, host):
        data = collection(
            feature("Point", [0, 0], 1),
            feature("LineString", [[0, 0], [1, 1]], 2),
        )
        first = driver.import_feature_collection(data)
        assert first.counts() == {"imported": 2, "skipped": 0, "failed": 0}
        assert len(driver.ledger) == 2

        count = len(host.entities())
        second = driver.import_feature_collection(data)
        assert [r.status for r in second.results] == ["skipped", "skipped"]
        assert [r.source_id for r in second.results] == [1, 2]
        assert len(host.entities()) == count
        assert len(driver.ledger) == 2

    def test_duplicate_within_collection(self, driver):
        report = driver.import_feature_collection(collection(
            feature("Point", [0, 0], 1),
            feature("Point", [5, 5], 1),
        ))
        assert [r.status for r in report.results] == ["imported", "skipped"]

    def test_feature_id_fallback(self, driver):
        raw = {"type": "Feature", "id": "abc",
               "geometry": {"type": "Point", "coordinates": [0, 0]}, "properties": {}}
        report = driver.import_feature_collection(collection(raw))
        assert report.results[0].status == "imported"
        assert "abc" in driver.ledger

    def test_reset_allows_reimport(self, driver):
        data = collection(feature("Point", [0, 0], 1))
        driver.import_feature_collection(data)
        driver.reset()
        assert driver.import_feature_collection(data).results[0].status == "imported"

    def test_shared_ledger_across_drivers(self, host):
        ledger = DedupLedger()
        data = collection(feature("Point", [0, 0], 1))
        ImportDriver(host, ledger=ledger).import_feature_collection(data)
        report = ImportDriver(MemoryHost(), ledger=ledger).import_feature_collection(data)
        assert report.results[0].status == "skipped"


@pytest.mark.unit
class TestFailures:
    """Errors are per feature and never stop the import."""

    def test_missing_source_id(self, driver, host):
        raw = {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0, 0]},
               "properties": {"name": "x"}}
        report = driver.import_feature_collection(collection(raw))
        [result] = report.results
        assert result.status == "failed"
        assert result.error_kind == "MissingSourceId"
        assert result.source_id is None
        assert host.entities() == []

    def test_unknown_geometry_kind(self, driver):
        report = driver.import_feature_collection(
            collection(feature("MultiPoint", [[0, 0], [1, 1]], 1))
        )
        assert report.results[0].error_kind == "UnknownGeometryKind"
        assert 1 not in driver.ledger

    def test_malformed_geometry_commits_nothing(self, driver, host):
        bad = feature("LineString", [[0, 0], [1, 1], ["x", 2]], 1)
        report = driver.import_feature_collection(collection(bad))
        assert report.results[0].error_kind == "MalformedGeometry"
        assert host.entities() == []
        assert 1 not in driver.ledger

    def test_malformed_second_ring_rolls_back_first(self, driver, host):
        bad = feature("MultiLineString", [[[0, 0], [1, 1]], [[0, 0], [1]]], 1)
        driver.import_feature_collection(collection(bad))
        assert host.entities() == []

    def test_failed_feature_retried_on_next_import(self, driver):
        bad = feature("Point", [0, None], 1)
        driver.import_feature_collection(collection(bad))
        good = feature("Point", [0, 1], 1)
        report = driver.import_feature_collection(collection(good))
        assert report.results[0].status == "imported"

    def test_missing_geometry(self, driver):
        raw = {"type": "Feature", "geometry": None, "properties": {"OBJECTID": 1}}
        report = driver.import_feature_collection(collection(raw))
        assert report.results[0].error_kind == "MalformedGeometry"

    def test_failure_does_not_stop_later_features(self, driver, host):
        report = driver.import_feature_collection(collection(
            feature("Point", [0], 1),
            feature("Point", [3, 4], 2),
        ))
        assert [r.status for r in report.results] == ["failed", "imported"]
        assert len(host.vertices()) == 1

    def test_non_object_feature(self, driver):
        report = driver.import_feature_collection(collection("nope"))
        assert report.results[0].status == "failed"

    def test_host_commit_failure(self):
        host = RejectingHost()
        driver = ImportDriver(host, FieldMapper(), DedupLedger())
        report = driver.import_feature_collection(collection(
            feature("Point", [0, 0], 1, reject="yes"),
            feature("Point", [3, 4], 2, name="Kept"),
        ))
        failed, imported = report.results
        assert (failed.status, failed.source_id, failed.error_kind) == ("failed", 1, "HostCommitError")
        assert 1 not in driver.ledger
        assert imported.status == "imported"
        assert 2 in driver.ledger
        [vertex] = host.vertices()
        assert vertex.tags == {"name": "Kept"}
        assert len(host.history) == 1


@pytest.mark.unit
class TestMappingApplied:

    def test_mapping_renames_tags(self, host):
        driver = ImportDriver(host, FieldMapper({"A": "name"}))
        driver.import_feature_collection(
            collection(feature("Point", [0, 0], 5, A="Foo", B="Bar"))
        )
        assert host.vertices()[0].tags == {"name": "Foo"}

    def test_custom_source_id_field(self, host):
        driver = ImportDriver(host, source_id_field="FID")
        raw = {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0, 0]},
               "properties": {"FID": 9, "name": "x"}}
        driver.import_feature_collection(collection(raw))
        assert 9 in driver.ledger
        assert host.vertices()[0].tags == {"name": "x"}


@pytest.mark.unit
class TestReport:

    def test_to_dict(self, driver):
        report = driver.import_feature_collection(collection(
            feature("Point", [0, 0], 1),
            feature("Point", [0], 2),
        ))
        out = report.to_dict()
        assert out["counts"] == {"imported": 1, "skipped": 0, "failed": 1}
        assert out["results"][0] == {"status": "imported", "source_id": 1, "entity_ids": ["n-1"]}
        assert out["results"][1]["error_kind"] == "MalformedGeometry"
        assert report.entity_ids == ["n-1"]


@pytest.mark.unit
class TestIterFeatures:

    def test_accepts_collection_feature_and_list(self):
        f = feature("Point", [0, 0], 1)
        assert list(iter_features(collection(f))) == [f]
        assert list(iter_features(f)) == [f]
        assert list(iter_features([f])) == [f]
        assert list(iter_features(None)) == []

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            iter_features("features")
