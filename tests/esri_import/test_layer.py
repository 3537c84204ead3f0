"""Tests for ImportLayer - data state, file loading, field table, extent."""

import json

import pytest

from esri_import.field_mapper import FieldMapper
from esri_import.layer import ImportLayer, iter_positions
from esri_import.query import BBox

GEOJSON = {
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature", "properties": {"OBJECTID": 1, "NAME": "Elm"},
         "geometry": {"type": "LineString", "coordinates": [[-122.42, 37.77], [-122.40, 37.79]]}},
        {"type": "Feature", "properties": {"OBJECTID": 2, "NAME": "Oak"},
         "geometry": {"type": "Point", "coordinates": [-122.41, 37.78]}},
    ],
}

SQUARE_20 = [[-10, -10], [10, -10], [10, 10], [-10, 10], [-10, -10]]
SQUARE_10 = [[-5, -5], [5, -5], [5, 5], [-5, 5], [-5, -5]]


@pytest.fixture
def layer():
    layer = ImportLayer()
    layer.set_collection(GEOJSON)
    return layer


@pytest.mark.unit
class TestImportLayer:

    def test_empty_collection_ignored(self):
        layer = ImportLayer()
        assert layer.has_data is False
        assert layer.set_collection({"type": "FeatureCollection", "features": []}) is False
        assert layer.set_collection(None) is False
        assert layer.has_data is False

    def test_set_collection(self, layer):
        assert layer.has_data
        assert layer.enabled

    def test_extent_and_center(self, layer):
        extent = layer.extent()
        assert extent.min_lon == pytest.approx(-122.42)
        assert extent.max_lat == pytest.approx(37.79)
        lon, lat = extent.center
        assert lon == pytest.approx(-122.41)
        assert lat == pytest.approx(37.78)
        assert extent.to_dict()["bbox"] == [extent.min_lon, extent.min_lat, extent.max_lon, extent.max_lat]

    def test_extent_without_data(self):
        assert ImportLayer().extent() is None

    def test_needs_fit(self, layer):
        assert layer.needs_fit(BBox(0, 0, 1, 1)) is True
        assert layer.needs_fit(BBox(-122.5, 37.7, -122.3, 37.8)) is False

    @staticmethod
    def _layer_with(geometry):
        layer = ImportLayer()
        layer.set_collection({"type": "FeatureCollection", "features": [
            {"type": "Feature", "properties": {"OBJECTID": 1}, "geometry": geometry},
        ]})
        return layer

    def test_line_crossing_viewport_is_visible(self):
        layer = self._layer_with({"type": "LineString", "coordinates": [[-10, 0.5], [10, 0.5]]})
        assert layer.needs_fit(BBox(0, 0, 1, 1)) is False
        assert layer.needs_fit(BBox(0, 2, 1, 3)) is True

    def test_polygon_enclosing_viewport_is_visible(self):
        layer = self._layer_with({"type": "Polygon", "coordinates": [SQUARE_20]})
        assert layer.needs_fit(BBox(0, 0, 1, 1)) is False
        assert layer.needs_fit(BBox(30, 30, 31, 31)) is True

    def test_viewport_inside_hole_needs_fit(self):
        layer = self._layer_with({"type": "MultiPolygon", "coordinates": [[SQUARE_20, SQUARE_10]]})
        assert layer.needs_fit(BBox(0, 0, 1, 1)) is True
        assert layer.needs_fit(BBox(7, 7, 8, 8)) is False

    def test_multipoint_is_not_a_line(self):
        layer = self._layer_with({"type": "MultiPoint", "coordinates": [[-10, 0.5], [10, 0.5]]})
        assert layer.needs_fit(BBox(0, 0, 1, 1)) is True

    def test_field_rows_from_first_feature(self, layer):
        rows = layer.field_rows(FieldMapper({"NAME": "name"}))
        assert [r["key"] for r in rows] == ["OBJECTID", "NAME"]
        assert rows[1]["placeholder"] == "name"
        assert rows[0]["placeholder"] == 1

    def test_load_geojson_file(self, tmp_path):
        path = tmp_path / "roads.geojson"
        path.write_text(json.dumps(GEOJSON))
        layer = ImportLayer()
        collection = layer.load_file(path)
        assert len(collection["features"]) == 2
        assert layer.has_data

    def test_load_esri_file(self, tmp_path):
        path = tmp_path / "hydrants.json"
        path.write_text(json.dumps({
            "features": [{"attributes": {"OBJECTID": 3}, "geometry": {"x": 1, "y": 2}}],
        }))
        collection = ImportLayer().load_file(path)
        assert collection["features"][0]["geometry"]["type"] == "Point"

    def test_load_invalid_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("not json {{{")
        with pytest.raises(ValueError):
            ImportLayer().load_file(path)


@pytest.mark.unit
def test_iter_positions_flattens_nesting():
    coords = [[[0, 1], [2, 3]], [[4, 5, 100]]]
    assert list(iter_positions(coords)) == [(0.0, 1.0), (2.0, 3.0), (4.0, 5.0)]
