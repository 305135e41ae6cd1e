"""Tests for collision_density.features.density."""
import pytest
from shapely.geometry import LineString, box

from collision_density.errors import CrsMismatchError, DegenerateGeometryError, SchemaError
from collision_density.features.density import compute_densities, density, polygon_area
from collision_density.models import AggregateRow, PolygonLayer
from collision_density.utils.geo import SEATTLE_CRS, SQFT_PER_SQM, WGS84

UTM_CRS = "EPSG:26918"


def test_area_projected_metres():
    assert polygon_area(box(0, 0, 10, 10), UTM_CRS, unit="m2") == pytest.approx(100.0)
    assert polygon_area(box(0, 0, 10, 10), UTM_CRS, unit="ft2") == pytest.approx(100.0 * SQFT_PER_SQM)
    assert polygon_area(box(0, 0, 1000, 1000), UTM_CRS, unit="km2") == pytest.approx(1.0)


def test_area_projected_us_survey_feet():
    # 100 x 100 US survey feet is ~10000 international square feet
    assert polygon_area(box(0, 0, 100, 100), SEATTLE_CRS, unit="ft2") == pytest.approx(10000.0, rel=1e-4)


def test_area_geographic_uses_geodesic():
    area = polygon_area(box(0, 0, 0.01, 0.01), WGS84, unit="m2")
    # ~1113 m x ~1106 m at the equator, not 1e-4 square degrees
    assert area == pytest.approx(1.2308e6, rel=1e-2)


def test_area_requires_crs():
    with pytest.raises(CrsMismatchError):
        polygon_area(box(0, 0, 1, 1), None)


def test_area_rejects_unknown_unit():
    with pytest.raises(ValueError):
        polygon_area(box(0, 0, 1, 1), UTM_CRS, unit="acres")


def test_degenerate_polygon():
    flat = LineString([(0, 0), (1, 0)]).buffer(0)
    with pytest.raises(DegenerateGeometryError, match="'flat'"):
        polygon_area(flat, UTM_CRS, polygon_id="flat")


def test_density_zero_area():
    with pytest.raises(DegenerateGeometryError):
        density(3, 0.0, polygon_id="A")
    assert density(0, 2.0) == 0.0


def test_compute_densities(hoods):
    rows = compute_densities(hoods, [AggregateRow("A", 2), AggregateRow("B", 1)], unit="m2")
    assert [r.polygon_id for r in rows] == ["A", "B"]
    for r in rows:
        assert r.area > 0
        assert r.density == pytest.approx(r.count / r.area)
    assert rows[0].density == pytest.approx(0.02)
    assert rows[0].unit == "m2"


def test_compute_densities_skips_polygons_without_counts(hoods):
    rows = compute_densities(hoods, [AggregateRow("A", 2)])
    assert [r.polygon_id for r in rows] == ["A"]


def test_compute_densities_declared_area(hoods):
    rows = compute_densities(hoods, [AggregateRow("A", 2)], area_col="AREA")
    assert rows[0].area == 100.0
    assert rows[0].density == pytest.approx(0.02)


def test_compute_densities_zero_count_is_zero(hoods):
    rows = compute_densities(hoods, [AggregateRow("C", 0)], unit="m2")
    assert rows[0].density == 0.0


def test_compute_densities_unknown_identifier(hoods):
    with pytest.raises(SchemaError, match="'Z'"):
        compute_densities(hoods, [AggregateRow("Z", 1)])


def test_compute_densities_degenerate_declared_area(hoods_frame):
    frame = hoods_frame.assign(AREA=[100.0, 0.0, 100.0])
    layer = PolygonLayer(frame=frame, id_col="S_HOOD")
    with pytest.raises(DegenerateGeometryError, match="'B'"):
        compute_densities(layer, [AggregateRow("B", 1)], area_col="AREA")
