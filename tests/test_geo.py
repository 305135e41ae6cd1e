"""Tests for collision_density.utils.geo."""
import pytest
import pandas as pd
import geopandas as gpd
from shapely.geometry import Point

from collision_density.errors import CrsMismatchError
from collision_density.utils.geo import (
    WGS84,
    SEATTLE_CRS,
    df_to_points,
    metres_per_unit,
    require_same_crs,
    to_projected,
)

UTM_CRS = "EPSG:26918"


def test_df_to_points():
    df = pd.DataFrame({"X": [-122.3, -122.4], "Y": [47.6, 47.7], "INCKEY": ["a", "b"]})
    gdf = df_to_points(df, x_col="X", y_col="Y", crs=WGS84)
    assert len(gdf) == 2
    assert gdf.crs == WGS84
    assert gdf.geometry.iloc[0].x == pytest.approx(-122.3)
    assert gdf.geometry.iloc[0].y == pytest.approx(47.6)
    assert list(gdf["INCKEY"]) == ["a", "b"]


def test_df_to_points_drops_missing():
    df = pd.DataFrame({"X": [-122.3, None, -122.4], "Y": [47.6, 47.7, None]})
    gdf = df_to_points(df, x_col="X", y_col="Y", crs=WGS84)
    assert len(gdf) == 1


def test_to_projected():
    gdf = gpd.GeoDataFrame({"id": [1]}, geometry=[Point(-75.7, 45.4)], crs=WGS84)
    out = to_projected(gdf, UTM_CRS)
    assert out.crs == UTM_CRS
    assert out.geometry.iloc[0].x != -75.7


def test_to_projected_requires_crs():
    gdf = gpd.GeoDataFrame({"id": [1]}, geometry=[Point(0, 0)])
    with pytest.raises(CrsMismatchError):
        to_projected(gdf, UTM_CRS)


def test_require_same_crs():
    a = gpd.GeoDataFrame(geometry=[Point(0, 0)], crs=UTM_CRS)
    b = gpd.GeoDataFrame(geometry=[Point(0, 0)], crs=WGS84)
    require_same_crs(a, a.copy(), stage="test")
    with pytest.raises(CrsMismatchError, match=r"\[test\]"):
        require_same_crs(a, b, stage="test")


def test_require_same_crs_missing():
    a = gpd.GeoDataFrame(geometry=[Point(0, 0)], crs=UTM_CRS)
    b = gpd.GeoDataFrame(geometry=[Point(0, 0)])
    with pytest.raises(CrsMismatchError):
        require_same_crs(a, b, stage="test")


def test_metres_per_unit():
    assert metres_per_unit(UTM_CRS) == pytest.approx(1.0)
    # US survey foot
    assert metres_per_unit(SEATTLE_CRS) == pytest.approx(1200 / 3937)
