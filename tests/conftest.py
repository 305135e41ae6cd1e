"""Shared fixtures: a three-neighbourhood layer and five collisions."""
import pytest
import pandas as pd
import geopandas as gpd
from shapely.geometry import Point, box

from collision_density.models import PolygonLayer

UTM_CRS = "EPSG:26918"  # metres


@pytest.fixture
def hoods_frame():
    return gpd.GeoDataFrame(
        {"S_HOOD": ["A", "B", "C"], "AREA": [100.0, 100.0, 100.0]},
        geometry=[box(0, 0, 10, 10), box(20, 0, 30, 10), box(40, 0, 50, 10)],
        crs=UTM_CRS,
    )


@pytest.fixture
def hoods(hoods_frame):
    return PolygonLayer(frame=hoods_frame, id_col="S_HOOD")


@pytest.fixture
def collisions():
    # 2 in A, 1 in B, none in C, 2 outside everything
    return gpd.GeoDataFrame(
        {"INCKEY": ["1", "2", "3", "4", "5"]},
        geometry=[Point(2, 2), Point(5, 5), Point(25, 5), Point(15, 5), Point(60, 60)],
        crs=UTM_CRS,
    )


@pytest.fixture
def collisions_csv(tmp_path):
    """Raw export with a mangled first header, one incomplete row and mixed years."""
    df = pd.DataFrame(
        {
            "\u00ef..X": ["2", "5", "25", "15", "60", "3", ""],
            "Y": ["2", "5", "5", "5", "60", "3", "4"],
            "INCKEY": ["1", "2", "3", "4", "5", "6", "7"],
            "INCDATE": [
                "2018/01/02 00:00:00+00",
                "2018/05/06 00:00:00+00",
                "2018/07/08 00:00:00+00",
                "2018/09/10 00:00:00+00",
                "2018/11/12 00:00:00+00",
                "2017/03/04 00:00:00+00",
                "2018/03/04 00:00:00+00",
            ],
        }
    )
    path = tmp_path / "collisions.csv"
    df.to_csv(path, index=False)
    return path


@pytest.fixture
def hoods_file(tmp_path, hoods_frame):
    path = tmp_path / "hoods.gpkg"
    hoods_frame.to_file(path, driver="GPKG")
    return path
