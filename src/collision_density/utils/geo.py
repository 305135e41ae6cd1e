"""Lightweight geospatial helpers shared by the pipeline stages."""
from __future__ import annotations

from typing import Optional

import geopandas as gpd
import pandas as pd
from pyproj import CRS

from collision_density.errors import CrsMismatchError

WGS84 = "EPSG:4326"
# Seattle City Clerk layers ship in NAD83(HARN) / Washington North (ftUS)
SEATTLE_CRS = "EPSG:2926"

SQFT_PER_SQM = 10.7639
# square metres -> target unit
AREA_UNITS = {
    "m2": 1.0,
    "ft2": SQFT_PER_SQM,
    "km2": 1e-6,
    "mi2": 3.861021585424458e-7,
}


def df_to_points(df: pd.DataFrame, x_col: str = "X", y_col: str = "Y", crs=WGS84) -> gpd.GeoDataFrame:
    """Convert x/y columns to a point GeoDataFrame with given CRS, keeping all columns."""
    missing = df[x_col].isna() | df[y_col].isna()
    kept = df.loc[~missing]
    gdf = gpd.GeoDataFrame(
        kept.copy(),
        geometry=gpd.points_from_xy(
            pd.to_numeric(kept[x_col]), pd.to_numeric(kept[y_col])
        ),
        crs=crs,
    )
    return gdf


def require_same_crs(left: gpd.GeoDataFrame, right: gpd.GeoDataFrame, stage: str) -> None:
    """Raise CrsMismatchError unless both frames declare the same CRS."""
    if left.crs is None or right.crs is None:
        raise CrsMismatchError("both layers must declare a CRS before joining", stage=stage)
    if left.crs != right.crs:
        raise CrsMismatchError(
            f"layers must share CRS before joining: {left.crs.to_string()} != {right.crs.to_string()}",
            stage=stage,
        )


def metres_per_unit(crs) -> Optional[float]:
    """Metres per linear CRS unit, or None when the CRS does not say."""
    crs = CRS.from_user_input(crs)
    for axis in crs.axis_info:
        if axis.unit_conversion_factor:
            return float(axis.unit_conversion_factor)
    return None


def to_projected(gdf: gpd.GeoDataFrame, crs) -> gpd.GeoDataFrame:
    """Project geometries to ``crs`` if needed."""
    if gdf.crs is None:
        raise CrsMismatchError("GeoDataFrame missing CRS; cannot project", stage="project")
    if gdf.crs == crs:
        return gdf
    return gdf.to_crs(crs)


__all__ = [
    "WGS84",
    "SEATTLE_CRS",
    "SQFT_PER_SQM",
    "AREA_UNITS",
    "df_to_points",
    "require_same_crs",
    "metres_per_unit",
    "to_projected",
]
