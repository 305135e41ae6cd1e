from .geo import (
    WGS84,
    SEATTLE_CRS,
    SQFT_PER_SQM,
    AREA_UNITS,
    df_to_points,
    require_same_crs,
    metres_per_unit,
    to_projected,
)

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
