"""Cleaning and standardization steps for raw point records."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

import pandas as pd
import geopandas as gpd

from collision_density.errors import SchemaError
from collision_density.utils.geo import df_to_points

logger = logging.getLogger(__name__)

# The collisions export mangles the first header (BOM / "ï..X"); it is always X.
CANONICAL_FIRST_COLUMN = "X"


def repair_header(df: pd.DataFrame, canonical: str = CANONICAL_FIRST_COLUMN) -> pd.DataFrame:
    """Return a copy with the first column renamed to ``canonical``.

    Left untouched when ``canonical`` already names a column.
    """
    if df.columns.empty:
        raise SchemaError("no columns to repair", stage="clean points")
    first = df.columns[0]
    if canonical in df.columns:
        return df.copy()
    logger.info("Renaming corrupted first column %r to %r", first, canonical)
    return df.rename(columns={first: canonical})


def year_token(dates: pd.Series) -> pd.Series:
    """First four characters of the raw date string.

    Textual, not calendar-aware: "20180304" and "2018-garbage" both yield "2018".
    """
    return dates.astype("string").str.slice(0, 4)


def calendar_year(dates: pd.Series, date_format: Optional[str] = None) -> pd.Series:
    """Parsed calendar year as a string; unparseable dates become <NA>.

    Offsets are normalised to UTC, so mixed offsets parse together.
    """
    parsed = pd.to_datetime(dates, errors="coerce", format=date_format, utc=True)
    return parsed.dt.year.astype("Int64").astype("string")


def drop_incomplete(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Drop rows with a null or blank value in any of ``columns``. Never imputes."""
    subset = df[list(columns)]
    blank = subset.apply(lambda s: s.astype("string").str.strip().eq("")).fillna(False)
    keep = subset.notna().all(axis=1) & ~blank.any(axis=1)
    return df.loc[keep].copy()


def clean_points(
    df: pd.DataFrame,
    *,
    year: str,
    crs,
    x_col: str = "X",
    y_col: str = "Y",
    date_col: str = "INCDATE",
    strict_dates: bool = False,
    date_format: Optional[str] = None,
    repair: bool = True,
) -> gpd.GeoDataFrame:
    """Turn raw collision rows into point geometries for a single year.

    Steps: header repair, required-column check, DropIncomplete on the required
    columns (non-numeric coordinates count as missing), year filter, then point
    construction under ``crs``. Original columns are kept.

    With ``strict_dates`` the year comes from a parsed date instead of the
    first four characters of the raw string, so malformed dates are rejected.
    """
    stage = "clean points"
    if repair:
        df = repair_header(df)
    required = [x_col, y_col, date_col]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise SchemaError(f"required columns {missing} absent; columns are {list(df.columns)}", stage=stage)
    repeated = sorted({c for c in df.columns[df.columns.duplicated()] if c in required})
    if repeated:
        raise SchemaError(f"required columns {repeated} appear more than once", stage=stage)

    df = df.copy()
    for col in (x_col, y_col):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    n_raw = len(df)
    df = drop_incomplete(df, required)
    logger.info("Dropped %d incomplete rows of %d", n_raw - len(df), n_raw)

    year = str(year)
    if strict_dates:
        years = calendar_year(df[date_col], date_format=date_format)
    else:
        years = year_token(df[date_col])
    df = df.loc[years.eq(year).fillna(False).astype(bool)]
    logger.info("Kept %d rows for year %s", len(df), year)

    gdf = df_to_points(df, x_col=x_col, y_col=y_col, crs=crs)
    return gdf


__all__ = [
    "CANONICAL_FIRST_COLUMN",
    "repair_header",
    "year_token",
    "calendar_year",
    "drop_incomplete",
    "clean_points",
]
