"""Raw data ingestion helpers."""
from __future__ import annotations

import logging
import pathlib
from typing import Optional, Union

import pandas as pd
import geopandas as gpd

from collision_density.errors import JoinKeyCollisionError, LoadError, SchemaError
from collision_density.models import PolygonLayer

logger = logging.getLogger(__name__)

PathLike = Union[str, pathlib.Path]

_DUPLICATE_POLICIES = ("error", "dissolve")


def _require_file(path: PathLike, stage: str) -> pathlib.Path:
    path = pathlib.Path(path)
    if not path.exists():
        raise LoadError("file not found", stage=stage, path=str(path))
    return path


def read_polygons(path: PathLike, id_col: str, *, on_duplicate: str = "error") -> PolygonLayer:
    """Read a polygon boundary layer (shapefile/geojson/gpkg) keyed by ``id_col``.

    Rows with a missing identifier are dropped, identifiers are cast to ``str``,
    and invalid or empty geometries are discarded. ``on_duplicate`` decides what
    happens when an identifier repeats: ``"error"`` raises
    JoinKeyCollisionError, ``"dissolve"`` merges the rows into one feature.
    """
    if on_duplicate not in _DUPLICATE_POLICIES:
        raise ValueError(f"on_duplicate must be one of {_DUPLICATE_POLICIES}, got {on_duplicate!r}")
    stage = "load polygons"
    path = _require_file(path, stage)
    try:
        gdf = gpd.read_file(path)
    except Exception as exc:
        raise LoadError(f"unreadable vector file: {exc}", stage=stage, path=str(path)) from exc

    if id_col not in gdf.columns:
        raise SchemaError(
            f"identifier column {id_col!r} not found; columns are {list(gdf.columns)}",
            stage=stage,
            path=str(path),
        )

    n_raw = len(gdf)
    gdf = gdf[gdf[id_col].notna()].copy()
    if len(gdf) < n_raw:
        logger.info("Dropped %d polygons with no %s", n_raw - len(gdf), id_col)
    gdf[id_col] = gdf[id_col].astype(str)

    usable = gdf.geometry.notna() & ~gdf.geometry.is_empty
    usable &= gdf.geometry.is_valid
    if (~usable).any():
        bad = gdf.loc[~usable, id_col].tolist()
        logger.warning("Discarding %d invalid or empty polygons: %s", len(bad), bad)
    gdf = gdf[usable]
    if gdf.empty:
        raise LoadError("no valid polygon geometries", stage=stage, path=str(path))

    areal = gdf.geometry.geom_type.isin(["Polygon", "MultiPolygon"])
    if not areal.any():
        kinds = sorted(gdf.geometry.geom_type.unique())
        raise LoadError(f"no polygon geometries; layer holds {kinds}", stage=stage, path=str(path))
    if (~areal).any():
        logger.warning("Discarding %d non-polygon features", int((~areal).sum()))
    gdf = gdf[areal]

    layer = PolygonLayer(frame=gdf.reset_index(drop=True), id_col=id_col, source=str(path))
    dupes = sorted(gdf.loc[gdf[id_col].duplicated(), id_col].unique())
    if dupes:
        if on_duplicate == "error":
            raise JoinKeyCollisionError(
                f"duplicate {id_col} values: {dupes}", stage=stage, path=str(path)
            )
        logger.warning("Dissolving duplicate %s values: %s", id_col, dupes)
        layer = dissolve_layer(layer, by=id_col)

    logger.info("Loaded %d polygons from %s (crs=%s)", len(layer), path, layer.crs)
    return layer


def dissolve_layer(layer: PolygonLayer, by: Optional[str] = None) -> PolygonLayer:
    """Merge polygons sharing ``by`` (or all of them) into single features."""
    frame = layer.frame
    if by is None:
        merged = frame[["geometry"]].assign(_group="1").dissolve(by="_group")
        merged = merged.reset_index(drop=True)
        merged[layer.id_col] = "all"
        return layer.with_frame(merged[[layer.id_col, "geometry"]])
    if by not in frame.columns:
        raise SchemaError(f"dissolve column {by!r} not found", stage="dissolve", path=layer.source)
    merged = frame.dissolve(by=by, sort=False, aggfunc="first").reset_index()
    return layer.with_frame(merged[frame.columns])


def read_points_csv(path: PathLike, **kwargs) -> pd.DataFrame:
    """Read the collisions CSV as raw text columns; cleaning happens in ``clean``."""
    stage = "load points"
    path = _require_file(path, stage)
    try:
        df = pd.read_csv(path, dtype=str, **kwargs)
    except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise LoadError(f"unreadable CSV: {exc}", stage=stage, path=str(path)) from exc
    logger.info("Read %d point rows from %s", len(df), path)
    return df


def read_external_long(
    path: PathLike,
    id_col: str = "GEOID",
    variable_col: str = "variable",
    value_col: str = "estimate",
) -> pd.DataFrame:
    """Read long-form survey estimates (one row per identifier per variable)."""
    stage = "load external"
    path = _require_file(path, stage)
    try:
        df = pd.read_csv(path, dtype={id_col: str, variable_col: str})
    except (OSError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise LoadError(f"unreadable CSV: {exc}", stage=stage, path=str(path)) from exc
    missing = [c for c in (id_col, variable_col, value_col) if c not in df.columns]
    if missing:
        raise SchemaError(f"missing columns {missing}", stage=stage, path=str(path))
    df[value_col] = pd.to_numeric(df[value_col], errors="coerce")
    return df[[id_col, variable_col, value_col]]


__all__ = [
    "read_polygons",
    "dissolve_layer",
    "read_points_csv",
    "read_external_long",
]
