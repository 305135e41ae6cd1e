"""Write joined polygon layers back to disk."""
from __future__ import annotations

import logging
import pathlib
from typing import Union

import pandas as pd
import geopandas as gpd

logger = logging.getLogger(__name__)

PathLike = Union[str, pathlib.Path]

_SHAPEFILE_SIDECARS = (".shp", ".shx", ".dbf", ".prj", ".cpg", ".qmd", ".sbn", ".sbx")


def _remove_existing(path: pathlib.Path) -> None:
    if path.suffix.lower() == ".shp":
        for suffix in _SHAPEFILE_SIDECARS:
            sidecar = path.with_suffix(suffix)
            if sidecar.exists():
                sidecar.unlink()
    elif path.exists():
        path.unlink()


def _writable(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    # Nullable integer columns with <NA> cannot go to OGR as ints
    out = gdf.copy()
    for col in out.columns:
        if isinstance(out[col].dtype, pd.Int64Dtype):
            out[col] = out[col].astype("float64")
    return out


def write_layer(gdf: gpd.GeoDataFrame, path: PathLike) -> pathlib.Path:
    """Write ``gdf`` as a vector layer, replacing anything already at ``path``."""
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _remove_existing(path)
    _writable(gdf).to_file(path)
    logger.info("Wrote layer %s (rows=%d)", path, len(gdf))
    return path


def write_table_csv(df: pd.DataFrame, path: PathLike) -> pathlib.Path:
    """Write a table as CSV; any geometry column is serialized as WKT."""
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(df, gpd.GeoDataFrame):
        geom_col = df.geometry.name
        df = pd.DataFrame(df.drop(columns=geom_col)).assign(**{geom_col: df.geometry.to_wkt()})
    df.to_csv(path, index=False)
    logger.info("Wrote table %s (rows=%d)", path, len(df))
    return path


__all__ = ["write_layer", "write_table_csv"]
