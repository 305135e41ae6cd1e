"""Attach counts and densities back onto polygon geometry by identifier."""
from __future__ import annotations

import logging
from typing import Iterable, Optional

import pandas as pd
import geopandas as gpd

from collision_density.errors import JoinKeyCollisionError
from collision_density.models import AggregateRow, DensityRow, PolygonLayer, rows_to_frame

logger = logging.getLogger(__name__)

COUNT_COL = "count"
AREA_COL = "calc_area"
DENSITY_COL = "density"


def merge_onto_polygons(
    layer: PolygonLayer,
    counts: Optional[Iterable[AggregateRow]] = None,
    densities: Optional[Iterable[DensityRow]] = None,
) -> gpd.GeoDataFrame:
    """Left join metrics onto every polygon of ``layer``, preserving its order.

    Polygons without a match keep a null count/area/density; null and 0 are
    distinct. The join key is an exact string match on ``layer.id_col``.
    """
    id_col = layer.id_col
    base = layer.frame.drop(
        columns=[c for c in (COUNT_COL, AREA_COL, DENSITY_COL) if c in layer.frame.columns]
    )
    if densities is not None:
        metrics = rows_to_frame(densities, id_col=id_col).rename(columns={"area": AREA_COL})
        metrics = metrics.reindex(columns=[id_col, COUNT_COL, AREA_COL, DENSITY_COL])
    elif counts is not None:
        metrics = rows_to_frame(counts, id_col=id_col)
        metrics = metrics.reindex(columns=[id_col, COUNT_COL])
    else:
        raise ValueError("merge_onto_polygons needs counts or densities")

    metrics[id_col] = metrics[id_col].astype(str)
    metrics[COUNT_COL] = pd.array(metrics[COUNT_COL], dtype="Int64")
    for col in (AREA_COL, DENSITY_COL):
        if col in metrics.columns:
            metrics[col] = metrics[col].astype("float64")

    for name, frame in (("polygon layer", base), ("metrics", metrics)):
        dupes = frame.loc[frame[id_col].duplicated(), id_col].unique().tolist()
        if dupes:
            raise JoinKeyCollisionError(f"duplicate {id_col} in {name}: {dupes}", stage="merge", path=layer.source)

    merged = base.merge(metrics, on=id_col, how="left")
    n_unmatched = int(merged[COUNT_COL].isna().sum())
    logger.info("Merged metrics onto %d polygons (%d with no points)", len(merged), n_unmatched)
    return merged


def drop_unmatched(merged: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Caller-side filter: remove polygons whose count is null."""
    return merged[merged[COUNT_COL].notna()].reset_index(drop=True)


__all__ = [
    "COUNT_COL",
    "AREA_COL",
    "DENSITY_COL",
    "merge_onto_polygons",
    "drop_unmatched",
]
