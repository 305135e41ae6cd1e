"""Spatial joins between cleaned points and polygon layers."""
from __future__ import annotations

import logging

import geopandas as gpd

from collision_density.models import PolygonLayer
from collision_density.utils.geo import require_same_crs

logger = logging.getLogger(__name__)

PREDICATES = ("within", "intersects")

_POINT_POS = "_point_pos"
_POLY_POS = "_poly_pos"


def _check_predicate(predicate: str) -> None:
    if predicate not in PREDICATES:
        raise ValueError(f"predicate must be one of {PREDICATES}, got {predicate!r}")


def join_points_to_polygons(
    points: gpd.GeoDataFrame,
    layer: PolygonLayer,
    predicate: str = "within",
) -> gpd.GeoDataFrame:
    """Attach polygon attributes to every point (left join, one row per point).

    Points outside every polygon keep null polygon attributes. When polygons
    overlap, the first matching polygon in layer order wins. Point columns
    sharing a name with a polygon column are replaced by the polygon's value.
    """
    _check_predicate(predicate)
    require_same_crs(points, layer.frame, stage="spatial join")

    # polygon attributes replace same-named point columns instead of getting suffixes
    shared = [c for c in points.columns if c in layer.frame.columns and c != points.geometry.name]
    if shared:
        logger.warning("Replacing point columns %s with polygon attributes", shared)
    left = points.drop(columns=shared)
    left[_POINT_POS] = range(len(left))
    right = layer.frame.copy()
    right[_POLY_POS] = range(len(right))

    joined = gpd.sjoin(left, right, how="left", predicate=predicate)
    joined = joined.sort_values([_POINT_POS, _POLY_POS], kind="stable", na_position="last")
    n_multi = int(joined[_POINT_POS].duplicated().sum())
    if n_multi:
        logger.warning("%d extra polygon matches from overlapping polygons; keeping first", n_multi)
    joined = joined.drop_duplicates(subset=_POINT_POS, keep="first")

    n_matched = int(joined[_POLY_POS].notna().sum())
    logger.info("Joined %d points: %d matched, %d outside all polygons", len(joined), n_matched, len(joined) - n_matched)
    drop = [c for c in (_POINT_POS, _POLY_POS, "index_right") if c in joined.columns]
    return joined.drop(columns=drop)


def subset_polygons(
    layer: PolygonLayer,
    boundary: PolygonLayer,
    predicate: str = "intersects",
) -> PolygonLayer:
    """Keep polygons of ``layer`` that satisfy ``predicate`` against ``boundary``."""
    _check_predicate(predicate)
    require_same_crs(layer.frame, boundary.frame, stage="subset polygons")
    hits = gpd.sjoin(
        layer.frame,
        boundary.frame[["geometry"]],
        how="inner",
        predicate=predicate,
    )
    keep = layer.frame.index.isin(hits.index)
    frame = layer.frame.loc[keep].reset_index(drop=True)
    logger.info("Subset %d of %d polygons by %s", len(frame), len(layer), predicate)
    return layer.with_frame(frame)


def clip_polygons(layer: PolygonLayer, boundary: PolygonLayer) -> PolygonLayer:
    """Clip polygon geometries to ``boundary``, dropping ones left empty."""
    require_same_crs(layer.frame, boundary.frame, stage="clip polygons")
    clipped = gpd.clip(layer.frame, boundary.frame, keep_geom_type=True)
    clipped = clipped[~clipped.geometry.is_empty & (clipped.geometry.area > 0)]
    # gpd.clip does not keep row order
    clipped = clipped.sort_index()
    logger.info("Clipped to %d of %d polygons", len(clipped), len(layer))
    return layer.with_frame(clipped.reset_index(drop=True))


__all__ = [
    "PREDICATES",
    "join_points_to_polygons",
    "subset_polygons",
    "clip_polygons",
]
