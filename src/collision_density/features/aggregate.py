"""Count joined points per polygon identifier."""
from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, Iterator, List, Tuple

import pandas as pd
import geopandas as gpd

from collision_density.errors import SchemaError
from collision_density.models import AggregateRow, PolygonLayer
from collision_density.data.spatial_join import join_points_to_polygons

logger = logging.getLogger(__name__)


def count_by_polygon(joined: pd.DataFrame, id_col: str) -> List[AggregateRow]:
    """One AggregateRow per non-null identifier, sorted by identifier.

    Rows with a null identifier (points outside every polygon) are excluded.
    Geometry is ignored; only the identifier column is read.
    """
    if id_col not in joined.columns:
        raise SchemaError(f"identifier column {id_col!r} missing from joined points", stage="aggregate")
    ids = joined[id_col]
    inside = ids[ids.notna()].astype(str)
    logger.info("Aggregating %d points (%d outside all polygons)", len(inside), len(ids) - len(inside))
    counts = inside.groupby(inside).size().sort_index()
    return [AggregateRow(polygon_id=k, count=int(v)) for k, v in counts.items()]


def merge_partial_counts(*row_sets: Iterable[AggregateRow]) -> List[AggregateRow]:
    """Sum per-identifier counts from independently aggregated partitions."""
    totals: Counter = Counter()
    for rows in row_sets:
        for row in rows:
            totals[row.polygon_id] += row.count
    return [AggregateRow(polygon_id=k, count=totals[k]) for k in sorted(totals)]


def iter_joined_chunks(
    points: gpd.GeoDataFrame,
    layer: PolygonLayer,
    chunk_size: int = 10000,
    predicate: str = "within",
) -> Iterator[gpd.GeoDataFrame]:
    """Join points to ``layer`` ``chunk_size`` rows at a time; the layer is shared read-only."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    # an empty point frame still yields one (empty) joined chunk
    for start in range(0, max(len(points), 1), chunk_size):
        chunk = points.iloc[start:start + chunk_size]
        yield join_points_to_polygons(chunk, layer, predicate=predicate)


def join_points_chunked(
    points: gpd.GeoDataFrame,
    layer: PolygonLayer,
    chunk_size: int = 10000,
    predicate: str = "within",
) -> Tuple[gpd.GeoDataFrame, List[AggregateRow]]:
    """Chunked join and count in one pass: (joined points, merged counts)."""
    parts, partials = [], []
    for joined in iter_joined_chunks(points, layer, chunk_size=chunk_size, predicate=predicate):
        parts.append(joined)
        partials.append(count_by_polygon(joined, layer.id_col))
    logger.info("Joined %d points in %d chunks", len(points), len(parts))
    return pd.concat(parts), merge_partial_counts(*partials)


def count_points_chunked(
    points: gpd.GeoDataFrame,
    layer: PolygonLayer,
    chunk_size: int = 10000,
    predicate: str = "within",
) -> List[AggregateRow]:
    """Join and count points in chunks, keeping only the counts."""
    partials = [
        count_by_polygon(joined, layer.id_col)
        for joined in iter_joined_chunks(points, layer, chunk_size=chunk_size, predicate=predicate)
    ]
    return merge_partial_counts(*partials)


__all__ = [
    "count_by_polygon",
    "merge_partial_counts",
    "iter_joined_chunks",
    "join_points_chunked",
    "count_points_chunked",
]
