"""Polygon area and count-per-area density.

Area method depends on the CRS:

- projected CRS: planar area in CRS units squared, scaled to square metres by
  the CRS axis unit (so US-survey-foot state planes work), then to ``unit``;
- geographic CRS: geodesic area on the CRS ellipsoid via ``pyproj.Geod``.

A naive planar area on longitude/latitude is never used.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from pyproj import CRS

from collision_density.errors import CrsMismatchError, DegenerateGeometryError, SchemaError
from collision_density.models import AggregateRow, DensityRow, PolygonLayer
from collision_density.utils.geo import AREA_UNITS, metres_per_unit

logger = logging.getLogger(__name__)


def _square_metres(geometry, crs: CRS) -> float:
    if crs.is_geographic:
        geod = crs.get_geod()
        area, _perimeter = geod.geometry_area_perimeter(geometry)
        return abs(area)
    factor = metres_per_unit(crs)
    if factor is None:
        logger.warning("CRS %s has no linear unit; assuming metres", crs.to_string())
        factor = 1.0
    return geometry.area * factor * factor


def polygon_area(geometry, crs, unit: str = "ft2", polygon_id: Optional[str] = None) -> float:
    """Area of ``geometry`` in ``unit`` (m2, ft2, km2, mi2)."""
    if unit not in AREA_UNITS:
        raise ValueError(f"unit must be one of {sorted(AREA_UNITS)}, got {unit!r}")
    if crs is None:
        raise CrsMismatchError("cannot compute area without a CRS", stage="density")
    crs = CRS.from_user_input(crs)
    area = _square_metres(geometry, crs) * AREA_UNITS[unit]
    if not area > 0:
        raise DegenerateGeometryError(
            f"polygon {polygon_id!r} has non-positive area {area}", stage="density"
        )
    return area


def density(count: int, area: float, polygon_id: Optional[str] = None) -> float:
    if not area > 0:
        raise DegenerateGeometryError(
            f"polygon {polygon_id!r} has non-positive area {area}", stage="density"
        )
    return count / area


def compute_densities(
    layer: PolygonLayer,
    counts: Iterable[AggregateRow],
    unit: str = "ft2",
    area_col: Optional[str] = None,
) -> List[DensityRow]:
    """DensityRow for every AggregateRow; polygons without counts get none.

    ``area_col`` names a declared area attribute already expressed in ``unit``;
    otherwise the area is computed from the geometry.
    """
    frame = layer.frame.set_index(layer.id_col, drop=False)
    if area_col is not None and area_col not in frame.columns:
        raise SchemaError(f"area column {area_col!r} not in polygon layer", stage="density", path=layer.source)

    rows = []
    for agg in counts:
        if agg.polygon_id not in frame.index:
            raise SchemaError(
                f"identifier {agg.polygon_id!r} not in polygon layer", stage="density", path=layer.source
            )
        if area_col is not None:
            area = float(frame.at[agg.polygon_id, area_col])
        else:
            area = polygon_area(frame.geometry.loc[agg.polygon_id], layer.crs, unit=unit, polygon_id=agg.polygon_id)
        rows.append(DensityRow(
            polygon_id=agg.polygon_id,
            count=agg.count,
            area=area,
            density=density(agg.count, area, polygon_id=agg.polygon_id),
            unit=unit,
        ))
    logger.info("Computed density for %d of %d polygons", len(rows), len(layer))
    return rows


__all__ = ["polygon_area", "density", "compute_densities"]
