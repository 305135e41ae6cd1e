"""Collision density pipeline: neighbourhoods, census tracts, ACS correlation."""
from __future__ import annotations

import os
import logging
import pathlib
import argparse
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd
import geopandas as gpd

from collision_density.data import acs, clean, export, ingest, spatial_join
from collision_density.features.aggregate import count_by_polygon, join_points_chunked
from collision_density.features.density import compute_densities
from collision_density.features.external import (
    correlation_frame,
    correlation_summary,
    join_external,
    long_to_wide,
)
from collision_density.features.merge import merge_onto_polygons
from collision_density.models import AggregateRow, CorrelationRow, DensityRow, PolygonLayer
from collision_density.utils.geo import to_projected

logger = logging.getLogger(__name__)

DEFAULT_NEIGHBORHOODS = pathlib.Path("data/raw/City_Clerk_Neighborhoods.shp")
DEFAULT_COLLISIONS = pathlib.Path("data/raw/collisions.csv")
DEFAULT_OUT_DIR = pathlib.Path("data/processed")
NEIGHBORHOOD_ID = "S_HOOD"
TRACT_ID = "GEOID"
TRACT_MODES = ("subset", "clip")


@dataclass(frozen=True)
class PipelineOptions:
    neighborhoods_path: pathlib.Path = DEFAULT_NEIGHBORHOODS
    collisions_path: pathlib.Path = DEFAULT_COLLISIONS
    neighborhood_id: str = NEIGHBORHOOD_ID
    year: str = "2018"
    x_col: str = "X"
    y_col: str = "Y"
    date_col: str = "INCDATE"
    strict_dates: bool = False
    predicate: str = "within"
    unit: str = "ft2"
    area_col: Optional[str] = None
    on_duplicate: str = "error"
    chunk_size: Optional[int] = None
    tracts_path: Optional[pathlib.Path] = None
    tract_id: str = TRACT_ID
    tract_mode: str = "subset"


@dataclass(frozen=True, eq=False)
class PipelineResult:
    layer: PolygonLayer
    points: gpd.GeoDataFrame
    joined: gpd.GeoDataFrame
    counts: List[AggregateRow]
    densities: List[DensityRow]
    merged: gpd.GeoDataFrame


def load_points(options: PipelineOptions, crs) -> gpd.GeoDataFrame:
    """Read and clean the collision CSV, declaring points in ``crs``.

    The collisions export is published in the same CRS as the boundary layer;
    the joiner still checks the CRS before any containment test.
    """
    raw = ingest.read_points_csv(options.collisions_path)
    return clean.clean_points(
        raw,
        year=options.year,
        crs=crs,
        x_col=options.x_col,
        y_col=options.y_col,
        date_col=options.date_col,
        strict_dates=options.strict_dates,
    )


def analyze_layer(
    layer: PolygonLayer,
    points: gpd.GeoDataFrame,
    options: PipelineOptions,
    area_col: Optional[str] = None,
) -> PipelineResult:
    """Stages 3-6: join, count, density and merge for one polygon layer."""
    if options.chunk_size:
        joined, counts = join_points_chunked(points, layer, chunk_size=options.chunk_size, predicate=options.predicate)
    else:
        joined = spatial_join.join_points_to_polygons(points, layer, predicate=options.predicate)
        counts = count_by_polygon(joined, layer.id_col)
    densities = compute_densities(layer, counts, unit=options.unit, area_col=area_col)
    merged = merge_onto_polygons(layer, densities=densities)
    return PipelineResult(layer=layer, points=points, joined=joined, counts=counts, densities=densities, merged=merged)


def run_neighborhood_analysis(options: PipelineOptions) -> PipelineResult:
    layer = ingest.read_polygons(
        options.neighborhoods_path, options.neighborhood_id, on_duplicate=options.on_duplicate
    )
    points = load_points(options, layer.crs)
    return analyze_layer(layer, points, options, area_col=options.area_col)


def prepare_tracts(options: PipelineOptions, neighborhoods: PolygonLayer) -> PolygonLayer:
    """Load tracts in the neighbourhood CRS and restrict them to the city outline."""
    if options.tracts_path is None:
        raise ValueError("tracts_path is required for the tract analysis")
    if options.tract_mode not in TRACT_MODES:
        raise ValueError(f"tract_mode must be one of {TRACT_MODES}, got {options.tract_mode!r}")
    tracts = ingest.read_polygons(options.tracts_path, options.tract_id, on_duplicate=options.on_duplicate)
    tracts = tracts.with_frame(to_projected(tracts.frame, neighborhoods.crs))
    boundary = ingest.dissolve_layer(neighborhoods)
    if options.tract_mode == "clip":
        return spatial_join.clip_polygons(tracts, boundary)
    return spatial_join.subset_polygons(tracts, boundary, predicate="intersects")


def run_tract_analysis(
    options: PipelineOptions,
    neighborhoods: PolygonLayer,
    points: gpd.GeoDataFrame,
) -> PipelineResult:
    tracts = prepare_tracts(options, neighborhoods)
    return analyze_layer(tracts, points, options)


def run_correlation(
    tract_result: PipelineResult,
    external_long: pd.DataFrame,
    variables: Optional[Sequence[str]] = None,
    id_col: str = TRACT_ID,
) -> List[CorrelationRow]:
    """Stage 7: pivot survey estimates wide and pair them with tract density."""
    wide = long_to_wide(external_long, id_col=id_col, variables=variables)
    return join_external(tract_result.densities, wide, id_col=id_col)


def summarize_correlation(rows: List[CorrelationRow], variables: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Per-variable r and fitted line of density on that variable."""
    if variables is None:
        variables = sorted({v for r in rows for v in r.attributes})
    summary = correlation_summary(rows, variables)
    for rec in summary.itertuples(index=False):
        logger.info("corr(density, %s) = %.3f (n=%d)", rec.variable, rec.r, rec.n)
    return summary


def write_outputs(result: PipelineResult, out_dir: pathlib.Path, name: str) -> None:
    shp = export.write_layer(result.merged, out_dir / f"{name}.shp")
    csv = export.write_table_csv(result.merged, out_dir / f"{name}.csv")
    print(f"Wrote {shp} and {csv} (rows={len(result.merged)})")


def main() -> None:
    parser = argparse.ArgumentParser(description="Count collisions per neighbourhood and census tract")
    parser.add_argument("--neighborhoods", default=DEFAULT_NEIGHBORHOODS, type=pathlib.Path)
    parser.add_argument("--neighborhood-id", default=NEIGHBORHOOD_ID)
    parser.add_argument("--collisions", default=DEFAULT_COLLISIONS, type=pathlib.Path)
    parser.add_argument("--year", default="2018")
    parser.add_argument("--x-col", default="X")
    parser.add_argument("--y-col", default="Y")
    parser.add_argument("--date-col", default="INCDATE")
    parser.add_argument("--strict-dates", action="store_true", help="Filter by parsed calendar year")
    parser.add_argument("--predicate", default="within", choices=spatial_join.PREDICATES)
    parser.add_argument("--unit", default="ft2", choices=["m2", "ft2", "km2", "mi2"])
    parser.add_argument("--area-col", default=None, help="Declared area attribute to use instead of geometry")
    parser.add_argument("--on-duplicate", default="error", choices=["error", "dissolve"])
    parser.add_argument("--chunk-size", default=None, type=int)
    parser.add_argument("--tracts", default=None, type=pathlib.Path)
    parser.add_argument("--tract-id", default=TRACT_ID)
    parser.add_argument("--tract-mode", default="subset", choices=TRACT_MODES)
    parser.add_argument("--acs-csv", default=None, type=pathlib.Path, help="Long-form GEOID,variable,estimate CSV")
    parser.add_argument("--acs-fields", nargs="+", default=None, help="ACS variables (default: household vehicles, B08201)")
    parser.add_argument("--state", default="WA")
    parser.add_argument("--county", default="033")
    parser.add_argument("--acs-year", default=2018, type=int)
    parser.add_argument("--census-key", default=os.environ.get("CENSUS_API_KEY"))
    parser.add_argument("--out-dir", default=DEFAULT_OUT_DIR, type=pathlib.Path)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    options = PipelineOptions(
        neighborhoods_path=args.neighborhoods,
        collisions_path=args.collisions,
        neighborhood_id=args.neighborhood_id,
        year=args.year,
        x_col=args.x_col,
        y_col=args.y_col,
        date_col=args.date_col,
        strict_dates=args.strict_dates,
        predicate=args.predicate,
        unit=args.unit,
        area_col=args.area_col,
        on_duplicate=args.on_duplicate,
        chunk_size=args.chunk_size,
        tracts_path=args.tracts,
        tract_id=args.tract_id,
        tract_mode=args.tract_mode,
    )

    hoods = run_neighborhood_analysis(options)
    write_outputs(hoods, args.out_dir, "neighborhood_collisions")

    if options.tracts_path is None:
        return
    tracts = run_tract_analysis(options, hoods.layer, hoods.points)
    write_outputs(tracts, args.out_dir, "tract_collisions")

    if args.acs_csv is not None:
        external = ingest.read_external_long(args.acs_csv, id_col=options.tract_id)
    elif args.census_key:
        external = acs.fetch_acs_long(
            args.acs_fields or acs.DEFAULT_ACS_FIELDS,
            state=args.state,
            county=args.county,
            year=args.acs_year,
            api_key=args.census_key,
        ).rename(columns={"GEOID": options.tract_id})
    else:
        print("No ACS source given (--acs-csv or --census-key); skipping correlation")
        return
    rows = run_correlation(tracts, external, variables=args.acs_fields, id_col=options.tract_id)
    out = export.write_table_csv(correlation_frame(rows), args.out_dir / "tract_correlation.csv")
    print(f"Wrote correlation table to {out} (rows={len(rows)})")
    summary = summarize_correlation(rows, variables=args.acs_fields)
    out = export.write_table_csv(summary, args.out_dir / "tract_correlation_summary.csv")
    print(f"Wrote correlation summary to {out} (rows={len(summary)})")


if __name__ == "__main__":
    main()
