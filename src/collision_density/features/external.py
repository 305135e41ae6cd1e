"""Reshape external survey estimates and correlate them with density."""
from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from collision_density.errors import JoinKeyCollisionError, SchemaError
from collision_density.models import CorrelationRow, DensityRow

logger = logging.getLogger(__name__)


def long_to_wide(
    df: pd.DataFrame,
    id_col: str = "GEOID",
    variable_col: str = "variable",
    value_col: str = "estimate",
    variables: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Pivot (id, variable, value) rows to one row per id, one column per variable.

    An identifier lacking a variable gets a null in that column; it is never
    dropped. Listing ``variables`` guarantees those columns exist even if no
    identifier reports them.
    """
    stage = "reshape external"
    missing = [c for c in (id_col, variable_col, value_col) if c not in df.columns]
    if missing:
        raise SchemaError(f"missing columns {missing}", stage=stage)
    keyed = df[[id_col, variable_col, value_col]].copy()
    keyed[id_col] = keyed[id_col].astype(str)
    dupes = keyed[keyed.duplicated(subset=[id_col, variable_col])]
    if not dupes.empty:
        pairs = list(dupes[[id_col, variable_col]].itertuples(index=False, name=None))
        raise JoinKeyCollisionError(f"repeated (id, variable) pairs: {pairs[:5]}", stage=stage)

    wide = keyed.pivot(index=id_col, columns=variable_col, values=value_col)
    if variables is not None:
        wide = wide.reindex(columns=list(variables))
    wide = wide.sort_index().reset_index()
    wide.columns.name = None
    return wide


def _optional_float(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def join_external(
    densities: Iterable[DensityRow],
    wide: pd.DataFrame,
    id_col: str = "GEOID",
) -> List[CorrelationRow]:
    """CorrelationRow per density row with the matching external values (or None)."""
    if id_col not in wide.columns:
        raise SchemaError(f"identifier column {id_col!r} missing from external table", stage="join external")
    table = wide.assign(**{id_col: wide[id_col].astype(str)}).set_index(id_col)
    if table.index.duplicated().any():
        raise JoinKeyCollisionError(f"duplicate {id_col} in external table", stage="join external")
    variables = list(table.columns)

    rows = []
    n_missing = 0
    for d in densities:
        if d.polygon_id in table.index:
            values = {v: _optional_float(table.at[d.polygon_id, v]) for v in variables}
        else:
            n_missing += 1
            values = {v: None for v in variables}
        rows.append(CorrelationRow(polygon_id=d.polygon_id, density=d.density, attributes=values))
    if n_missing:
        logger.warning("%d polygons have no external attributes", n_missing)
    return rows


def correlation_frame(rows: Iterable[CorrelationRow]) -> pd.DataFrame:
    records = [{"polygon_id": r.polygon_id, "density": r.density, **r.attributes} for r in rows]
    return pd.DataFrame.from_records(records)


def _complete_pairs(rows: Iterable[CorrelationRow], attribute: str, metric: str) -> Tuple[np.ndarray, np.ndarray]:
    """(metric values, attribute values) for rows where both are present."""
    metric_vals, attr_vals = [], []
    for r in rows:
        m, a = r.value(metric), r.value(attribute)
        if m is None or a is None or math.isnan(m) or math.isnan(a):
            continue
        metric_vals.append(m)
        attr_vals.append(a)
    return np.asarray(metric_vals, dtype=float), np.asarray(attr_vals, dtype=float)


def correlate(
    rows: Sequence[CorrelationRow],
    attribute: str,
    metric: str = "density",
    method: str = "pearson",
) -> float:
    """Correlation between ``metric`` and ``attribute`` over complete rows.

    Returns NaN when fewer than two complete rows remain.
    """
    m, a = _complete_pairs(rows, attribute, metric)
    if len(m) < 2:
        return float("nan")
    return float(pd.Series(m).corr(pd.Series(a), method=method))


def fit_line(
    rows: Sequence[CorrelationRow],
    attribute: str,
    metric: str = "density",
) -> Tuple[float, float]:
    """Least-squares (slope, intercept) of ``metric`` on ``attribute``."""
    m, a = _complete_pairs(rows, attribute, metric)
    if len(m) < 2:
        raise ValueError(f"need at least two complete rows to fit {metric} ~ {attribute}")
    slope, intercept = np.polyfit(a, m, 1)
    return float(slope), float(intercept)


def correlation_summary(
    rows: Sequence[CorrelationRow],
    variables: Sequence[str],
    metric: str = "density",
) -> pd.DataFrame:
    """One row per variable: complete-pair count, Pearson r, slope and intercept.

    Variables with fewer than two complete rows get NaN statistics.
    """
    records = []
    for var in variables:
        n = len(_complete_pairs(rows, var, metric)[0])
        slope = intercept = float("nan")
        if n >= 2:
            slope, intercept = fit_line(rows, var, metric=metric)
        records.append({
            "variable": var,
            "n": n,
            "r": correlate(rows, var, metric=metric),
            "slope": slope,
            "intercept": intercept,
        })
    return pd.DataFrame.from_records(records, columns=["variable", "n", "r", "slope", "intercept"])


__all__ = [
    "long_to_wide",
    "join_external",
    "correlation_frame",
    "correlate",
    "fit_line",
    "correlation_summary",
]
