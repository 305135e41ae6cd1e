"""Tests for collision_density.features.external."""
import math

import pytest
import pandas as pd

from collision_density.errors import JoinKeyCollisionError, SchemaError
from collision_density.features.external import (
    correlate,
    correlation_frame,
    correlation_summary,
    fit_line,
    join_external,
    long_to_wide,
)
from collision_density.models import CorrelationRow, DensityRow


@pytest.fixture
def long_rows():
    return pd.DataFrame(
        [("T1", "varX", 10), ("T1", "varY", 20), ("T2", "varX", 5)],
        columns=["GEOID", "variable", "estimate"],
    )


def test_long_to_wide(long_rows):
    wide = long_to_wide(long_rows)
    assert wide["GEOID"].tolist() == ["T1", "T2"]
    assert wide["varX"].tolist() == [10, 5]
    assert wide.loc[0, "varY"] == 20
    assert pd.isna(wide.loc[1, "varY"])


def test_long_to_wide_requested_variables(long_rows):
    wide = long_to_wide(long_rows, variables=["varX", "varY", "varZ"])
    assert list(wide.columns) == ["GEOID", "varX", "varY", "varZ"]
    assert wide["varZ"].isna().all()
    assert len(wide) == 2


def test_long_to_wide_duplicate_pairs(long_rows):
    doubled = pd.concat([long_rows, long_rows.iloc[[0]]])
    with pytest.raises(JoinKeyCollisionError):
        long_to_wide(doubled)


def test_long_to_wide_missing_columns():
    with pytest.raises(SchemaError):
        long_to_wide(pd.DataFrame({"GEOID": ["T1"]}))


def test_join_external_keeps_every_density_row(long_rows):
    densities = [
        DensityRow("T1", 4, 2.0, 2.0),
        DensityRow("T2", 1, 1.0, 1.0),
        DensityRow("T3", 3, 1.0, 3.0),
    ]
    rows = join_external(densities, long_to_wide(long_rows))
    assert [r.polygon_id for r in rows] == ["T1", "T2", "T3"]
    assert rows[0].attributes == {"varX": 10.0, "varY": 20.0}
    assert rows[1].attributes == {"varX": 5.0, "varY": None}
    assert rows[2].attributes == {"varX": None, "varY": None}


def test_join_external_missing_id_column():
    with pytest.raises(SchemaError):
        join_external([], pd.DataFrame({"tract": ["T1"]}))


def _rows(pairs):
    return [CorrelationRow(f"T{i}", d, {"vehicles": v}) for i, (d, v) in enumerate(pairs)]


def test_correlate_perfect_negative():
    rows = _rows([(1.0, 30.0), (2.0, 20.0), (3.0, 10.0), (4.0, None)])
    assert correlate(rows, "vehicles") == pytest.approx(-1.0)
    assert correlate(rows, "vehicles", method="spearman") == pytest.approx(-1.0)


def test_correlate_too_few_rows():
    assert math.isnan(correlate(_rows([(1.0, 2.0), (2.0, None)]), "vehicles"))


def test_fit_line():
    rows = _rows([(1.0, 0.0), (3.0, 1.0), (5.0, 2.0)])
    slope, intercept = fit_line(rows, "vehicles")
    assert slope == pytest.approx(2.0)
    assert intercept == pytest.approx(1.0)


def test_fit_line_needs_two_rows():
    with pytest.raises(ValueError):
        fit_line(_rows([(1.0, 0.0)]), "vehicles")


def test_correlation_frame():
    df = correlation_frame(_rows([(1.0, 2.0), (2.0, None)]))
    assert list(df.columns) == ["polygon_id", "density", "vehicles"]
    assert pd.isna(df.loc[1, "vehicles"])


def test_correlate_rank_methods():
    rows = _rows([(1.0, 10.0), (2.0, 40.0), (3.0, 90.0)])
    assert correlate(rows, "vehicles", method="spearman") == pytest.approx(1.0)
    assert correlate(rows, "vehicles", method="kendall") == pytest.approx(1.0)


def test_correlation_summary():
    rows = [
        CorrelationRow("T0", 1.0, {"vehicles": 0.0, "households": 5.0}),
        CorrelationRow("T1", 3.0, {"vehicles": 1.0, "households": None}),
        CorrelationRow("T2", 5.0, {"vehicles": 2.0, "households": None}),
    ]
    summary = correlation_summary(rows, ["vehicles", "households"]).set_index("variable")
    assert list(summary.columns) == ["n", "r", "slope", "intercept"]
    assert summary.loc["vehicles", "n"] == 3
    assert summary.loc["vehicles", "r"] == pytest.approx(1.0)
    assert summary.loc["vehicles", "slope"] == pytest.approx(2.0)
    assert summary.loc["vehicles", "intercept"] == pytest.approx(1.0)
    assert summary.loc["households", "n"] == 1
    assert summary.loc[["households"], ["r", "slope", "intercept"]].isna().all().all()
