"""Record types passed between pipeline stages.

Polygon layers keep their geometry; aggregate, density and correlation rows
never do. Geometry goes back on only through an explicit join by identifier.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Dict, Iterable, List, Optional

import geopandas as gpd
import pandas as pd


@dataclass(frozen=True, eq=False)
class PolygonLayer:
    """Polygon features keyed by a string identifier column."""

    frame: gpd.GeoDataFrame
    id_col: str
    source: Optional[str] = None

    @property
    def crs(self):
        return self.frame.crs

    @property
    def ids(self) -> List[str]:
        return self.frame[self.id_col].tolist()

    def __len__(self) -> int:
        return len(self.frame)

    def with_frame(self, frame: gpd.GeoDataFrame) -> "PolygonLayer":
        return PolygonLayer(frame=frame, id_col=self.id_col, source=self.source)


@dataclass(frozen=True)
class AggregateRow:
    polygon_id: str
    count: int


@dataclass(frozen=True)
class DensityRow:
    polygon_id: str
    count: int
    area: float
    density: float
    unit: str = "ft2"


@dataclass(frozen=True)
class CorrelationRow:
    polygon_id: str
    density: float
    attributes: Dict[str, Optional[float]] = field(default_factory=dict)

    def value(self, name: str) -> Optional[float]:
        if name == "density":
            return self.density
        return self.attributes.get(name)


def rows_to_frame(rows: Iterable, id_col: str = "polygon_id") -> pd.DataFrame:
    """Flatten aggregate/density rows into a DataFrame keyed by ``id_col``."""
    records = [asdict(r) for r in rows]
    df = pd.DataFrame.from_records(records)
    if df.empty:
        return pd.DataFrame(columns=[id_col])
    return df.rename(columns={"polygon_id": id_col})


__all__ = [
    "PolygonLayer",
    "AggregateRow",
    "DensityRow",
    "CorrelationRow",
    "rows_to_frame",
]
