"""Collision counts and densities per neighbourhood and census tract."""
from collision_density.errors import (
    PipelineError,
    LoadError,
    SchemaError,
    CrsMismatchError,
    DegenerateGeometryError,
    JoinKeyCollisionError,
)
from collision_density.models import (
    PolygonLayer,
    AggregateRow,
    DensityRow,
    CorrelationRow,
)

__version__ = "0.1.0"

__all__ = [
    "PipelineError",
    "LoadError",
    "SchemaError",
    "CrsMismatchError",
    "DegenerateGeometryError",
    "JoinKeyCollisionError",
    "PolygonLayer",
    "AggregateRow",
    "DensityRow",
    "CorrelationRow",
]
