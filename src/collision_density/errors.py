"""Error taxonomy for the collision density pipeline.

Every error aborts the run. The message names the failing stage and, where
known, the offending file or record.
"""
from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline failures."""

    def __init__(self, detail: str, *, stage: str, path: Optional[str] = None) -> None:
        self.detail = detail
        self.stage = stage
        self.path = None if path is None else str(path)
        super().__init__(str(self))

    def __str__(self) -> str:
        msg = f"[{self.stage}] {self.detail}"
        if self.path:
            msg += f" ({self.path})"
        return msg


class LoadError(PipelineError, OSError):
    """Input file missing, unreadable, or without usable geometry."""


class SchemaError(PipelineError, ValueError):
    """Expected column absent or misnamed."""


class CrsMismatchError(PipelineError, ValueError):
    """Geometries are not in a common coordinate reference system."""


class DegenerateGeometryError(PipelineError, ValueError):
    """Zero or negative area; density is undefined."""


class JoinKeyCollisionError(PipelineError, ValueError):
    """Join identifiers are not unique."""


__all__ = [
    "PipelineError",
    "LoadError",
    "SchemaError",
    "CrsMismatchError",
    "DegenerateGeometryError",
    "JoinKeyCollisionError",
]
