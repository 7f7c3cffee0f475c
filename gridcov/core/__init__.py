# gridcov/core/__init__.py
"""
Core domain objects for gridcov.

This module defines the storage-agnostic data model:
- GridAxis: one named, sized dimension of a grid
- GridCoordinates / GridCoordinates2D: integer index tuples addressing cells
- GridValuesMatrix: lazily readable N-dimensional values (in-memory, lazy,
  subset view, derived)
- Plugin: derived fields computed on demand from other fields
- Coverage: stored and derived fields looked up by name

The core layer is independent from I/O and storage formats.
"""

from .axis import GridAxis
from .coordinates import GridCoordinates, GridCoordinates2D, GridCoordinatesLike
from .metadata import ScalarMeta, RangeMeta
from .matrix import (
    GridValuesMatrix,
    GridValuesMatrixLike,
    InMemoryGridValuesMatrix,
    LazyGridValuesMatrix,
    SubsetGridValuesMatrix,
    DerivedGridValuesMatrix,
)
from .plugin import Plugin, PluginFunctions
from .coverage import Coverage, StoredField
from .exceptions import (
    CoreError,
    InvalidConstruction,
    InvalidDimensionality,
    InvalidCoordinates,
    AxisMismatch,
    InvalidCoverage,
    ArityMismatch,
    ClosedResource,
    UnknownField,
    FieldNotFound,
)


__all__ = [
    # grid
    "GridAxis",
    "GridCoordinates",
    "GridCoordinates2D",
    "GridCoordinatesLike",

    # matrices
    "GridValuesMatrix",
    "GridValuesMatrixLike",
    "InMemoryGridValuesMatrix",
    "LazyGridValuesMatrix",
    "SubsetGridValuesMatrix",
    "DerivedGridValuesMatrix",

    # plugins / coverage
    "Plugin",
    "PluginFunctions",
    "Coverage",
    "StoredField",

    # metadata
    "ScalarMeta",
    "RangeMeta",

    # exceptions
    "CoreError",
    "InvalidConstruction",
    "InvalidDimensionality",
    "InvalidCoordinates",
    "AxisMismatch",
    "InvalidCoverage",
    "ArityMismatch",
    "ClosedResource",
    "UnknownField",
    "FieldNotFound",
]
