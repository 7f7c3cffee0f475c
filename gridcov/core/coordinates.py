# gridcov/core/coordinates.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Protocol, Sequence, runtime_checkable

import numpy as np

from .exceptions import InvalidCoordinates, InvalidDimensionality


@runtime_checkable
class GridCoordinatesLike(Protocol):
    """Structural interface for anything addressing one cell of a grid."""

    @property
    def ndim(self) -> int: ...

    @property
    def indices(self) -> tuple[int, ...]: ...

    def index_at(self, dim: int) -> int: ...


def _as_indices(coords: GridCoordinatesLike | Sequence[int]) -> tuple[int, ...]:
    if isinstance(coords, GridCoordinatesLike):
        return tuple(coords.indices)
    if isinstance(coords, np.ndarray) and coords.ndim == 1:
        return tuple(coords.tolist())
    if isinstance(coords, (str, bytes)) or not isinstance(coords, Sequence):
        raise InvalidCoordinates(f"Cannot interpret {coords!r} as grid coordinates.")
    return tuple(coords)


@dataclass(frozen=True, slots=True, eq=False)
class GridCoordinates:
    """
    Immutable N-dimensional integer index tuple addressing one grid cell.

    Equality and hashing depend only on the indices, so coordinates of
    different concrete classes carrying the same indices are interchangeable
    as dict keys.
    """
    indices: tuple[int, ...]

    def __post_init__(self) -> None:
        idx = _as_indices(self.indices)
        normalized = []
        for i in idx:
            if isinstance(i, bool) or not isinstance(i, int):
                # accept numpy integers and the like
                try:
                    i = int(i.__index__())
                except (AttributeError, TypeError) as e:
                    raise InvalidCoordinates(f"Grid index must be an integer, got {i!r}.") from e
            if i < 0:
                raise InvalidCoordinates(f"Grid index must be >= 0, got {i}.")
            normalized.append(i)
        if not normalized:
            raise InvalidDimensionality("Grid coordinates need at least one dimension.")
        object.__setattr__(self, "indices", tuple(normalized))

    @classmethod
    def of(cls, *indices: int) -> "GridCoordinates":
        return cls(indices)

    @classmethod
    def zero(cls, ndim: int) -> "GridCoordinates":
        """Origin of an `ndim`-dimensional grid (all indices 0)."""
        if ndim < 1:
            raise InvalidDimensionality(f"ndim must be >= 1, got {ndim}.")
        return cls((0,) * ndim)

    @classmethod
    def convert(cls, coords: GridCoordinatesLike | Sequence[int]) -> "GridCoordinates":
        """
        Return `coords` as an instance of this class.

        No new object is created when `coords` already is one.
        """
        if isinstance(coords, cls):
            return coords
        return cls(_as_indices(coords))

    @property
    def ndim(self) -> int:
        return len(self.indices)

    def index_at(self, dim: int) -> int:
        return self.indices[dim]

    def __len__(self) -> int:
        return len(self.indices)

    def __iter__(self) -> Iterator[int]:
        return iter(self.indices)

    def __eq__(self, other: object) -> bool:
        if other is self:
            return True
        if isinstance(other, GridCoordinatesLike):
            return self.indices == tuple(other.indices)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.indices)

    def __str__(self) -> str:
        return ",".join(str(i) for i in self.indices)


@dataclass(frozen=True, slots=True, eq=False)
class GridCoordinates2D(GridCoordinates):
    """Two-dimensional coordinates: dimension 0 is x, dimension 1 is y."""

    def __post_init__(self) -> None:
        GridCoordinates.__post_init__(self)
        if len(self.indices) != 2:
            raise InvalidDimensionality(
                f"Grid co-ordinates must have 2 dimensions, got {len(self.indices)}."
            )

    @classmethod
    def of(cls, x_index: int, y_index: int) -> "GridCoordinates2D":  # type: ignore[override]
        return cls((x_index, y_index))

    @classmethod
    def zero(cls, ndim: int = 2) -> "GridCoordinates2D":
        if ndim != 2:
            raise InvalidDimensionality(f"GridCoordinates2D has 2 dimensions, not {ndim}.")
        return cls((0, 0))

    @property
    def x_index(self) -> int:
        return self.indices[0]

    @property
    def y_index(self) -> int:
        return self.indices[1]
