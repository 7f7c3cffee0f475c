# gridcov/core/axis.py
from __future__ import annotations

from dataclasses import dataclass

from .exceptions import InvalidConstruction, InvalidCoordinates


@dataclass(frozen=True, slots=True)
class GridAxis:
    """
    One discrete dimension of a grid: a name and a number of cells.

    Valid indices along the axis are 0 .. size - 1. Axes are immutable and
    shared by reference between every matrix of the same shape.
    """
    name: str
    size: int

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise InvalidConstruction("GridAxis.name must be a string.")
        if isinstance(self.size, bool) or not isinstance(self.size, int):
            raise InvalidConstruction(f"GridAxis.size must be an integer, got {self.size!r}.")
        if self.size < 1:
            raise InvalidConstruction(f"Grid axis size must be >= 1, got {self.size}.")

    def __len__(self) -> int:
        return self.size

    @property
    def index_range(self) -> tuple[int, int]:
        """Inclusive (first, last) index extent."""
        return 0, self.size - 1

    def contains(self, index: int) -> bool:
        return 0 <= index < self.size

    def subrange(self, lo: int, hi: int) -> "GridAxis":
        """Axis with the same name covering the inclusive index range [lo, hi]."""
        if lo > hi or not self.contains(lo) or not self.contains(hi):
            raise InvalidCoordinates(
                f"Range [{lo}, {hi}] is not within axis '{self.name}' {self.index_range}."
            )
        if lo == 0 and hi == self.size - 1:
            return self
        return GridAxis(name=self.name, size=hi - lo + 1)
