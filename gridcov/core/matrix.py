# gridcov/core/matrix.py
"""
Grid values matrices: N-dimensional, randomly addressable values on a grid.

A matrix is addressed with one integer index per axis. Matrices backed by a
numpy array store it with the axes reversed (the first axis varies fastest),
so a 2-D array for axes (X, Y) has shape (len(Y), len(X)) and is indexed
``array[y, x]``.

Block reads are always realized: ``read_block`` returns an in-memory matrix
covering exactly the requested sub-range, owned by the caller. Every matrix
must be closed by whoever owns it; matrices that wrap other matrices close
them in turn.
"""
from __future__ import annotations

import logging
import math
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Protocol, Sequence, runtime_checkable

import numpy as np

from gridcov import config

from .axis import GridAxis
from .coordinates import GridCoordinates, GridCoordinatesLike
from .exceptions import (
    AxisMismatch,
    ClosedResource,
    InvalidConstruction,
    InvalidCoordinates,
    InvalidDimensionality,
)

logger = logging.getLogger(__name__)

CoordsLike = GridCoordinatesLike | Sequence[int]


@runtime_checkable
class GridValuesMatrixLike(Protocol):
    """Structural interface implemented by every grid values matrix."""

    @property
    def axes(self) -> tuple[GridAxis, ...]: ...

    @property
    def ndim(self) -> int: ...

    @property
    def value_type(self) -> np.dtype: ...

    @property
    def closed(self) -> bool: ...

    def read_point(self, coords: CoordsLike) -> Any: ...

    def read_block(self, mins: CoordsLike, maxes: CoordsLike) -> "GridValuesMatrixLike": ...

    def to_numpy(self, *, copy: bool = False) -> np.ndarray: ...

    def close(self) -> None: ...


def _storage_shape(axes: Sequence[GridAxis]) -> tuple[int, ...]:
    return tuple(axis.size for axis in reversed(axes))


def _block_axes(
    axes: Sequence[GridAxis],
    mins: CoordsLike,
    maxes: CoordsLike,
) -> tuple[tuple[int, ...], tuple[int, ...], tuple[GridAxis, ...]]:
    lo = GridCoordinates.convert(mins).indices
    hi = GridCoordinates.convert(maxes).indices
    if len(lo) != len(axes) or len(hi) != len(axes):
        raise InvalidDimensionality(
            f"Block bounds must have {len(axes)} dimensions, got {len(lo)} and {len(hi)}."
        )
    sub_axes = tuple(axis.subrange(l, h) for axis, l, h in zip(axes, lo, hi))
    return lo, hi, sub_axes


def _warn_if_large(n_cells: int, what: str) -> None:
    if n_cells > config.MAX_BLOCK_CELLS:
        logger.warning(
            "Realizing %d cells for %s (MAX_BLOCK_CELLS=%d).",
            n_cells, what, config.MAX_BLOCK_CELLS,
        )


class GridValuesMatrix(ABC):
    """
    Base class for grid values matrices.

    Handles everything common to all backings: coordinate and block range
    validation, the closed state and context-manager support. Subclasses
    implement ``_read_point`` and ``_read_block`` on already validated
    indices, and ``_release`` to free whatever they hold.
    """

    def __init__(self, axes: Sequence[GridAxis], value_type: Any) -> None:
        axes = tuple(axes)
        if not axes:
            raise InvalidDimensionality("A grid values matrix needs at least one axis.")
        for axis in axes:
            if not isinstance(axis, GridAxis):
                raise InvalidConstruction(f"Expected GridAxis instances, got {axis!r}.")
        self._axes: tuple[GridAxis, ...] = axes
        self._value_type = np.dtype(value_type)
        self._closed = False
        self._close_lock = threading.Lock()

    # ---- shape ----
    @property
    def axes(self) -> tuple[GridAxis, ...]:
        return self._axes

    @property
    def ndim(self) -> int:
        return len(self._axes)

    @property
    def shape(self) -> tuple[int, ...]:
        """Axis sizes, in axis order."""
        return tuple(axis.size for axis in self._axes)

    @property
    def size(self) -> int:
        return math.prod(self.shape)

    @property
    def value_type(self) -> np.dtype:
        return self._value_type

    def get_axis(self, n: int) -> GridAxis:
        return self._axes[n]

    # ---- reads ----
    def read_point(self, coords: CoordsLike) -> Any:
        """Value of the cell at `coords` (one index per axis)."""
        self._ensure_open()
        indices = self._check_coords(coords)
        return self._read_point(indices)

    def read_block(self, mins: CoordsLike, maxes: CoordsLike) -> "GridValuesMatrix":
        """
        Realize the inclusive sub-range [mins, maxes] as a new matrix.

        The returned matrix has the same dimensionality, axes restricted to the
        requested ranges, and must be closed by the caller.
        """
        self._ensure_open()
        lo, hi, axes = _block_axes(self._axes, mins, maxes)
        return self._read_block(lo, hi, axes)

    def subset(self, mins: CoordsLike, maxes: CoordsLike) -> "SubsetGridValuesMatrix":
        """Deferred view over [mins, maxes]; the view takes ownership of this matrix."""
        self._ensure_open()
        return SubsetGridValuesMatrix(self, mins, maxes)

    def to_numpy(self, *, copy: bool = False) -> np.ndarray:
        """Whole matrix as a numpy array in storage order."""
        self._ensure_open()
        block = self._read_block(
            (0,) * self.ndim,
            tuple(axis.size - 1 for axis in self._axes),
            self._axes,
        )
        try:
            return block.to_numpy(copy=copy)
        finally:
            block.close()

    # ---- lifecycle ----
    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release held resources. Only the first call has an effect."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._release()

    def __enter__(self) -> "GridValuesMatrix":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        dims = ", ".join(f"{a.name}={a.size}" for a in self._axes)
        state = ", closed" if self._closed else ""
        return f"{type(self).__name__}({dims}, value_type={self._value_type}{state})"

    # ---- helpers ----
    def _ensure_open(self) -> None:
        if self._closed:
            raise ClosedResource(f"{type(self).__name__} has been closed.")

    def _check_coords(self, coords: CoordsLike) -> tuple[int, ...]:
        indices = GridCoordinates.convert(coords).indices
        if len(indices) != self.ndim:
            raise InvalidDimensionality(
                f"Expected {self.ndim} grid indices, got {len(indices)}."
            )
        for axis, i in zip(self._axes, indices):
            if not axis.contains(i):
                raise InvalidCoordinates(
                    f"Index {i} is outside axis '{axis.name}' {axis.index_range}."
                )
        return indices

    def _release(self) -> None:
        pass

    @abstractmethod
    def _read_point(self, indices: tuple[int, ...]) -> Any:
        ...

    @abstractmethod
    def _read_block(
        self,
        mins: tuple[int, ...],
        maxes: tuple[int, ...],
        axes: tuple[GridAxis, ...],
    ) -> "GridValuesMatrix":
        ...


class InMemoryGridValuesMatrix(GridValuesMatrix):
    """Matrix backed by a read-only numpy array (storage order, see module doc)."""

    def __init__(
        self,
        values: Any,
        axes: Sequence[GridAxis] | None = None,
        value_type: Any = None,
    ) -> None:
        arr = np.asarray(values, dtype=value_type)
        if arr.ndim == 0:
            raise InvalidDimensionality("In-memory matrix values must have at least one dimension.")

        if axes is None:
            axes = tuple(GridAxis(f"dim{i}", n) for i, n in enumerate(reversed(arr.shape)))
        else:
            axes = tuple(axes)
            expected = _storage_shape(axes)
            if arr.shape != expected:
                raise InvalidDimensionality(
                    f"Values of shape {arr.shape} do not match axes "
                    f"{[a.name for a in axes]} (expected shape {expected})."
                )

        super().__init__(axes, arr.dtype)
        view = arr.view()
        view.flags.writeable = False
        self._values: np.ndarray | None = view

    def _read_point(self, indices: tuple[int, ...]) -> Any:
        return self._values[indices[::-1]]

    def _read_block(self, mins, maxes, axes) -> "InMemoryGridValuesMatrix":
        slices = tuple(slice(lo, hi + 1) for lo, hi in zip(reversed(mins), reversed(maxes)))
        return InMemoryGridValuesMatrix(self._values[slices], axes)

    def to_numpy(self, *, copy: bool = False) -> np.ndarray:
        self._ensure_open()
        if copy:
            return self._values.copy()
        return self._values

    def _release(self) -> None:
        self._values = None


class LazyGridValuesMatrix(GridValuesMatrix):
    """
    Matrix whose values are read from a backing store on demand.

    `loader(mins, maxes)` returns the inclusive block [mins, maxes] as an array
    in storage order. Nothing is read at construction, and every point or block
    read calls the loader for exactly the cells requested. Loader calls are
    serialized, so a single backing handle may be shared between threads.
    `closer` is called once, on the first close().
    """

    def __init__(
        self,
        loader: Callable[[tuple[int, ...], tuple[int, ...]], Any],
        axes: Sequence[GridAxis],
        value_type: Any,
        *,
        closer: Callable[[], None] | None = None,
    ) -> None:
        if not callable(loader):
            raise InvalidConstruction("LazyGridValuesMatrix.loader must be callable.")
        if closer is not None and not callable(closer):
            raise InvalidConstruction("LazyGridValuesMatrix.closer must be callable.")
        super().__init__(axes, value_type)
        self._loader = loader
        self._closer = closer
        self._lock = threading.Lock()

    def _load(self, mins: tuple[int, ...], maxes: tuple[int, ...]) -> np.ndarray:
        with self._lock:
            raw = self._loader(mins, maxes)
        arr = np.asarray(raw, dtype=self.value_type)
        expected = tuple(hi - lo + 1 for lo, hi in zip(reversed(mins), reversed(maxes)))
        if arr.shape != expected:
            raise InvalidDimensionality(
                f"Loader returned shape {arr.shape} for block {mins}..{maxes}, expected {expected}."
            )
        return arr

    def _read_point(self, indices: tuple[int, ...]) -> Any:
        return self._load(indices, indices)[(0,) * self.ndim]

    def _read_block(self, mins, maxes, axes) -> InMemoryGridValuesMatrix:
        _warn_if_large(math.prod(a.size for a in axes), "lazy block read")
        return InMemoryGridValuesMatrix(self._load(mins, maxes), axes, self.value_type)

    def _release(self) -> None:
        if self._closer is not None:
            self._closer()


class SubsetGridValuesMatrix(GridValuesMatrix):
    """
    Deferred view over the inclusive sub-range [mins, maxes] of `source`.

    Index 0 on each axis of the view is index mins[i] of the source. The view
    owns its source: closing the view closes the source.
    """

    def __init__(self, source: GridValuesMatrixLike, mins: CoordsLike, maxes: CoordsLike) -> None:
        if not isinstance(source, GridValuesMatrixLike):
            raise InvalidConstruction("SubsetGridValuesMatrix.source must be a grid values matrix.")
        lo, _, axes = _block_axes(source.axes, mins, maxes)
        super().__init__(axes, source.value_type)
        self._source = source
        self._offset = lo

    @property
    def source(self) -> GridValuesMatrixLike:
        return self._source

    def _shift(self, indices: tuple[int, ...]) -> tuple[int, ...]:
        return tuple(i + o for i, o in zip(indices, self._offset))

    def _read_point(self, indices: tuple[int, ...]) -> Any:
        return self._source.read_point(self._shift(indices))

    def _read_block(self, mins, maxes, axes) -> GridValuesMatrixLike:
        return self._source.read_block(self._shift(mins), self._shift(maxes))

    def _release(self) -> None:
        self._source.close()


class DerivedGridValuesMatrix(GridValuesMatrix):
    """
    Matrix computed cell by cell from input matrices sharing the same axes.

    The value at `c` is ``transform([m.read_point(c) for m in inputs])``.
    Nothing is computed until a read: a point read calls `transform` once, a
    block read calls it once per cell of the block and for no other cell.
    The matrix owns its inputs and closes each of them exactly once.
    """

    def __init__(
        self,
        inputs: Sequence[GridValuesMatrixLike],
        transform: Callable[[list[Any]], Any],
        value_type: Any = None,
    ) -> None:
        inputs = tuple(inputs)
        if not inputs:
            raise InvalidConstruction("A derived matrix needs at least one input matrix.")
        if not callable(transform):
            raise InvalidConstruction("DerivedGridValuesMatrix.transform must be callable.")
        for m in inputs:
            if not isinstance(m, GridValuesMatrixLike):
                raise InvalidConstruction(f"Derived matrix inputs must be grid values matrices, got {m!r}.")

        axes = tuple(inputs[0].axes)
        for i, m in enumerate(inputs[1:], start=1):
            if tuple(m.axes) != axes:
                raise AxisMismatch(
                    f"Input {i} has axes {tuple(m.axes)}, expected {axes} (axes of input 0)."
                )

        if value_type is None:
            value_type = config.DEFAULT_DERIVED_DTYPE
        super().__init__(axes, value_type)
        self._inputs = inputs
        self._transform = transform
        logger.debug("Created derived matrix over %d input(s), shape %s.", len(inputs), self.shape)

    @property
    def inputs(self) -> tuple[GridValuesMatrixLike, ...]:
        return self._inputs

    def _coerce(self, value: Any) -> Any:
        # point reads and realized blocks must agree cell for cell
        return np.asarray(value, dtype=self.value_type)[()]

    def _read_point(self, indices: tuple[int, ...]) -> Any:
        return self._coerce(self._transform([m.read_point(indices) for m in self._inputs]))

    def _read_block(self, mins, maxes, axes) -> InMemoryGridValuesMatrix:
        shape = _storage_shape(axes)
        _warn_if_large(math.prod(shape), "derived block read")

        blocks: list[GridValuesMatrixLike] = []
        try:
            for m in self._inputs:
                blocks.append(m.read_block(mins, maxes))
            arrays = [b.to_numpy() for b in blocks]

            out = np.empty(shape, dtype=self.value_type)
            for pos in np.ndindex(*shape):
                out[pos] = self._coerce(self._transform([a[pos] for a in arrays]))
        finally:
            for b in blocks:
                b.close()

        logger.debug("Derived block %s..%s realized (%d cells).", mins, maxes, out.size)
        return InMemoryGridValuesMatrix(out, axes, self.value_type)

    def _release(self) -> None:
        errors: list[Exception] = []
        for m in self._inputs:
            try:
                m.close()
            except Exception as e:
                errors.append(e)
        logger.debug("Released derived matrix and %d input(s).", len(self._inputs))
        if errors:
            raise errors[0]
