# test/test_matrix.py
import threading

import numpy as np
import pytest

from gridcov.core import (
    AxisMismatch,
    ClosedResource,
    DerivedGridValuesMatrix,
    GridAxis,
    GridCoordinates2D,
    GridValuesMatrixLike,
    InMemoryGridValuesMatrix,
    InvalidConstruction,
    InvalidCoordinates,
    InvalidDimensionality,
    LazyGridValuesMatrix,
    SubsetGridValuesMatrix,
)

X = GridAxis("x", 3)
Y = GridAxis("y", 2)


def _grid(values, axes=(X, Y)):
    return InMemoryGridValuesMatrix(np.array(values, dtype=float), axes)


class CountingMatrix(InMemoryGridValuesMatrix):
    """In-memory matrix recording how often it is released and read."""

    def __init__(self, values, axes=(X, Y)):
        super().__init__(np.array(values, dtype=float), axes)
        self.releases = 0
        self.point_reads = []

    def _read_point(self, indices):
        self.point_reads.append(indices)
        return super()._read_point(indices)

    def _release(self):
        self.releases += 1
        super()._release()


# ---- in-memory ----
def test_in_memory_shape_and_point_reads():
    m = _grid([[1, 2, 3], [4, 5, 6]])
    assert m.axes == (X, Y)
    assert m.ndim == 2
    assert m.shape == (3, 2)
    assert m.size == 6
    assert m.get_axis(1) is Y
    assert m.value_type == np.dtype("float64")

    # array is [y, x]; coordinates are (x, y)
    assert m.read_point((0, 0)) == 1
    assert m.read_point((2, 0)) == 3
    assert m.read_point(GridCoordinates2D.of(2, 1)) == 6
    assert m.read_point([1, 1]) == 5


def test_in_memory_default_axes():
    m = InMemoryGridValuesMatrix(np.zeros((2, 3)))
    assert [a.name for a in m.axes] == ["dim0", "dim1"]
    assert m.shape == (3, 2)


def test_in_memory_rejects_shape_mismatch():
    with pytest.raises(InvalidDimensionality):
        InMemoryGridValuesMatrix(np.zeros((3, 2)), (X, Y))
    with pytest.raises(InvalidDimensionality):
        InMemoryGridValuesMatrix(np.zeros(3), (X, Y))
    with pytest.raises(InvalidDimensionality):
        InMemoryGridValuesMatrix(np.float64(1.0))


def test_point_read_validation():
    m = _grid([[1, 2, 3], [4, 5, 6]])
    with pytest.raises(InvalidDimensionality):
        m.read_point((1,))
    with pytest.raises(InvalidDimensionality):
        m.read_point((1, 1, 0))
    with pytest.raises(InvalidCoordinates):
        m.read_point((3, 0))
    with pytest.raises(InvalidCoordinates):
        m.read_point((0, 2))


def test_in_memory_values_are_read_only_and_independent_of_source():
    src = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    m = InMemoryGridValuesMatrix(src, (X, Y))
    arr = m.to_numpy()
    with pytest.raises(ValueError):
        arr[0, 0] = 99.0
    # the caller's array stays writable
    src[0, 0] = 10.0
    assert src.flags.writeable

    cp = m.to_numpy(copy=True)
    cp[0, 0] = -1.0
    assert m.read_point((0, 0)) == 10.0


def test_in_memory_read_block():
    m = _grid([[1, 2, 3], [4, 5, 6]])
    block = m.read_block((1, 0), (2, 1))
    assert isinstance(block, InMemoryGridValuesMatrix)
    assert block.axes == (GridAxis("x", 2), GridAxis("y", 2))
    assert block.read_point((0, 0)) == 2
    assert block.read_point((1, 1)) == 6
    np.testing.assert_array_equal(block.to_numpy(), [[2, 3], [5, 6]])

    # closing a block leaves the source usable
    block.close()
    assert m.read_point((0, 0)) == 1


@pytest.mark.parametrize("mins,maxes,exc", [
    ((2, 0), (1, 1), InvalidCoordinates),
    ((0, 0), (3, 1), InvalidCoordinates),
    ((0,), (1,), InvalidDimensionality),
    ((0, 0, 0), (1, 1, 1), InvalidDimensionality),
])
def test_read_block_validation(mins, maxes, exc):
    m = _grid([[1, 2, 3], [4, 5, 6]])
    with pytest.raises(exc):
        m.read_block(mins, maxes)


def test_three_dimensional_storage_order():
    t = GridAxis("t", 4)
    values = np.arange(24).reshape(4, 2, 3)  # [t, y, x]
    m = InMemoryGridValuesMatrix(values, (X, Y, t))
    assert m.shape == (3, 2, 4)
    assert m.read_point((2, 1, 3)) == values[3, 1, 2]
    block = m.read_block((0, 1, 2), (1, 1, 3))
    assert block.shape == (2, 1, 2)
    np.testing.assert_array_equal(block.to_numpy(), values[2:4, 1:2, 0:2])


# ---- lifecycle ----
def test_close_is_idempotent_and_reads_fail_afterwards():
    m = CountingMatrix([[1, 2, 3], [4, 5, 6]])
    assert not m.closed
    m.close()
    m.close()
    assert m.closed
    assert m.releases == 1
    with pytest.raises(ClosedResource):
        m.read_point((0, 0))
    with pytest.raises(ClosedResource):
        m.read_block((0, 0), (1, 1))
    with pytest.raises(ClosedResource):
        m.to_numpy()


def test_context_manager_closes():
    with CountingMatrix([[1, 2, 3], [4, 5, 6]]) as m:
        assert m.read_point((1, 0)) == 2
    assert m.closed
    assert m.releases == 1


def test_matrices_satisfy_protocol():
    assert isinstance(_grid([[1, 2, 3], [4, 5, 6]]), GridValuesMatrixLike)


# ---- lazy ----
def test_lazy_matrix_reads_only_requested_cells():
    data = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    calls = []

    def loader(mins, maxes):
        calls.append((mins, maxes))
        return data[mins[1]:maxes[1] + 1, mins[0]:maxes[0] + 1]

    closed = {"n": 0}

    def closer():
        closed["n"] += 1

    m = LazyGridValuesMatrix(loader, (X, Y), float, closer=closer)
    assert calls == []

    assert m.read_point((2, 1)) == 6.0
    assert calls == [((2, 1), (2, 1))]

    block = m.read_block((0, 1), (1, 1))
    assert calls[-1] == ((0, 1), (1, 1))
    assert isinstance(block, InMemoryGridValuesMatrix)
    np.testing.assert_array_equal(block.to_numpy(), [[4.0, 5.0]])

    m.close()
    m.close()
    assert closed["n"] == 1
    with pytest.raises(ClosedResource):
        m.read_point((0, 0))


def test_lazy_matrix_rejects_bad_loader_output():
    m = LazyGridValuesMatrix(lambda mins, maxes: np.zeros((5, 5)), (X, Y), float)
    with pytest.raises(InvalidDimensionality):
        m.read_point((0, 0))


def test_lazy_matrix_rejects_non_callable_loader():
    with pytest.raises(InvalidConstruction):
        LazyGridValuesMatrix("nope", (X, Y), float)  # type: ignore[arg-type]


def test_lazy_matrix_serializes_loader_calls():
    data = np.arange(6, dtype=float).reshape(2, 3)
    active = {"n": 0, "max": 0}
    guard = threading.Lock()

    def loader(mins, maxes):
        with guard:
            active["n"] += 1
            active["max"] = max(active["max"], active["n"])
        try:
            return data[mins[1]:maxes[1] + 1, mins[0]:maxes[0] + 1]
        finally:
            with guard:
                active["n"] -= 1

    m = LazyGridValuesMatrix(loader, (X, Y), float)
    threads = [
        threading.Thread(target=lambda: [m.read_point((i % 3, i % 2)) for i in range(50)])
        for _ in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert active["max"] == 1


# ---- subset view ----
def test_subset_view_offsets_and_owns_source():
    src = CountingMatrix([[1, 2, 3], [4, 5, 6]])
    view = src.subset((1, 0), (2, 1))
    assert isinstance(view, SubsetGridValuesMatrix)
    assert view.shape == (2, 2)
    assert view.read_point((0, 0)) == 2
    assert view.read_point((1, 1)) == 6
    with pytest.raises(InvalidCoordinates):
        view.read_point((2, 0))

    block = view.read_block((1, 0), (1, 1))
    np.testing.assert_array_equal(block.to_numpy(), [[3], [6]])
    np.testing.assert_array_equal(view.to_numpy(), [[2, 3], [5, 6]])

    view.close()
    assert src.closed
    assert src.releases == 1


def test_point_read_accepts_numpy_index_array():
    m = _grid([[1, 2, 3], [4, 5, 6]])
    assert m.read_point(np.array([1, 1])) == 5.0
    block = m.read_block(np.array([1, 0]), np.array([2, 1]))
    np.testing.assert_array_equal(block.to_numpy(), [[2.0, 3.0], [5.0, 6.0]])


# ---- derived ----
def test_derived_matrix_is_lazy_and_computes_once_per_point():
    calls = []

    def transform(values):
        calls.append(tuple(values))
        return sum(values)

    a = _grid([[1, 2, 3], [4, 5, 6]])
    b = _grid([[10, 20, 30], [40, 50, 60]])
    d = DerivedGridValuesMatrix([a, b], transform)
    assert calls == []
    assert d.axes == (X, Y)
    assert d.value_type == np.dtype("float64")

    assert d.read_point((1, 1)) == 55
    assert calls == [(5.0, 50.0)]


def test_derived_block_computes_only_requested_cells():
    calls = []

    def transform(values):
        calls.append(tuple(values))
        return values[0] * 2

    a = _grid([[1, 2, 3], [4, 5, 6]])
    d = DerivedGridValuesMatrix([a], transform)
    block = d.read_block((1, 0), (2, 0))
    assert isinstance(block, InMemoryGridValuesMatrix)
    assert block.axes == (GridAxis("x", 2), GridAxis("y", 1))
    assert sorted(calls) == [(2.0,), (3.0,)]
    np.testing.assert_array_equal(block.to_numpy(), [[4.0, 6.0]])

    # the derived matrix and its input remain open
    assert not d.closed and not a.closed


def test_derived_block_closes_intermediate_input_blocks():
    opened = []

    class TrackingMatrix(InMemoryGridValuesMatrix):
        def _read_block(self, mins, maxes, axes):
            block = super()._read_block(mins, maxes, axes)
            opened.append(block)
            return block

    a = TrackingMatrix(np.ones((2, 3)), (X, Y))
    d = DerivedGridValuesMatrix([a], lambda v: v[0])
    d.read_block((0, 0), (1, 1))
    assert len(opened) == 1
    assert opened[0].closed


def test_derived_to_numpy():
    a = _grid([[1, 2, 3], [4, 5, 6]])
    d = DerivedGridValuesMatrix([a], lambda v: -v[0])
    np.testing.assert_array_equal(d.to_numpy(), [[-1, -2, -3], [-4, -5, -6]])


def test_derived_value_type_is_respected():
    a = _grid([[1, 2, 3], [4, 5, 6]])
    d = DerivedGridValuesMatrix([a], lambda v: int(v[0]) % 2 == 0, value_type=bool)
    assert d.value_type == np.dtype(bool)
    assert d.to_numpy().dtype == np.dtype(bool)


def test_derived_close_releases_every_input_exactly_once():
    inputs = [CountingMatrix([[1, 2, 3], [4, 5, 6]]) for _ in range(3)]
    d = DerivedGridValuesMatrix(inputs, sum)
    d.close()
    d.close()
    assert [m.releases for m in inputs] == [1, 1, 1]
    with pytest.raises(ClosedResource):
        d.read_point((0, 0))
    with pytest.raises(ClosedResource):
        d.read_block((0, 0), (0, 0))


def test_derived_close_continues_after_failing_input():
    class Exploding(CountingMatrix):
        def _release(self):
            super()._release()
            raise OSError("handle already gone")

    first = Exploding([[1, 2, 3], [4, 5, 6]])
    second = CountingMatrix([[1, 2, 3], [4, 5, 6]])
    d = DerivedGridValuesMatrix([first, second], sum)
    with pytest.raises(OSError):
        d.close()
    assert first.releases == 1
    assert second.releases == 1


def test_derived_rejects_inputs_with_different_axes():
    a = _grid([[1, 2, 3], [4, 5, 6]])
    b = InMemoryGridValuesMatrix(np.zeros((3, 2)), (Y, X))
    with pytest.raises(AxisMismatch):
        DerivedGridValuesMatrix([a, b], sum)


def test_derived_rejects_empty_inputs_and_bad_transform():
    with pytest.raises(InvalidConstruction):
        DerivedGridValuesMatrix([], sum)
    with pytest.raises(InvalidConstruction):
        DerivedGridValuesMatrix([_grid([[1, 2, 3], [4, 5, 6]])], "sum")  # type: ignore[arg-type]
    with pytest.raises(InvalidConstruction):
        DerivedGridValuesMatrix([np.zeros((2, 3))], sum)  # type: ignore[list-item]


def test_derived_concurrent_point_reads():
    a = _grid([[1, 2, 3], [4, 5, 6]])
    d = DerivedGridValuesMatrix([a], lambda v: v[0] + 1)
    results = []

    def work():
        results.append([d.read_point((x, y)) for x in range(3) for y in range(2)])

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert all(r == [2, 5, 3, 6, 4, 7] for r in results)


def test_derived_point_and_block_reads_agree_on_narrow_value_type():
    a = _grid([[1, 3, 5], [7, 9, 11]])
    d = DerivedGridValuesMatrix([a], lambda v: v[0] / 2, value_type=np.int32)
    block = d.read_block((0, 0), (2, 1))
    for x in range(3):
        for y in range(2):
            point = d.read_point((x, y))
            assert point == block.read_point((x, y))
            assert type(point) is np.int32
    assert d.read_point((1, 0)) == 1


def test_derived_missing_value_reads_as_nan_in_points_and_blocks():
    a = _grid([[1, 2, 3], [4, 5, 6]])
    d = DerivedGridValuesMatrix([a], lambda v: None if v[0] > 4 else v[0])
    assert d.read_point((0, 0)) == 1.0
    assert np.isnan(d.read_point((1, 1)))
    np.testing.assert_array_equal(d.to_numpy(), [[1, 2, 3], [4, np.nan, np.nan]])
