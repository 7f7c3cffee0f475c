# gridcov/io/load.py
from __future__ import annotations

from typing import Iterable, Mapping, Sequence

import numpy as np

from gridcov.core import (
    Coverage,
    GridAxis,
    InMemoryGridValuesMatrix,
    InvalidCoverage,
    Plugin,
    RangeMeta,
    ScalarMeta,
    StoredField,
)


def _opener(values: np.ndarray, axes: tuple[GridAxis, ...]):
    def _open() -> InMemoryGridValuesMatrix:
        return InMemoryGridValuesMatrix(values, axes)

    return _open


def load_arrays(
    name: str,
    axes: Sequence[GridAxis],
    arrays: Mapping[str, np.ndarray],
    meta: Mapping[str, ScalarMeta] | None = None,
    plugins: Iterable[Plugin] = (),
    *,
    description: str | None = None,
) -> Coverage:
    """
    Build a Coverage from numpy arrays sharing one grid.

    Arrays are in storage order (axes reversed, so a 2-D field on axes (X, Y)
    is indexed [y, x]). Every open of a field returns a new in-memory matrix
    over the same array.
    """
    axes = tuple(axes)
    meta = dict(meta or {})

    fields: dict[str, StoredField] = {}
    for field_name, values in arrays.items():
        arr = np.asarray(values)
        # Validate the shape once, up front
        InMemoryGridValuesMatrix(arr, axes).close()

        field_meta = meta.pop(field_name, None)
        if field_meta is None:
            field_meta = ScalarMeta(name=field_name)
        elif field_meta.name != field_name:
            raise InvalidCoverage(
                f"Metadata for '{field_name}' is named '{field_meta.name}'."
            )
        if field_meta.value_type is None:
            field_meta = ScalarMeta(
                name=field_meta.name,
                description=field_meta.description,
                units=field_meta.units,
                standard_name=field_meta.standard_name,
                value_type=arr.dtype,
                attrs=field_meta.attrs.copy(),
            )
        fields[field_name] = StoredField(opener=_opener(arr, axes), meta=field_meta)

    if meta:
        raise InvalidCoverage(f"Metadata given for unknown fields: {sorted(meta)}.")

    cov = Coverage(
        name=name,
        fields=fields,
        meta=RangeMeta(
            name=name,
            description=description,
            members={k: f.meta for k, f in fields.items()},
        ),
    )
    return cov.add_plugins(plugins)
