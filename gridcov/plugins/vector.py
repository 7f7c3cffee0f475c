# gridcov/plugins/vector.py
"""Magnitude and direction of a vector field given by its u/v components."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np

from gridcov.core.exceptions import UnknownField
from gridcov.core.metadata import RangeMeta, ScalarMeta
from gridcov.core.plugin import Plugin

MAGNITUDE = "mag"
DIRECTION = "dir"


@dataclass(frozen=True, slots=True)
class VectorFunctions:
    """
    generate_value / generate_metadata for u/v vector fields.

    - mag: hypot(u, v), in the units of u
    - dir: direction the vector points towards, in degrees clockwise from
      north (the v axis), within [0, 360)

    NaN in either component propagates to both outputs; a missing (None)
    component gives None, which a float64 matrix stores as nan.
    """
    value_type: Any = np.float64

    def generate_value(self, component: str, values: Sequence[Any]) -> float | None:
        if component not in (MAGNITUDE, DIRECTION):
            raise UnknownField(component)
        if any(x is None for x in values):
            return None
        u, v = (float(x) for x in values)
        if component == MAGNITUDE:
            return math.hypot(u, v)
        if math.isnan(u) or math.isnan(v):
            return math.nan
        return math.degrees(math.atan2(u, v)) % 360.0

    def generate_metadata(
        self,
        component: str,
        metadata: Sequence[ScalarMeta],
        parent: RangeMeta | None,
    ) -> ScalarMeta:
        u_meta, v_meta = metadata
        pair = f"{u_meta.description or u_meta.name} / {v_meta.description or v_meta.name}"
        group = {"parent": parent.name} if parent is not None else {}
        if component == MAGNITUDE:
            return ScalarMeta(
                name=MAGNITUDE,
                description=f"Magnitude of {pair}",
                units=u_meta.units,
                value_type=self.value_type,
                attrs=group,
            )
        if component == DIRECTION:
            return ScalarMeta(
                name=DIRECTION,
                description=f"Direction of {pair}",
                units="degrees",
                value_type=self.value_type,
                attrs=group,
            )
        raise UnknownField(component)


def vector_plugin(u_name: str, v_name: str, description: str | None = None) -> Plugin:
    """Plugin providing `<u><v>_mag` and `<u><v>_dir` from two component fields."""
    return Plugin(
        uses=(u_name, v_name),
        components=(MAGNITUDE, DIRECTION),
        functions=VectorFunctions(),
        description=description or f"Vector magnitude and direction of {u_name}, {v_name}",
    )
