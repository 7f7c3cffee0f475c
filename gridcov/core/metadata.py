# gridcov/core/metadata.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import numpy as np

from .exceptions import InvalidConstruction


@dataclass(frozen=True, slots=True)
class ScalarMeta:
    """
    Descriptive metadata of a single scalar field, stored or derived.

    - name: field name as exposed by the coverage (e.g. "uv_mag")
    - description: human-friendly description
    - units: physical units (m s-1, K, ...)
    - standard_name: CF standard name, if any
    - value_type: numpy dtype of the values, if known
    - attrs: arbitrary additional fields
    """
    name: str
    description: str | None = None
    units: str | None = None
    standard_name: str | None = None
    value_type: np.dtype | None = None
    attrs: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidConstruction("ScalarMeta.name must be a non-empty string.")
        if self.value_type is not None:
            object.__setattr__(self, "value_type", np.dtype(self.value_type))
        if self.attrs is None:
            object.__setattr__(self, "attrs", {})
        elif not isinstance(self.attrs, dict):
            raise InvalidConstruction("ScalarMeta.attrs must be a dict.")

    def with_name(self, name: str) -> "ScalarMeta":
        return ScalarMeta(
            name=name,
            description=self.description,
            units=self.units,
            standard_name=self.standard_name,
            value_type=self.value_type,
            attrs=self.attrs.copy(),
        )

    def with_units(self, units: str | None) -> "ScalarMeta":
        return ScalarMeta(
            name=self.name,
            description=self.description,
            units=units,
            standard_name=self.standard_name,
            value_type=self.value_type,
            attrs=self.attrs.copy(),
        )


@dataclass(frozen=True, slots=True)
class RangeMeta:
    """
    Metadata of a group of fields (typically a whole coverage).

    This is the parent metadata handed to plugins when they describe the
    fields they derive.
    """
    name: str
    description: str | None = None
    members: Mapping[str, ScalarMeta] = field(default_factory=dict, repr=False)
    attrs: dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidConstruction("RangeMeta.name must be a non-empty string.")
        if not isinstance(self.members, Mapping):
            raise InvalidConstruction("RangeMeta.members must be a mapping.")
        normalized: dict[str, ScalarMeta] = {}
        for key, meta in self.members.items():
            if not isinstance(meta, ScalarMeta):
                raise InvalidConstruction("RangeMeta.members values must be ScalarMeta instances.")
            if meta.name != key:
                raise InvalidConstruction(
                    f"Member name mismatch: key '{key}' but ScalarMeta.name is '{meta.name}'."
                )
            normalized[key] = meta
        object.__setattr__(self, "members", normalized)

        if self.attrs is None:
            object.__setattr__(self, "attrs", {})
        elif not isinstance(self.attrs, dict):
            raise InvalidConstruction("RangeMeta.attrs must be a dict.")

    @property
    def member_names(self) -> Iterable[str]:
        return self.members.keys()

    def get(self, name: str, default: ScalarMeta | None = None) -> ScalarMeta | None:
        return self.members.get(name, default)

    def with_member(self, meta: ScalarMeta) -> "RangeMeta":
        members = dict(self.members)
        members[meta.name] = meta
        return RangeMeta(
            name=self.name,
            description=self.description,
            members=members,
            attrs=self.attrs.copy(),
        )
