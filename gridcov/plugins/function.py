# gridcov/plugins/function.py
"""Single-output plugins wrapping an arbitrary scalar function."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from gridcov.core.exceptions import InvalidConstruction, UnknownField
from gridcov.core.metadata import RangeMeta, ScalarMeta
from gridcov.core.plugin import Plugin


@dataclass(frozen=True, slots=True)
class FunctionFunctions:
    """Computes `component` as ``func(*values)``."""
    component: str
    func: Callable[..., Any] = field(repr=False)
    units: str | None = None
    standard_name: str | None = None
    description: str | None = None
    value_type: Any = None

    def __post_init__(self) -> None:
        if not callable(self.func):
            raise InvalidConstruction("FunctionFunctions.func must be callable.")

    def generate_value(self, component: str, values: Sequence[Any]) -> Any:
        if component != self.component:
            raise UnknownField(component)
        return self.func(*values)

    def generate_metadata(
        self,
        component: str,
        metadata: Sequence[ScalarMeta],
        parent: RangeMeta | None,
    ) -> ScalarMeta:
        if component != self.component:
            raise UnknownField(component)
        # Inherit units from the first input unless set explicitly
        units = self.units
        if units is None and metadata:
            units = metadata[0].units
        inputs = ", ".join(m.name for m in metadata)
        return ScalarMeta(
            name=component,
            description=self.description or f"{component} computed from {inputs}",
            units=units,
            standard_name=self.standard_name,
            value_type=self.value_type,
            attrs={"parent": parent.name} if parent is not None else {},
        )


def function_plugin(
    uses: Sequence[str],
    component: str,
    func: Callable[..., Any],
    *,
    units: str | None = None,
    standard_name: str | None = None,
    description: str | None = None,
    value_type: Any = None,
) -> Plugin:
    """
    Plugin providing one derived field, ``func(*values)``.

    >>> speed = function_plugin(["u", "v"], "speed", math.hypot, units="m s-1")
    >>> sorted(speed.provides)
    ['uv_speed']
    """
    return Plugin(
        uses=tuple(uses),
        components=(component,),
        functions=FunctionFunctions(
            component=component,
            func=func,
            units=units,
            standard_name=standard_name,
            description=description,
            value_type=value_type,
        ),
        description=description,
    )
