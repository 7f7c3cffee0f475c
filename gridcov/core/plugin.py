# gridcov/core/plugin.py
"""
Plugins expose fields that are not stored but computed from other fields.

A Plugin uses an ordered list of input fields and provides one or more output
components. Output names are namespaced by the plugin scope, the concatenation
of the used names: a plugin using ``["u", "v"]`` and providing ``"mag"``
exposes the field ``"uv_mag"``.

The naming and request validation live in :class:`Plugin`; what is actually
computed comes from a :class:`PluginFunctions` implementation composed into it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Sequence, runtime_checkable

from gridcov import config

from .exceptions import ArityMismatch, InvalidConstruction, UnknownField
from .matrix import DerivedGridValuesMatrix, GridValuesMatrixLike
from .metadata import RangeMeta, ScalarMeta

logger = logging.getLogger(__name__)


@runtime_checkable
class PluginFunctions(Protocol):
    """
    What a plugin computes, per output component.

    Both methods receive the short component name (without the scope prefix)
    and inputs in the order of ``Plugin.uses``. They must be pure.
    Implementations may also define a ``value_type`` attribute giving the
    numpy dtype of the generated values.
    """

    def generate_value(self, component: str, values: Sequence[Any]) -> Any: ...

    def generate_metadata(
        self,
        component: str,
        metadata: Sequence[ScalarMeta],
        parent: RangeMeta | None,
    ) -> ScalarMeta: ...


def _components(values: Iterable[str] | None) -> tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        raise InvalidConstruction("Plugin.components must be a sequence of names, not a string.")
    out: list[str] = []
    for v in values:
        if not isinstance(v, str) or not v.strip():
            raise InvalidConstruction(f"Plugin.components entries must be non-empty strings, got {v!r}.")
        if v not in out:
            out.append(v)
    return tuple(out)


@dataclass(frozen=True, slots=True)
class Plugin:
    """
    A named, stateless transformation from `uses` fields to derived fields.

    Attributes
    ----------
    uses:
        Input field names. Their order defines the order of values, matrices
        and metadata passed to every request.
    components:
        Short names of the outputs, as given at construction.
    functions:
        The computation, see PluginFunctions.
    description:
        Human-readable description.
    scope:
        Concatenation of `uses`; prefix of every provided name.
    provides:
        Full names of the derived fields, ``scope + "_" + component``.
    """
    uses: tuple[str, ...]
    components: tuple[str, ...]
    functions: PluginFunctions = field(repr=False)
    description: str | None = None
    scope: str = field(init=False)
    provides: frozenset[str] = field(init=False)

    def __post_init__(self) -> None:
        if self.uses is None or isinstance(self.uses, str):
            raise InvalidConstruction("Plugin.uses must be a sequence of field names.")
        uses = tuple(self.uses)
        for u in uses:
            if not isinstance(u, str) or not u.strip():
                raise InvalidConstruction(f"Plugin.uses entries must be non-empty strings, got {u!r}.")
        components = _components(self.components)
        if not components:
            raise InvalidConstruction("A plugin must provide some data.")
        if not isinstance(self.functions, PluginFunctions):
            raise InvalidConstruction(
                "Plugin.functions must implement generate_value() and generate_metadata()."
            )

        scope = "".join(uses)
        object.__setattr__(self, "uses", uses)
        object.__setattr__(self, "components", components)
        object.__setattr__(self, "scope", scope)
        object.__setattr__(
            self,
            "provides",
            frozenset(scope + config.SCOPE_SEPARATOR + c for c in components),
        )
        logger.debug("Plugin '%s' provides %s.", scope, sorted(self.provides))

    @property
    def value_type(self) -> Any:
        return getattr(self.functions, "value_type", None)

    def component_of(self, field_name: str) -> str:
        """Short component name of a provided field name."""
        self._check_name(field_name)
        return field_name[len(self.scope) + len(config.SCOPE_SEPARATOR):]

    # ---- requests ----
    def get_processed_value(self, field_name: str, values: Sequence[Any]) -> Any:
        """Compute one derived value from input values given in `uses` order."""
        values = list(values)
        self._check_request(field_name, len(values))
        return self.functions.generate_value(self.component_of(field_name), values)

    def get_processed_values(
        self,
        field_name: str,
        inputs: Sequence[GridValuesMatrixLike],
    ) -> DerivedGridValuesMatrix:
        """
        Derived matrix for `field_name` over input matrices given in `uses` order.

        Nothing is computed here: each value is generated when it is read. The
        inputs must share identical axes. On success the returned matrix owns
        the inputs and closes them when it is closed; if the request is
        rejected the caller keeps ownership.
        """
        inputs = list(inputs)
        self._check_request(field_name, len(inputs))
        component = self.component_of(field_name)
        generate = self.functions.generate_value

        def transform(values: list[Any]) -> Any:
            return generate(component, values)

        return DerivedGridValuesMatrix(inputs, transform, value_type=self.value_type)

    def get_processed_metadata(
        self,
        field_name: str,
        metadata: Sequence[ScalarMeta],
        parent: RangeMeta | None = None,
    ) -> ScalarMeta:
        """Describe `field_name` from the metadata of the inputs and of its parent group."""
        metadata = list(metadata)
        self._check_request(field_name, len(metadata))
        meta = self.functions.generate_metadata(self.component_of(field_name), metadata, parent)
        if meta.name != field_name:
            meta = meta.with_name(field_name)
        return meta

    # ---- validation ----
    def _check_name(self, field_name: str) -> None:
        if (
            not isinstance(field_name, str)
            or not field_name.startswith(self.scope)
            or field_name not in self.provides
        ):
            raise UnknownField(f"This plugin does not provide the field {field_name!r}.")

    def _check_request(self, field_name: str, count: int) -> None:
        self._check_name(field_name)
        if count != len(self.uses):
            raise ArityMismatch(
                f"This plugin needs {len(self.uses)} fields, but {count} were provided."
            )
