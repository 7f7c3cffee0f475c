# gridcov/core/coverage.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence

from .coordinates import GridCoordinatesLike
from .exceptions import FieldNotFound, InvalidCoverage
from .matrix import GridValuesMatrixLike
from .metadata import RangeMeta, ScalarMeta
from .plugin import Plugin

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoredField:
    """
    A field physically present in the data source.

    `opener` returns a new matrix on every call; the caller owns it and must
    close it.
    """
    opener: Callable[[], GridValuesMatrixLike] = field(repr=False)
    meta: ScalarMeta

    def __post_init__(self) -> None:
        if not callable(self.opener):
            raise InvalidCoverage("StoredField.opener must be callable.")
        if not isinstance(self.meta, ScalarMeta):
            raise InvalidCoverage("StoredField.meta must be a ScalarMeta instance.")

    @property
    def name(self) -> str:
        return self.meta.name

    def open(self) -> GridValuesMatrixLike:
        matrix = self.opener()
        if not isinstance(matrix, GridValuesMatrixLike):
            raise InvalidCoverage(
                f"Opener of '{self.name}' returned {type(matrix).__name__}, not a grid values matrix."
            )
        return matrix


@dataclass(frozen=True, slots=True)
class Coverage:
    """
    A named collection of gridded fields sharing one grid.

    Stored fields and plugin-derived fields are looked up the same way:
    cov.get_values("u") and cov.get_values("uv_mag") both return a matrix
    the caller must close.

    Design goals:
    - uniform access: derived names behave exactly like stored names
    - safe: plugins may only use known fields and never shadow one
    - predictable: immutable; add_field/add_plugin return a new Coverage
    """
    name: str
    fields: Mapping[str, StoredField] = field(default_factory=dict, repr=False)
    plugins: Sequence[Plugin] = field(default=(), repr=False)
    meta: RangeMeta | None = field(default=None, repr=False)
    _providers: dict[str, Plugin] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidCoverage("Coverage.name must be a non-empty string.")
        if not isinstance(self.fields, Mapping):
            raise InvalidCoverage("Coverage.fields must be a mapping (e.g., dict).")

        normalized: dict[str, StoredField] = {}
        for key, stored in self.fields.items():
            if not isinstance(stored, StoredField):
                raise InvalidCoverage("Coverage.fields values must be StoredField instances.")
            if stored.name != key:
                raise InvalidCoverage(
                    f"Field name mismatch: key '{key}' but StoredField.meta.name is '{stored.name}'."
                )
            normalized[key] = stored
        object.__setattr__(self, "fields", normalized)

        providers: dict[str, Plugin] = {}
        plugins = tuple(self.plugins)
        for plugin in plugins:
            if not isinstance(plugin, Plugin):
                raise InvalidCoverage("Coverage.plugins must be Plugin instances.")
            for used in plugin.uses:
                if used not in normalized and used not in providers:
                    raise InvalidCoverage(
                        f"Plugin '{plugin.scope}' uses unknown field '{used}'."
                    )
            for provided in sorted(plugin.provides):
                if provided in normalized or provided in providers:
                    raise InvalidCoverage(
                        f"Plugin '{plugin.scope}' provides '{provided}', which already exists."
                    )
                providers[provided] = plugin
        object.__setattr__(self, "plugins", plugins)
        object.__setattr__(self, "_providers", providers)

        if self.meta is None:
            object.__setattr__(
                self,
                "meta",
                RangeMeta(name=self.name, members={k: f.meta for k, f in normalized.items()}),
            )
        elif not isinstance(self.meta, RangeMeta):
            raise InvalidCoverage("Coverage.meta must be a RangeMeta instance.")

    # ---- dict-like API over member names ----
    def __len__(self) -> int:
        return len(self.fields) + len(self._providers)

    def __iter__(self) -> Iterator[str]:
        yield from self.fields
        yield from self._providers

    def __contains__(self, name: object) -> bool:
        return name in self.fields or name in self._providers

    @property
    def member_names(self) -> tuple[str, ...]:
        return tuple(self)

    @property
    def stored_names(self) -> tuple[str, ...]:
        return tuple(self.fields)

    @property
    def derived_names(self) -> tuple[str, ...]:
        return tuple(self._providers)

    def is_derived(self, name: str) -> bool:
        return name in self._providers

    def plugin_for(self, name: str) -> Plugin | None:
        return self._providers.get(name)

    # ---- values ----
    def get_values(self, name: str) -> GridValuesMatrixLike:
        """Open the matrix of a stored or derived field. The caller must close it."""
        if name in self.fields:
            return self.fields[name].open()

        plugin = self._providers.get(name)
        if plugin is None:
            raise FieldNotFound(name)

        inputs: list[GridValuesMatrixLike] = []
        try:
            for used in plugin.uses:
                inputs.append(self.get_values(used))
            matrix = plugin.get_processed_values(name, inputs)
        except Exception:
            for m in inputs:
                m.close()
            raise

        logger.debug("Resolved derived field '%s' from %s.", name, list(plugin.uses))
        return matrix

    def get_metadata(self, name: str) -> ScalarMeta:
        if name in self.fields:
            return self.fields[name].meta

        plugin = self._providers.get(name)
        if plugin is None:
            raise FieldNotFound(name)
        inputs = [self.get_metadata(used) for used in plugin.uses]
        return plugin.get_processed_metadata(name, inputs, self.meta)

    def read_point(self, name: str, coords: GridCoordinatesLike | Sequence[int]) -> Any:
        """Open `name`, read one value and close it again."""
        matrix = self.get_values(name)
        try:
            return matrix.read_point(coords)
        finally:
            matrix.close()

    def read_block(
        self,
        name: str,
        mins: GridCoordinatesLike | Sequence[int],
        maxes: GridCoordinatesLike | Sequence[int],
    ) -> GridValuesMatrixLike:
        """Realize a block of `name`. Only the returned block is left open."""
        matrix = self.get_values(name)
        try:
            return matrix.read_block(mins, maxes)
        finally:
            matrix.close()

    # ---- transformations ----
    def add_field(self, stored: StoredField, *, overwrite: bool = False) -> "Coverage":
        """
        Return a new Coverage with `stored` added.

        If overwrite=False and the field already exists, raises InvalidCoverage.
        """
        if not isinstance(stored, StoredField):
            raise InvalidCoverage("add_field() expects a StoredField instance.")
        if stored.name in self.fields and not overwrite:
            raise InvalidCoverage(f"Field '{stored.name}' already exists (overwrite=False).")

        new_fields = dict(self.fields)
        new_fields[stored.name] = stored
        return Coverage(
            name=self.name,
            fields=new_fields,
            plugins=self.plugins,
            meta=self.meta.with_member(stored.meta),
        )

    def add_plugin(self, plugin: Plugin) -> "Coverage":
        """Return a new Coverage exposing the fields `plugin` provides."""
        if not isinstance(plugin, Plugin):
            raise InvalidCoverage("add_plugin() expects a Plugin instance.")
        return Coverage(
            name=self.name,
            fields=dict(self.fields),
            plugins=(*self.plugins, plugin),
            meta=self.meta,
        )

    def add_plugins(self, plugins: Iterable[Plugin]) -> "Coverage":
        cov = self
        for plugin in plugins:
            cov = cov.add_plugin(plugin)
        return cov
