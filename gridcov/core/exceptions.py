# gridcov/core/exceptions.py
from __future__ import annotations


class CoreError(Exception):
    """Base error for all core-domain exceptions."""


# ---- Validation / construction errors ----
class InvalidConstruction(CoreError, ValueError):
    """Raised when an axis, plugin or metadata object is built with invalid inputs."""


class InvalidDimensionality(CoreError, ValueError):
    """Raised when a dimension count does not match the expected one."""


class InvalidCoordinates(CoreError, IndexError):
    """Raised when an index or block range falls outside its axis."""


class AxisMismatch(CoreError, ValueError):
    """Raised when matrices combined into a derived matrix have different axes."""


class InvalidCoverage(CoreError, ValueError):
    """Raised when a Coverage is constructed or extended inconsistently."""


# ---- Request errors ----
class ArityMismatch(CoreError, ValueError):
    """Raised when a plugin receives a different number of inputs than it uses."""


class ClosedResource(CoreError, RuntimeError):
    """Raised when reading from a matrix that has already been closed."""


# ---- Lookup errors (also behave like KeyError for dict-like APIs) ----
class UnknownField(CoreError, KeyError):
    """Raised when a plugin is asked for a field it does not provide."""


class FieldNotFound(CoreError, KeyError):
    """Raised when a requested field name is not present in a coverage."""
