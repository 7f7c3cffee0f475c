# gridcov/plugins/__init__.py
"""
Ready-made plugins.

- vector_plugin: magnitude and direction from u/v components
- function_plugin: one field computed by an arbitrary scalar function
"""

from .vector import VectorFunctions, vector_plugin, MAGNITUDE, DIRECTION
from .function import FunctionFunctions, function_plugin


__all__ = [
    "VectorFunctions",
    "vector_plugin",
    "MAGNITUDE",
    "DIRECTION",
    "FunctionFunctions",
    "function_plugin",
]
