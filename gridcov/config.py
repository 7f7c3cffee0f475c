"""
Package-wide tunables.

Exports:
    SCOPE_SEPARATOR (str): Joins a plugin scope and a component name.
    MAX_BLOCK_CELLS (int): Realized blocks above this cell count log a warning.
        Override with the GRIDCOV_MAX_BLOCK_CELLS environment variable.
    DEFAULT_DERIVED_DTYPE (str): Value type of derived matrices whose plugin
        does not declare one.
    LOG_LEVEL (str): Level used by logging_config.setup_logging() when none
        is given. Override with GRIDCOV_LOG_LEVEL.
"""
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


SCOPE_SEPARATOR: str = "_"
MAX_BLOCK_CELLS: int = _env_int("GRIDCOV_MAX_BLOCK_CELLS", 50_000_000)
DEFAULT_DERIVED_DTYPE: str = "float64"
LOG_LEVEL: str = os.environ.get("GRIDCOV_LOG_LEVEL", "INFO")
