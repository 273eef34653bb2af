"""Default configuration for the permanova_tests package.

Controls the permutation count used when a caller does not pass one
explicitly, and the number of permutations evaluated per vectorised
batch.

Resolution order (first match wins):
    1. Programmatic override via :func:`set_default_permutations` /
       :func:`set_chunk_size`.
    2. The ``PERMANOVA_TESTS_PERMUTATIONS`` /
       ``PERMANOVA_TESTS_CHUNK_SIZE`` environment variables.
    3. Built-in defaults: 9999 permutations, 500 per chunk.

Examples:
    Run quick exploratory analyses from the shell::

        export PERMANOVA_TESTS_PERMUTATIONS=999

    Restore the built-in default programmatically::

        import permanova_tests
        permanova_tests.set_default_permutations(None)
"""

from __future__ import annotations

import os

DEFAULT_PERMUTATIONS = 9999
DEFAULT_CHUNK_SIZE = 500

_PERMUTATIONS_ENV = "PERMANOVA_TESTS_PERMUTATIONS"
_CHUNK_SIZE_ENV = "PERMANOVA_TESTS_CHUNK_SIZE"

# Sentinels indicating "no programmatic override has been set".
_permutations_override: int | None = None
_chunk_size_override: int | None = None


def _env_int(name: str) -> int | None:
    """Return the positive integer stored in environment variable *name*.

    Unset or empty variables yield ``None``.

    Raises:
        ValueError: If the variable is set but is not a positive integer.
    """
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Environment variable {name}={raw!r} is not an integer."
        ) from None
    if value < 1:
        raise ValueError(f"Environment variable {name} must be >= 1, got {value}.")
    return value


def _validate(name: str, value: int | None) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int or None, got {type(value).__name__}.")
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}.")
    return value


def get_default_permutations() -> int:
    """Return the permutation count used when none is given.

    Returns:
        The override, the environment value, or ``9999``.
    """
    if _permutations_override is not None:
        return _permutations_override
    env = _env_int(_PERMUTATIONS_ENV)
    if env is not None:
        return env
    return DEFAULT_PERMUTATIONS


def set_default_permutations(n: int | None) -> None:
    """Override the default permutation count.

    Args:
        n: A positive integer, or ``None`` to restore the default
            resolution order.

    Raises:
        ValueError: If *n* is smaller than 1.
    """
    global _permutations_override
    _permutations_override = _validate("n", n)


def get_chunk_size() -> int:
    """Return the number of permutations evaluated per batch."""
    if _chunk_size_override is not None:
        return _chunk_size_override
    env = _env_int(_CHUNK_SIZE_ENV)
    if env is not None:
        return env
    return DEFAULT_CHUNK_SIZE


def set_chunk_size(n: int | None) -> None:
    """Override the permutation batch size.

    Larger batches trade memory (``chunk × N²`` floats) for fewer
    Python-level iterations.

    Args:
        n: A positive integer, or ``None`` to restore the default.
    """
    global _chunk_size_override
    _chunk_size_override = _validate("n", n)
