"""Error taxonomy for the permanova_tests package.

Every error raised for malformed input derives from
:class:`PermanovaError`, which itself subclasses ``ValueError`` so
callers that already guard analysis code with ``except ValueError``
keep working.  Messages always name the offending identifier (a
sample label, a term name, or a file path).
"""

from __future__ import annotations


class PermanovaError(ValueError):
    """Base class for input and design errors."""


class FormatError(PermanovaError):
    """Malformed lower-triangular distance-matrix input."""


class JoinError(PermanovaError):
    """A sample label has no usable metadata row."""


class DesignError(PermanovaError):
    """The design cannot be tested (aliased term, no residual df, ...)."""


class DimensionMismatch(PermanovaError):
    """Attribute table and distance matrix disagree on samples."""


__all__ = [
    "DesignError",
    "DimensionMismatch",
    "FormatError",
    "JoinError",
    "PermanovaError",
]
