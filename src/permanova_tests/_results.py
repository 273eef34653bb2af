"""Typed result objects for PERMANOVA.

Frozen dataclasses that provide:

* **Attribute access** — ``result.terms``, ``result.n_permutations``.
* **Dict-like access** — ``result["formula"]``, ``result.get("key")``,
  ``"key" in result``.
* **Serialisation** — ``.to_dict()`` returns a plain ``dict[str, Any]``
  with all NumPy types converted to native Python, and ``.to_frame()``
  returns the analysis-of-variance table as a DataFrame.

Results are frozen to communicate that they are a snapshot of a
completed analysis; they are persisted, never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from ._context import AnalysisContext

RESIDUAL = "Residual"
TOTAL = "Total"

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy scalars/arrays to Python-native types."""
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer, np.bool_)):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    if hasattr(obj, "__dataclass_fields__") and hasattr(obj, "to_dict"):
        return obj.to_dict()
    return obj


# ------------------------------------------------------------------ #
# Dict-compatibility mixin
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Dict-like access convenience for result dataclasses.

    1. ``result["key"]``      — raises ``KeyError`` on miss
    2. ``result.get(key, d)`` — returns *d* on miss (default ``None``)
    3. ``"key" in result``    — membership test
    """

    # Fields to exclude from to_dict() serialisation.
    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset({"context"})

    def __getitem__(self, key: str) -> Any:
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain, JSON-serialisable dictionary."""
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name in self._EXCLUDE_FROM_DICT:
                continue
            result[f.name] = _numpy_to_python(getattr(self, f.name))
        return result


# ------------------------------------------------------------------ #
# Rows
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class TermResult(_DictAccessMixin):
    """One row of the analysis-of-variance table.

    ``Residual`` and ``Total`` rows carry ``None`` for the statistic
    and p-value fields.
    """

    term: str
    """Term label, e.g. ``"source:unique_cage"``."""

    df: int
    """Degrees of freedom."""

    sum_of_squares: float
    """Sequential sum of squares."""

    r2: float
    """Fraction of the total sum of squares."""

    mean_square: float | None = None
    """``sum_of_squares / df`` (``None`` for the total row)."""

    f_statistic: float | None = None
    """Pseudo-F against the residual mean square."""

    p_value: float | None = None
    """Permutation p-value."""

    classic_p_value: float | None = None
    """Upper-tail F-distribution p-value, for comparison."""


# ------------------------------------------------------------------ #
# PermanovaResult
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class PermanovaResult(_DictAccessMixin):
    """Result of a permutational multivariate analysis of variance.

    ``rows`` lists every tested term in analysis order, then the
    ``Residual`` and ``Total`` rows.
    """

    rows: tuple[TermResult, ...]
    """ANOVA table rows: terms, residual, total."""

    formula: str
    """Design formula as written."""

    n_samples: int
    """Number of samples analysed."""

    n_permutations: int
    """Permutations in the reference set, excluding the observed one."""

    exhaustive: bool
    """``True`` when every distinct arrangement was enumerated."""

    strata: str | bool
    """Strata column name, ``True`` for a supplied vector, ``False`` if none."""

    seed: int | None
    """Random seed (irrelevant when exhaustive)."""

    dropped_terms: tuple[str, ...] = ()
    """Aliased terms removed with ``drop_aliased=True``."""

    context: AnalysisContext | None = field(default=None, repr=False, compare=False)
    """Computation artifacts; excluded from ``to_dict()``."""

    # ---- Convenience ------------------------------------------------

    @property
    def terms(self) -> tuple[TermResult, ...]:
        """Tested term rows only."""
        return tuple(r for r in self.rows if r.term not in (RESIDUAL, TOTAL))

    @property
    def term_labels(self) -> tuple[str, ...]:
        return tuple(r.term for r in self.terms)

    @property
    def residual(self) -> TermResult:
        return self.term(RESIDUAL)

    @property
    def total(self) -> TermResult:
        return self.term(TOTAL)

    def term(self, label: str) -> TermResult:
        """Return the row for *label*.

        Raises:
            KeyError: If no row has that label.
        """
        for row in self.rows:
            if row.term == label:
                return row
        raise KeyError(
            f"No term {label!r} in result; available: {[r.term for r in self.rows]}."
        )

    def to_frame(self) -> pd.DataFrame:
        """Return the ANOVA table indexed by term label."""
        records = [
            {
                "Df": r.df,
                "SumOfSqs": r.sum_of_squares,
                "MeanSqs": r.mean_square,
                "F": r.f_statistic,
                "R2": r.r2,
                "Pr(>F)": r.p_value,
                "Pr(>F) classic": r.classic_p_value,
            }
            for r in self.rows
        ]
        return pd.DataFrame.from_records(
            records, index=pd.Index([r.term for r in self.rows], name="term")
        )
