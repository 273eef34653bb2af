"""Permutation engine — builder for validation, design, and permutation indices.

The :class:`PermanovaEngine` centralises everything that happens before
pseudo-F statistics are evaluated:

1. **Alignment** — the attribute table must describe exactly the
   matrix's samples, in matrix order.
2. **Design** — the formula is expanded and the per-term projection
   increments are built once (:mod:`.design`).
3. **Gower centring** — ``G = −½ J D² J`` is computed once; every
   permutation only re-indexes it.
4. **Strata resolution** — an attribute column name or a label-aligned
   vector is encoded to integer block codes.
5. **Permutation indices** — exhaustive enumeration when the design
   has no more distinct arrangements than requested, otherwise seeded
   sampling (within strata when given).

The engine also exposes :meth:`sums_of_squares`, the single batch
primitive that maps permutation rows to per-term sums of squares.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from numbers import Integral

import numpy as np
import pandas as pd

from ._config import get_chunk_size
from ._context import AnalysisContext
from ._errors import DesignError, DimensionMismatch
from ._typing import GroupingLike
from .design import ModelDesign, build_design
from .distance import DistanceMatrix
from .factors import SampleAttributes
from .formula import DesignFormula, as_formula
from .permutations import (
    count_distinct_arrangements,
    enumerate_distinct_arrangements,
    generate_unique_permutations,
    generate_within_strata_permutations,
)

logger = logging.getLogger(__name__)

# Upper bound on gathered matrix elements per batch (chunk × n²).
_MAX_BATCH_ELEMENTS = 1 << 24

# Sums of squares within this fraction of SS_total are rounding noise.
ZERO_SS_RTOL = 1e-10


def gower_centre(distances: np.ndarray) -> np.ndarray:
    """Return the Gower-centred matrix ``−½ J D² J``.

    ``J = I − 11ᵀ/n`` removes row and column means, so
    ``trace(G)`` equals the total sum of squares
    ``Σ_{i<j} d²_ij / n``.
    """
    a = -0.5 * np.asarray(distances, dtype=float) ** 2
    row_means = a.mean(axis=1, keepdims=True)
    col_means = a.mean(axis=0, keepdims=True)
    return a - row_means - col_means + a.mean()


def _check_alignment(matrix: DistanceMatrix, attributes: SampleAttributes) -> None:
    if attributes.n_samples != matrix.n_samples:
        raise DimensionMismatch(
            f"Attribute table has {attributes.n_samples} rows but the distance "
            f"matrix has {matrix.n_samples} samples."
        )
    for pos, (m_label, a_label) in enumerate(
        zip(matrix.labels, attributes.labels, strict=True)
    ):
        if m_label != a_label:
            raise DimensionMismatch(
                f"Sample order differs at position {pos}: matrix has {m_label!r}, "
                f"attributes have {a_label!r}."
            )


def _encode_strata(strata: GroupingLike, attributes: SampleAttributes) -> np.ndarray:
    if isinstance(strata, str):
        values = attributes.categorical(strata)
        if np.any(values.codes < 0):
            raise DesignError(f"Strata column {strata!r} contains missing values.")
        keys = np.asarray(values.codes)
    else:
        # A Series indexed by sample label is aligned by label.
        if isinstance(strata, pd.Series) and all(
            lab in strata.index for lab in attributes.labels
        ):
            strata = strata.loc[list(attributes.labels)]
        keys = np.asarray(strata, dtype=object)
        if keys.shape != (attributes.n_samples,):
            raise DimensionMismatch(
                f"strata has shape {keys.shape} but there are "
                f"{attributes.n_samples} samples."
            )
        if pd.isna(keys).any():
            raise DesignError("strata contains missing values.")
    codes, _ = pd.factorize(keys)
    return np.asarray(codes, dtype=np.intp)


class PermanovaEngine:
    """Builder that resolves design, centring, and permutation indices.

    The engine is immutable after construction: it captures a snapshot
    of the resolved state for one analysis.

    Attributes:
        design: The sequential :class:`~.design.ModelDesign`.
        gower: Gower-centred distance matrix.
        ss_total: ``trace(gower)``.
        strata: Encoded block codes, or ``None``.
        exhaustive: Whether :attr:`perm_indices` enumerates every
            distinct arrangement (observed one included).
        perm_indices: Permutation rows of shape ``(B, n)``.
    """

    def __init__(
        self,
        matrix: DistanceMatrix,
        attributes: SampleAttributes,
        formula: str | DesignFormula,
        *,
        strata: GroupingLike | None = None,
        n_permutations: int = 9999,
        random_state: int | None = None,
        drop_aliased: bool = False,
        ctx: AnalysisContext | None = None,
    ) -> None:
        if isinstance(n_permutations, bool) or not isinstance(
            n_permutations, Integral
        ):
            raise TypeError(
                f"permutations must be an int, got {type(n_permutations).__name__}."
            )
        n_permutations = int(n_permutations)
        if n_permutations < 1:
            raise ValueError(f"permutations must be >= 1, got {n_permutations}.")

        self.ctx: AnalysisContext = ctx if ctx is not None else AnalysisContext()
        _check_alignment(matrix, attributes)
        self.ctx.labels = matrix.labels

        # ---- Design -------------------------------------------------
        self.formula: DesignFormula = as_formula(formula)
        self.design: ModelDesign = build_design(
            attributes, self.formula, drop_aliased=drop_aliased
        )
        self.ctx.design = self.design

        # ---- Gower centring ----------------------------------------
        if np.ptp(matrix.condensed()) == 0:
            raise DesignError(
                "All pairwise distances are identical; every arrangement "
                "yields the same pseudo-F and no term can be tested."
            )
        self.gower: np.ndarray = gower_centre(matrix.data)
        self.ss_total: float = float(np.trace(self.gower))
        self.ctx.gower = self.gower
        self.ctx.ss_total = self.ss_total
        self._stacked = self.design.stacked_projections()

        # ---- Permutation indices ----------------------------------
        self.strata: np.ndarray | None = (
            None if strata is None else _encode_strata(strata, attributes)
        )
        self.ctx.strata_codes = self.strata
        self.n_permutations_requested = n_permutations
        self.random_state = random_state
        self.perm_indices: np.ndarray = self.permute_indices(
            n_permutations, random_state
        )

    # ---- Permutation generation -----------------------------------

    def permute_indices(
        self,
        n_permutations: int,
        random_state: int | None = None,
    ) -> np.ndarray:
        """Return the permutation rows for this design.

        Dispatch:

        1. If the design has at most *n_permutations* distinct
           arrangements (within strata, when given), enumerate all of
           them, observed arrangement included.
        2. Else, with strata, sample within-stratum permutations.
        3. Else, sample unrestricted unique permutations.
        """
        n = self.design.n_samples
        n_distinct = count_distinct_arrangements(
            self.design.patterns, self.strata, cap=n_permutations
        )
        self.ctx.n_distinct = n_distinct
        self.exhaustive: bool = n_distinct <= n_permutations
        self.ctx.exhaustive = self.exhaustive

        if self.exhaustive:
            logger.debug(
                "Exhaustive enumeration: %d distinct arrangements", n_distinct
            )
            indices = enumerate_distinct_arrangements(self.design.patterns, self.strata)
        elif self.strata is not None:
            indices = generate_within_strata_permutations(
                n_samples=n,
                n_permutations=n_permutations,
                strata=self.strata,
                random_state=random_state,
                exclude_identity=True,
            )
        else:
            indices = generate_unique_permutations(
                n_samples=n,
                n_permutations=n_permutations,
                random_state=random_state,
                exclude_identity=True,
            )

        self.ctx.perm_indices = indices
        return indices

    @property
    def n_permutations(self) -> int:
        """Number of non-observed arrangements in the reference set."""
        rows = self.perm_indices.shape[0]
        return rows - 1 if self.exhaustive else rows

    # ---- Batch primitive ------------------------------------------

    def sums_of_squares(self, indices: np.ndarray | None = None) -> np.ndarray:
        """Per-term and residual sums of squares for each permutation row.

        Args:
            indices: Array of shape ``(B, n)``; ``None`` evaluates the
                observed arrangement.

        Returns:
            Array of shape ``(B, K + 1)`` (or ``(K + 1,)`` when
            *indices* is ``None``), residual last.
        """
        if indices is None:
            return self._snap_zero(self._stacked @ self.gower.ravel())

        n = self.design.n_samples
        flat = self.gower.ravel()
        # Flat position of G[p_i, p_j] is p_i·n + p_j.
        gathered = flat[indices[:, :, np.newaxis] * n + indices[:, np.newaxis, :]]
        return self._snap_zero(
            gathered.reshape(indices.shape[0], n * n) @ self._stacked.T
        )

    def _snap_zero(self, ss: np.ndarray) -> np.ndarray:
        # Coincident samples give exact zeros that come back as ±1e-15.
        return np.where(np.abs(ss) <= ZERO_SS_RTOL * self.ss_total, 0.0, ss)

    def iter_chunks(self) -> Iterator[np.ndarray]:
        """Yield :attr:`perm_indices` in memory-bounded batches."""
        n = self.design.n_samples
        per_batch = max(1, min(get_chunk_size(), _MAX_BATCH_ELEMENTS // (n * n)))
        for start in range(0, self.perm_indices.shape[0], per_batch):
            yield self.perm_indices[start : start + per_batch]


__all__ = ["PermanovaEngine", "gower_centre"]
