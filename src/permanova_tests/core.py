"""Permutational multivariate analysis of variance (PERMANOVA).

PERMANOVA partitions the total dispersion of a distance matrix among
the terms of a linear design, without assuming any distribution for
the underlying observations.  Only the pairwise distances are needed:

    Under H₀ the samples are exchangeable with respect to a term, so
    any rearrangement of sample labels (within strata, when a
    blocking structure restricts exchangeability) is equally likely
    to have produced the observed distances.

Sums of squares
~~~~~~~~~~~~~~~
The distance matrix D is Gower-centred once,

    G = −½ J D² J,    J = I − 11ᵀ/n,

so that ``SS_total = trace(G)``.  Terms are fitted sequentially
(Type I): the projection onto the span of the intercept and the
first k terms is ``H_k`` and term k is credited with

    SS_k = ⟨H_k − H_{k−1}, G⟩,    SS_res = ⟨I − H_full, G⟩.

Pseudo-F statistics and R² follow the usual analysis-of-variance
ratios:

    F_k = (SS_k / df_k) / (SS_res / df_res),    R²_k = SS_k / SS_total.

Permutation
~~~~~~~~~~~
Permuting sample labels is equivalent to re-indexing G as
``G[π][:, π]``.  The per-term projections are fixed by the design, so
each permutation costs one gather and one matrix product against the
stacked projections (see :meth:`.PermanovaEngine.sums_of_squares`).
Permutations are evaluated in memory-bounded chunks.

When the design admits no more distinct arrangements than were
requested, every arrangement is enumerated and the p-value is exact.

References:
    Anderson, M. J. (2001). A new method for non-parametric
    multivariate analysis of variance. *Austral Ecology*, 26, 32–46.

    McArdle, B. H. & Anderson, M. J. (2001). Fitting multivariate
    models to community data: a comment on distance-based redundancy
    analysis. *Ecology*, 82(1), 290–297.
"""

from __future__ import annotations

import logging

import numpy as np

from ._config import get_default_permutations
from ._context import AnalysisContext
from ._results import RESIDUAL, TOTAL, PermanovaResult, TermResult
from ._typing import GroupingLike
from .distance import DistanceMatrix
from .engine import PermanovaEngine
from .factors import SampleAttributes
from .formula import DesignFormula
from .pvalues import classical_p_values, permutation_p_values

logger = logging.getLogger(__name__)


def _pseudo_f(ss: np.ndarray, df_terms: np.ndarray, df_residual: int) -> np.ndarray:
    """Pseudo-F for every term from a ``(..., K + 1)`` array of SS.

    The last column holds the residual sum of squares.  A zero residual
    gives ``+inf`` for terms with positive SS and ``0`` for terms that
    explain nothing, so perfectly separated arrangements tie with each
    other.
    """
    term_ms = ss[..., :-1] / df_terms
    residual_ms = ss[..., -1:] / df_residual
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = term_ms / residual_ms
    return np.where(residual_ms > 0, ratio, np.where(term_ms > 0, np.inf, 0.0))


def permanova(
    matrix: DistanceMatrix,
    attributes: SampleAttributes,
    formula: str | DesignFormula,
    *,
    strata: GroupingLike | None = None,
    permutations: int | None = None,
    seed: int | None = None,
    drop_aliased: bool = False,
) -> PermanovaResult:
    """Run a sequential PERMANOVA of *matrix* against *formula*.

    Args:
        matrix: Distances between samples.
        attributes: Factor attributes, one row per matrix sample in
            matrix order (see :func:`~.factors.join_attributes`).
        formula: Design formula, e.g.
            ``"source/(unique_cage*experiment)"``, or a parsed
            :class:`~.formula.DesignFormula`.
        strata: Blocks within which samples are exchanged: an
            attribute column name, or a label-aligned vector.
        permutations: Number of random permutations.  ``None`` uses
            :func:`~._config.get_default_permutations`.  When the design
            has at most this many distinct arrangements they are all
            enumerated instead.
        seed: Seed for ``numpy.random.default_rng``.
        drop_aliased: Drop terms that add no degrees of freedom instead
            of raising :class:`~._errors.DesignError`.

    Returns:
        A :class:`PermanovaResult` with one row per tested term, then
        ``Residual`` and ``Total`` rows.

    Raises:
        DimensionMismatch: If *attributes* does not describe the
            matrix's samples in matrix order.
        DesignError: For unknown columns, single-level or aliased
            terms, zero residual degrees of freedom, identical
            distances, or invalid strata.
        ValueError: If *permutations* is less than 1.
    """
    if permutations is None:
        permutations = get_default_permutations()

    ctx = AnalysisContext()
    engine = PermanovaEngine(
        matrix,
        attributes,
        formula,
        strata=strata,
        n_permutations=permutations,
        random_state=seed,
        drop_aliased=drop_aliased,
        ctx=ctx,
    )
    design = engine.design
    df_terms = np.array([t.df for t in design.terms], dtype=float)
    df_res = design.df_residual

    # ---- Observed statistics --------------------------------------
    observed_ss = engine.sums_of_squares()
    observed_f = _pseudo_f(observed_ss, df_terms, df_res)
    ctx.observed_ss = observed_ss
    ctx.observed_f = observed_f

    # ---- Reference distribution -----------------------------------
    permuted_f = np.concatenate(
        [
            _pseudo_f(engine.sums_of_squares(chunk), df_terms, df_res)
            for chunk in engine.iter_chunks()
        ],
        axis=0,
    )
    ctx.permuted_f = permuted_f

    p_values = permutation_p_values(
        observed_f, permuted_f, includes_observed=engine.exhaustive
    )
    classic = classical_p_values(observed_f, df_terms, df_res)
    logger.debug(
        "PERMANOVA %s: n=%d, %d %s arrangements, F=%s",
        design.formula.text,
        design.n_samples,
        permuted_f.shape[0],
        "enumerated" if engine.exhaustive else "sampled",
        np.round(observed_f, 4).tolist(),
    )

    # ---- Package ---------------------------------------------------
    ss_total = engine.ss_total
    rows: list[TermResult] = []
    for k, term in enumerate(design.terms):
        ss = float(observed_ss[k])
        rows.append(
            TermResult(
                term=term.label,
                df=term.df,
                sum_of_squares=ss,
                r2=ss / ss_total,
                mean_square=ss / term.df,
                f_statistic=float(observed_f[k]),
                p_value=float(p_values[k]),
                classic_p_value=float(classic[k]),
            )
        )
    ss_res = float(observed_ss[-1])
    rows.append(
        TermResult(
            term=RESIDUAL,
            df=df_res,
            sum_of_squares=ss_res,
            r2=ss_res / ss_total,
            mean_square=ss_res / df_res,
        )
    )
    rows.append(
        TermResult(
            term=TOTAL,
            df=design.n_samples - 1,
            sum_of_squares=ss_total,
            r2=1.0,
        )
    )

    if strata is None:
        strata_info: str | bool = False
    elif isinstance(strata, str):
        strata_info = strata
    else:
        strata_info = True

    return PermanovaResult(
        rows=tuple(rows),
        formula=design.formula.text,
        n_samples=design.n_samples,
        n_permutations=engine.n_permutations,
        exhaustive=engine.exhaustive,
        strata=strata_info,
        seed=seed,
        dropped_terms=design.dropped,
        context=ctx,
    )


__all__ = ["permanova"]
