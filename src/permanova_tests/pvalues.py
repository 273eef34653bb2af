"""P-value calculation for distance-based permutation tests.

Permutation p-values — Phipson & Smyth (2010) correction
---------------------------------------------------------
For each term the observed pseudo-F is compared with the B pseudo-F
values recomputed under permutation:

    p = (b + 1) / (B + 1),    b = #{F*_b >= F}

The observed arrangement is itself one member of the reference set, so
p is never zero and its minimum is 1/(B + 1).

When every distinct arrangement of the design is enumerated, the
observed arrangement is already in the reference set and the exact
p-value is ``#{F* >= F} / total``, which equals the corrected formula
with ``B = total − 1``.

Ties are decided with a small tolerance, ``F* >= F − ε·max(1, |F|)``
with ``ε = √(machine epsilon)``: arrangements that are mirror images of
the observed one (swapping two equally sized groups) reproduce F only
up to rounding error and must count as ties.

Classical p-values
------------------
For comparison the upper tail of the F(df_term, df_residual)
distribution is reported via :mod:`scipy.stats`.  It is exact only for
Euclidean distances with normal errors, which is precisely the
assumption the permutation test avoids.

Reference:
    Phipson, B. & Smyth, G. K. (2010). Permutation p-values should
    never be zero: calculating exact p-values when permutations are
    randomly drawn. *Statistical Applications in Genetics and Molecular
    Biology*, 9(1), Article 39.
"""

from __future__ import annotations

import numpy as np
from scipy import stats

TIE_TOLERANCE = float(np.sqrt(np.finfo(float).eps))

DEFAULT_THRESHOLDS = (0.05, 0.01, 0.001)


def _tie_floor(observed: np.ndarray) -> np.ndarray:
    finite = np.isfinite(observed)
    scale = np.maximum(1.0, np.abs(np.where(finite, observed, 0.0)))
    return np.where(finite, observed - TIE_TOLERANCE * scale, observed)


def count_exceedances(observed_f: np.ndarray, permuted_f: np.ndarray) -> np.ndarray:
    """Return per-term counts of permuted F at least as large as observed.

    Args:
        observed_f: Shape ``(K,)``.
        permuted_f: Shape ``(B, K)``.
    """
    observed_f = np.asarray(observed_f, dtype=float)
    permuted_f = np.asarray(permuted_f, dtype=float).reshape(-1, observed_f.shape[0])
    return np.sum(permuted_f >= _tie_floor(observed_f)[np.newaxis, :], axis=0)


def permutation_p_values(
    observed_f: np.ndarray,
    permuted_f: np.ndarray,
    *,
    includes_observed: bool = False,
) -> np.ndarray:
    """Compute corrected permutation p-values for every term.

    Args:
        observed_f: Observed pseudo-F per term, shape ``(K,)``.
        permuted_f: Pseudo-F under each permutation, shape ``(B, K)``.
        includes_observed: ``True`` when *permuted_f* is a complete
            enumeration that already contains the observed arrangement.

    Returns:
        Array of shape ``(K,)`` with values in ``[1/(B+1), 1]``.
    """
    permuted_f = np.asarray(permuted_f, dtype=float)
    n_rows = permuted_f.shape[0]
    counts = count_exceedances(observed_f, permuted_f)
    if includes_observed:
        if n_rows == 0:
            raise ValueError("A complete enumeration cannot be empty.")
        return counts / n_rows
    return (counts + 1) / (n_rows + 1)


def classical_p_values(
    f_statistics: np.ndarray,
    df_terms: np.ndarray,
    df_residual: int,
) -> np.ndarray:
    """Upper-tail F-distribution p-values, for comparison only."""
    return np.asarray(
        stats.f.sf(
            np.asarray(f_statistics, dtype=float), np.asarray(df_terms), df_residual
        ),
        dtype=float,
    )


def format_p_value(
    p: float,
    precision: int = 4,
    thresholds: tuple[float, float, float] = DEFAULT_THRESHOLDS,
) -> str:
    """Format *p* with a marker: ``(***)``, ``(**)``, ``(*)`` or ``(ns)``."""
    one, two, three = thresholds
    val = f"{np.round(p, precision):.{precision}f}"
    if p < three:
        return f"{val} (***)"
    if p < two:
        return f"{val} (**)"
    if p < one:
        return f"{val} (*)"
    return f"{val} (ns)"


__all__ = [
    "DEFAULT_THRESHOLDS",
    "TIE_TOLERANCE",
    "classical_p_values",
    "count_exceedances",
    "format_p_value",
    "permutation_p_values",
]
