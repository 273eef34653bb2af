"""Model design and sequential projections for distance-based ANOVA.

For a design formula with terms T₁, …, T_K the cumulative model after
term k is spanned by an intercept plus the indicator columns of every
term up to k.  A term's indicator columns are one column per observed
*cell* of its factors (for ``source:cage``, one column per observed
source × cage combination).  Using full cell indicators rather than a
particular contrast coding is sufficient because sequential sums of
squares depend only on the **column space** of each cumulative model,
and the cell indicators of a term span the same space as any coding of
that term together with its marginal terms.

Sequential (Type I) decomposition
---------------------------------
Let H_k be the orthogonal projection onto the cumulative model after
term k (H₀ projects onto the intercept).  The sum of squares for term
k is ``⟨H_k − H_{k−1}, G⟩ = trace((H_k − H_{k−1}) G)`` where G is the
Gower-centred matrix, and its degrees of freedom are the rank that the
term adds, ``rank(H_k) − rank(H_{k−1})``.

We maintain an orthonormal basis Q of the cumulative model.  Each
term's indicator block is orthogonalised against Q (two Gram–Schmidt
passes for stability), then a column-pivoted QR of the residual block
reveals how many new directions the term contributes.  The new
orthonormal columns give the projection increment ``P_k = Q_k Q_kᵀ``,
which is stored once and reused for every permutation.

A term that adds no new direction is *aliased*: every one of its cells
is already determined by the preceding terms (one cage per source makes
``source:cage`` redundant with ``source``), or it has a single level.
Such a term has zero degrees of freedom and cannot be tested.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
from scipy import linalg

from ._errors import DesignError
from .factors import SampleAttributes
from .formula import DesignFormula, Term

logger = logging.getLogger(__name__)

# Relative tolerance for rank detection, scaled by the largest
# indicator-column norm of the block being added.
_RANK_TOL = 1e-7


def _cell_codes(attributes: SampleAttributes, factors: tuple[str, ...]) -> np.ndarray:
    """Return one integer code per sample for the joint cell of *factors*."""
    columns = [attributes.codes(name) for name in factors]
    dims = [int(col.max()) + 1 for col in columns]
    flat = np.ravel_multi_index(columns, dims)
    _, codes = np.unique(flat, return_inverse=True)
    return codes.reshape(-1).astype(np.intp)


def _indicators(codes: np.ndarray) -> np.ndarray:
    n_cells = int(codes.max()) + 1
    out = np.zeros((codes.shape[0], n_cells), dtype=float)
    out[np.arange(codes.shape[0]), codes] = 1.0
    return out


def _new_directions(basis: np.ndarray, block: np.ndarray) -> np.ndarray:
    """Return orthonormal columns spanning *block* outside span(*basis*)."""
    scale = max(float(np.linalg.norm(block, axis=0).max()), 1.0)
    resid = block - basis @ (basis.T @ block)
    resid -= basis @ (basis.T @ resid)

    q, r, _ = linalg.qr(resid, mode="economic", pivoting=True)
    diag = np.abs(np.diag(r))
    rank = int(np.sum(diag > _RANK_TOL * scale))
    return q[:, :rank]


@dataclass(frozen=True)
class TermDesign:
    """One term's contribution to the sequential model.

    Attributes:
        term: The formula term.
        df: Degrees of freedom the term adds.
        projection: ``(n, n)`` projection increment ``H_k − H_{k−1}``.
    """

    term: Term
    df: int
    projection: np.ndarray = field(repr=False)

    @property
    def label(self) -> str:
        return self.term.label


@dataclass(frozen=True)
class ModelDesign:
    """Sequential projections for every testable term of a formula.

    Attributes:
        formula: The source formula.
        terms: Testable terms, in analysis order.
        residual_projection: ``I − H_full``.
        df_residual: ``n − rank(H_full)``.
        patterns: One code per sample identifying its full design row
            (the joint cell of every formula factor).  Samples sharing
            a code are interchangeable under any permutation.
        dropped: Labels of aliased terms removed with
            ``drop_aliased=True``.
    """

    formula: DesignFormula
    terms: tuple[TermDesign, ...]
    residual_projection: np.ndarray = field(repr=False)
    df_residual: int
    patterns: np.ndarray = field(repr=False)
    dropped: tuple[str, ...] = ()

    @property
    def n_samples(self) -> int:
        return int(self.residual_projection.shape[0])

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(t.label for t in self.terms)

    def stacked_projections(self) -> np.ndarray:
        """Return ``(K + 1, n·n)``: flattened term projections, then residual."""
        mats = [t.projection for t in self.terms] + [self.residual_projection]
        return np.stack([m.ravel() for m in mats])


def _aliased_message(term: Term, attributes: SampleAttributes) -> str:
    if term.degree == 1 and len(np.unique(attributes.codes(term.factors[0]))) < 2:
        return (
            f"Term {term.label!r} has a single level in this subset and "
            "cannot be tested."
        )
    return (
        f"Term {term.label!r} adds zero degrees of freedom: it is fully "
        "determined by the preceding terms (for a nested term, each outer "
        "level holds only one inner level)."
    )


def build_design(
    attributes: SampleAttributes,
    formula: DesignFormula,
    *,
    drop_aliased: bool = False,
) -> ModelDesign:
    """Build the sequential design for *formula* over *attributes*.

    Args:
        attributes: Sample attributes, one row per sample.
        formula: Parsed design formula.
        drop_aliased: Drop zero-df terms (with a logged warning)
            instead of raising.

    Returns:
        The :class:`ModelDesign`.

    Raises:
        DesignError: If a formula factor is not an attribute column, a
            term has zero degrees of freedom (unless *drop_aliased*), no
            term is testable, or no residual degrees of freedom remain.
    """
    n = attributes.n_samples
    if n < 2:
        raise DesignError(f"At least two samples are required, got {n}.")

    for name in formula.factors:
        attributes.codes(name)  # raises DesignError for undefined columns

    basis = np.full((n, 1), 1.0 / np.sqrt(n))
    kept: list[TermDesign] = []
    dropped: list[str] = []

    for term in formula.terms:
        block = _indicators(_cell_codes(attributes, term.factors))
        new = _new_directions(basis, block)
        df = new.shape[1]
        if df == 0:
            message = _aliased_message(term, attributes)
            if not drop_aliased:
                raise DesignError(message)
            logger.warning("Dropping term: %s", message)
            dropped.append(term.label)
            continue
        kept.append(TermDesign(term=term, df=df, projection=new @ new.T))
        basis = np.hstack([basis, new])
        logger.debug(
            "Term %s: df=%d (cumulative rank %d)", term.label, df, basis.shape[1]
        )

    if not kept:
        raise DesignError(f"Formula {formula.text!r} has no testable terms.")

    df_residual = n - basis.shape[1]
    if df_residual < 1:
        raise DesignError(
            f"Design leaves zero residual degrees of freedom after term "
            f"{kept[-1].label!r} ({n} samples, model rank {basis.shape[1]})."
        )

    residual = np.eye(n) - basis @ basis.T
    patterns = _cell_codes(attributes, formula.factors)
    return ModelDesign(
        formula=formula,
        terms=tuple(kept),
        residual_projection=residual,
        df_residual=df_residual,
        patterns=patterns,
        dropped=tuple(dropped),
    )


__all__ = ["ModelDesign", "TermDesign", "build_design"]
