"""Analysis context — mutable accumulator for pipeline artifacts.

An :class:`AnalysisContext` travels through one :func:`permanova` call
collecting intermediate arrays at their natural computation points so
that display code and tests can inspect them without recomputation.

It is **not** part of the serialised result:
:meth:`~_results.PermanovaResult.to_dict` skips it.

Lifecycle::

    permanova()
    ├─ ctx = AnalysisContext()
    ├─ PermanovaEngine(…, ctx=ctx)
    │   ├─ ctx.design         = build_design(…)
    │   ├─ ctx.gower          = −½ J D² J
    │   ├─ ctx.strata_codes   = encoded blocks
    │   ├─ ctx.n_distinct     = distinct arrangements
    │   └─ ctx.perm_indices   = exhaustive or sampled rows
    ├─ ctx.observed_ss / ctx.observed_f
    ├─ ctx.permuted_f     (B, K)
    └─ result.context = ctx
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .design import ModelDesign


@dataclass
class AnalysisContext:
    """Mutable accumulator for computation artifacts.

    Every field defaults to ``None`` so the context can be created
    empty and populated incrementally; ``None`` means that stage has
    not run.
    """

    # ---- Inputs --------------------------------------------------
    labels: tuple[str, ...] | None = None
    """Sample labels, in matrix order."""

    gower: np.ndarray | None = None
    """Gower-centred matrix ``−½ J D² J``, shape ``(n, n)``."""

    design: ModelDesign | None = None
    """Sequential design with per-term projections."""

    # ---- Permutation scheme --------------------------------------
    strata_codes: np.ndarray | None = None
    """Integer block code per sample, or ``None`` when unrestricted."""

    n_distinct: int | None = None
    """Distinct design arrangements (capped at the request + 1)."""

    exhaustive: bool | None = None
    """Whether every distinct arrangement was enumerated."""

    perm_indices: np.ndarray | None = None
    """Permutation rows actually evaluated, shape ``(B, n)``."""

    # ---- Statistics ----------------------------------------------
    ss_total: float | None = None
    """Total sum of squares, ``trace(G)``."""

    observed_ss: np.ndarray | None = None
    """Observed term and residual sums of squares, shape ``(K + 1,)``."""

    observed_f: np.ndarray | None = None
    """Observed pseudo-F per term, shape ``(K,)``."""

    permuted_f: np.ndarray | None = None
    """Pseudo-F per permutation and term, shape ``(B, K)``."""
