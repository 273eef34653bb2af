"""Aggregation of per-subset PERMANOVA results into tidy tables.

A study typically runs one analysis per subset (per day, per source)
and reports ``(effect, R², p)`` for each.  The helpers here flatten
:class:`~._results.PermanovaResult` objects into a long table with
columns ``effects``, ``r_sq``, ``p`` and a subset column, optionally
adding multiple-testing-adjusted p-values, and persist it as TSV.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from os import PathLike
from typing import Any

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

from ._errors import DesignError
from ._results import PermanovaResult

logger = logging.getLogger(__name__)

RESULT_COLUMNS = ("effects", "r_sq", "p")


def results_table(
    result: PermanovaResult,
    effects: Sequence[str] | None = None,
) -> pd.DataFrame:
    """Return ``effects``/``r_sq``/``p`` rows for one analysis.

    Args:
        result: A completed analysis.
        effects: Term labels to report, in this order.  ``None``
            reports every tested term in analysis order.

    Raises:
        DesignError: If a requested effect is not a tested term.
    """
    if effects is None:
        rows = result.terms
    else:
        available = {r.term: r for r in result.terms}
        missing = [e for e in effects if e not in available]
        if missing:
            raise DesignError(
                f"Effect(s) {missing} not in result for {result.formula!r}; "
                f"tested terms: {list(available)}."
            )
        rows = tuple(available[e] for e in effects)
    return pd.DataFrame(
        {
            "effects": [r.term for r in rows],
            "r_sq": [r.r2 for r in rows],
            "p": [r.p_value for r in rows],
        }
    )


def aggregate_results(
    results: Iterable[tuple[Any, PermanovaResult]],
    *,
    effects: Sequence[str] | None = None,
    subset_column: str = "subset",
    adjust: str | None = None,
) -> pd.DataFrame:
    """Stack per-subset results into one long table.

    Args:
        results: ``(subset, result)`` pairs, e.g. ``(day, result)``.
            Output rows follow this order.
        effects: Term labels to report from every result.
        subset_column: Name of the column holding each pair's subset.
        adjust: Optional :func:`statsmodels.stats.multitest.multipletests`
            method (e.g. ``"fdr_bh"``, ``"holm"``); adds a ``p_adj``
            column computed over all rows.

    Returns:
        DataFrame with columns ``effects``, ``r_sq``, ``p``,
        *subset_column* and, when *adjust* is given, ``p_adj``.
    """
    if subset_column in RESULT_COLUMNS:
        raise ValueError(
            f"subset_column {subset_column!r} collides with a result column."
        )
    frames = []
    for subset, result in results:
        frame = results_table(result, effects)
        frame[subset_column] = subset
        frames.append(frame)

    columns = [*RESULT_COLUMNS, subset_column]
    if not frames:
        table = pd.DataFrame(columns=columns)
    else:
        table = pd.concat(frames, ignore_index=True)[columns]

    if adjust is not None:
        p = table["p"].to_numpy(dtype=float)
        if p.size:
            _, p_adj, _, _ = multipletests(p, method=adjust)
        else:
            p_adj = np.array([], dtype=float)
        table["p_adj"] = p_adj
        logger.debug("Adjusted %d p-values with %s", p.size, adjust)
    return table


def write_result_table(frame: pd.DataFrame, path: str | PathLike[str]) -> None:
    """Write *frame* as tab-separated values with a header row."""
    frame.to_csv(path, sep="\t", index=False)


__all__ = [
    "RESULT_COLUMNS",
    "aggregate_results",
    "results_table",
    "write_result_table",
]
