"""Formatted ASCII table display utilities for PERMANOVA results.

The analysis-of-variance table shows each term's degrees of freedom,
sequential sum of squares, pseudo-F and R², with the permutation
p-value and the classical F-distribution p-value side by side.

The classical p-value assumes Euclidean distances and normal errors;
where it diverges from the permutation p-value the permutation test is
the one to trust.
"""

from __future__ import annotations

import math
import textwrap
from typing import TYPE_CHECKING

from .pvalues import DEFAULT_THRESHOLDS, format_p_value

if TYPE_CHECKING:
    import pandas as pd

    from ._results import PermanovaResult


def _truncate(name: str, max_len: int) -> str:
    """Truncate *name* to *max_len*, appending ``'...'`` if needed."""
    if len(name) <= max_len:
        return name
    return name[: max_len - 3] + "..."


def _wrap(text: str, width: int = 80, indent: int = 2) -> str:
    """Word-wrap *text* to *width*, indenting continuation lines."""
    return textwrap.fill(
        text,
        width=width,
        initial_indent="",
        subsequent_indent=" " * indent,
    )


def _fmt(value: float | None, spec: str) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    return format(value, spec)


def _print_title(title: str) -> None:
    print("=" * 80)
    for line in textwrap.wrap(title, width=78):
        print(f"{line:^80}")
    print("=" * 80)


def _print_legend(thresholds: tuple[float, float, float]) -> None:
    one, two, three = thresholds
    print(
        f"(***) p < {three}   (**) p < {two}   (*) p < {one}   (ns) p >= {one}"
    )


def print_permanova_table(
    result: PermanovaResult,
    *,
    title: str = "Permutational MANOVA Results",
    thresholds: tuple[float, float, float] = DEFAULT_THRESHOLDS,
) -> None:
    """Print an analysis-of-variance table for *result*.

    Args:
        result: Result returned by :func:`~permanova_tests.permanova`.
        title: Title for the output table.
        thresholds: Significance thresholds for the p-value markers.
    """
    _print_title(title)

    col1 = 40
    col2 = 38
    perm_mode = "exhaustive" if result.exhaustive else "random"
    print(
        f"{'Formula:':<16}{_truncate(result.formula, col1 - 16):<{col1 - 16}}"
        f"{'No. Samples:':>{col2 - 11}} {result.n_samples:>10}"
    )
    if result.strata is False:
        strata_str = "none"
    elif result.strata is True:
        strata_str = "custom"
    else:
        strata_str = str(result.strata)
    print(
        f"{'Strata:':<16}{_truncate(strata_str, col1 - 16):<{col1 - 16}}"
        f"{'Permutations:':>{col2 - 11}} {result.n_permutations:>10}"
    )
    seed_str = "N/A" if result.seed is None else str(result.seed)
    print(
        f"{'Mode:':<16}{perm_mode:<{col1 - 16}}"
        f"{'Seed:':>{col2 - 11}} {seed_str:>10}"
    )
    print("-" * 80)

    # ── Table geometry (W = 80 chars) ─────────────────────────── #
    #
    #   Term (22) | Df (5) | SumOfSqs (10) | F (9) | R2 (8)
    #   | Emp p (13) | Asy p (13)
    #   Total: 22 + 5 + 10 + 9 + 8 + 13 + 13 = 80
    tc = 22
    print(
        f"{'Term':<{tc}}{'Df':>5}{'SumOfSqs':>10}{'F':>9}{'R2':>8}"
        f"{'P(>F) (Emp)':>13}{'P(>F) (Asy)':>13}"
    )
    print("-" * 80)
    for row in result.rows:
        emp = "" if row.p_value is None else format_p_value(
            row.p_value, thresholds=thresholds
        )
        asy = "" if row.classic_p_value is None else format_p_value(
            row.classic_p_value, thresholds=thresholds
        )
        print(
            f"{_truncate(row.term, tc):<{tc}}{row.df:>5}"
            f"{_fmt(row.sum_of_squares, '.4f'):>10}"
            f"{_fmt(row.f_statistic, '.4f'):>9}"
            f"{_fmt(row.r2, '.4f'):>8}"
            f"{emp:>13}{asy:>13}"
        )

    # ── Notes ──────────────────────────────────────────────────── #
    notes: list[str] = []
    if result.exhaustive:
        notes.append(
            f"All {result.n_permutations + 1} distinct arrangements were "
            "enumerated; permutation p-values are exact."
        )
    if result.dropped_terms:
        notes.append(
            "Aliased terms dropped (zero degrees of freedom): "
            + ", ".join(result.dropped_terms)
            + "."
        )
    if notes:
        print("-" * 80)
        print("Notes")
        print("-" * 80)
        for note in notes:
            print(_wrap(f"  [!] {note}", width=80, indent=6))

    print("=" * 80)
    _print_legend(thresholds)
    print()


def print_aggregate_table(
    frame: pd.DataFrame,
    *,
    subset_column: str = "subset",
    title: str = "PERMANOVA Results by Subset",
    thresholds: tuple[float, float, float] = DEFAULT_THRESHOLDS,
) -> None:
    """Print a table produced by :func:`~.aggregate.aggregate_results`."""
    _print_title(title)
    has_adj = "p_adj" in frame.columns
    tc = 34 if has_adj else 47
    print(
        f"{'Subset':<12}{'Effect':<{tc}}{'R2':>8}{'p':>13}"
        + (f"{'p (adj)':>13}" if has_adj else "")
    )
    print("-" * 80)
    previous = None
    for record in frame.to_dict("records"):
        subset = record[subset_column]
        if previous is not None and subset != previous:
            print()
        label = str(subset) if subset != previous else ""
        previous = subset
        effect = _truncate(str(record["effects"]), tc - 1)
        line = (
            f"{_truncate(label, 11):<12}{effect:<{tc}}"
            f"{record['r_sq']:>8.4f}"
            f"{format_p_value(record['p'], thresholds=thresholds):>13}"
        )
        if has_adj:
            line += f"{format_p_value(record['p_adj'], thresholds=thresholds):>13}"
        print(line)
    print("=" * 80)
    _print_legend(thresholds)
    print()


__all__ = ["print_aggregate_table", "print_permanova_table"]
