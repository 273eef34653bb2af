"""Tests for result aggregation and TSV persistence."""

import pandas as pd
import pytest

from permanova_tests import (
    DesignError,
    PermanovaResult,
    TermResult,
    aggregate_results,
    results_table,
    write_result_table,
)


def _result(terms):
    rows = tuple(
        TermResult(label, 1, r2, r2, r2, 5.0, p, p) for label, r2, p in terms
    )
    rows += (
        TermResult("Residual", 10, 0.1, 0.1, 0.01),
        TermResult("Total", 12, 1.0, 1.0),
    )
    return PermanovaResult(
        rows=rows,
        formula="+".join(t[0] for t in terms),
        n_samples=13,
        n_permutations=9999,
        exhaustive=False,
        strata="mouse_id",
        seed=19881117,
    )


DAY_M1 = _result([("source", 0.4, 0.0001), ("source:unique_cage", 0.2, 0.03)])
DAY_0 = _result([("source", 0.3, 0.002), ("source:unique_cage", 0.1, 0.4)])


class TestResultsTable:
    def test_all_terms(self):
        table = results_table(DAY_M1)
        assert list(table.columns) == ["effects", "r_sq", "p"]
        assert table["effects"].tolist() == ["source", "source:unique_cage"]

    def test_effects_order(self):
        table = results_table(DAY_M1, ["source:unique_cage", "source"])
        assert table["effects"].tolist() == ["source:unique_cage", "source"]

    def test_missing_effect(self):
        with pytest.raises(DesignError, match="experiment"):
            results_table(DAY_M1, ["experiment"])


class TestAggregateResults:
    def test_caller_order_and_subset_column(self):
        table = aggregate_results([(-1, DAY_M1), (0, DAY_0)], subset_column="day")
        assert list(table.columns) == ["effects", "r_sq", "p", "day"]
        assert table["day"].tolist() == [-1, -1, 0, 0]
        assert table["p"].tolist() == [0.0001, 0.03, 0.002, 0.4]

    def test_reverse_order_kept(self):
        table = aggregate_results([(0, DAY_0), (-1, DAY_M1)], subset_column="day")
        assert table["day"].tolist() == [0, 0, -1, -1]

    def test_adjustment(self):
        table = aggregate_results(
            [(-1, DAY_M1), (0, DAY_0)], subset_column="day", adjust="bonferroni"
        )
        assert table["p_adj"].tolist() == pytest.approx([0.0004, 0.12, 0.008, 1.0])

    def test_empty(self):
        table = aggregate_results([], subset_column="source")
        assert list(table.columns) == ["effects", "r_sq", "p", "source"]
        assert table.empty

    def test_subset_column_collision(self):
        with pytest.raises(ValueError, match="collides"):
            aggregate_results([(0, DAY_0)], subset_column="p")

    def test_write_tsv(self, tmp_path):
        table = aggregate_results([(-1, DAY_M1)], subset_column="day")
        path = tmp_path / "permanova_day.tsv"
        write_result_table(table, path)
        lines = path.read_text().splitlines()
        assert lines[0] == "effects\tr_sq\tp\tday"
        again = pd.read_csv(path, sep="\t")
        assert again["effects"].tolist() == ["source", "source:unique_cage"]
