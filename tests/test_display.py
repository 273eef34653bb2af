"""Tests for the display module."""

from permanova_tests import (
    PermanovaResult,
    TermResult,
    aggregate_results,
    print_aggregate_table,
    print_permanova_table,
)
from permanova_tests.display import _truncate


def _result(**overrides):
    fields = dict(
        rows=(
            TermResult("source", 1, 0.805, 0.9877, 0.805, 161.0, 1 / 3, 0.006),
            TermResult("Residual", 2, 0.01, 0.0123, 0.005),
            TermResult("Total", 3, 0.815, 1.0),
        ),
        formula="source",
        n_samples=4,
        n_permutations=5,
        exhaustive=True,
        strata=False,
        seed=None,
    )
    fields.update(overrides)
    return PermanovaResult(**fields)


class TestTruncate:
    def test_short_name_unchanged(self):
        assert _truncate("abc", 10) == "abc"

    def test_long_name_truncated(self):
        result = _truncate("abcdefghijk", 10)
        assert len(result) == 10
        assert result.endswith("...")


class TestPrintPermanovaTable:
    def test_prints_rows_and_legend(self, capsys):
        print_permanova_table(_result())
        out = capsys.readouterr().out
        assert "Permutational MANOVA Results" in out
        assert "source" in out
        assert "Residual" in out
        assert "0.3333 (ns)" in out
        assert "0.0060 (**)" in out
        assert "(***) p < 0.001" in out

    def test_exhaustive_note(self, capsys):
        print_permanova_table(_result())
        out = capsys.readouterr().out
        assert "All 6 distinct arrangements" in out

    def test_dropped_terms_note(self, capsys):
        print_permanova_table(
            _result(exhaustive=False, dropped_terms=("source:unique_cage",))
        )
        out = capsys.readouterr().out
        assert "source:unique_cage" in out
        assert "distinct arrangements" not in out

    def test_lines_fit_width(self, capsys):
        print_permanova_table(_result(strata="mouse_id", seed=19881117))
        for line in capsys.readouterr().out.splitlines():
            assert len(line) <= 80


class TestPrintAggregateTable:
    def test_prints_subsets(self, capsys):
        table = aggregate_results(
            [(-1, _result()), (0, _result())], subset_column="day", adjust="holm"
        )
        print_aggregate_table(table, subset_column="day")
        out = capsys.readouterr().out
        assert "p (adj)" in out
        assert out.count("source") == 2
        for line in out.splitlines():
            assert len(line) <= 80
