"""Tests for Polars metadata input compatibility."""

import pandas as pd
import pytest

from permanova_tests import (
    FactorLevelSpecs,
    join_attributes,
    join_coordinates,
    parse_distance_matrix,
    permanova,
)
from permanova_tests._compat import _ensure_pandas_df

# Import polars; skip all tests in this module if not installed.
pl = pytest.importorskip("polars")

SPECS = FactorLevelSpecs({"group": ("x", "y")})


class TestEnsurePandasDf:
    """Tests for the _ensure_pandas_df converter."""

    def test_pandas_passthrough(self):
        df = pd.DataFrame({"a": [1, 2, 3]})
        assert _ensure_pandas_df(df) is df

    def test_polars_converted(self):
        result = _ensure_pandas_df(pl.DataFrame({"a": [1, 2, 3]}))
        assert isinstance(result, pd.DataFrame)
        assert result["a"].tolist() == [1, 2, 3]

    def test_polars_lazyframe_collected(self):
        result = _ensure_pandas_df(pl.DataFrame({"a": [1, 2, 3]}).lazy())
        assert result["a"].tolist() == [1, 2, 3]

    def test_rejects_invalid_type(self):
        with pytest.raises(TypeError, match="must be a pandas DataFrame"):
            _ensure_pandas_df([1, 2, 3])

    def test_error_includes_name(self):
        with pytest.raises(TypeError, match="'metadata'"):
            _ensure_pandas_df({"a": 1}, name="metadata")

    def test_missing_required_column(self):
        with pytest.raises(KeyError, match="'id'"):
            _ensure_pandas_df(pd.DataFrame({"a": [1]}), required=["id"])


class TestPolarsEndToEnd:
    """Public functions accept Polars metadata."""

    def test_join_and_analyse(self, four_sample_text):
        matrix = parse_distance_matrix(four_sample_text)
        meta = pl.DataFrame({"id": ["A", "B", "C", "D"], "group": ["x", "x", "y", "y"]})
        attrs = join_attributes(matrix.labels, meta, SPECS)
        result = permanova(matrix, attrs, "group", permutations=999)
        assert result.exhaustive
        assert result.term("group").p_value == pytest.approx(1 / 3)

    def test_join_coordinates(self):
        axes = pd.DataFrame({"id": ["A", "B"], "axis1": [0.1, 0.2]})
        meta = pl.DataFrame({"id": ["A", "B", "C"], "day": [0, 1, 1]}).lazy()
        joined = join_coordinates(axes, meta)
        assert joined["id"].tolist() == ["A", "B"]
