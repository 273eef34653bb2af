"""Tests for the result dataclasses."""

import json

import numpy as np
import pytest

from permanova_tests import PermanovaResult, TermResult
from permanova_tests._results import _numpy_to_python


def _result():
    rows = (
        TermResult("source", 1, 0.8, 0.8, 0.8, 16.0, 0.01, 0.002),
        TermResult("Residual", 4, 0.2, 0.2, 0.05),
        TermResult("Total", 5, 1.0, 1.0),
    )
    return PermanovaResult(
        rows=rows,
        formula="source",
        n_samples=6,
        n_permutations=99,
        exhaustive=False,
        strata=False,
        seed=7,
    )


class TestNumpyToPython:
    def test_scalars_and_arrays(self):
        out = _numpy_to_python(
            {"a": np.float64(1.5), "b": np.arange(3), "c": (np.int64(2),)}
        )
        assert out == {"a": 1.5, "b": [0, 1, 2], "c": (2,)}
        assert type(out["a"]) is float


class TestPermanovaResult:
    def test_rows_split(self):
        result = _result()
        assert result.term_labels == ("source",)
        assert result.residual.df == 4
        assert result.total.r2 == 1.0

    def test_term_lookup(self):
        result = _result()
        assert result.term("source").p_value == 0.01
        with pytest.raises(KeyError, match="'cage'"):
            result.term("cage")

    def test_dict_access(self):
        result = _result()
        assert result["formula"] == "source"
        assert result.get("missing", 3) == 3
        assert "seed" in result
        with pytest.raises(KeyError):
            result["missing"]

    def test_to_dict_is_json_serialisable(self):
        payload = _result().to_dict()
        assert payload["rows"][0]["term"] == "source"
        json.dumps(payload)

    def test_to_frame(self):
        frame = _result().to_frame()
        assert list(frame.index) == ["source", "Residual", "Total"]
        assert frame.loc["source", "Pr(>F)"] == 0.01
        assert frame.loc["Residual", "Df"] == 4

    def test_frozen(self):
        result = _result()
        with pytest.raises(AttributeError):
            result.seed = 3
