"""Tests for PCoA axes/loadings readers and the metadata join."""

import pandas as pd
import pytest

from permanova_tests import (
    FormatError,
    axis_label,
    join_coordinates,
    read_pcoa_axes,
    read_pcoa_loadings,
    samples_per_group,
)

AXES = "group\taxis1\taxis2\taxis3\nA\t0.1\t-0.2\t0.3\nB\t0.4\t0.5\t0.6\nC\t-0.7\t0.8\t0.9\n"
LOADINGS = "axis\tloading\n1\t23.44\n2\t12.06\n3\t5.0\n"


@pytest.fixture
def axes_path(tmp_path):
    path = tmp_path / "study.pcoa.axes"
    path.write_text(AXES)
    return path


@pytest.fixture
def loadings_path(tmp_path):
    path = tmp_path / "study.pcoa.loadings"
    path.write_text(LOADINGS)
    return path


class TestReaders:
    def test_axes_limited_and_renamed(self, axes_path):
        axes = read_pcoa_axes(axes_path)
        assert list(axes.columns) == ["id", "axis1", "axis2"]
        assert axes["id"].tolist() == ["A", "B", "C"]

    def test_axes_missing_column(self, axes_path):
        with pytest.raises(FormatError, match="axis4"):
            read_pcoa_axes(axes_path, axes=4)

    def test_axis_label_rounds(self, loadings_path):
        loadings = read_pcoa_loadings(loadings_path)
        assert axis_label(loadings, 1) == "PCoA 1 (23.4%)"
        assert axis_label(loadings, 2) == "PCoA 2 (12.1%)"

    def test_axis_label_missing(self, loadings_path):
        with pytest.raises(KeyError):
            axis_label(read_pcoa_loadings(loadings_path), 7)


class TestJoinCoordinates:
    def test_drops_unsequenced_samples(self, axes_path):
        metadata = pd.DataFrame(
            {
                "id": ["A", "B", "C", "D"],
                "day": [-1.0, 0.0, 0.0, 1.0],
            }
        )
        joined = join_coordinates(read_pcoa_axes(axes_path), metadata)
        assert joined["id"].tolist() == ["A", "B", "C"]
        assert joined["day"].tolist() == [-1, 0, 0]
        assert pd.api.types.is_integer_dtype(joined["day"])

    def test_samples_per_group(self, axes_path):
        metadata = pd.DataFrame({"id": ["A", "B", "C"], "day": [-1, 0, 0]})
        joined = join_coordinates(read_pcoa_axes(axes_path), metadata)
        counts = samples_per_group(joined, "day")
        assert counts["day"].tolist() == [0, -1]
        assert counts["n"].tolist() == [2, 1]
