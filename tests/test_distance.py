"""Tests for the distance module."""

import numpy as np
import pytest

from permanova_tests import (
    DistanceMatrix,
    FormatError,
    format_distance_matrix,
    parse_distance_matrix,
    read_distance_matrix,
    write_distance_matrix,
)


class TestParseDistanceMatrix:
    def test_four_sample_matrix(self, four_sample_text):
        m = parse_distance_matrix(four_sample_text)
        assert m.labels == ("A", "B", "C", "D")
        expected = np.array(
            [
                [0.0, 0.1, 0.9, 0.9],
                [0.1, 0.0, 0.9, 0.9],
                [0.9, 0.9, 0.0, 0.1],
                [0.9, 0.9, 0.1, 0.0],
            ]
        )
        np.testing.assert_array_equal(m.data, expected)

    def test_symmetric_with_zero_diagonal(self, four_sample_text):
        m = parse_distance_matrix(four_sample_text)
        np.testing.assert_array_equal(m.data, m.data.T)
        np.testing.assert_array_equal(np.diag(m.data), 0.0)

    def test_single_sample(self):
        m = parse_distance_matrix("1\nA\n")
        assert m.shape == (1, 1)
        assert m.data[0, 0] == 0.0

    def test_trailing_blank_lines_and_crlf(self):
        m = parse_distance_matrix("2\r\nA\r\nB\t0.5\r\n\r\n\r\n")
        assert m.labels == ("A", "B")
        assert m.data[0, 1] == 0.5

    def test_count_mismatch(self):
        with pytest.raises(FormatError, match="Declared 3 samples"):
            parse_distance_matrix("3\nA\nB\t0.1\n")

    def test_truncated_row_names_label(self):
        with pytest.raises(FormatError, match=r"Line 4 \('C'\): truncated"):
            parse_distance_matrix("3\nA\nB\t0.1\nC\t0.2\n")

    def test_overlong_row(self):
        with pytest.raises(FormatError, match="overlong"):
            parse_distance_matrix("2\nA\nB\t0.1\t0.2\n")

    def test_non_numeric_field(self):
        with pytest.raises(FormatError, match="non-numeric"):
            parse_distance_matrix("2\nA\nB\tabc\n")

    def test_negative_field(self):
        with pytest.raises(FormatError, match="non-negative"):
            parse_distance_matrix("2\nA\nB\t-0.1\n")

    def test_bad_count_line(self):
        with pytest.raises(FormatError, match="sample count"):
            parse_distance_matrix("four\nA\n")

    def test_empty_input(self):
        with pytest.raises(FormatError, match="Empty"):
            parse_distance_matrix("\n\n")

    def test_duplicate_labels(self):
        with pytest.raises(FormatError, match="Duplicate"):
            parse_distance_matrix("2\nA\nA\t0.1\n")


class TestReadWrite:
    def test_file_round_trip(self, tmp_path, four_sample_text):
        m = parse_distance_matrix(four_sample_text)
        path = tmp_path / "subset.dist"
        write_distance_matrix(m, path)
        again = read_distance_matrix(path)
        assert again.labels == m.labels
        np.testing.assert_array_equal(again.data, m.data)

    def test_read_error_names_file(self, tmp_path):
        path = tmp_path / "broken.dist"
        path.write_text("3\nA\nB\t0.1\n")
        with pytest.raises(FormatError, match="broken.dist"):
            read_distance_matrix(path)

    def test_format_layout(self, four_sample_text):
        text = format_distance_matrix(parse_distance_matrix(four_sample_text))
        lines = text.splitlines()
        assert lines[0] == "4"
        assert lines[1] == "A"
        assert lines[3].split("\t") == ["C", "0.9", "0.9"]


class TestDistanceMatrix:
    def test_rejects_asymmetric(self):
        with pytest.raises(FormatError, match="symmetric"):
            DistanceMatrix(np.array([[0.0, 1.0], [2.0, 0.0]]), ("a", "b"))

    def test_rejects_nonzero_diagonal(self):
        with pytest.raises(FormatError, match="diagonal"):
            DistanceMatrix(np.array([[1.0, 1.0], [1.0, 0.0]]), ("a", "b"))

    def test_rejects_label_count(self):
        with pytest.raises(FormatError, match="labels"):
            DistanceMatrix(np.zeros((2, 2)), ("a",))

    def test_read_only(self, four_sample_text):
        m = parse_distance_matrix(four_sample_text)
        with pytest.raises(ValueError):
            m.data[0, 1] = 5.0

    def test_subset_reorders(self, four_sample_text):
        m = parse_distance_matrix(four_sample_text)
        sub = m.subset(["D", "A"])
        assert sub.labels == ("D", "A")
        assert sub.data[0, 1] == 0.9

    def test_index_of_missing(self, four_sample_text):
        m = parse_distance_matrix(four_sample_text)
        with pytest.raises(KeyError):
            m.index_of("Z")

    def test_condensed_and_frame(self, four_sample_text):
        m = parse_distance_matrix(four_sample_text)
        np.testing.assert_allclose(m.condensed(), [0.1, 0.9, 0.9, 0.9, 0.9, 0.1])
        frame = m.to_frame()
        assert frame.loc["A", "B"] == 0.1
        again = DistanceMatrix.from_condensed(m.condensed(), m.labels)
        np.testing.assert_array_equal(again.data, m.data)
