"""Lower-triangular distance matrices.

The sequence-processing toolchain writes pairwise dissimilarities in a
compact lower-triangular text format::

    4
    A
    B<TAB>0.1
    C<TAB>0.9<TAB>0.9
    D<TAB>0.9<TAB>0.9<TAB>0.1

Line 1 holds the sample count *n*.  Each of the next *n* lines starts
with a sample label; data line *k* (0-indexed) carries exactly *k*
tab-separated distances to the samples listed above it.  The diagonal
is implicit (always zero) and the upper triangle is never stored.

Reconstruction
--------------
The parsed values are written into the strictly lower triangle of a
zero matrix ``L`` and the full matrix is recovered as ``L + Lᵀ``.
Because the diagonal is zero and every off-diagonal cell is populated
in exactly one of ``L`` and ``Lᵀ``, the sum never double-counts and the
result is exactly symmetric.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path

import numpy as np
import pandas as pd
from scipy.spatial.distance import squareform

from ._errors import FormatError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DistanceMatrix:
    """Symmetric, zero-diagonal dissimilarity matrix with sample labels.

    The label at position *i* identifies row and column *i*.  The
    underlying array is marked read-only on construction.

    Attributes:
        data: Float array of shape ``(n, n)``.
        labels: Tuple of *n* unique sample labels.
    """

    data: np.ndarray = field(repr=False)
    labels: tuple[str, ...]

    def __post_init__(self) -> None:
        data = np.array(self.data, dtype=float, copy=True)
        labels = tuple(str(label) for label in self.labels)

        if data.ndim != 2 or data.shape[0] != data.shape[1]:
            raise FormatError(
                f"Distance matrix must be square, got shape {data.shape}."
            )
        if data.shape[0] != len(labels):
            raise FormatError(
                f"Distance matrix has {data.shape[0]} rows but {len(labels)} labels."
            )
        dupes = sorted(lab for lab, count in Counter(labels).items() if count > 1)
        if dupes:
            raise FormatError(f"Duplicate sample labels: {dupes}.")
        if not np.all(np.isfinite(data)):
            raise FormatError("Distance matrix contains NaN or infinite values.")
        if np.any(data < 0):
            raise FormatError("Distance matrix contains negative dissimilarities.")
        if np.any(np.diag(data) != 0):
            raise FormatError("Distance matrix diagonal must be exactly zero.")
        if not np.array_equal(data, data.T):
            raise FormatError("Distance matrix is not symmetric.")

        data.setflags(write=False)
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "labels", labels)

    # ---- Construction -------------------------------------------------

    @classmethod
    def from_condensed(
        cls, condensed: Sequence[float], labels: Sequence[str]
    ) -> DistanceMatrix:
        """Build a matrix from an upper-triangle vector (scipy ordering)."""
        square = squareform(np.asarray(condensed, dtype=float), checks=False)
        return cls(square, tuple(labels))

    # ---- Access -------------------------------------------------------

    @property
    def n_samples(self) -> int:
        return len(self.labels)

    @property
    def shape(self) -> tuple[int, int]:
        return self.data.shape  # type: ignore[return-value]

    def index_of(self, label: str) -> int:
        """Return the row index of *label*.

        Raises:
            KeyError: If *label* is not in the matrix.
        """
        try:
            return self.labels.index(str(label))
        except ValueError:
            raise KeyError(label) from None

    def subset(self, labels: Iterable[str]) -> DistanceMatrix:
        """Return a new matrix restricted to *labels*, in the given order."""
        idx = [self.index_of(label) for label in labels]
        return DistanceMatrix(
            self.data[np.ix_(idx, idx)], tuple(self.labels[i] for i in idx)
        )

    def condensed(self) -> np.ndarray:
        """Return the upper triangle as a condensed vector."""
        return squareform(self.data, checks=False)

    def to_frame(self) -> pd.DataFrame:
        """Return the matrix as a labelled DataFrame."""
        return pd.DataFrame(
            np.array(self.data), index=list(self.labels), columns=list(self.labels)
        )


# ------------------------------------------------------------------ #
# Parsing
# ------------------------------------------------------------------ #


def _parse_field(token: str, label: str, line_no: int) -> float:
    try:
        value = float(token)
    except ValueError:
        raise FormatError(
            f"Line {line_no} ({label!r}): non-numeric distance {token!r}."
        ) from None
    if not math.isfinite(value) or value < 0:
        raise FormatError(
            f"Line {line_no} ({label!r}): distance {token!r} is not a "
            "finite non-negative number."
        )
    return value


def parse_distance_matrix(text: str) -> DistanceMatrix:
    """Parse lower-triangular distance-matrix text.

    Args:
        text: Full file contents.  Trailing blank lines and ``\\r\\n``
            line endings are tolerated.

    Returns:
        The symmetric :class:`DistanceMatrix`.

    Raises:
        FormatError: If the count line is not an integer, the number of
            data lines differs from the declared count, or a row holds
            the wrong number of numeric fields.
    """
    lines = text.splitlines()
    while lines and not lines[-1].strip():
        lines.pop()
    if not lines:
        raise FormatError("Empty distance-matrix input.")

    try:
        n = int(lines[0].strip())
    except ValueError:
        raise FormatError(
            f"Line 1: expected the sample count, got {lines[0].strip()!r}."
        ) from None
    if n < 1:
        raise FormatError(f"Line 1: sample count must be >= 1, got {n}.")

    data_lines = lines[1:]
    if len(data_lines) != n:
        raise FormatError(
            f"Declared {n} samples but found {len(data_lines)} data lines."
        )

    lower = np.zeros((n, n), dtype=float)
    labels: list[str] = []
    for row, line in enumerate(data_lines):
        line_no = row + 2
        label, _, payload = line.partition("\t")
        label = label.strip()
        if not label:
            raise FormatError(f"Line {line_no}: missing sample label.")
        tokens = [tok for tok in payload.strip().split("\t") if tok.strip()]
        if len(tokens) != row:
            kind = "truncated" if len(tokens) < row else "overlong"
            raise FormatError(
                f"Line {line_no} ({label!r}): {kind} row, expected {row} "
                f"distances but found {len(tokens)}."
            )
        if row:
            lower[row, :row] = [_parse_field(tok, label, line_no) for tok in tokens]
        labels.append(label)

    matrix = DistanceMatrix(lower + lower.T, tuple(labels))
    logger.debug("Parsed %d-sample distance matrix", n)
    return matrix


def read_distance_matrix(path: str | PathLike[str]) -> DistanceMatrix:
    """Read and parse a lower-triangular distance-matrix file.

    Raises:
        FormatError: As :func:`parse_distance_matrix`, with the file
            path prefixed to the message.
    """
    path = Path(path)
    try:
        return parse_distance_matrix(path.read_text())
    except FormatError as exc:
        raise FormatError(f"{path}: {exc}") from exc


# ------------------------------------------------------------------ #
# Serialisation
# ------------------------------------------------------------------ #


def format_distance_matrix(matrix: DistanceMatrix) -> str:
    """Serialise *matrix* to the lower-triangular text format."""
    out = [str(matrix.n_samples)]
    for i, label in enumerate(matrix.labels):
        fields = [repr(float(v)) for v in matrix.data[i, :i]]
        out.append("\t".join([label, *fields]))
    return "\n".join(out) + "\n"


def write_distance_matrix(matrix: DistanceMatrix, path: str | PathLike[str]) -> None:
    """Write *matrix* to *path* in the lower-triangular text format."""
    Path(path).write_text(format_distance_matrix(matrix))


__all__ = [
    "DistanceMatrix",
    "format_distance_matrix",
    "parse_distance_matrix",
    "read_distance_matrix",
    "write_distance_matrix",
]
