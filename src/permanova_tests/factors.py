"""Attach categorical experimental factors to distance-matrix labels.

Every analysis subset (a single day, a single source, or the full
dataset) is joined against the same metadata table.  Factor columns
are encoded against **fixed, caller-supplied level sets** rather than
the levels observed in the subset, so a day-0 subset that contains
only two sources still encodes ``source`` over all six.  This keeps
design matrices comparable across subsets and makes term ordering and
degrees of freedom depend only on the configuration.

The level sets are captured once in a :class:`FactorLevelSpecs` object
and reused for every join.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import numpy as np
import pandas as pd

from ._compat import DataFrameLike, _ensure_pandas_df
from ._errors import DesignError, JoinError

logger = logging.getLogger(__name__)


def _level_key(value: Any) -> str | None:
    """Normalise a metadata value to its level string.

    Integral floats (``-1.0`` from a NaN-bearing numeric column) map to
    the same key as their integer form so ``day`` levels given as
    ``"-1"`` match either representation.  Missing values map to
    ``None``.
    """
    if value is None:
        return None
    if isinstance(value, (float, np.floating)):
        if math.isnan(value):
            return None
        if float(value).is_integer():
            return str(int(value))
    if value is pd.NA or value is pd.NaT:
        return None
    return str(value)


@dataclass(frozen=True)
class FactorLevelSpecs:
    """Reusable factor configuration for :func:`join_attributes`.

    Attributes:
        levels: Mapping of factor column name to its ordered level
            set.  Names refer to columns *after* :attr:`rename`.
        rename: Metadata column renames applied before encoding (for
            example ``{"vendor": "source"}``).
        id_column: Metadata column holding the sample label.
    """

    levels: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    rename: Mapping[str, str] = field(default_factory=dict)
    id_column: str = "id"

    def __post_init__(self) -> None:
        normalised: dict[str, tuple[str, ...]] = {}
        for column, values in self.levels.items():
            keys = tuple(_level_key(v) for v in values)
            if any(k is None for k in keys):
                raise ValueError(f"Level set for {column!r} contains a missing value.")
            if len(set(keys)) != len(keys):
                raise ValueError(f"Level set for {column!r} contains duplicates.")
            normalised[column] = keys  # type: ignore[assignment]
        object.__setattr__(self, "levels", MappingProxyType(normalised))
        object.__setattr__(self, "rename", MappingProxyType(dict(self.rename)))

    @staticmethod
    def observed(values: Iterable[Any]) -> tuple[str, ...]:
        """Return the distinct non-missing values in order of appearance."""
        seen: dict[str, None] = {}
        for value in values:
            key = _level_key(value)
            if key is not None:
                seen.setdefault(key, None)
        return tuple(seen)

    def with_levels(self, column: str, levels: Iterable[Any]) -> FactorLevelSpecs:
        """Return a copy with *column* encoded over *levels*."""
        merged = dict(self.levels)
        merged[column] = tuple(levels)
        return FactorLevelSpecs(merged, self.rename, self.id_column)

    def with_observed(self, column: str, metadata: DataFrameLike) -> FactorLevelSpecs:
        """Return a copy with *column*'s levels taken from the full metadata.

        The metadata column is looked up after :attr:`rename`.  Use
        this for identifiers such as ``mouse_id`` whose level set is
        "every value in the study" rather than a fixed list.
        """
        frame = _ensure_pandas_df(metadata, name="metadata").rename(columns=self.rename)
        if column not in frame.columns:
            raise JoinError(f"Metadata has no column {column!r}.")
        return self.with_levels(column, self.observed(frame[column]))


# The vendor study's fixed level sets.  ``mouse_id`` and ``unique_cage``
# are study-wide observed levels; see :func:`study_level_specs`.
VENDOR_STUDY_LEVELS = FactorLevelSpecs(
    levels={
        "experiment": ("1", "2"),
        "source": ("Schloss", "Young", "Jackson", "Charles River", "Taconic", "Envigo"),
        "run": ("run_1", "run_2"),
        "day": ("-1", "0", "1", "2", "3", "4", "5", "6", "7", "8", "9"),
    },
    rename={"vendor": "source"},
)


def study_level_specs(
    metadata: DataFrameLike,
    base: FactorLevelSpecs = VENDOR_STUDY_LEVELS,
    observed_columns: Sequence[str] = ("mouse_id", "unique_cage"),
) -> FactorLevelSpecs:
    """Complete *base* with observed-order levels from the full metadata."""
    specs = base
    for column in observed_columns:
        specs = specs.with_observed(column, metadata)
    return specs


@dataclass(frozen=True)
class SampleAttributes:
    """Categorical attributes for the samples of one analysis.

    Rows are indexed by sample label, in the same order as the
    distance matrix the attributes were joined for.  Configured factor
    columns are ``pandas.Categorical`` over their fixed level sets.
    """

    frame: pd.DataFrame

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(str(label) for label in self.frame.index)

    @property
    def n_samples(self) -> int:
        return len(self.frame)

    @property
    def columns(self) -> list[str]:
        return [str(col) for col in self.frame.columns]

    def __len__(self) -> int:
        return len(self.frame)

    def _column(self, name: str) -> pd.Series:
        if name not in self.frame.columns:
            raise DesignError(
                f"Design references undefined column {name!r}; "
                f"available: {self.columns}."
            )
        return self.frame[name]

    def categorical(self, name: str) -> pd.Categorical:
        """Return column *name* as a categorical.

        Columns that were not configured with a level set are encoded
        over their observed values, in order of appearance.
        """
        column = self._column(name)
        if isinstance(column.dtype, pd.CategoricalDtype):
            return pd.Categorical(column)
        keys = [_level_key(v) for v in column]
        if any(k is None for k in keys):
            raise DesignError(f"Column {name!r} contains missing values.")
        return pd.Categorical(keys, categories=FactorLevelSpecs.observed(keys))

    def codes(self, name: str) -> np.ndarray:
        """Return integer level codes for column *name*."""
        return np.asarray(self.categorical(name).codes, dtype=np.intp)

    def levels(self, name: str) -> tuple[str, ...]:
        """Return the full level set of column *name*."""
        return tuple(str(c) for c in self.categorical(name).categories)

    def subset(self, labels: Iterable[str]) -> SampleAttributes:
        """Return the rows for *labels*, keeping every level set."""
        labels = [str(label) for label in labels]
        missing = [label for label in labels if label not in self.frame.index]
        if missing:
            raise JoinError(f"No attribute row for sample label(s): {missing}.")
        return SampleAttributes(self.frame.loc[labels])

    def where(self, **criteria: Any) -> SampleAttributes:
        """Return the rows whose columns equal the given values.

        ``attributes.where(source="Schloss", day="-1")``
        """
        mask = np.ones(len(self.frame), dtype=bool)
        for column, value in criteria.items():
            keys = np.array([_level_key(v) for v in self._column(column)], dtype=object)
            mask &= keys == _level_key(value)
        return SampleAttributes(self.frame.loc[mask])


def join_attributes(
    labels: Iterable[str],
    metadata: DataFrameLike,
    specs: FactorLevelSpecs,
    *,
    how: str = "exact",
) -> SampleAttributes:
    """Join *labels* against *metadata* and encode the configured factors.

    Args:
        labels: Sample labels, usually ``DistanceMatrix.labels``.
        metadata: One row per sample, keyed by ``specs.id_column``.
        specs: Level sets, renames and the id column.
        how: ``"exact"`` (every label must match) or ``"inner"`` (drop
            unmatched labels; for callers that pre-filter subsets).

    Returns:
        :class:`SampleAttributes` in label order.

    Raises:
        JoinError: If a label has no metadata row (``how="exact"``), a
            metadata id is duplicated, a configured column is absent, or
            a value falls outside its column's level set.
    """
    if how not in ("exact", "inner"):
        raise ValueError(f"how must be 'exact' or 'inner', got {how!r}.")

    frame = _ensure_pandas_df(metadata, name="metadata", required=[specs.id_column])
    frame = frame.rename(columns=dict(specs.rename))

    ids = frame[specs.id_column].map(_level_key)
    duplicated = sorted(set(ids[ids.duplicated()].dropna()))
    if duplicated:
        raise JoinError(f"Metadata has duplicate ids: {duplicated}.")
    frame = frame.drop(columns=[specs.id_column]).set_axis(pd.Index(ids, name="label"))

    labels = [str(label) for label in labels]
    missing = [label for label in labels if label not in frame.index]
    if missing and how == "exact":
        raise JoinError(f"No metadata row for sample label(s): {missing}.")
    if missing:
        logger.info("Inner join dropped %d unmatched label(s)", len(missing))
        labels = [label for label in labels if label in frame.index]

    rows = frame.loc[labels].copy()
    for column, levels in specs.levels.items():
        if column not in rows.columns:
            raise JoinError(f"Metadata has no column {column!r}.")
        keys = [_level_key(v) for v in rows[column]]
        absent = [lab for lab, key in zip(labels, keys, strict=True) if key is None]
        if absent:
            raise JoinError(f"Missing {column!r} value for sample label(s): {absent}.")
        unknown = sorted({k for k in keys if k not in levels})
        if unknown:
            raise JoinError(
                f"Column {column!r} has value(s) {unknown} outside its "
                f"level set {list(levels)}."
            )
        rows[column] = pd.Categorical(keys, categories=list(levels))

    logger.debug("Joined %d samples on %d factors", len(rows), len(specs.levels))
    return SampleAttributes(rows)


__all__ = [
    "FactorLevelSpecs",
    "SampleAttributes",
    "VENDOR_STUDY_LEVELS",
    "join_attributes",
    "study_level_specs",
]
