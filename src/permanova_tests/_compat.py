"""Input compatibility layer for metadata and ordination tables.

Metadata, PCoA axes and loadings are handled internally as pandas
DataFrames.  Callers working in Polars can pass a ``polars.DataFrame``
(or ``polars.LazyFrame``) instead; it is converted at the boundary so
the join and aggregation code stays pandas-only.

Polars is **not** a required dependency.  If it is not installed, only
pandas input is accepted.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, TypeAlias

import pandas as pd

if TYPE_CHECKING:
    import polars as pl

    DataFrameLike: TypeAlias = pd.DataFrame | pl.DataFrame | pl.LazyFrame
else:
    DataFrameLike: TypeAlias = pd.DataFrame

# Runtime detection; Polars is optional.
try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False


def _ensure_pandas_df(
    obj: DataFrameLike,
    *,
    name: str = "table",
    required: Iterable[str] = (),
) -> pd.DataFrame:
    """Return *obj* as a pandas DataFrame holding the *required* columns.

    Polars LazyFrames are collected first.  pandas input is returned
    as-is (no copy).

    Args:
        obj: A pandas or Polars DataFrame (or LazyFrame).
        name: Label used in error messages (e.g. ``"metadata"``).
        required: Column names that must be present.

    Returns:
        A pandas ``DataFrame``.

    Raises:
        TypeError: If *obj* is not a recognised DataFrame type.
        KeyError: If a required column is missing.
    """
    if isinstance(obj, pd.DataFrame):
        frame = obj
    elif _HAS_POLARS and isinstance(obj, pl.LazyFrame):
        frame = obj.collect().to_pandas()
    elif _HAS_POLARS and isinstance(obj, pl.DataFrame):
        frame = obj.to_pandas()
    else:
        raise TypeError(
            f"'{name}' must be a pandas DataFrame"
            + (" or Polars DataFrame/LazyFrame" if _HAS_POLARS else "")
            + f", got {type(obj).__name__}."
        )

    missing = [col for col in required if col not in frame.columns]
    if missing:
        raise KeyError(
            f"'{name}' is missing required column(s) {missing}; "
            f"available: {list(frame.columns)}."
        )
    return frame
