"""PCoA ordination data: axes and loadings files joined to metadata.

mothur writes a principal-coordinates analysis as two tab-separated
files:

* ``*.pcoa.axes`` — a ``group`` column (the sample label) followed by
  ``axis1``, ``axis2``, … coordinates;
* ``*.pcoa.loadings`` — ``axis`` and ``loading`` columns, the loading
  being the percentage of variation the axis represents.

Only the data side is handled here; plotting is left to the caller.
"""

from __future__ import annotations

import logging
from os import PathLike

import pandas as pd

from ._compat import DataFrameLike, _ensure_pandas_df
from ._errors import FormatError

logger = logging.getLogger(__name__)


def read_pcoa_axes(path: str | PathLike[str], axes: int = 2) -> pd.DataFrame:
    """Read the first *axes* coordinates of a ``.pcoa.axes`` file.

    Returns:
        DataFrame with an ``id`` column (renamed from ``group``) and
        ``axis1`` … ``axis{axes}``.

    Raises:
        FormatError: If the file lacks ``group`` or a requested axis.
    """
    if axes < 1:
        raise ValueError(f"axes must be >= 1, got {axes}.")
    frame = pd.read_csv(path, sep="\t", dtype={"group": str})
    wanted = ["group"] + [f"axis{i}" for i in range(1, axes + 1)]
    missing = [c for c in wanted if c not in frame.columns]
    if missing:
        raise FormatError(f"{path}: missing column(s) {missing}.")
    return frame[wanted].rename(columns={"group": "id"})


def read_pcoa_loadings(path: str | PathLike[str]) -> pd.DataFrame:
    """Read a ``.pcoa.loadings`` file into ``axis``/``loading`` columns."""
    frame = pd.read_csv(path, sep="\t")
    missing = [c for c in ("axis", "loading") if c not in frame.columns]
    if missing:
        raise FormatError(f"{path}: missing column(s) {missing}.")
    return frame[["axis", "loading"]]


def axis_label(loadings: pd.DataFrame, axis: int) -> str:
    """Return an axis title such as ``"PCoA 1 (23.4%)"``.

    The loading is rounded to one decimal place.

    Raises:
        KeyError: If *axis* has no loading.
    """
    match = loadings.loc[loadings["axis"] == axis, "loading"]
    if match.empty:
        raise KeyError(f"No loading for axis {axis}.")
    return f"PCoA {axis} ({round(float(match.iloc[0]), 1)}%)"


def join_coordinates(
    axes: pd.DataFrame,
    metadata: DataFrameLike,
    *,
    id_column: str = "id",
    day_column: str | None = "day",
) -> pd.DataFrame:
    """Attach ordination coordinates to sample metadata.

    Every metadata row is kept in metadata order (a right join), then
    samples without coordinates are dropped: they were either not
    sequenced or fell below the subsampling depth.  *day_column*, when
    present, is converted to integers.
    """
    meta = _ensure_pandas_df(metadata, name="metadata", required=(id_column,))
    meta = meta.assign(**{id_column: meta[id_column].astype(str)})
    coords = axes.rename(columns={"id": id_column})
    coord_columns = [c for c in coords.columns if c != id_column]
    if not coord_columns:
        raise ValueError("axes has no coordinate columns.")

    joined = coords.merge(meta, on=id_column, how="right")
    sequenced = joined[coord_columns[0]].notna()
    logger.info(
        "%d of %d metadata samples have ordination coordinates",
        int(sequenced.sum()),
        len(joined),
    )
    joined = joined.loc[sequenced].reset_index(drop=True)
    if day_column is not None and day_column in joined.columns:
        joined[day_column] = joined[day_column].astype(int)
    return joined


def samples_per_group(frame: pd.DataFrame, column: str = "day") -> pd.DataFrame:
    """Count samples per value of *column*, largest groups first."""
    if column not in frame.columns:
        raise KeyError(f"Column {column!r} not found.")
    counts = frame.groupby(column, sort=True).size().rename("n").reset_index()
    return counts.sort_values("n", ascending=False, kind="stable").reset_index(
        drop=True
    )


__all__ = [
    "axis_label",
    "join_coordinates",
    "read_pcoa_axes",
    "read_pcoa_loadings",
    "samples_per_group",
]
