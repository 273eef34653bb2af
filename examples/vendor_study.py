"""
Vendor study: PERMANOVA of gut-community distances by source, cage and day

Demonstrates:
- Reading mothur lower-triangular distance matrices (``*.lt.ave.dist``)
- Joining metadata with the study's fixed factor levels
  (``VENDOR_STUDY_LEVELS`` plus observed ``mouse_id``/``unique_cage``)
- Full-dataset analyses stratified by mouse (repeated measures)
- Per-day ``source/(unique_cage*experiment)`` analyses aggregated into
  one TSV, with Benjamini–Hochberg adjusted p-values
- Per-source ``experiment*unique_cage`` analyses on day -1; small
  subsets are tested exactly by enumerating every arrangement
- PCoA axis titles and samples-per-day counts from the ordination files

Data layout
-----------
``DATA_DIR`` must contain::

    metadata.tsv                  id, vendor, unique_cage, mouse_id,
                                  experiment, run, day
    all.dist                      distance matrix for every sample
    all.pcoa.axes / .loadings     ordination of every sample
    d{day}.dist                   one matrix per day in ``DAYS``
    d-1.{source}.dist             day -1 matrix per source in ``SOURCES``
                                  (spaces in the name become underscores)

Results are written next to the inputs as ``permanova_*.tsv``.
"""

import sys
from pathlib import Path

import pandas as pd

from permanova_tests import (
    VENDOR_STUDY_LEVELS,
    aggregate_results,
    axis_label,
    join_attributes,
    join_coordinates,
    permanova,
    print_aggregate_table,
    print_permanova_table,
    read_distance_matrix,
    read_pcoa_axes,
    read_pcoa_loadings,
    samples_per_group,
    study_level_specs,
    write_result_table,
)

DATA_DIR = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("data/process")
SEED = 19881117
PERMUTATIONS = 9999
DAYS = (-1, 0, 1, 7)
SOURCES = ("Schloss", "Young", "Jackson", "Charles River", "Taconic", "Envigo")

# ============================================================================
# Load metadata and level sets
# ============================================================================

metadata = pd.read_csv(DATA_DIR / "metadata.tsv", sep="\t", dtype={"id": str})
specs = study_level_specs(metadata, VENDOR_STUDY_LEVELS)

# ============================================================================
# Ordination: axis titles and sequenced samples per day
# ============================================================================

axes = read_pcoa_axes(DATA_DIR / "all.pcoa.axes")
loadings = read_pcoa_loadings(DATA_DIR / "all.pcoa.loadings")
pcoa = join_coordinates(axes, metadata)
print(axis_label(loadings, 1), "/", axis_label(loadings, 2))
print(samples_per_group(pcoa, "day").to_string(index=False))
print()

# ============================================================================
# All samples, permutations restricted within each mouse
# ============================================================================

all_dist = read_distance_matrix(DATA_DIR / "all.dist")
all_attrs = join_attributes(all_dist.labels, metadata, specs)

for effect in ("run", "experiment", "source", "day"):
    result = permanova(
        all_dist,
        all_attrs,
        effect,
        strata="mouse_id",
        permutations=PERMUTATIONS,
        seed=SEED,
    )
    print_permanova_table(result, title=f"All samples: {effect} (strata = mouse)")

full = permanova(
    all_dist,
    all_attrs,
    "(source/(unique_cage*experiment*run))*day",
    strata="mouse_id",
    permutations=PERMUTATIONS,
    seed=SEED,
    drop_aliased=True,
)
print_permanova_table(full, title="All samples: full nested design (strata = mouse)")
write_result_table(
    aggregate_results([("all", full)], subset_column="samples"),
    DATA_DIR / "permanova_all.tsv",
)

# ============================================================================
# Per day: source with cages and experiments nested within source
# ============================================================================

per_day = []
for day in DAYS:
    dist = read_distance_matrix(DATA_DIR / f"d{day}.dist")
    attrs = join_attributes(dist.labels, metadata, specs)
    result = permanova(
        dist,
        attrs,
        "source/(unique_cage*experiment)",
        permutations=PERMUTATIONS,
        seed=SEED,
        drop_aliased=True,
    )
    per_day.append((day, result))

day_table = aggregate_results(
    per_day,
    effects=["source", "source:unique_cage"],
    subset_column="day",
    adjust="fdr_bh",
)
print_aggregate_table(day_table, subset_column="day", title="PERMANOVA by day")
write_result_table(day_table, DATA_DIR / "permanova_by_day.tsv")

# ============================================================================
# Day -1, per source: experiment crossed with cage
# ============================================================================

per_source = []
for source in SOURCES:
    path = DATA_DIR / f"d-1.{source.replace(' ', '_')}.dist"
    if not path.exists():
        continue
    dist = read_distance_matrix(path)
    attrs = join_attributes(dist.labels, metadata, specs)
    result = permanova(
        dist,
        attrs,
        "experiment*unique_cage",
        permutations=PERMUTATIONS,
        seed=SEED,
        drop_aliased=True,
    )
    per_source.append((source, result))

source_table = aggregate_results(per_source, subset_column="source")
print_aggregate_table(
    source_table, subset_column="source", title="Day -1 PERMANOVA by source"
)
write_result_table(source_table, DATA_DIR / "permanova_dn1_by_source.tsv")
