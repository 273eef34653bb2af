"""permanova_tests — Permutational multivariate analysis of variance.

Parses mothur lower-triangular distance matrices, joins them to sample
metadata with fixed factor level sets, runs nested/crossed and
optionally stratified PERMANOVA with sequential (Type I) sums of
squares, and aggregates per-term ``(R², p)`` results across subsets
into tab-separated tables.  Small designs are tested exactly by
enumerating every distinct arrangement.

Public API:
    .. autosummary::
        permanova
        parse_distance_matrix
        read_distance_matrix
        write_distance_matrix
        join_attributes
        study_level_specs
        parse_formula
        build_design
        aggregate_results
        results_table
        write_result_table
        read_pcoa_axes
        read_pcoa_loadings
        axis_label
        join_coordinates
        samples_per_group
        print_permanova_table
        print_aggregate_table
        permutation_p_values
        get_default_permutations
        set_default_permutations
        get_chunk_size
        set_chunk_size
        DistanceMatrix
        FactorLevelSpecs
        SampleAttributes
        DesignFormula
        PermanovaEngine
        AnalysisContext
        PermanovaResult
        TermResult
"""

from ._config import (
    get_chunk_size,
    get_default_permutations,
    set_chunk_size,
    set_default_permutations,
)
from ._context import AnalysisContext
from ._errors import (
    DesignError,
    DimensionMismatch,
    FormatError,
    JoinError,
    PermanovaError,
)
from ._results import PermanovaResult, TermResult
from .aggregate import aggregate_results, results_table, write_result_table
from .core import permanova
from .design import build_design
from .display import print_aggregate_table, print_permanova_table
from .distance import (
    DistanceMatrix,
    format_distance_matrix,
    parse_distance_matrix,
    read_distance_matrix,
    write_distance_matrix,
)
from .engine import PermanovaEngine
from .factors import (
    VENDOR_STUDY_LEVELS,
    FactorLevelSpecs,
    SampleAttributes,
    join_attributes,
    study_level_specs,
)
from .formula import DesignFormula, parse_formula
from .ordination import (
    axis_label,
    join_coordinates,
    read_pcoa_axes,
    read_pcoa_loadings,
    samples_per_group,
)
from .pvalues import permutation_p_values

__all__ = [
    "AnalysisContext",
    "PermanovaResult",
    "TermResult",
    "permanova",
    "DesignError",
    "DimensionMismatch",
    "FormatError",
    "JoinError",
    "PermanovaError",
    "DistanceMatrix",
    "format_distance_matrix",
    "parse_distance_matrix",
    "read_distance_matrix",
    "write_distance_matrix",
    "VENDOR_STUDY_LEVELS",
    "FactorLevelSpecs",
    "SampleAttributes",
    "join_attributes",
    "study_level_specs",
    "DesignFormula",
    "parse_formula",
    "build_design",
    "PermanovaEngine",
    "aggregate_results",
    "results_table",
    "write_result_table",
    "axis_label",
    "join_coordinates",
    "read_pcoa_axes",
    "read_pcoa_loadings",
    "samples_per_group",
    "print_aggregate_table",
    "print_permanova_table",
    "permutation_p_values",
    "get_chunk_size",
    "get_default_permutations",
    "set_chunk_size",
    "set_default_permutations",
]

__version__ = "0.1.0"
