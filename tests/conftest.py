"""Shared fixtures: small distance matrices and study metadata."""

import numpy as np
import pandas as pd
import pytest
from scipy.spatial.distance import pdist

from permanova_tests import (
    VENDOR_STUDY_LEVELS,
    DistanceMatrix,
    join_attributes,
    study_level_specs,
)

FOUR_SAMPLE_TEXT = "4\nA\nB\t0.1\nC\t0.9\t0.9\nD\t0.9\t0.9\t0.1\n"


@pytest.fixture
def four_sample_text():
    return FOUR_SAMPLE_TEXT


@pytest.fixture
def four_sample_metadata():
    return pd.DataFrame(
        {
            "id": ["A", "B", "C", "D"],
            "vendor": ["Schloss", "Schloss", "Young", "Young"],
        }
    )


@pytest.fixture
def study_metadata():
    """Eight mice: two sources x two cages x two mice, sampled on two days."""
    rows = []
    for s_idx, source in enumerate(["Schloss", "Young"]):
        for c_idx in range(2):
            cage = f"cage_{s_idx}{c_idx}"
            for m_idx in range(2):
                mouse = f"m{s_idx}{c_idx}{m_idx}"
                for day in (-1, 0):
                    rows.append(
                        {
                            "id": f"{mouse}_d{day}",
                            "vendor": source,
                            "unique_cage": cage,
                            "mouse_id": mouse,
                            "experiment": 1 + c_idx,
                            "run": "run_1",
                            "day": day,
                        }
                    )
    return pd.DataFrame(rows)


@pytest.fixture
def study_matrix(study_metadata):
    """Euclidean distances with a source shift and a small cage shift."""
    rng = np.random.default_rng(0)
    source_shift = np.where(study_metadata["vendor"] == "Schloss", 0.0, 3.0)
    cage_shift = study_metadata["unique_cage"].str[-1].astype(int).to_numpy() * 0.5
    points = rng.normal(size=(len(study_metadata), 3))
    points[:, 0] += source_shift
    points[:, 1] += cage_shift
    return DistanceMatrix.from_condensed(pdist(points), study_metadata["id"].tolist())


@pytest.fixture
def study_specs(study_metadata):
    return study_level_specs(study_metadata, VENDOR_STUDY_LEVELS)


@pytest.fixture
def study_attributes(study_matrix, study_metadata, study_specs):
    return join_attributes(study_matrix.labels, study_metadata, study_specs)
