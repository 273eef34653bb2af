"""Tests for the permutations module."""

import math
import warnings

import numpy as np
import pytest

from permanova_tests.permutations import (
    _multinomial,
    _unrank_multiset,
    _unrank_permutation,
    count_distinct_arrangements,
    enumerate_distinct_arrangements,
    generate_unique_permutations,
    generate_within_strata_permutations,
)


class TestUnrankPermutation:
    """Tests for the Lehmer-code unranking function."""

    def test_rank_zero_is_identity(self):
        assert _unrank_permutation(0, 4) == [0, 1, 2, 3]

    def test_last_rank_is_reverse(self):
        assert _unrank_permutation(23, 4) == [3, 2, 1, 0]

    def test_known_rank(self):
        # rank 4 of [0,1,2] is [2,0,1]
        assert _unrank_permutation(4, 3) == [2, 0, 1]

    def test_all_ranks_unique(self):
        perms = [tuple(_unrank_permutation(k, 4)) for k in range(24)]
        assert len(set(perms)) == 24


class TestUnrankMultiset:
    def test_all_orderings_distinct(self):
        codes, counts = [0, 1], [2, 2]
        total = _multinomial(counts)
        assert total == 6
        seqs = {tuple(_unrank_multiset(r, codes, counts)) for r in range(total)}
        assert len(seqs) == 6
        assert (0, 0, 1, 1) in seqs
        assert (1, 1, 0, 0) in seqs

    def test_rank_zero_is_sorted(self):
        assert _unrank_multiset(0, [0, 1, 2], [1, 2, 1]) == [0, 1, 1, 2]


class TestGenerateUniquePermutations:
    def test_shape(self):
        result = generate_unique_permutations(10, 50, random_state=42)
        assert result.shape == (50, 10)

    def test_uniqueness(self):
        result = generate_unique_permutations(8, 100, random_state=42)
        assert len({tuple(row) for row in result}) == 100

    def test_excludes_identity(self):
        result = generate_unique_permutations(6, 100, random_state=42)
        identity = tuple(range(6))
        assert all(tuple(row) != identity for row in result)

    def test_large_n_batch_path(self):
        result = generate_unique_permutations(20, 200, random_state=1)
        assert result.shape == (200, 20)
        assert len({tuple(row) for row in result}) == 200
        for row in result:
            assert sorted(row.tolist()) == list(range(20))

    def test_raises_on_too_many(self):
        with pytest.raises(ValueError, match="Requested"):
            generate_unique_permutations(4, 24, random_state=42)

    def test_reproducibility(self):
        a = generate_unique_permutations(10, 50, random_state=99)
        b = generate_unique_permutations(10, 50, random_state=99)
        np.testing.assert_array_equal(a, b)


class TestWithinStrataPermutations:
    def test_samples_stay_in_stratum(self):
        strata = np.array([0, 0, 0, 1, 1, 1, 2, 2, 2, 2])
        result = generate_within_strata_permutations(
            10, 200, strata, random_state=3
        )
        assert result.shape == (200, 10)
        for row in result:
            np.testing.assert_array_equal(strata[row], strata)

    def test_unique_and_no_identity(self):
        strata = np.repeat(np.arange(4), 3)
        result = generate_within_strata_permutations(
            12, 500, strata, random_state=5
        )
        keys = {tuple(row) for row in result}
        assert len(keys) == 500
        assert tuple(range(12)) not in keys

    def test_caps_with_warning(self):
        strata = np.array([0, 0, 1, 1])
        with pytest.warns(UserWarning, match="Capping at 3"):
            result = generate_within_strata_permutations(
                4, 10, strata, random_state=0
            )
        assert result.shape == (3, 4)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError, match="shape"):
            generate_within_strata_permutations(4, 2, np.array([0, 1]))

    def test_reproducibility(self):
        strata = np.repeat(np.arange(5), 4)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            a = generate_within_strata_permutations(20, 50, strata, random_state=8)
            b = generate_within_strata_permutations(20, 50, strata, random_state=8)
        np.testing.assert_array_equal(a, b)


class TestDistinctArrangements:
    def test_two_by_two(self):
        assert count_distinct_arrangements(np.array([0, 0, 1, 1])) == 6

    def test_all_distinct_patterns(self):
        assert count_distinct_arrangements(np.arange(5)) == math.factorial(5)

    def test_within_strata_product(self):
        patterns = np.array([0, 1, 0, 1, 0, 0])
        strata = np.array([0, 0, 1, 1, 2, 2])
        # 2!/(1!1!) * 2!/(1!1!) * 2!/2! = 4
        assert count_distinct_arrangements(patterns, strata) == 4

    def test_cap(self):
        assert count_distinct_arrangements(np.arange(12), cap=99) == 100

    def test_enumeration_covers_each_arrangement_once(self):
        patterns = np.array([0, 0, 1, 1])
        rows = enumerate_distinct_arrangements(patterns)
        assert rows.shape == (6, 4)
        # Design as seen by the samples under G[p][:, p].
        realised = {tuple(patterns[np.argsort(row)]) for row in rows}
        assert len(realised) == 6
        identity_rows = [row for row in rows if tuple(row) == (0, 1, 2, 3)]
        assert len(identity_rows) == 1

    def test_enumeration_respects_strata(self):
        patterns = np.array([0, 1, 0, 1, 2, 2])
        strata = np.array([0, 0, 1, 1, 2, 2])
        rows = enumerate_distinct_arrangements(patterns, strata)
        assert rows.shape == (4, 6)
        for row in rows:
            np.testing.assert_array_equal(strata[row], strata)
        assert len({tuple(patterns[np.argsort(row)]) for row in rows}) == 4
