"""Permutation index generation for distance-based permutation tests.

Every generator returns an integer array of shape ``(B, n)`` whose rows
are permutations of ``range(n)``.  Row *b* is applied to the
Gower-centred matrix as ``G[p][:, p]``, which is equivalent to
re-assigning the design rows to samples.

Three generation paths are used:

1. **Unrestricted sampling** (:func:`generate_unique_permutations`).
   For small *n* (``n <= max_exhaustive``) B distinct lexicographic
   ranks are drawn without replacement and decoded with the Lehmer
   code, so no permutation repeats.  For larger *n* all B rows are
   produced in one ``Generator.permuted`` call, then duplicates and
   the observed order are redrawn.

2. **Within-stratum sampling** (:func:`generate_within_strata_permutations`).
   Indices are shuffled only among samples of the same stratum, so a
   sample never leaves its block.  This is the restricted permutation
   used when samples are pseudo-replicated within a subject (repeated
   measures of one mouse).

3. **Exhaustive enumeration** (:func:`enumerate_distinct_arrangements`).
   Samples sharing a full design row are interchangeable: swapping two
   samples from the same cell leaves every sum of squares unchanged.
   The number of *distinct* arrangements of the design is therefore
   the multinomial coefficient

       ∏_s  n_s! / ∏_c n_{s,c}!

   over strata *s* and design cells *c*.  When that count does not
   exceed the requested number of permutations, every distinct
   arrangement is enumerated exactly once (the observed one included)
   and the test is exact.  For four samples in two groups of two this
   is ``4! / (2!·2!) = 6`` arrangements.
"""

from __future__ import annotations

import logging
import math
import warnings
from collections import Counter
from functools import reduce

import numpy as np

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------ #
# Lehmer code (factorial number system)
# ------------------------------------------------------------------ #
#
# Every permutation of [0, 1, …, n−1] has a unique lexicographic rank
# k ∈ [0, n!).  Writing k = d₁·(n−1)! + d₂·(n−2)! + ··· + dₙ·0!, each
# digit dᵢ selects the dᵢ-th remaining element from a shrinking pool,
# so rank → permutation is O(n) without storing the enumeration.
#
#   n=3, k=4 → digits [2, 0, 0]
#   pool=[0,1,2] → pop(2)=2, pool=[0,1] → pop(0)=0, pool=[1] → pop(0)=1
#   result = [2, 0, 1]


def _unrank_permutation(k: int, n: int) -> list[int]:
    """Convert rank *k* to the *k*-th lexicographic permutation of ``[0..n-1]``."""
    available = list(range(n))
    result: list[int] = []
    for i in range(n, 0, -1):
        f = math.factorial(i - 1)
        idx, k = divmod(k, f)
        result.append(available.pop(idx))
    return result


def _unrank_within_strata(
    rank: int,
    stratum_idx: list[np.ndarray],
    stratum_factorials: list[int],
    n_samples: int,
) -> np.ndarray:
    """Convert a composite rank to a within-stratum permutation.

    The composite rank packs one Lehmer rank per stratum in mixed
    radix (least-significant stratum first).
    """
    perm = np.arange(n_samples, dtype=np.intp)
    remaining = rank
    for sidx, sf in zip(stratum_idx, stratum_factorials, strict=True):
        ns = len(sidx)
        if ns <= 1:
            continue
        stratum_rank = remaining % sf
        remaining //= sf
        perm[sidx] = sidx[_unrank_permutation(stratum_rank, ns)]
    return perm


def generate_unique_permutations(
    n_samples: int,
    n_permutations: int,
    random_state: int | None = None,
    exclude_identity: bool = True,
    max_exhaustive: int = 10,
) -> np.ndarray:
    """Draw distinct sample rearrangements without restriction.

    Args:
        n_samples: Number of samples in the distance matrix.
        n_permutations: Number of distinct rearrangements to draw.
        random_state: Seed for ``numpy.random.default_rng``.
        exclude_identity: Never return the observed arrangement.
        max_exhaustive: Sample Lehmer ranks without replacement when
            ``n_samples <= max_exhaustive``.

    Returns:
        Array of shape ``(n_permutations, n_samples)``.

    Raises:
        ValueError: If fewer than *n_permutations* rearrangements exist.
    """
    rng = np.random.default_rng(random_state)

    if n_samples <= max_exhaustive:
        # Rank 0 is the observed order.
        first = 1 if exclude_identity else 0
        available = math.factorial(n_samples) - first
        if n_permutations > available:
            raise ValueError(
                f"Requested {n_permutations} unique permutations but only "
                f"{available} exist for {n_samples} samples."
            )
        ranks = rng.choice(available, size=n_permutations, replace=False) + first
        return np.array(
            [_unrank_permutation(int(k), n_samples) for k in ranks],
            dtype=np.intp,
        )

    batch = np.tile(np.arange(n_samples, dtype=np.intp), (n_permutations, 1))
    rng.permuted(batch, axis=1, out=batch)

    seen: set[tuple[int, ...]] = set()
    if exclude_identity:
        seen.add(tuple(range(n_samples)))
    rows: list[np.ndarray] = []
    for row in batch:
        key = tuple(row.tolist())
        if key not in seen:
            seen.add(key)
            rows.append(row)

    # Redraw duplicates; n! exceeds the request by far at this size.
    while len(rows) < n_permutations:
        perm = rng.permutation(n_samples).astype(np.intp)
        key = tuple(perm.tolist())
        if key not in seen:
            seen.add(key)
            rows.append(perm)

    return np.vstack(rows)


# ------------------------------------------------------------------ #
# Within-stratum permutations
# ------------------------------------------------------------------ #
#
# The reference set for a within-stratum test has ∏_s n_s! members.
# Singleton strata contribute 1! = 1 and are never shuffled.


def _stratum_indices(strata: np.ndarray) -> list[np.ndarray]:
    return [np.flatnonzero(strata == s) for s in np.unique(strata)]


def generate_within_strata_permutations(
    n_samples: int,
    n_permutations: int,
    strata: np.ndarray,
    random_state: int | None = None,
    exclude_identity: bool = True,
) -> np.ndarray:
    """Generate permutation indices that shuffle only within strata.

    Args:
        n_samples: Total number of samples.
        n_permutations: Number of unique permutations requested.
        strata: Integer array of shape ``(n_samples,)`` assigning each
            sample to a block.
        random_state: Seed for reproducibility.
        exclude_identity: If ``True``, the identity is excluded.

    Returns:
        Array of shape ``(B, n_samples)`` with ``B <= n_permutations``;
        for every row ``strata[row] == strata``.

    Warns:
        UserWarning: If fewer than *n_permutations* distinct
            within-stratum permutations exist.
    """
    rng = np.random.default_rng(random_state)
    strata = np.asarray(strata)
    if strata.shape != (n_samples,):
        raise ValueError(
            f"strata must have shape ({n_samples},), got {strata.shape}."
        )

    stratum_idx = _stratum_indices(strata)
    sizes = [len(idx) for idx in stratum_idx]
    factorials = [math.factorial(s) for s in sizes]

    cap = n_permutations + 2
    total_unique = reduce(lambda a, b: min(a * b, cap), factorials, 1)
    available = total_unique - 1 if exclude_identity else total_unique
    if available < n_permutations:
        warnings.warn(
            f"Only {available} unique within-stratum permutations are "
            f"available, but {n_permutations} were requested.  "
            f"Capping at {available}.",
            UserWarning,
            stacklevel=2,
        )
        n_permutations = available
    if n_permutations <= 0:
        return np.empty((0, n_samples), dtype=np.intp)

    # ---- Small strata: mixed-radix Lehmer sampling -----------------
    lehmer_threshold = 50_000
    total_exact = 1
    for sf in factorials:
        total_exact *= sf
        if total_exact > lehmer_threshold:
            break
    if total_exact <= lehmer_threshold:
        pool_start = 1 if exclude_identity else 0
        ranks = (
            rng.choice(total_exact - pool_start, size=n_permutations, replace=False)
            + pool_start
        )
        result = np.empty((n_permutations, n_samples), dtype=np.intp)
        for i, rank in enumerate(ranks):
            result[i] = _unrank_within_strata(
                int(rank), stratum_idx, factorials, n_samples
            )
        return result

    # ---- Large strata: vectorised batch with hash de-duplication ----
    batch = np.tile(np.arange(n_samples, dtype=np.intp), (n_permutations, 1))
    for sidx in stratum_idx:
        if len(sidx) > 1:
            block = batch[:, sidx].copy()
            rng.permuted(block, axis=1, out=block)
            batch[:, sidx] = block

    seen: set[tuple[int, ...]] = set()
    if exclude_identity:
        seen.add(tuple(range(n_samples)))
    result = np.empty((n_permutations, n_samples), dtype=np.intp)
    count = 0
    for row in batch:
        key = tuple(row.tolist())
        if key not in seen:
            seen.add(key)
            result[count] = row
            count += 1
            if count == n_permutations:
                return result

    max_attempts = n_permutations * 20 + 1000
    attempts = 0
    while count < n_permutations and attempts < max_attempts:
        perm = np.arange(n_samples, dtype=np.intp)
        for sidx in stratum_idx:
            if len(sidx) > 1:
                perm[sidx] = rng.permutation(sidx)
        key = tuple(perm.tolist())
        if key not in seen:
            seen.add(key)
            result[count] = perm
            count += 1
        attempts += 1

    return result[:count]


# ------------------------------------------------------------------ #
# Distinct design arrangements
# ------------------------------------------------------------------ #
#
# A multiset permutation of the pattern codes within one stratum is
# identified by its lexicographic rank among all distinct orderings.
# With r positions left and m(counts) = r! / ∏ counts! orderings of
# the remaining multiset, the number of orderings that place code c
# next is m · counts[c] / r.  Walking the codes in sorted order and
# subtracting those block sizes decodes a rank in O(r · C).


def _multinomial(counts: list[int]) -> int:
    total = math.factorial(sum(counts))
    for c in counts:
        total //= math.factorial(c)
    return total


def _unrank_multiset(rank: int, codes: list[int], counts: list[int]) -> list[int]:
    """Decode *rank* to the multiset ordering of *codes* with *counts*."""
    counts = list(counts)
    remaining = sum(counts)
    block_total = _multinomial(counts)
    out: list[int] = []
    while remaining:
        for i, code in enumerate(codes):
            if counts[i] == 0:
                continue
            block = block_total * counts[i] // remaining
            if rank < block:
                out.append(code)
                counts[i] -= 1
                block_total = block
                break
            rank -= block
        remaining -= 1
    return out


def count_distinct_arrangements(
    patterns: np.ndarray,
    strata: np.ndarray | None = None,
    cap: int | None = None,
) -> int:
    """Return the number of distinct design arrangements.

    Args:
        patterns: Design-row code per sample.
        strata: Optional block code per sample; arrangements are then
            restricted to within-stratum moves.
        cap: Stop multiplying once the running product exceeds *cap*
            (the returned value is then ``cap + 1``).
    """
    patterns = np.asarray(patterns)
    if strata is None:
        strata = np.zeros(patterns.shape[0], dtype=np.intp)
    total = 1
    for sidx in _stratum_indices(np.asarray(strata)):
        counts = list(Counter(patterns[sidx].tolist()).values())
        total *= _multinomial(counts)
        if cap is not None and total > cap:
            return cap + 1
    return total


def enumerate_distinct_arrangements(
    patterns: np.ndarray,
    strata: np.ndarray | None = None,
) -> np.ndarray:
    """Return one permutation per distinct arrangement of the design.

    Exactly one row realises the observed arrangement.

    Args:
        patterns: Design-row code per sample.
        strata: Optional block code per sample.

    Returns:
        Array of shape ``(total, n)`` where ``total`` is
        :func:`count_distinct_arrangements`.
    """
    patterns = np.asarray(patterns)
    n = patterns.shape[0]
    if strata is None:
        strata = np.zeros(n, dtype=np.intp)

    # Per stratum: member positions, distinct codes, their counts and
    # the members holding each code.
    layout = []
    radices = []
    for sidx in _stratum_indices(np.asarray(strata)):
        local = patterns[sidx]
        codes = sorted(set(local.tolist()))
        counts = [int(np.sum(local == c)) for c in codes]
        holders = {c: sidx[local == c] for c in codes}
        layout.append((sidx, codes, counts, holders))
        radices.append(_multinomial(counts))

    total = math.prod(radices)
    result = np.empty((total, n), dtype=np.intp)
    for rank in range(total):
        # design[i] is the sample whose design row position i receives.
        design = np.empty(n, dtype=np.intp)
        remaining = rank
        for (sidx, codes, counts, holders), radix in zip(layout, radices, strict=True):
            local_rank = remaining % radix
            remaining //= radix
            sequence = _unrank_multiset(local_rank, codes, counts)
            cursor = dict.fromkeys(codes, 0)
            for pos, code in zip(sidx, sequence, strict=True):
                design[pos] = holders[code][cursor[code]]
                cursor[code] += 1
        # G[p][:, p] realises design rows X[argsort(p)].
        result[rank] = np.argsort(design)

    logger.debug("Enumerated %d distinct arrangements of %d samples", total, n)
    return result


__all__ = [
    "count_distinct_arrangements",
    "enumerate_distinct_arrangements",
    "generate_unique_permutations",
    "generate_within_strata_permutations",
]
