"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

similarity/grouping.py
Single-link grouping shared by the text and image similarity engines.

Grouping is greedy in input order: every file not yet placed seeds a group
and absorbs each later, unplaced candidate whose score against the seed
reaches the threshold. An absorbed file is frozen; it can neither seed nor
join another group. Membership is therefore not transitive: two files that
each match the seed may score below the threshold against each other, and a
file that only matches a non-seed member stays out.

Candidates are bucketed before scoring. Buckets larger than
`parallel_threshold` have their pairwise scores computed on a thread pool
first; the greedy pass then reads those scores, so the outcome does not
depend on how the work was partitioned.
"""

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

ScoreFunc = Callable[[int, int], float]
CompatibleFunc = Callable[[int, int], bool]


@dataclass
class SimilarityConfig:
    """
    Tuning for candidate reduction and parallel scoring.

    bucket_by_exact_size: only compare files with identical byte size.
        Off by default; callers then get a full comparison narrowed by
        whatever lossless pre-filter the engine supplies.
    parallel_threshold: buckets with more files than this are scored on a pool.
    max_text_bytes: when set, larger text files are left out of text grouping.
    """
    parallel_threshold: int = 20
    max_workers: Optional[int] = None
    bucket_by_exact_size: bool = False
    max_text_bytes: Optional[int] = None

    def __post_init__(self):
        if self.parallel_threshold < 0:
            raise ValueError("parallel_threshold cannot be negative")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.max_text_bytes is not None and self.max_text_bytes <= 0:
            raise ValueError("max_text_bytes must be positive")


def make_buckets(sizes: Sequence[int], config: SimilarityConfig) -> List[List[int]]:
    """Indices grouped into comparison buckets, each in input order."""
    if not config.bucket_by_exact_size:
        return [list(range(len(sizes)))] if sizes else []
    buckets: Dict[int, List[int]] = defaultdict(list)
    for index, size in enumerate(sizes):
        buckets[size].append(index)
    return list(buckets.values())


def score_pairs_parallel(
        bucket: List[int],
        score: ScoreFunc,
        compatible: Optional[CompatibleFunc],
        max_workers: Optional[int],
) -> Dict[Tuple[int, int], float]:
    """Scores every compatible (i, j), i before j, on a thread pool."""
    pairs = [
        (bucket[a], bucket[b])
        for a in range(len(bucket))
        for b in range(a + 1, len(bucket))
        if compatible is None or compatible(bucket[a], bucket[b])
    ]
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        results = list(executor.map(lambda pair: score(*pair), pairs))
    return dict(zip(pairs, results))


def single_link_groups(
        sizes: Sequence[int],
        score: ScoreFunc,
        threshold: float,
        config: Optional[SimilarityConfig] = None,
        compatible: Optional[CompatibleFunc] = None,
) -> List[List[Tuple[int, float]]]:
    """
    Groups item indices by the "first match wins, then freeze" rule.

    Args:
        sizes: Byte size per item, used for exact-size bucketing
        score: Pure function of two indices returning a similarity in [0, 1]
        threshold: Minimum score for a candidate to join the seed's group
        config: Bucketing and parallelism settings
        compatible: Cheap necessary condition for a match; pairs failing it
                    are never scored

    Returns:
        Groups of (index, score against seed), seed first with score 1.0,
        ordered by seed position. Groups of one are dropped.
    """
    config = config or SimilarityConfig()
    bucket_of: Dict[int, List[int]] = {}
    precomputed: Dict[Tuple[int, int], float] = {}

    for bucket in make_buckets(sizes, config):
        for index in bucket:
            bucket_of[index] = bucket
        if len(bucket) > config.parallel_threshold:
            logger.debug(f"Scoring bucket of {len(bucket)} files in parallel")
            precomputed.update(score_pairs_parallel(bucket, score, compatible, config.max_workers))

    visited = [False] * len(sizes)
    groups: List[List[Tuple[int, float]]] = []

    for seed in range(len(sizes)):
        if visited[seed]:
            continue
        visited[seed] = True
        group = [(seed, 1.0)]

        for candidate in bucket_of[seed]:
            if candidate <= seed or visited[candidate]:
                continue
            if compatible is not None and not compatible(seed, candidate):
                continue
            value = precomputed.get((seed, candidate))
            if value is None:
                value = score(seed, candidate)
            if value >= threshold:
                group.append((candidate, value))
                visited[candidate] = True

        if len(group) > 1:
            groups.append(group)

    return groups
