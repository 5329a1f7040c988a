"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

similarity/text.py
Near-duplicate detection for UTF-8 text files using Levenshtein distance.
"""

import logging
import os
from typing import Iterable, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from dupsafe.similarity.grouping import SimilarityConfig, single_link_groups

logger = logging.getLogger(__name__)

DEFAULT_TEXT_THRESHOLD = 0.8


def levenshtein(a: str, b: str) -> int:
    """
    Edit distance between two strings (insertions, deletions, substitutions).
    Uses one rolling row sized to the shorter string. Pure Python reference;
    grouping scores with rapidfuzz, which computes the same distance.
    """
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    row = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        diagonal = row[0]
        row[0] = i
        for j, char_b in enumerate(b, 1):
            above = row[j]
            row[j] = min(
                above + 1,
                row[j - 1] + 1,
                diagonal + (char_a != char_b),
            )
            diagonal = above
    return row[-1]


def similarity_ratio(a: str, b: str) -> float:
    """1 - distance / longer length. Two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - min(1.0, Levenshtein.distance(a, b) / longest)


def read_text(path: str) -> str:
    """
    Reads a file as strict UTF-8.
    Raises OSError if unreadable, UnicodeDecodeError if not valid UTF-8.
    """
    with open(path, "rb") as f:
        return f.read().decode("utf-8")


def text_similarity(path1: str, path2: str) -> float:
    """Similarity score in [0, 1] between the decoded contents of two files."""
    return similarity_ratio(read_text(path1), read_text(path2))


def length_compatible(len1: int, len2: int, threshold: float) -> bool:
    """
    Necessary condition for similarity_ratio >= threshold.
    The distance is at least the length difference, so the ratio never exceeds shorter/longer.
    """
    longest = max(len1, len2)
    if longest == 0:
        return True
    return min(len1, len2) + 1e-9 * longest >= threshold * longest


def load_texts(paths: Iterable[str], max_bytes: Optional[int] = None) -> List[Tuple[str, str, int]]:
    """
    (path, text, byte size) for every readable UTF-8 file no larger than
    max_bytes; the rest are skipped.
    """
    loaded = []
    for path in paths:
        try:
            with open(path, "rb") as f:
                if max_bytes is not None and os.fstat(f.fileno()).st_size > max_bytes:
                    logger.debug(f"Skipping {path}: larger than {max_bytes} bytes")
                    continue
                raw = f.read()
            loaded.append((path, raw.decode("utf-8"), len(raw)))
        except OSError as e:
            logger.warning(f"Skipping unreadable file {path}: {e}")
        except UnicodeDecodeError:
            logger.debug(f"Skipping non UTF-8 file {path}")
    return loaded


def group_similar_text(
        paths: List[str],
        threshold: float = DEFAULT_TEXT_THRESHOLD,
        exclude: Optional[Iterable[str]] = None,
        config: Optional[SimilarityConfig] = None,
) -> List[List[str]]:
    """
    Groups near-duplicate text files.

    Args:
        paths: Candidate files, in the order grouping should visit them
        threshold: Minimum similarity for a file to join a seed's group
        exclude: Paths already resolved as exact duplicates
        config: Bucketing and parallelism settings

    Returns:
        Groups of two or more paths, seed first.
    """
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be between 0 and 1, got {threshold}")

    config = config or SimilarityConfig()
    excluded = set(exclude or ())
    entries = load_texts((p for p in paths if p not in excluded), max_bytes=config.max_text_bytes)
    texts = [text for _, text, _ in entries]
    lengths = [len(text) for text in texts]

    groups = single_link_groups(
        sizes=[size for _, _, size in entries],
        score=lambda i, j: similarity_ratio(texts[i], texts[j]),
        threshold=threshold,
        config=config,
        compatible=lambda i, j: length_compatible(lengths[i], lengths[j], threshold),
    )

    logger.debug(f"Found {len(groups)} similar text groups among {len(entries)} files")
    return [[entries[index][0] for index, _ in group] for group in groups]
