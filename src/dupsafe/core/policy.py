"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/policy.py
Chooses a digest algorithm for a file from the hashing policy and its extension.

The decision is an ordered rule list evaluated top to bottom; the first rule
that matches wins. Rule order is part of the observable behaviour: the same
policy must always map an extension to the same algorithm, otherwise digests
from two runs stop being comparable.

    1. media  + FASTEST             -> XXH3
    2. text   + HIGH/MAXIMUM        -> SHA256
    3. archive + BALANCED           -> BLAKE3
    4. MAXIMUM                      -> SHA256
    5. HIGH                         -> BLAKE3
    6. FASTEST                      -> XXH3
    7. anything else                -> BLAKE3
"""

from typing import Callable, List, NamedTuple, Optional

from dupsafe.core.models import (
    DigestAlgorithm, HashingPolicy, Security, Speed, normalize_extension)

MEDIA_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "mp4", "mp3"})
TEXT_EXTENSIONS = frozenset({"txt", "md", "rs", "py"})
ARCHIVE_EXTENSIONS = frozenset({"zip", "tar", "gz"})


class AlgorithmRule(NamedTuple):
    name: str
    matches: Callable[[HashingPolicy, Optional[str]], bool]
    algorithm: DigestAlgorithm


ALGORITHM_RULES: List[AlgorithmRule] = [
    AlgorithmRule(
        "media-fastest",
        lambda p, ext: ext in MEDIA_EXTENSIONS and p.speed == Speed.FASTEST,
        DigestAlgorithm.XXH3,
    ),
    AlgorithmRule(
        "text-strong",
        lambda p, ext: ext in TEXT_EXTENSIONS and p.security in (Security.HIGH, Security.MAXIMUM),
        DigestAlgorithm.SHA256,
    ),
    AlgorithmRule(
        "archive-balanced",
        lambda p, ext: ext in ARCHIVE_EXTENSIONS and p.speed == Speed.BALANCED,
        DigestAlgorithm.BLAKE3,
    ),
    AlgorithmRule(
        "security-maximum",
        lambda p, ext: p.security == Security.MAXIMUM,
        DigestAlgorithm.SHA256,
    ),
    AlgorithmRule(
        "security-high",
        lambda p, ext: p.security == Security.HIGH,
        DigestAlgorithm.BLAKE3,
    ),
    AlgorithmRule(
        "speed-fastest",
        lambda p, ext: p.speed == Speed.FASTEST,
        DigestAlgorithm.XXH3,
    ),
]

DEFAULT_ALGORITHM = DigestAlgorithm.BLAKE3


def select_algorithm(policy: HashingPolicy, extension: Optional[str] = None) -> DigestAlgorithm:
    """
    Returns the digest algorithm for `extension` under `policy`.
    When `extension` is omitted the policy's own `file_type` is used.
    Extensions are case-insensitive and may carry a leading dot.
    """
    ext = normalize_extension(extension if extension is not None else policy.file_type)
    for rule in ALGORITHM_RULES:
        if rule.matches(policy, ext):
            return rule.algorithm
    return DEFAULT_ALGORITHM
