"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

hasher.py
Content digests over the closed set of DigestAlgorithm values.

`digest` streams a file through an incremental hasher in fixed-size chunks,
switching to a memory-mapped read for large files. Both paths feed the same
bytes to the same hasher, so the resulting digest is identical.

HasherImpl caches the digest on the File object, choosing the algorithm
per extension from the injected HashingPolicy.
"""

import hashlib
import logging
import mmap
import os
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple, Union

import blake3
import xxhash

from dupsafe.core.interfaces import Hasher
from dupsafe.core.models import DigestAlgorithm, File, FileDigest, HashingPolicy
from dupsafe.core.policy import select_algorithm

logger = logging.getLogger(__name__)


class DigestConfig:
    CHUNK_SIZE = 8 * 1024  # Streaming read size
    MMAP_THRESHOLD = 10 * 1024 * 1024  # Files above this size are memory-mapped


def new_hasher(algorithm: DigestAlgorithm):
    """Returns a fresh incremental hasher for `algorithm`."""
    if algorithm is DigestAlgorithm.SHA256:
        return hashlib.sha256()
    if algorithm is DigestAlgorithm.BLAKE3:
        return blake3.blake3()
    if algorithm is DigestAlgorithm.XXH3:
        return xxhash.xxh3_64()
    raise ValueError(f"Unsupported digest algorithm: {algorithm!r}")


def finish(hasher, algorithm: DigestAlgorithm) -> bytes:
    """Raw digest bytes: 32 for SHA256/BLAKE3, 8 little-endian bytes for XXH3."""
    if algorithm is DigestAlgorithm.XXH3:
        return hasher.intdigest().to_bytes(8, "little")
    return hasher.digest()


def digest_bytes(buffer: bytes, algorithm: DigestAlgorithm) -> bytes:
    """Digest of an in-memory buffer."""
    hasher = new_hasher(algorithm)
    hasher.update(buffer)
    return finish(hasher, algorithm)


def digest(
        path: Union[str, os.PathLike],
        algorithm: DigestAlgorithm,
        mmap_threshold: int = DigestConfig.MMAP_THRESHOLD,
        chunk_size: int = DigestConfig.CHUNK_SIZE,
) -> bytes:
    """
    Digest of the file at `path`.

    Raises:
        OSError: the file cannot be opened or read. Callers skip the file;
                 there is no fallback value.
    """
    hasher = new_hasher(algorithm)
    with open(path, "rb") as f:
        size = os.fstat(f.fileno()).st_size
        if size > 0 and size > mmap_threshold:
            with mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as mapped:
                hasher.update(mapped)
        else:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                hasher.update(chunk)
    return finish(hasher, algorithm)


def digest_file(path: str, policy: HashingPolicy) -> FileDigest:
    """Digests `path` with the algorithm the policy selects for its extension."""
    algorithm = select_algorithm(policy, os.path.splitext(path)[1])
    return FileDigest(path=path, algorithm=algorithm, digest=digest(path, algorithm))


def digest_files(
        paths: List[str],
        policy: HashingPolicy,
        max_workers: Optional[int] = None,
) -> Tuple[List[FileDigest], List[Tuple[str, str]]]:
    """
    Digests many files on a thread pool.
    Returns (digests, failures) in input order; failed files are reported
    as (path, reason) and left out of the digests.
    """
    def _safe_digest(path: str) -> Tuple[str, Optional[FileDigest], Optional[str]]:
        try:
            return path, digest_file(path, policy), None
        except OSError as e:
            return path, None, str(e)

    digests: List[FileDigest] = []
    failures: List[Tuple[str, str]] = []
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        for path, result, error in executor.map(_safe_digest, paths):
            if result is None:
                logger.warning(f"Skipping unreadable file {path}: {error}")
                failures.append((path, error))
            else:
                digests.append(result)
    return digests, failures


class HasherImpl(Hasher):
    """
    Computes and caches the content digest of a File.
    The algorithm is chosen per file from the policy and the file's extension.
    """

    def __init__(self, policy: Optional[HashingPolicy] = None):
        self.policy = policy or HashingPolicy()

    def algorithm_for(self, file: File) -> DigestAlgorithm:
        return select_algorithm(self.policy, file.extension)

    def compute_digest(self, file: File) -> FileDigest:
        """Raises OSError if the file cannot be read."""
        if file.digest is not None:
            return file.digest
        algorithm = self.algorithm_for(file)
        result = FileDigest(path=file.path, algorithm=algorithm, digest=digest(file.path, algorithm))
        file.digest = result
        return result
