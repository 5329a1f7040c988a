"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

interfaces.py

Defines core interfaces (Protocols) used throughout the deduplication system.
These protocols use Python's `typing.Protocol` for structural typing, so the
pipeline can be assembled from any objects with the right shape.

Key Components:
---------------
- Hasher: computes the content digest of a file.
- FileCollector: turns user-supplied paths into a flat list of candidate files.
- FileGrouper: groups files by size or by (algorithm, digest).
- SizeStage / DigestStage: individual stages of the exact-duplicate pipeline.
- Deduplicator: runs the stages and collects statistics.
"""

from typing import Protocol, List, Dict, Tuple, Optional, Callable, Any
from dupsafe.core.models import (
    File,
    FileDigest,
    DuplicateGroup,
    HashingPolicy,
    ScanStats,
)


# ===== Interfaces =====

class Hasher(Protocol):
    """Interface for computing (and caching) the digest of a file."""
    def compute_digest(self, file: File) -> FileDigest: ...


class FileCollector(Protocol):
    """
    Interface for turning paths into File objects.

    Methods:
        collect: Returns one File per regular file reachable from the inputs.
    """
    def collect(
        self,
        paths: List[str],
        stopped_flag: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[File]:
        ...


class FileGrouper(Protocol):
    """Interface for grouping files by size or digest."""
    def group_by_size(self, files: List[File]) -> Dict[int, List[File]]: ...
    def group_by_digest(self, files: List[File]) -> Dict[Tuple[Any, bytes], List[File]]: ...


class SizeStage(Protocol):
    def process(
        self,
        files: List[File],
        stopped_flag: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[DuplicateGroup]:
        ...


class DigestStage(Protocol):
    def process(
        self,
        groups: List[DuplicateGroup],
        stopped_flag: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[DuplicateGroup]:
        ...


class Deduplicator(Protocol):
    """
    Interface for the exact-duplicate engine.
    """
    def find_duplicates(
        self,
        files: List[File],
        policy: HashingPolicy,
        stopped_flag: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> Tuple[List[DuplicateGroup], ScanStats]:
        ...
