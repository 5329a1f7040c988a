"""
Core exact-duplicate engine: digest policy, hasher, grouper and pipeline.

This package contains the content-addressing foundation of dupsafe:
- select_algorithm: ordered rule list mapping policy + extension to an algorithm
- digest / digest_bytes / HasherImpl: SHA-256, BLAKE3 and XXH3 content digests
- FileGrouperImpl: size and (algorithm, digest) grouping
- DeduplicatorImpl: size → digest pipeline with statistics
- FileCollectorImpl: flat list of candidate files from user-supplied paths
- Models: File, FileDigest, DuplicateGroup, policies and quarantine records
"""

from .models import (
    Security, Speed, DigestAlgorithm, HashingPolicy, FileDigest, File, DuplicateGroup,
    ImageSignature, QuarantineRecord, RecoveryLogEntry, RecoveryAction, BatchResult,
    ScanStats, ScanParams)
from .policy import select_algorithm
from .hasher import HasherImpl, DigestConfig, digest, digest_bytes, digest_file, digest_files
from .grouper import FileGrouperImpl
from .deduplicator import DeduplicatorImpl, calculate_space_savings
from .scanner import FileCollectorImpl

__all__ = [
    "Security",
    "Speed",
    "DigestAlgorithm",
    "HashingPolicy",
    "FileDigest",
    "File",
    "DuplicateGroup",
    "ImageSignature",
    "QuarantineRecord",
    "RecoveryLogEntry",
    "RecoveryAction",
    "BatchResult",
    "ScanStats",
    "ScanParams",
    "select_algorithm",
    "HasherImpl",
    "DigestConfig",
    "digest",
    "digest_bytes",
    "digest_file",
    "digest_files",
    "FileGrouperImpl",
    "DeduplicatorImpl",
    "calculate_space_savings",
    "FileCollectorImpl",
]
