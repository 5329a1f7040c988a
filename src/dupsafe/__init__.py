"""
dupsafe — duplicate and near-duplicate finder with reversible deletion.

Core features:
- Exact duplicates by size, then content digest (SHA-256, BLAKE3 or XXH3 chosen per file type and policy)
- Near-duplicate text by edit distance, near-duplicate images by perceptual hashes
- Quarantine instead of delete: commit, roll back, or restore single files
- Append-only recovery log that survives loss of the quarantine state file
"""

from importlib.metadata import PackageNotFoundError, version as _version

try:
    __version__ = _version("dupsafe")
except PackageNotFoundError:
    __version__ = "0.0.0"

# Public API — only what users should import directly
from dupsafe.commands import DeduplicationCommand, ScanResult
from dupsafe.core import (
    ScanParams, HashingPolicy, Security, Speed, DigestAlgorithm, File, DuplicateGroup,
    select_algorithm, digest, digest_file)
from dupsafe.similarity import SimilarityConfig, group_similar_text, group_similar_images
from dupsafe.safety import QuarantineConfig, QuarantineManager, read_recovery_log
from dupsafe.utils.convert_utils import ConvertUtils
from dupsafe.services import DuplicateService, FileService

__all__ = [
    "DeduplicationCommand",
    "ScanResult",
    "ScanParams",
    "HashingPolicy",
    "Security",
    "Speed",
    "DigestAlgorithm",
    "File",
    "DuplicateGroup",
    "select_algorithm",
    "digest",
    "digest_file",
    "SimilarityConfig",
    "group_similar_text",
    "group_similar_images",
    "QuarantineConfig",
    "QuarantineManager",
    "read_recovery_log",
    "ConvertUtils",
    "DuplicateService",
    "FileService",
]
