"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/models.py
Data models for digesting, similarity grouping and quarantine bookkeeping.
"""

from dataclasses import dataclass, field, replace
from typing import List, Dict, Optional, Union, Tuple, Any
import os
from enum import Enum


# =============================
# Enums
# =============================

class Security(Enum):
    """
    Requested collision resistance of content digests.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    MAXIMUM = "maximum"

    def __repr__(self) -> str:
        return self.value


class Speed(Enum):
    """
    Requested trade-off between hashing throughput and strength.
    """
    FASTEST = "fastest"
    BALANCED = "balanced"
    MOST_SECURE = "most-secure"

    def __repr__(self) -> str:
        return self.value


class DigestAlgorithm(Enum):
    """
    Closed set of content digest algorithms.
    SHA256 and BLAKE3 are collision resistant, XXH3 is a fast checksum.
    """
    SHA256 = "sha256"
    BLAKE3 = "blake3"
    XXH3 = "xxh3"

    @property
    def digest_size(self) -> int:
        """Length of the raw digest in bytes."""
        if self is DigestAlgorithm.XXH3:
            return 8
        return 32

    @property
    def display_name(self) -> str:
        mapping = {
            DigestAlgorithm.SHA256: "SHA-256",
            DigestAlgorithm.BLAKE3: "BLAKE3",
            DigestAlgorithm.XXH3: "XXH3-64",
        }
        return mapping.get(self, self.value)

    def __repr__(self) -> str:
        return self.value


class Stage(str, Enum):
    SIZE = "Size grouping"
    DIGEST = "Content digest"
    TEXT = "Text similarity"
    IMAGE = "Image similarity"


class RecoveryAction(str, Enum):
    QUARANTINED = "quarantined"
    DELETED = "deleted"
    RESTORED = "restored"


# ======================
#  Core Data Models
# ======================

@dataclass(frozen=True)
class HashingPolicy:
    """
    Immutable description of how strongly files should be digested.
    Built once per scan and specialized per extension with `with_file_type`.
    """
    security: Security = Security.HIGH
    speed: Speed = Speed.BALANCED
    file_type: Optional[str] = None

    def with_file_type(self, extension: Optional[str]) -> 'HashingPolicy':
        return replace(self, file_type=normalize_extension(extension))


def normalize_extension(extension: Optional[str]) -> Optional[str]:
    """'.JPG' -> 'jpg'. Empty or None -> None."""
    if not extension:
        return None
    ext = extension.strip().lower().lstrip(".")
    return ext or None


@dataclass(frozen=True)
class FileDigest:
    """
    Content digest of one file. Two digests only denote the same content
    when both the algorithm and the bytes are equal, so grouping uses `key`.
    """
    path: str
    algorithm: DigestAlgorithm
    digest: bytes

    def __post_init__(self):
        if not isinstance(self.digest, bytes):
            raise ValueError("Digest must be bytes")
        if len(self.digest) != self.algorithm.digest_size:
            raise ValueError(
                f"{self.algorithm.display_name} digest must be {self.algorithm.digest_size} bytes, "
                f"got {len(self.digest)}"
            )

    @property
    def key(self) -> Tuple[DigestAlgorithm, bytes]:
        return self.algorithm, self.digest

    @property
    def hex(self) -> str:
        return self.digest.hex()


@dataclass
class File:
    """
    Represents a single candidate file.
    Stores metadata and the computed digest once the digest stage has run.
    """
    path: str
    size: int  # in bytes
    name: Optional[str] = None
    extension: Optional[str] = None
    digest: Optional[FileDigest] = None

    def __post_init__(self):
        """Automatically extract basename and extension from path if not provided."""
        if self.name is None:
            self.name = os.path.basename(self.path)

        if self.extension is None:
            _, ext = os.path.splitext(self.name)
            self.extension = ext.lower()  # ".JPG" → ".jpg"

    @classmethod
    def from_path(cls, path: str) -> 'File':
        """Build a File from disk metadata. Raises OSError if the path cannot be stat'ed."""
        return cls(path=path, size=os.path.getsize(path))

    def __repr__(self):
        return f"<File path={self.path}, size={self.size}>"


@dataclass
class DuplicateGroup:
    """
    A group of exact duplicates.
    All files share the same size and the same (algorithm, digest) pair.
    """
    size: int
    files: List[File]
    algorithm: Optional[DigestAlgorithm] = None

    @property
    def wasted_bytes(self) -> int:
        """Bytes freed by keeping only the first file."""
        return sum(f.size for f in self.files[1:])

    def __repr__(self):
        return f"<DuplicateGroup size={self.size}, count={len(self.files)}>"


@dataclass(frozen=True)
class ImageSignature:
    """Four independent 64-bit perceptual fingerprints of one image."""
    avg_hash: int
    phash: int
    dhash: int
    color_hash: int

    def __post_init__(self):
        for name in ("avg_hash", "phash", "dhash", "color_hash"):
            value = getattr(self, name)
            if not 0 <= value <= 0xFFFFFFFFFFFFFFFF:
                raise ValueError(f"Field '{name}' must fit in 64 bits")


@dataclass
class QuarantineRecord:
    """
    A file currently held in quarantine.
    `moved_at` is a float Unix timestamp so it survives serialization losslessly.
    """
    original_path: str
    quarantine_path: str
    file_size: int
    moved_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_path": self.original_path,
            "quarantine_path": self.quarantine_path,
            "file_size": self.file_size,
            "moved_at": self.moved_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuarantineRecord':
        return cls(
            original_path=str(data["original_path"]),
            quarantine_path=str(data["quarantine_path"]),
            file_size=int(data["file_size"]),
            moved_at=float(data["moved_at"]),
        )


@dataclass(frozen=True)
class RecoveryLogEntry:
    """One immutable line of the append-only recovery log."""
    timestamp: float
    action: RecoveryAction
    original_path: str
    quarantine_path: str
    file_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "action": self.action.value,
            "original_path": self.original_path,
            "quarantine_path": self.quarantine_path,
            "file_size": self.file_size,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RecoveryLogEntry':
        return cls(
            timestamp=float(data["timestamp"]),
            action=RecoveryAction(data["action"]),
            original_path=str(data["original_path"]),
            quarantine_path=str(data["quarantine_path"]),
            file_size=int(data["file_size"]),
        )

    @classmethod
    def for_record(cls, action: RecoveryAction, record: QuarantineRecord,
                   timestamp: float) -> 'RecoveryLogEntry':
        return cls(
            timestamp=timestamp,
            action=action,
            original_path=record.original_path,
            quarantine_path=record.quarantine_path,
            file_size=record.file_size,
        )


@dataclass
class BatchResult:
    """
    Per-record outcome of a commit or rollback pass.
    `missing` lists records whose quarantined file was already gone.
    """
    succeeded: int = 0
    failed: List[Tuple[str, str]] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)


class ScanStats:
    """
    Statistics collected during a scan.
    """
    def __init__(self):
        self.total_time: float = 0.0
        self.stage_stats: Dict[str, Dict[str, Union[int, float]]] = {}
        self.skipped_files: List[Tuple[str, str]] = []
        self.algorithm_usage: Dict[DigestAlgorithm, int] = {}
        self.space_savings: int = 0

    def update_stage(
            self,
            stage_name: str,
            groups_found: int,
            files_processed: int,
            duration: float
    ) -> None:
        if stage_name not in self.stage_stats:
            self.stage_stats[stage_name] = {
                "groups": 0,
                "files": 0,
                "time": 0.0
            }
        self.stage_stats[stage_name]["groups"] += groups_found
        self.stage_stats[stage_name]["files"] += files_processed
        self.stage_stats[stage_name]["time"] += duration

    def record_skip(self, path: str, reason: str) -> None:
        self.skipped_files.append((path, reason))

    def record_algorithm(self, algorithm: DigestAlgorithm) -> None:
        self.algorithm_usage[algorithm] = self.algorithm_usage.get(algorithm, 0) + 1

    def print_summary(self) -> str:
        labels = {
            "size": "Size Groups",
            "digest": "Content Digest Groups",
            "text": "Similar Text Groups",
            "image": "Similar Image Groups",
        }

        lines = [
            "Scan Statistics:",
            f"Total Execution Time: {self.total_time:.3f}s\n",
            "Stage: GROUPS / FILES / TIME"
        ]

        for stage, data in self.stage_stats.items():
            label = labels.get(stage.lower(), stage.title())
            if data["groups"] > 0 or data["time"] > 0:
                lines.append(f"{label}: {data['groups']} / {data['files']} / {data['time']:.3f}s")

        if self.algorithm_usage:
            usage = ", ".join(
                f"{algo.display_name}={count}" for algo, count in sorted(
                    self.algorithm_usage.items(), key=lambda item: item[0].value)
            )
            lines.append(f"Digests: {usage}")
        if self.skipped_files:
            lines.append(f"Skipped files: {len(self.skipped_files)}")

        return "\n".join(lines)


"""
DTO for scan parameters with built-in validation.
Interface-agnostic, used by the command layer and the CLI.
"""

@dataclass
class ScanParams:
    """Parameters for a scan with validation."""
    paths: List[str]
    policy: HashingPolicy = field(default_factory=HashingPolicy)
    text_threshold: float = 0.8
    image_threshold: float = 0.9
    find_similar_text: bool = True
    find_similar_images: bool = True
    max_workers: Optional[int] = None

    def __post_init__(self):
        """Validate parameters immediately after creation."""
        if not self.paths:
            raise ValueError("At least one path is required")

        for name in ("text_threshold", "image_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")

        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @staticmethod
    def from_human_readable(
            paths: List[str],
            security: str = "high",
            speed: str = "balanced",
            text_threshold: str = "0.8",
            image_threshold: str = "0.9",
            find_similar_text: bool = True,
            find_similar_images: bool = True,
    ) -> 'ScanParams':
        """
        Factory method to create params from string inputs.
        Thresholds accept either a fraction ('0.85') or a percentage ('85%').
        """
        try:
            security_level = Security(security.strip().lower())
        except ValueError:
            raise ValueError(f"Invalid security level: '{security}'")
        try:
            speed_level = Speed(speed.strip().lower())
        except ValueError:
            raise ValueError(f"Invalid speed: '{speed}'")

        return ScanParams(
            paths=list(paths),
            policy=HashingPolicy(security=security_level, speed=speed_level),
            text_threshold=_parse_threshold(text_threshold),
            image_threshold=_parse_threshold(image_threshold),
            find_similar_text=find_similar_text,
            find_similar_images=find_similar_images,
        )


def _parse_threshold(value: str) -> float:
    text = value.strip()
    try:
        if text.endswith("%"):
            return float(text[:-1]) / 100.0
        return float(text)
    except ValueError:
        raise ValueError(f"Invalid threshold: '{value}'")
