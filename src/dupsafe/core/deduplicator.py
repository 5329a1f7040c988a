"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

deduplicator.py
Exact-duplicate pipeline: size → content digest.
The digest algorithm is chosen per file by the HashingPolicy.
"""
import time
from typing import List, Tuple, Optional, Callable
from dupsafe.core.models import File, DuplicateGroup, ScanStats, HashingPolicy
from dupsafe.core.grouper import FileGrouperImpl
from dupsafe.core.hasher import HasherImpl
from dupsafe.core.interfaces import Deduplicator
from dupsafe.core.stages import SizeStageImpl, DigestStageImpl


# =============================
# Main Deduplicator Class
# =============================
class DeduplicatorImpl(Deduplicator):
    """
    Runs the size and digest stages and collects statistics.
    A grouper can be injected for testing; otherwise one is built from the policy.
    """
    def __init__(self, grouper: Optional[FileGrouperImpl] = None, max_workers: Optional[int] = None):
        self.grouper = grouper
        self.max_workers = max_workers

    def find_duplicates(
        self,
        files: List[File],
        policy: HashingPolicy,
        stopped_flag: Optional[Callable[[], bool]] = None,
        progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> Tuple[List[DuplicateGroup], ScanStats]:
        """
        Main deduplication pipeline using File objects.
        Args:
            files: Candidate files
            policy: Hashing policy used to pick an algorithm per extension
            stopped_flag: Function that returns True if operation should be stopped.
            progress_callback: Reports progress per stage.
        Returns:
            Tuple[List[DuplicateGroup], ScanStats], groups sorted by descending size.
            A cancelled run returns no groups.
        """
        stats = ScanStats()
        total_start_time = time.time()
        grouper = self.grouper or FileGrouperImpl(HasherImpl(policy))

        start_time = time.time()
        groups = SizeStageImpl(grouper).process(
            files,
            stopped_flag=stopped_flag,
            progress_callback=progress_callback
        )
        DeduplicatorImpl._update_stats(stats, "size", time.time() - start_time, groups)

        start_time = time.time()
        groups = DigestStageImpl(grouper, max_workers=self.max_workers).process(
            groups,
            stopped_flag=stopped_flag,
            progress_callback=progress_callback
        )
        DeduplicatorImpl._update_stats(stats, "digest", time.time() - start_time, groups)

        if stopped_flag and stopped_flag():
            groups = []

        for path, reason in grouper.skipped:
            stats.record_skip(path, reason)
        for group in groups:
            for file in group.files:
                if file.digest is not None:
                    stats.record_algorithm(file.digest.algorithm)

        groups.sort(key=lambda g: -g.size)
        stats.space_savings = calculate_space_savings(groups)
        stats.total_time = time.time() - total_start_time

        return groups, stats

    @staticmethod
    def _update_stats(
        stats: ScanStats,
        stage: str,
        duration: float,
        groups: List[DuplicateGroup],
    ):
        stats.update_stage(
            stage_name=stage,
            groups_found=len(groups),
            files_processed=sum(len(g.files) for g in groups),
            duration=duration
        )


def calculate_space_savings(groups: List[DuplicateGroup]) -> int:
    """Bytes freed by keeping the first file of every group and removing the rest."""
    return sum(group.wasted_bytes for group in groups)
