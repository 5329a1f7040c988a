"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/stages.py
Exact-duplicate pipeline stages.

STAGES
------
SizeStageImpl   : groups candidate files by byte size, drops singletons
DigestStageImpl : digests every file of every size group and splits each group
                  by (algorithm, digest)

STAGE CONTRACTS
---------------
Each stage implements a `process()` method that:
  • Accepts files (size stage) or candidate groups (digest stage)
  • Returns refined groups of two or more files
  • Reports progress via callback (stage name, processed count, total count)
  • Respects cancellation via stopped_flag callback; a cancelled stage returns []

Digests are computed on a thread pool before grouping. Workers only read
files and write the digest onto their own File object, so there is no shared
mutable state between them; grouping afterwards reads the cached digests.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Callable
from dupsafe.core.models import File, DuplicateGroup, Stage
from dupsafe.core.grouper import FileGrouperImpl
from dupsafe.core.interfaces import SizeStage, DigestStage

logger = logging.getLogger(__name__)


class SizeStageImpl(SizeStage):
    def __init__(self, grouper: FileGrouperImpl):
        self.grouper = grouper

    def process(
            self,
            files: List[File],
            stopped_flag: Optional[Callable[[], bool]] = None,
            progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[DuplicateGroup]:
        """
        Group by file size.
        Returns list of DuplicateGroups with 2+ files of same size.
        """
        if stopped_flag and stopped_flag():
            return []

        size_groups = self.grouper.group_by_size(files)
        groups = [
            DuplicateGroup(size=size, files=files_list)
            for size, files_list in size_groups.items()
        ]

        if progress_callback:
            total_files = len(files)
            progress_callback(Stage.SIZE.value, total_files, total_files)

        return groups


class DigestStageImpl(DigestStage):
    def __init__(self, grouper: FileGrouperImpl, max_workers: Optional[int] = None):
        self.grouper = grouper
        self.max_workers = max_workers

    def process(
            self,
            groups: List[DuplicateGroup],
            stopped_flag: Optional[Callable[[], bool]] = None,
            progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[DuplicateGroup]:
        if stopped_flag and stopped_flag():
            return []

        self._prefetch_digests([f for g in groups for f in g.files])

        confirmed = []
        total_files = sum(len(g.files) for g in groups)
        processed_files = 0

        for group in groups:
            if stopped_flag and stopped_flag():
                return []

            digest_groups = self.grouper.group_by_digest(group.files)
            for (algorithm, _), files in digest_groups.items():
                confirmed.append(DuplicateGroup(size=group.size, files=files, algorithm=algorithm))

            processed_files += len(group.files)
            if progress_callback:
                progress_callback(Stage.DIGEST.value, processed_files, total_files)

        return confirmed

    def _prefetch_digests(self, files: List[File]) -> None:
        """Warms the digest cache in parallel. Read errors resurface during grouping."""
        if len(files) < 2:
            return

        def _warm(file: File) -> None:
            try:
                self.grouper.hasher.compute_digest(file)
            except OSError as e:
                logger.debug(f"Prefetch failed for {file.path}: {e}")

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            list(executor.map(_warm, files))
