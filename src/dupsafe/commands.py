"""
Unified command orchestrator for a scan.
This is the single place the pipeline is assembled; the CLI only formats its results.

Pipeline: collect → size → digest → text similarity → image similarity.
Files already placed in an exact-duplicate group never take part in
similarity grouping.
"""
import time
from dataclasses import dataclass, field
from typing import List, Optional, Callable, Tuple
from dupsafe.core.models import DuplicateGroup, ScanStats, ScanParams, File, Stage
from dupsafe.core.scanner import FileCollectorImpl
from dupsafe.core.deduplicator import DeduplicatorImpl
from dupsafe.services.file_service import FileService
from dupsafe.similarity.grouping import SimilarityConfig
from dupsafe.similarity.text import group_similar_text
from dupsafe.similarity.image import group_similar_images


@dataclass
class ScanResult:
    duplicate_groups: List[DuplicateGroup]
    stats: ScanStats
    similar_text_groups: List[List[str]] = field(default_factory=list)
    similar_image_groups: List[List[Tuple[str, float]]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.duplicate_groups or self.similar_text_groups or self.similar_image_groups)


class DeduplicationCommand:
    """
    Orchestrates the scan workflow:
    1. Collect candidate files from the given paths
    2. Find exact duplicates (size → digest)
    3. Group near-duplicate text and images among the remaining files

    Usage:
        params = ScanParams(paths=["~/Documents"])
        result = DeduplicationCommand().execute(
            params,
            progress_callback=cli_progress_printer,
            stopped_flag=signal_handler_check
        )
    """

    def __init__(self, excluded_dirs: Optional[List[str]] = None,
                 similarity_config: Optional[SimilarityConfig] = None):
        self._collector = FileCollectorImpl(excluded_dirs=excluded_dirs)
        self._similarity_config = similarity_config
        self._files: List[File] = []

    def execute(
            self,
            params: ScanParams,
            progress_callback: Optional[Callable[[str, int, Optional[int]], None]] = None,
            stopped_flag: Optional[Callable[[], bool]] = None
    ) -> ScanResult:
        """
        Execute a scan with given parameters.

        Args:
            params: Validated scan parameters
            progress_callback: (stage: str, current: int, total: Optional[int]) -> None
            stopped_flag: () -> bool (returns True if operation should stop)

        Returns:
            ScanResult. A cancelled scan returns an empty result.

        Raises:
            RuntimeError: If no files were found
        """
        self._files = self._collector.collect(
            params.paths,
            stopped_flag=stopped_flag,
            progress_callback=progress_callback
        )
        if self._stopped(stopped_flag):
            return ScanResult(duplicate_groups=[], stats=ScanStats())
        if not self._files:
            raise RuntimeError("No files found in the given paths")

        deduplicator = DeduplicatorImpl(max_workers=params.max_workers)
        groups, stats = deduplicator.find_duplicates(
            self._files,
            params.policy,
            stopped_flag=stopped_flag,
            progress_callback=progress_callback
        )
        result = ScanResult(duplicate_groups=groups, stats=stats)

        resolved = {f.path for g in groups for f in g.files}
        remaining = [f.path for f in self._files if f.path not in resolved]
        config = self._similarity_config or SimilarityConfig(max_workers=params.max_workers)

        if params.find_similar_text and not self._stopped(stopped_flag):
            start = time.time()
            text_paths = [p for p in remaining if not FileService.is_image_candidate(p)]
            result.similar_text_groups = group_similar_text(
                text_paths, threshold=params.text_threshold, config=config)
            self._record(stats, "text", result.similar_text_groups, start, progress_callback,
                         Stage.TEXT, len(text_paths))

        if params.find_similar_images and not self._stopped(stopped_flag):
            start = time.time()
            image_paths = [p for p in remaining if FileService.is_image_candidate(p)]
            result.similar_image_groups = group_similar_images(
                image_paths, threshold=params.image_threshold, config=config)
            self._record(stats, "image", result.similar_image_groups, start, progress_callback,
                         Stage.IMAGE, len(image_paths))

        if self._stopped(stopped_flag):
            return ScanResult(duplicate_groups=[], stats=stats)
        return result

    @staticmethod
    def _stopped(stopped_flag: Optional[Callable[[], bool]]) -> bool:
        return bool(stopped_flag and stopped_flag())

    @staticmethod
    def _record(stats: ScanStats, name: str, groups: list, start: float,
                progress_callback, stage: Stage, total: int) -> None:
        duration = time.time() - start
        stats.update_stage(name, len(groups), sum(len(g) for g in groups), duration)
        stats.total_time += duration
        if progress_callback:
            progress_callback(stage.value, total, total)
