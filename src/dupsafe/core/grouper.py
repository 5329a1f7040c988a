"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/grouper.py
Groups File objects by size and by content digest.
"""

import logging
from typing import List, Dict, Tuple, Any, Callable, Optional
from collections import defaultdict
from dupsafe.core.interfaces import FileGrouper, Hasher
from dupsafe.core.models import File, DigestAlgorithm
from dupsafe.core.hasher import HasherImpl

logger = logging.getLogger(__name__)


class FileGrouperImpl(FileGrouper):
    """
    Groups files by size or by (algorithm, digest).
    Uses an injected Hasher instance for flexibility and testability.
    """

    def __init__(self, hasher: Hasher = None):
        self.hasher = hasher or HasherImpl()
        self.skipped: List[Tuple[str, str]] = []

    def group_by_size(self, files: List[File]) -> Dict[int, List[File]]:
        """Groups files by their size."""
        return self._group_by(files, lambda f: f.size)

    def group_by_digest(self, files: List[File]) -> Dict[Tuple[DigestAlgorithm, bytes], List[File]]:
        """
        Groups files by content digest.
        The key includes the algorithm, so equal bytes from different algorithms never collide.
        """
        return self._group_by(files, lambda f: self.hasher.compute_digest(f).key, self._record_skip)

    def _record_skip(self, file: File, error: Exception) -> None:
        self.skipped.append((file.path, str(error)))

    @staticmethod
    def _group_by(
            files: List[File],
            key_func: Callable[[File], Any],
            on_skip: Optional[Callable[[File, Exception], None]] = None
    ) -> Dict[Any, List[File]]:
        """
        Helper method to group files by any computed key.
        Files whose key cannot be computed because of an I/O error are skipped.
        Args:
            files: List of files to group
            key_func: Function that computes a hashable key from a File
            on_skip: Called with (file, error) for every skipped file
        Returns:
            Dict[key, List[File]] with groups of two or more files
        """
        groups = defaultdict(list)
        skipped_files = 0
        for file in files:
            try:
                key = key_func(file)
            except OSError as e:
                logger.warning(f"Error processing {file.path}: {e}")
                skipped_files += 1
                if on_skip:
                    on_skip(file, e)
                continue
            if key is not None:
                groups[key].append(file)

        if skipped_files > 0:
            logger.warning(f"Skipped {skipped_files} files due to read errors")

        return {key: group for key, group in groups.items() if len(group) >= 2}
