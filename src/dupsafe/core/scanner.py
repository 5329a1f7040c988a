"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/scanner.py
Turns the paths given by the caller into a flat list of candidate files.
Features:
- Accepts files and directories; directories are walked recursively
- Skips symbolic links, zero-byte files and system trash folders
- Skips caller-supplied directories (the quarantine area, for instance)
- Never yields the same path twice
"""

import os
import sys
import time
import logging
from pathlib import Path
from typing import List, Optional, Callable

from dupsafe.core.models import File
from dupsafe.core.interfaces import FileCollector

logger = logging.getLogger(__name__)


class FileCollectorImpl(FileCollector):
    """
    Collects regular files from a mix of file and directory paths.

    Attributes:
        excluded_dirs: Directories that are never entered
    """

    def __init__(self, excluded_dirs: Optional[List[str]] = None):
        self.excluded_dirs = [str(Path(d).resolve()) for d in excluded_dirs] if excluded_dirs else []

    def collect(
            self,
            paths: List[str],
            stopped_flag: Optional[Callable[[], bool]] = None,
            progress_callback: Optional[Callable[[str, int, object], None]] = None
    ) -> List[File]:
        """
        Returns File objects for every accepted file, in discovery order.
        Missing input paths are logged and skipped.
        """
        logger.debug(f"Collecting files from {len(paths)} input path(s)")
        start_time = time.time()
        found_files: List[File] = []
        seen = set()
        processed = 0

        for raw in paths:
            if stopped_flag and stopped_flag():
                logger.debug("Collection interrupted by user")
                return []

            path = Path(raw)
            if path.is_symlink():
                logger.debug(f"Skipping symbolic link: {path}")
                continue
            if path.is_dir():
                candidates = self._walk(path, stopped_flag)
            elif path.is_file():
                candidates = [path]
            else:
                logger.warning(f"Path not found: {raw}")
                continue

            for candidate in candidates:
                key = os.path.normcase(os.path.abspath(candidate))
                if key in seen:
                    continue
                seen.add(key)
                file = self._process_file(candidate)
                if file:
                    found_files.append(file)
                processed += 1

            if progress_callback:
                progress_callback("collecting", processed, None)

        logger.debug(f"Collected {len(found_files)} files in {time.time() - start_time:.2f} seconds")
        return found_files

    def _walk(self, root: Path, stopped_flag: Optional[Callable[[], bool]]) -> List[Path]:
        result = []
        for current, dirs, files in os.walk(str(root)):
            if stopped_flag and stopped_flag():
                return []
            dirs[:] = sorted(d for d in dirs if self._prefilter_dirs(Path(current) / d))
            for filename in sorted(files):
                result.append(Path(current) / filename)
        return result

    @staticmethod
    def _is_system_trash(path: Path) -> bool:
        """Check if path belongs to OS trash/recycle bin."""
        try:
            path_str = str(path.resolve(strict=False))
        except (OSError, ValueError):
            return False
        if sys.platform == "win32":
            return "$Recycle.Bin" in path_str or "\\Recycler\\" in path_str
        if sys.platform == "darwin":
            return "/.Trash/" in path_str or path_str.endswith("/.Trash")
        return ".local/share/Trash" in path_str or "/.trash/" in path_str

    def _is_excluded_directory(self, path: Path) -> bool:
        try:
            path_str = str(path.resolve(strict=False))
        except (OSError, ValueError):
            return False
        return any(
            path_str == excluded or path_str.startswith(excluded + os.sep)
            for excluded in self.excluded_dirs
        )

    def _prefilter_dirs(self, path: Path) -> bool:
        """Skip symlinked, trash, excluded and inaccessible directories."""
        if path.is_symlink():
            logger.debug(f"Skipping symbolic link: {path}")
            return False
        if self._is_system_trash(path):
            logger.debug(f"Skipping system trash directory: {path}")
            return False
        if self.excluded_dirs and self._is_excluded_directory(path):
            logger.debug(f"Skipping excluded directory: {path}")
            return False
        return os.access(path, os.R_OK | os.X_OK)

    @staticmethod
    def _process_file(path: Path) -> Optional[File]:
        try:
            if path.is_symlink():
                logger.debug(f"Skipping symbolic link: {path}")
                return None
            size = path.stat().st_size
        except OSError as e:
            logger.debug(f"Could not get size of {path}: {e}")
            return None

        if size == 0:
            logger.debug(f"Skipping zero-byte file: {path}")
            return None

        return File(path=str(path), size=size)
