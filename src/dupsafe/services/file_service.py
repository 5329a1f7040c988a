"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/file_service.py
File operations used by the quarantine manager: moves that survive crossing
a filesystem boundary, permanent deletion and moving to the system trash.
"""
import errno
import logging
import os
import shutil
from pathlib import Path
from typing import Union

from send2trash import send2trash

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

VALID_IMAGE_EXTENSIONS = [".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp", ".tif", ".tiff"]


class FileService:
    """
    Filesystem helpers with consistent error reporting.
    Low-level failures surface as OSError; failed composite operations as RuntimeError.
    """

    COPY_CHUNK_SIZE = 1024 * 1024

    @staticmethod
    def move_file(src: PathLike, dst: PathLike, chunk_size: int = COPY_CHUNK_SIZE) -> None:
        """
        Moves src to dst with an atomic rename.
        If src and dst live on different devices, falls back to copy_then_delete.

        Raises:
            OSError: rename failed for any reason other than a device boundary
            RuntimeError: the cross-device fallback failed (src is left in place)
        """
        try:
            os.rename(src, dst)
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            logger.debug(f"Cross-device move {src} -> {dst}, copying instead")
            FileService.copy_then_delete(src, dst, chunk_size=chunk_size)

    @staticmethod
    def copy_then_delete(src: PathLike, dst: PathLike, chunk_size: int = COPY_CHUNK_SIZE) -> None:
        """
        Two-step move: copy to dst, fsync it, copy metadata, verify the size,
        and only then unlink src. A partial copy is removed on failure.
        """
        src_path, dst_path = Path(src), Path(dst)
        created = False
        try:
            with open(src_path, "rb") as fsrc, open(dst_path, "xb") as fdst:
                created = True
                for chunk in iter(lambda: fsrc.read(chunk_size), b""):
                    fdst.write(chunk)
                fdst.flush()
                os.fsync(fdst.fileno())
            shutil.copystat(src_path, dst_path)

            expected, copied = src_path.stat().st_size, dst_path.stat().st_size
            if expected != copied:
                raise OSError(f"size mismatch after copy ({copied} of {expected} bytes)")
            FileService.fsync_directory(dst_path.parent)
        except OSError as e:
            if created and dst_path.exists():
                dst_path.unlink()
            raise RuntimeError(f"Failed to copy {src_path} to {dst_path}: {e}") from e

        try:
            src_path.unlink()
        except OSError as e:
            raise RuntimeError(f"Copied to {dst_path} but failed to remove {src_path}: {e}") from e

    @staticmethod
    def fsync_directory(directory: PathLike) -> None:
        """Flushes a directory entry on POSIX systems; no-op elsewhere."""
        if os.name != "posix":
            return
        fd = os.open(str(directory), os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    @staticmethod
    def delete_permanently(file_path: PathLike) -> None:
        """Unlinks a file. Raises OSError on failure."""
        os.remove(file_path)

    @staticmethod
    def move_to_trash(file_path: PathLike):
        """Moves a file to the system trash."""
        path = Path(file_path).resolve()

        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        try:
            send2trash(str(path))
        except Exception as e:
            raise RuntimeError(f"Failed to move to trash: {e}") from e

    @staticmethod
    def is_image_candidate(file_path: str) -> bool:
        """True if the extension is one Pillow is expected to decode."""
        return Path(file_path).suffix.lower() in VALID_IMAGE_EXTENSIONS

