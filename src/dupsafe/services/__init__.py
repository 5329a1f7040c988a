from .duplicate_service import DuplicateService
from .file_service import FileService

__all__ = ["DuplicateService", "FileService"]
