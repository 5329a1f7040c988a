"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

safety/storage.py
Durable persistence for quarantine state and the recovery log.

State file   : one JSON document, rewritten atomically (temp file in the
               same directory, fsync, os.replace).
Recovery log : JSON Lines, append-only. Every append is flushed and
               fsynced; a torn final line is skipped by the reader and
               never glued to the next entry.
"""

import json
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List

from dupsafe.core.models import QuarantineRecord, RecoveryLogEntry
from dupsafe.services.file_service import FileService

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class StateCorruptedError(ValueError):
    """The state file exists but cannot be parsed into records."""


def atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON to a temp file then os.replace() it over `path`."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    FileService.fsync_directory(path.parent)


def save_state(path: Path, records: Dict[str, QuarantineRecord]) -> None:
    atomic_write_json(path, {
        "version": STATE_VERSION,
        "records": {original: record.to_dict() for original, record in records.items()},
    })


def load_state(path: Path) -> Dict[str, QuarantineRecord]:
    """
    Loads tracked records. A missing file means no records.

    Raises:
        StateCorruptedError: the file is not a valid state document
        OSError: the file exists but cannot be read
    """
    path = Path(path)
    if not path.exists():
        return {}
    with open(path, "rb") as f:
        raw = f.read()
    try:
        document = json.loads(raw.decode("utf-8"))
        records = document["records"]
        return {
            str(original): QuarantineRecord.from_dict(data)
            for original, data in records.items()
        }
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise StateCorruptedError(f"Unreadable quarantine state {path}: {e}") from e


def preserve_corrupt_file(path: Path) -> Path:
    """Copies an unparseable file aside so it can be inspected by hand."""
    backup = path.with_name(f"{path.name}.corrupt-{int(time.time())}")
    counter = 1
    while backup.exists():
        backup = path.with_name(f"{path.name}.corrupt-{int(time.time())}-{counter}")
        counter += 1
    shutil.copy2(path, backup)
    return backup


class RecoveryLog:
    """
    Append-only JSON Lines audit trail of quarantine transitions.
    Entries are never rewritten or removed.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def append(self, entry: RecoveryLogEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), ensure_ascii=False) + "\n"
        with open(self.path, "a+b") as f:
            if f.tell() > 0:
                f.seek(-1, os.SEEK_END)
                if f.read(1) != b"\n":
                    # previous append was torn; start on a fresh line
                    line = "\n" + line
            f.write(line.encode("utf-8"))
            f.flush()
            os.fsync(f.fileno())

    def read(self) -> List[RecoveryLogEntry]:
        """All parseable entries in append order. A missing log is empty."""
        if not self.path.exists():
            return []
        entries = []
        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            for number, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(RecoveryLogEntry.from_dict(json.loads(line)))
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning(f"Skipping unreadable recovery log line {number}: {e}")
        return entries
