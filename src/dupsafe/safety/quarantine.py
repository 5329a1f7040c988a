"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

safety/quarantine.py
Reversible deletion through a holding area.

Every file moves through: Active → Quarantined → Deleted | Restored.
The manager owns the quarantine directory, the mutable state file that maps
original paths to QuarantineRecords, and appends one recovery log entry per
transition. State is reloaded on construction, so quarantined files survive
process restarts; the recovery log alone is enough to bring a file back if
the state file is lost.

One manager instance per base directory at a time; concurrent managers on
the same state file are not supported.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from dupsafe.core.models import BatchResult, QuarantineRecord, RecoveryAction, RecoveryLogEntry
from dupsafe.safety.storage import (
    RecoveryLog, StateCorruptedError, load_state, preserve_corrupt_file, save_state)
from dupsafe.services.file_service import FileService

logger = logging.getLogger(__name__)


@dataclass
class QuarantineConfig:
    """Locations and I/O settings for one quarantine area."""

    base_dir: Path = field(default_factory=lambda: Path.home() / ".dupsafe")
    copy_chunk_size: int = 1024 * 1024  # cross-device copy chunk

    def __post_init__(self):
        self.base_dir = Path(self.base_dir).expanduser()
        if self.copy_chunk_size <= 0:
            raise ValueError("copy_chunk_size must be positive")

    @property
    def quarantine_dir(self) -> Path:
        return self.base_dir / "quarantine"

    @property
    def state_path(self) -> Path:
        return self.base_dir / "quarantine.json"

    @property
    def recovery_log_path(self) -> Path:
        return self.base_dir / "recovery.jsonl"


def read_recovery_log(config: Optional[QuarantineConfig] = None) -> List[RecoveryLogEntry]:
    """Reads the recovery log without constructing a manager."""
    config = config or QuarantineConfig()
    return RecoveryLog(config.recovery_log_path).read()


def pending_log_entry(entries: List[RecoveryLogEntry], original_path: str) -> Optional[RecoveryLogEntry]:
    """
    The latest `quarantined` entry for original_path that no later
    `deleted` or `restored` entry has resolved.
    """
    pending: Dict[str, RecoveryLogEntry] = {}
    for entry in entries:
        if entry.original_path != original_path:
            continue
        if entry.action is RecoveryAction.QUARANTINED:
            pending[entry.quarantine_path] = entry
        else:
            pending.pop(entry.quarantine_path, None)
    if not pending:
        return None
    return max(pending.values(), key=lambda e: e.timestamp)


class QuarantineManager:
    """
    Moves files into quarantine and finalizes (commit) or undoes (rollback) the moves.
    """

    def __init__(self, config: Optional[QuarantineConfig] = None,
                 clock: Callable[[], float] = time.time):
        self.config = config or QuarantineConfig()
        self._clock = clock
        self.config.quarantine_dir.mkdir(parents=True, exist_ok=True)
        self.recovery_log = RecoveryLog(self.config.recovery_log_path)
        self._records: Dict[str, QuarantineRecord] = self._load()

    # ---------- persistence ----------

    def _load(self) -> Dict[str, QuarantineRecord]:
        state_path = self.config.state_path
        try:
            records = load_state(state_path)
        except StateCorruptedError as e:
            backup = preserve_corrupt_file(state_path)
            logger.error(f"{e}. Starting with empty state; original kept at {backup}")
            return {}
        logger.debug(f"Loaded {len(records)} quarantine record(s) from {state_path}")
        return records

    def _save(self) -> None:
        save_state(self.config.state_path, self._records)

    def _log(self, action: RecoveryAction, record: QuarantineRecord) -> None:
        """Logs a transition that has already happened; a failed write does not undo it."""
        try:
            self.recovery_log.append(RecoveryLogEntry.for_record(action, record, self._clock()))
        except OSError as e:
            logger.error(f"Could not record '{action.value}' for {record.original_path} in recovery log: {e}")

    @staticmethod
    def _key(path) -> str:
        return os.path.abspath(os.fspath(path))

    # ---------- quarantine ----------

    def _unique_target(self, timestamp: int, filename: str) -> Path:
        target = self.config.quarantine_dir / f"{timestamp}_{filename}"
        counter = 1
        while target.exists():
            target = self.config.quarantine_dir / f"{timestamp}_{counter}_{filename}"
            counter += 1
        return target

    def quarantine(self, path) -> Optional[QuarantineRecord]:
        """
        Moves `path` into the quarantine directory and starts tracking it.

        Returns:
            The new record, or None if the path no longer exists.

        Raises:
            ValueError: path is not a regular file, or is already quarantined
            RuntimeError: the move, the state update or the log write failed;
                          the file is left at (or returned to) its original location
        """
        original = self._key(path)
        source = Path(original)
        if not source.exists():
            logger.debug(f"Nothing to quarantine, path is gone: {original}")
            return None
        if not source.is_file():
            raise ValueError(f"Only regular files can be quarantined: {original}")
        if original in self._records:
            raise ValueError(f"Already quarantined: {original}; restore or commit it first")

        try:
            file_size = source.stat().st_size
        except FileNotFoundError:
            return None

        moved_at = self._clock()
        target = self._unique_target(int(moved_at), source.name)
        try:
            FileService.move_file(source, target, chunk_size=self.config.copy_chunk_size)
        except FileNotFoundError:
            logger.debug(f"File vanished before it could be quarantined: {original}")
            return None
        except (OSError, RuntimeError) as e:
            raise RuntimeError(f"Failed to quarantine {original}: {e}") from e

        record = QuarantineRecord(
            original_path=original,
            quarantine_path=str(target),
            file_size=file_size,
            moved_at=moved_at,
        )
        self._records[original] = record
        try:
            self._save()
        except OSError as e:
            self._undo_quarantine(original, target, source)
            raise RuntimeError(f"Failed to persist quarantine state for {original}: {e}") from e

        try:
            self.recovery_log.append(
                RecoveryLogEntry.for_record(RecoveryAction.QUARANTINED, record, moved_at))
        except OSError as e:
            self._undo_quarantine(original, target, source)
            try:
                self._save()
            except OSError as save_error:
                logger.error(f"Could not persist state after undoing {original}: {save_error}")
            raise RuntimeError(f"Failed to write recovery log for {original}: {e}") from e

        logger.debug(f"Quarantined {original} -> {target}")
        return record

    def quarantine_many(self, paths) -> Tuple[List[QuarantineRecord], List[Tuple[str, str]]]:
        """
        Quarantines each path independently.
        Returns (records, failures); paths that vanished appear in neither.
        """
        records = []
        failures = []
        for path in paths:
            try:
                record = self.quarantine(path)
            except (RuntimeError, ValueError) as e:
                logger.error(str(e))
                failures.append((str(path), str(e)))
                continue
            if record is not None:
                records.append(record)
        return records, failures

    def _undo_quarantine(self, original: str, target: Path, source: Path) -> None:
        del self._records[original]
        try:
            FileService.move_file(target, source, chunk_size=self.config.copy_chunk_size)
        except (OSError, RuntimeError) as e:
            logger.error(f"Could not move {target} back to {source}: {e}")

    # ---------- commit ----------

    def commit_detailed(self, send_to_trash: bool = False) -> BatchResult:
        """
        Permanently removes every quarantined file.
        Missing files are dropped and listed in `missing`; failures stay tracked.
        """
        result = BatchResult()
        changed = False

        for original, record in list(self._records.items()):
            qpath = Path(record.quarantine_path)
            if not qpath.exists():
                logger.warning(f"Quarantined file already gone, dropping record: {qpath}")
                del self._records[original]
                result.missing.append(original)
                changed = True
                continue
            try:
                if send_to_trash:
                    FileService.move_to_trash(qpath)
                else:
                    FileService.delete_permanently(qpath)
            except (OSError, RuntimeError) as e:
                logger.error(f"Failed to delete {qpath}: {e}")
                result.failed.append((original, str(e)))
                continue

            del self._records[original]
            changed = True
            self._log(RecoveryAction.DELETED, record)
            result.succeeded += 1

        if changed:
            self._save()
        return result

    def commit(self, send_to_trash: bool = False) -> int:
        """Deletes all quarantined files. Returns how many were actually deleted."""
        return self.commit_detailed(send_to_trash=send_to_trash).succeeded

    # ---------- rollback ----------

    def _move_back(self, record: QuarantineRecord) -> None:
        """Raises FileExistsError if something already occupies the original path."""
        destination = Path(record.original_path)
        if destination.exists():
            raise FileExistsError(f"Refusing to overwrite existing file: {destination}")
        destination.parent.mkdir(parents=True, exist_ok=True)
        FileService.move_file(record.quarantine_path, destination,
                              chunk_size=self.config.copy_chunk_size)

    def rollback_detailed(self) -> BatchResult:
        """
        Moves every quarantined file back to its original path.
        Missing files are dropped and listed in `missing` as unrecoverable;
        failed moves keep their records so they can be retried.
        """
        result = BatchResult()
        changed = False

        for original, record in list(self._records.items()):
            if not Path(record.quarantine_path).exists():
                logger.warning(f"Cannot restore {original}: quarantined copy is missing")
                del self._records[original]
                result.missing.append(original)
                changed = True
                continue
            try:
                self._move_back(record)
            except (OSError, RuntimeError) as e:
                logger.error(f"Failed to restore {original}: {e}")
                result.failed.append((original, str(e)))
                continue

            del self._records[original]
            changed = True
            self._log(RecoveryAction.RESTORED, record)
            result.succeeded += 1

        if changed:
            self._save()
        return result

    def rollback(self) -> int:
        """Restores all quarantined files. Returns how many were restored."""
        return self.rollback_detailed().succeeded

    def restore_one(self, original_path) -> QuarantineRecord:
        """
        Restores a single file.

        Raises:
            KeyError: no record for original_path
            FileNotFoundError: the quarantined copy is gone; the record is dropped
            RuntimeError: the move failed; the record is kept
        """
        original = self._key(original_path)
        record = self._records.get(original)
        if record is None:
            raise KeyError(f"No quarantine record for {original}")

        if not Path(record.quarantine_path).exists():
            del self._records[original]
            self._save()
            raise FileNotFoundError(f"Quarantined copy is missing: {record.quarantine_path}")

        try:
            self._move_back(record)
        except (OSError, RuntimeError) as e:
            raise RuntimeError(f"Failed to restore {original}: {e}") from e

        del self._records[original]
        self._save()
        self._log(RecoveryAction.RESTORED, record)
        return record

    def recover_from_log(self, original_path) -> RecoveryLogEntry:
        """
        Restores a file using only the recovery log, for when the state file
        was lost or reset. Any tracked record for the path is dropped.

        Raises:
            KeyError: the log holds no unresolved quarantine for original_path
            FileNotFoundError: the quarantined copy is gone
            RuntimeError: the move failed
        """
        original = self._key(original_path)
        entry = pending_log_entry(self.recovery_log.read(), original)
        if entry is None:
            raise KeyError(f"No pending recovery log entry for {original}")
        if not Path(entry.quarantine_path).exists():
            raise FileNotFoundError(f"Quarantined copy is missing: {entry.quarantine_path}")

        record = QuarantineRecord(
            original_path=entry.original_path,
            quarantine_path=entry.quarantine_path,
            file_size=entry.file_size,
            moved_at=entry.timestamp,
        )
        try:
            self._move_back(record)
        except (OSError, RuntimeError) as e:
            raise RuntimeError(f"Failed to recover {original}: {e}") from e

        if self._records.pop(original, None) is not None:
            self._save()
        self._log(RecoveryAction.RESTORED, record)
        return entry

    # ---------- bookkeeping ----------

    def remove_tracked(self, original_path) -> bool:
        """Forgets a record without touching the filesystem. Returns whether it existed."""
        original = self._key(original_path)
        if self._records.pop(original, None) is None:
            return False
        self._save()
        return True

    def get(self, original_path) -> Optional[QuarantineRecord]:
        return self._records.get(self._key(original_path))

    def list(self) -> List[QuarantineRecord]:
        """Tracked records, oldest first."""
        return sorted(self._records.values(), key=lambda r: (r.moved_at, r.original_path))

    def stats(self) -> Tuple[int, int]:
        """(number of tracked files, total bytes)."""
        return len(self._records), sum(r.file_size for r in self._records.values())

    def __len__(self) -> int:
        return len(self._records)
