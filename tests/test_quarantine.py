"""
Tests for QuarantineManager — the only code path that removes user files.
These tests verify that nothing is lost between quarantine, commit, rollback and restart.
"""
import errno
import json
import os
from pathlib import Path
from unittest import mock

import pytest

from dupsafe.core.models import RecoveryAction
from dupsafe.safety.quarantine import QuarantineManager, read_recovery_log
from dupsafe.services.file_service import FileService

FIXED_TIME = 1_700_000_000.0  # matches the clock of the manager fixture


def make_file(directory: Path, name: str, content: bytes = b"payload") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_bytes(content)
    return path


def actions(config):
    return [e.action for e in read_recovery_log(config)]


class TestQuarantine:

    def test_moves_file_and_tracks_record(self, manager, quarantine_config, tmp_path):
        original = make_file(tmp_path / "data", "report.pdf", b"x" * 100)

        record = manager.quarantine(original)

        assert not original.exists()
        assert Path(record.quarantine_path).read_bytes() == b"x" * 100
        assert Path(record.quarantine_path).parent == quarantine_config.quarantine_dir
        assert Path(record.quarantine_path).name == f"{int(FIXED_TIME)}_report.pdf"
        assert record.original_path == str(original)
        assert record.file_size == 100
        assert manager.stats() == (1, 100)
        assert actions(quarantine_config) == [RecoveryAction.QUARANTINED]

    def test_name_collisions_get_a_counter(self, manager, tmp_path):
        first = manager.quarantine(make_file(tmp_path / "one", "same.txt"))
        second = manager.quarantine(make_file(tmp_path / "two", "same.txt"))

        assert Path(first.quarantine_path).name == f"{int(FIXED_TIME)}_same.txt"
        assert Path(second.quarantine_path).name == f"{int(FIXED_TIME)}_1_same.txt"
        assert len(manager) == 2

    def test_missing_path_is_a_no_op(self, manager, quarantine_config, tmp_path):
        assert manager.quarantine(tmp_path / "ghost.txt") is None
        assert len(manager) == 0
        assert actions(quarantine_config) == []

    def test_directory_is_rejected(self, manager, tmp_path):
        folder = tmp_path / "folder"
        folder.mkdir()
        with pytest.raises(ValueError, match="regular files"):
            manager.quarantine(folder)
        assert folder.exists()

    def test_state_survives_restart(self, manager, quarantine_config, tmp_path):
        original = make_file(tmp_path / "data", "a.txt")
        manager.quarantine(original)

        reopened = QuarantineManager(quarantine_config)
        assert reopened.get(original).original_path == str(original)
        assert reopened.stats() == manager.stats()

    def test_quarantine_many_reports_failures_and_continues(self, manager, tmp_path):
        good = make_file(tmp_path / "data", "good.txt")
        folder = tmp_path / "data" / "folder"
        folder.mkdir()

        records, failures = manager.quarantine_many([folder, tmp_path / "gone.txt", good])

        assert [r.original_path for r in records] == [str(good)]
        assert failures[0][0] == str(folder)

    def test_cross_device_move_copies_then_deletes(self, manager, quarantine_config, tmp_path):
        """
        CRITICAL: when rename fails with EXDEV the file is copied, fsynced and
        only then removed, and exactly one log entry is written.
        """
        original = make_file(tmp_path / "data", "big.bin", os.urandom(3000))
        content = original.read_bytes()

        with mock.patch.object(os, "rename", side_effect=OSError(errno.EXDEV, "Invalid cross-device link")):
            record = manager.quarantine(original)

        assert not original.exists()
        assert Path(record.quarantine_path).read_bytes() == content
        assert actions(quarantine_config) == [RecoveryAction.QUARANTINED]

    def test_failed_move_leaves_file_in_place(self, manager, quarantine_config, tmp_path):
        original = make_file(tmp_path / "data", "locked.txt")

        with mock.patch.object(os, "rename", side_effect=PermissionError("denied")):
            with pytest.raises(RuntimeError, match="Failed to quarantine"):
                manager.quarantine(original)

        assert original.exists()
        assert len(manager) == 0
        assert actions(quarantine_config) == []

    def test_state_write_failure_moves_file_back(self, manager, quarantine_config, tmp_path):
        original = make_file(tmp_path / "data", "a.txt", b"keep me")

        with mock.patch("dupsafe.safety.quarantine.save_state", side_effect=OSError("disk full")):
            with pytest.raises(RuntimeError, match="persist"):
                manager.quarantine(original)

        assert original.read_bytes() == b"keep me"
        assert len(manager) == 0
        assert list(quarantine_config.quarantine_dir.iterdir()) == []

    def test_log_write_failure_moves_file_back_and_batch_continues(self, manager, quarantine_config, tmp_path):
        first = make_file(tmp_path / "data", "first.txt", b"first")
        second = make_file(tmp_path / "data", "second.txt", b"second")
        real_append = manager.recovery_log.append
        calls = []

        def flaky_append(entry):
            calls.append(entry)
            if len(calls) == 1:
                raise OSError("disk full")
            real_append(entry)

        with mock.patch.object(manager.recovery_log, "append", side_effect=flaky_append):
            records, failures = manager.quarantine_many([first, second])

        assert first.read_bytes() == b"first"
        assert not second.exists()
        assert [r.original_path for r in records] == [str(second)]
        assert failures[0][0] == str(first)
        assert "recovery log" in failures[0][1]
        assert QuarantineManager(quarantine_config).get(first) is None
        assert actions(quarantine_config) == [RecoveryAction.QUARANTINED]

    def test_already_quarantined_path_is_refused(self, manager, quarantine_config, tmp_path):
        original = make_file(tmp_path / "data", "a.txt", b"old")
        first = manager.quarantine(original)
        original.write_bytes(b"new")

        with pytest.raises(ValueError, match="Already quarantined"):
            manager.quarantine(original)

        assert original.read_bytes() == b"new"
        assert manager.get(original) == first
        assert Path(first.quarantine_path).read_bytes() == b"old"
        assert actions(quarantine_config) == [RecoveryAction.QUARANTINED]


class TestCommit:

    def test_log_write_failure_does_not_stop_commit(self, manager, quarantine_config, tmp_path):
        first = manager.quarantine(make_file(tmp_path / "data", "a.txt"))
        second = manager.quarantine(make_file(tmp_path / "data", "b.txt"))

        with mock.patch.object(manager.recovery_log, "append", side_effect=OSError("disk full")):
            assert manager.commit() == 2

        assert not Path(first.quarantine_path).exists()
        assert not Path(second.quarantine_path).exists()
        assert len(QuarantineManager(quarantine_config)) == 0

    def test_commit_deletes_and_is_idempotent(self, manager, quarantine_config, tmp_path):
        record = manager.quarantine(make_file(tmp_path / "data", "a.txt"))

        assert manager.commit() == 1
        assert not Path(record.quarantine_path).exists()
        assert len(manager) == 0
        assert manager.commit() == 0
        assert actions(quarantine_config) == [RecoveryAction.QUARANTINED, RecoveryAction.DELETED]

    def test_commit_drops_records_whose_file_vanished(self, manager, tmp_path):
        record = manager.quarantine(make_file(tmp_path / "data", "a.txt"))
        Path(record.quarantine_path).unlink()

        result = manager.commit_detailed()

        assert result.succeeded == 0
        assert result.missing == [record.original_path]
        assert len(manager) == 0

    def test_failed_delete_keeps_record(self, manager, tmp_path):
        manager.quarantine(make_file(tmp_path / "data", "a.txt"))
        manager.quarantine(make_file(tmp_path / "data", "b.txt"))

        calls = []

        def flaky_delete(path):
            calls.append(path)
            if len(calls) == 1:
                raise PermissionError("read-only filesystem")
            os.remove(path)

        with mock.patch.object(FileService, "delete_permanently", side_effect=flaky_delete):
            result = manager.commit_detailed()

        assert result.succeeded == 1
        assert len(result.failed) == 1
        assert len(manager) == 1

    def test_commit_to_trash(self, manager, tmp_path):
        record = manager.quarantine(make_file(tmp_path / "data", "a.txt"))

        with mock.patch.object(FileService, "move_to_trash") as mock_trash:
            assert manager.commit(send_to_trash=True) == 1

        mock_trash.assert_called_once_with(Path(record.quarantine_path))


class TestRollback:

    def test_round_trip_restores_content(self, manager, quarantine_config, tmp_path):
        original = make_file(tmp_path / "data" / "nested", "a.txt", b"precious")
        manager.quarantine(original)
        original.parent.rmdir()  # parent directory is recreated on restore

        assert manager.rollback() == 1
        assert original.read_bytes() == b"precious"
        assert len(manager) == 0
        assert actions(quarantine_config) == [RecoveryAction.QUARANTINED, RecoveryAction.RESTORED]

    def test_rollback_never_overwrites(self, manager, tmp_path):
        original = make_file(tmp_path / "data", "a.txt", b"old")
        manager.quarantine(original)
        original.write_bytes(b"new file in the way")

        result = manager.rollback_detailed()

        assert result.succeeded == 0
        assert len(result.failed) == 1
        assert original.read_bytes() == b"new file in the way"
        assert len(manager) == 1

    def test_rollback_reports_missing_copies(self, manager, tmp_path):
        record = manager.quarantine(make_file(tmp_path / "data", "a.txt"))
        Path(record.quarantine_path).unlink()

        result = manager.rollback_detailed()

        assert result.missing == [record.original_path]
        assert len(manager) == 0


class TestRestoreOne:

    def test_restores_single_file(self, manager, tmp_path):
        a = make_file(tmp_path / "data", "a.txt")
        b = make_file(tmp_path / "data", "b.txt")
        manager.quarantine(a)
        manager.quarantine(b)

        manager.restore_one(a)

        assert a.exists()
        assert not b.exists()
        assert manager.get(a) is None
        assert manager.get(b) is not None

    def test_unknown_path_raises_key_error(self, manager, tmp_path):
        with pytest.raises(KeyError):
            manager.restore_one(tmp_path / "never-quarantined.txt")

    def test_missing_copy_drops_record(self, manager, tmp_path):
        original = make_file(tmp_path / "data", "a.txt")
        record = manager.quarantine(original)
        Path(record.quarantine_path).unlink()

        with pytest.raises(FileNotFoundError):
            manager.restore_one(original)
        assert len(manager) == 0

    def test_occupied_destination_keeps_record(self, manager, tmp_path):
        original = make_file(tmp_path / "data", "a.txt")
        manager.quarantine(original)
        original.write_bytes(b"someone else")

        with pytest.raises(RuntimeError, match="Failed to restore"):
            manager.restore_one(original)
        assert len(manager) == 1


class TestPersistenceAndRecovery:

    def test_corrupt_state_is_preserved_and_reset(self, quarantine_config):
        quarantine_config.base_dir.mkdir(parents=True)
        quarantine_config.state_path.write_text("{ this is not json", encoding="utf-8")

        manager = QuarantineManager(quarantine_config)

        assert len(manager) == 0
        backups = list(quarantine_config.base_dir.glob("quarantine.json.corrupt-*"))
        assert len(backups) == 1
        assert backups[0].read_text(encoding="utf-8") == "{ this is not json"

    def test_non_utf8_state_is_preserved_and_reset(self, quarantine_config):
        garbage = b'{"version": 1, "records": {\xff\xfe garbage'
        quarantine_config.base_dir.mkdir(parents=True)
        quarantine_config.state_path.write_bytes(garbage)

        manager = QuarantineManager(quarantine_config)

        assert len(manager) == 0
        backups = list(quarantine_config.base_dir.glob("quarantine.json.corrupt-*"))
        assert [b.read_bytes() for b in backups] == [garbage]

    def test_state_file_format(self, manager, quarantine_config, tmp_path):
        original = make_file(tmp_path / "data", "a.txt")
        manager.quarantine(original)

        document = json.loads(quarantine_config.state_path.read_text(encoding="utf-8"))
        assert document["version"] == 1
        assert document["records"][str(original)]["moved_at"] == FIXED_TIME

    def test_recover_from_log_after_state_loss(self, manager, quarantine_config, tmp_path):
        original = make_file(tmp_path / "data", "a.txt", b"survivor")
        manager.quarantine(original)
        quarantine_config.state_path.unlink()

        fresh = QuarantineManager(quarantine_config)
        assert len(fresh) == 0
        entry = fresh.recover_from_log(original)

        assert original.read_bytes() == b"survivor"
        assert entry.original_path == str(original)
        assert actions(quarantine_config)[-1] is RecoveryAction.RESTORED

    def test_recover_from_log_ignores_resolved_entries(self, manager, tmp_path):
        original = make_file(tmp_path / "data", "a.txt")
        manager.quarantine(original)
        manager.commit()

        with pytest.raises(KeyError):
            manager.recover_from_log(original)

    def test_torn_log_line_is_skipped(self, manager, quarantine_config, tmp_path):
        quarantine_config.recovery_log_path.write_text('{"timestamp": 1, "act', encoding="utf-8")

        manager.quarantine(make_file(tmp_path / "data", "a.txt"))

        entries = read_recovery_log(quarantine_config)
        assert [e.action for e in entries] == [RecoveryAction.QUARANTINED]

    def test_remove_tracked_forgets_without_touching_files(self, manager, tmp_path):
        record = manager.quarantine(make_file(tmp_path / "data", "a.txt"))

        assert manager.remove_tracked(record.original_path) is True
        assert manager.remove_tracked(record.original_path) is False
        assert Path(record.quarantine_path).exists()
        assert len(manager) == 0

    def test_list_is_oldest_first(self, quarantine_config, tmp_path):
        ticks = iter([300.0, 100.0, 200.0])
        manager = QuarantineManager(quarantine_config, clock=lambda: next(ticks))
        for name in ("c.txt", "a.txt", "b.txt"):
            manager.quarantine(make_file(tmp_path / "data", name))

        assert [Path(r.original_path).name for r in manager.list()] == ["a.txt", "b.txt", "c.txt"]
