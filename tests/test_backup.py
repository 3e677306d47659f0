"""
Tests for the backup manager — move aside, discover, and restore.
"""

import os
import time
from pathlib import Path

import pytest

from provision.core.engine.backup import RECORD_FILE, BackupManager, fingerprint
from provision.core.errors import RestoreConflictError


class TestBackupIfExists:
    def test_missing_path_returns_none(self, backups: BackupManager, tmp_path: Path):
        assert backups.backup_if_exists(tmp_path / "nothing") is None
        assert backups.list_records() == []

    def test_file_moved_aside(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / "home" / ".zshrc"
        target.parent.mkdir()
        target.write_text("old")

        record = backups.backup_if_exists(target, step_id="zsh")

        assert record is not None
        assert not target.exists()
        assert Path(record.backup_path).read_text() == "old"
        assert record.original_path == str(target)
        assert record.kind == "file"
        assert record.step_id == "zsh"

    def test_slot_layout(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / "cfg"
        target.write_text("x")
        record = backups.backup_if_exists(target)

        slot = backups.root / record.stamp
        assert (slot / RECORD_FILE).is_file()
        assert Path(record.backup_path) == slot / "data" / str(target).lstrip("/")

    def test_directory_and_symlink_kinds(self, backups: BackupManager, tmp_path: Path):
        directory = tmp_path / "nvim"
        directory.mkdir()
        (directory / "init.lua").write_text("-- cfg")
        link = tmp_path / "link"
        link.symlink_to(tmp_path / "does-not-exist")

        dir_record = backups.backup_if_exists(directory)
        link_record = backups.backup_if_exists(link)

        assert dir_record.kind == "directory"
        assert link_record.kind == "symlink"
        assert not link.is_symlink()
        assert Path(link_record.backup_path).is_symlink()

    def test_repeated_backups_get_distinct_slots(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / "f"
        stamps = set()
        for i in range(3):
            target.write_text(str(i))
            stamps.add(backups.backup_if_exists(target).stamp)
        assert len(stamps) == 3
        assert len(backups.records_for(target)) == 3


class TestDiscovery:
    def test_new_manager_rediscovers_records(self, tmp_state_dir: Path, tmp_path: Path):
        target = tmp_path / "f"
        target.write_text("old")
        BackupManager(tmp_state_dir / "b").backup_if_exists(target, step_id="s")

        records = BackupManager(tmp_state_dir / "b").list_records()
        assert len(records) == 1
        assert records[0].step_id == "s"

    def test_latest_and_find(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / "f"
        target.write_text("first")
        first = backups.backup_if_exists(target)
        target.write_text("second")
        second = backups.backup_if_exists(target)

        assert backups.latest(target) == second
        assert backups.find(target, first.stamp) == first
        assert backups.find(target, "19990101") is None

    def test_corrupt_record_skipped(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / "f"
        target.write_text("x")
        backups.backup_if_exists(target)
        bad = backups.root / "20000101_000000_000000"
        bad.mkdir()
        (bad / RECORD_FILE).write_text("{not json")

        assert len(backups.list_records()) == 1


class TestRestore:
    def test_round_trip_is_byte_identical(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / "blob"
        payload = bytes(range(256)) * 4
        target.write_bytes(payload)

        record = backups.backup_if_exists(target)
        displaced = backups.restore(record)

        assert displaced is None
        assert target.read_bytes() == payload
        assert backups.list_records() == []

    def test_directory_round_trip(self, backups: BackupManager, tmp_path: Path):
        directory = tmp_path / "conf"
        (directory / "sub").mkdir(parents=True)
        (directory / "sub" / "a.txt").write_text("a")

        backups.restore(backups.backup_if_exists(directory))

        assert (directory / "sub" / "a.txt").read_text() == "a"

    def test_older_occupant_is_moved_aside(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / "f"
        target.write_text("old")
        record = backups.backup_if_exists(target)
        target.write_text("new")
        past = time.time() - 3600
        os.utime(target, (past, past))

        displaced = backups.restore(record)

        assert target.read_text() == "old"
        assert displaced is not None
        assert Path(displaced.backup_path).read_text() == "new"

    def test_newer_content_conflicts(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / "f"
        target.write_text("old")
        record = backups.backup_if_exists(target)
        target.write_text("edited later")
        future = time.time() + 3600
        os.utime(target, (future, future))

        with pytest.raises(RestoreConflictError) as exc:
            backups.restore(record)

        assert exc.value.path == str(target)
        assert target.read_text() == "edited later"

    def test_overwrite_resolves_conflict(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / "f"
        target.write_text("old")
        record = backups.backup_if_exists(target)
        target.write_text("edited later")
        future = time.time() + 3600
        os.utime(target, (future, future))

        displaced = backups.restore(record, overwrite=True)

        assert target.read_text() == "old"
        assert Path(displaced.backup_path).read_text() == "edited later"

    def test_missing_backup_conflicts(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / "f"
        target.write_text("old")
        record = backups.backup_if_exists(target)
        Path(record.backup_path).unlink()

        with pytest.raises(RestoreConflictError):
            backups.restore(record)


class TestStepOutput:
    def _install(self, backups: BackupManager, target: Path, written: str):
        """Back up ``target``, write over it, and fingerprint the result."""
        record = backups.backup_if_exists(target, step_id="zsh")
        target.write_text(written)
        future = time.time() + 3600
        os.utime(target, (future, future))
        return backups.mark_written(record)

    def test_fingerprint_kinds(self, tmp_path: Path):
        missing = tmp_path / "missing"
        directory = tmp_path / "d"
        (directory / "sub").mkdir(parents=True)
        (directory / "sub" / "f").write_text("x")

        assert fingerprint(missing) is None
        before = fingerprint(directory)
        (directory / "sub" / "f").write_text("y")
        assert fingerprint(directory) != before

    def test_step_output_is_moved_aside_without_conflict(
        self, backups: BackupManager, tmp_path: Path
    ):
        target = tmp_path / ".zshrc"
        target.write_text("old")
        record = self._install(backups, target, "new")

        displaced = backups.restore(record)

        assert target.read_text() == "old"
        assert Path(displaced.backup_path).read_text() == "new"

    def test_fingerprint_survives_a_new_manager(self, tmp_state_dir: Path, tmp_path: Path):
        target = tmp_path / ".zshrc"
        target.write_text("old")
        self._install(BackupManager(tmp_state_dir / "b"), target, "new")

        later = BackupManager(tmp_state_dir / "b")
        record = later.latest(target)
        assert record.written_digest == fingerprint(target)

        later.restore(record)
        assert target.read_text() == "old"

    def test_edited_step_output_conflicts(self, backups: BackupManager, tmp_path: Path):
        target = tmp_path / ".zshrc"
        target.write_text("old")
        record = self._install(backups, target, "new")
        target.write_text("new plus a local edit")
        future = time.time() + 7200
        os.utime(target, (future, future))

        with pytest.raises(RestoreConflictError):
            backups.restore(record)
        assert target.read_text() == "new plus a local edit"
