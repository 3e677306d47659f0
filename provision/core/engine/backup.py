"""
Backup manager — move-aside-and-restore for destructive steps.

Before a destructive step overwrites a path, whatever is there (file,
directory, or symlink) is moved into a timestamped slot under the backup
root:

    <root>/<YYYYmmdd_HHMMSS_ffffff>/record.json
    <root>/<YYYYmmdd_HHMMSS_ffffff>/data/<original path without leading />

One slot holds exactly one backed-up path. The directory tree is the
path table: a later process (cleanup) rediscovers every backup made by an
earlier one (install) by scanning it. Nothing is ever deleted; restoring
moves content back, and anything occupying the original path at that
moment is itself moved aside first.

After a destructive step succeeds, the record is stamped with a
fingerprint of what the step wrote. Restore uses it to tell the step's
own output (safe to move aside) from content changed by someone else
(a conflict unless overwriting is allowed).

Not thread-safe; one executor owns a manager at a time.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
from datetime import UTC, datetime, timedelta
from pathlib import Path

from provision.core.errors import RestoreConflictError
from provision.core.models.backup import BackupRecord

logger = logging.getLogger(__name__)

STAMP_FORMAT = "%Y%m%d_%H%M%S_%f"
RECORD_FILE = "record.json"
DATA_DIR = "data"
CHUNK_SIZE = 1 << 16


def _absolute(path: Path | str) -> Path:
    # abspath, not resolve(): a symlink target must be handled as the link itself
    return Path(os.path.abspath(os.path.expanduser(str(path))))


def _occupied(path: Path) -> bool:
    return path.exists() or path.is_symlink()


def _kind_of(path: Path) -> str:
    if path.is_symlink():
        return "symlink"
    if path.is_dir():
        return "directory"
    return "file"


def _hash_file(digest, path: Path) -> None:
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)


def fingerprint(path: Path | str) -> str | None:
    """sha256 over whatever occupies ``path``, or None if nothing does.

    Symlinks hash their target string, directories their full tree
    (names, link targets, and file contents). Links are never followed.
    """
    target = _absolute(path)
    if not _occupied(target):
        return None

    digest = hashlib.sha256()
    if target.is_symlink():
        digest.update(b"L " + os.fsencode(os.readlink(target)))
    elif target.is_dir():
        digest.update(b"D\n")
        for dirpath, dirnames, filenames in os.walk(target):
            dirnames.sort()
            base = Path(dirpath)
            for name in sorted(dirnames + filenames):
                entry = base / name
                rel = os.fsencode(entry.relative_to(target).as_posix())
                if entry.is_symlink():
                    digest.update(b"L " + rel + b" " + os.fsencode(os.readlink(entry)) + b"\n")
                elif entry.is_dir():
                    digest.update(b"D " + rel + b"\n")
                else:
                    digest.update(b"F " + rel + b"\n")
                    _hash_file(digest, entry)
    else:
        digest.update(b"F\n")
        _hash_file(digest, target)
    return digest.hexdigest()


class BackupManager:
    """Timestamped backups under a single root directory."""

    def __init__(self, root: Path | str):
        self._root = _absolute(root)

    @property
    def root(self) -> Path:
        return self._root

    # ── Backup ──────────────────────────────────────────────────

    def backup_if_exists(self, path: Path | str, step_id: str = "") -> BackupRecord | None:
        """Move ``path`` aside if anything is there.

        Returns:
            The new record, or None when nothing existed to back up.
        """
        source = _absolute(path)
        if not _occupied(source):
            logger.debug("Nothing to back up at %s", source)
            return None

        created_at, slot = self._new_slot()
        relative = Path(*source.parts[1:])
        dest = slot / DATA_DIR / relative
        kind = _kind_of(source)

        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(dest))

        record = BackupRecord(
            original_path=str(source),
            backup_path=str(dest),
            created_at=created_at,
            kind=kind,
            step_id=step_id,
        )
        self._write_record(slot, record)
        logger.info("Backed up %s → %s", source, dest)
        return record

    def _new_slot(self) -> tuple[datetime, Path]:
        """Reserve a fresh, uniquely-stamped slot directory."""
        self._root.mkdir(parents=True, exist_ok=True)
        created_at = datetime.now(UTC)
        while True:
            slot = self._root / created_at.strftime(STAMP_FORMAT)
            try:
                slot.mkdir()
                return created_at, slot
            except FileExistsError:
                created_at += timedelta(microseconds=1)

    @staticmethod
    def _write_record(slot: Path, record: BackupRecord) -> None:
        (slot / RECORD_FILE).write_text(
            record.model_dump_json(indent=2) + "\n", encoding="utf-8"
        )

    def mark_written(self, record: BackupRecord) -> BackupRecord:
        """Fingerprint what now occupies the backed-up path.

        Called once the step that made the backup has applied. Restore
        treats an occupant with this fingerprint as the step's own output
        rather than as a conflicting change.
        """
        updated = record.model_copy(
            update={"written_digest": fingerprint(record.original_path)}
        )
        self._write_record(self._root / record.stamp, updated)
        logger.debug("Fingerprinted %s after step '%s'", record.original_path, record.step_id)
        return updated

    # ── Discovery ───────────────────────────────────────────────

    def list_records(self) -> list[BackupRecord]:
        """Every backup whose content is still present, oldest first."""
        if not self._root.is_dir():
            return []

        records: list[BackupRecord] = []
        for slot in sorted(p for p in self._root.iterdir() if p.is_dir()):
            record_file = slot / RECORD_FILE
            if not record_file.is_file():
                continue
            try:
                record = BackupRecord.model_validate(
                    json.loads(record_file.read_text(encoding="utf-8"))
                )
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable backup record %s: %s", record_file, e)
                continue
            if _occupied(Path(record.backup_path)):
                records.append(record)

        records.sort(key=lambda r: r.created_at)
        return records

    def records_for(self, path: Path | str) -> list[BackupRecord]:
        """Backups of one original path, oldest first."""
        target = str(_absolute(path))
        return [r for r in self.list_records() if r.original_path == target]

    def latest(self, path: Path | str) -> BackupRecord | None:
        """Most recent backup of ``path``, if any."""
        records = self.records_for(path)
        return records[-1] if records else None

    def find(self, path: Path | str, stamp: str) -> BackupRecord | None:
        """Select a backup of ``path`` by its slot stamp (or a prefix of it)."""
        matches = [r for r in self.records_for(path) if r.stamp.startswith(stamp)]
        return matches[-1] if matches else None

    # ── Restore ─────────────────────────────────────────────────

    def restore(self, record: BackupRecord, overwrite: bool = False) -> BackupRecord | None:
        """Move a backup back to its original path.

        Content that currently occupies the original path is moved aside
        (as a new backup) rather than deleted.

        Args:
            record: The backup to restore.
            overwrite: Replace content that was modified after the backup
                was taken. Without it, such content is a conflict.

        Returns:
            The record of the displaced content, or None if the original
            path was free.

        Raises:
            RestoreConflictError: The backup is gone, or the original
                path holds newer content and ``overwrite`` is False.
        """
        backup = Path(record.backup_path)
        target = Path(record.original_path)

        if not _occupied(backup):
            raise RestoreConflictError(target, f"backup missing: {backup}")

        displaced: BackupRecord | None = None
        if _occupied(target):
            modified = datetime.fromtimestamp(target.lstat().st_mtime, UTC)
            if modified > record.created_at and not overwrite:
                if not self._holds_step_output(record, target):
                    raise RestoreConflictError(
                        target,
                        f"it was modified after the backup of {record.stamp}; "
                        "allow overwriting to replace it",
                    )
                logger.info("Moving aside what step '%s' wrote to %s", record.step_id, target)
            else:
                logger.warning("Moving aside current %s before restore", target)
            displaced = self.backup_if_exists(target, step_id=record.step_id)

        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(backup), str(target))
        logger.info("Restored %s → %s", backup, target)
        return displaced

    @staticmethod
    def _holds_step_output(record: BackupRecord, target: Path) -> bool:
        """Whether ``target`` still holds exactly what the backing-up step wrote."""
        if record.written_digest is None:
            return False
        return fingerprint(target) == record.written_digest
