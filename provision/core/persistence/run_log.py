"""
Run log — append-only execution history.

Every install or cleanup run appends one NDJSON (newline-delimited JSON)
line per step result. Besides backups, this is the only thing the engine
persists; `provision report` reads it back.

The log is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from provision.core.models.report import RunReport

logger = logging.getLogger(__name__)


class RunLogEntry(BaseModel):
    """One step result of one run."""

    run_id: str
    mode: str                      # install, cleanup
    step_id: str
    outcome: str                   # skipped, applied, failed, ...
    reason: str = ""
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    dry_run: bool = False


class RunLog:
    """Append-only run log writer and reader.

    Each call to write() appends a single JSON line to the log file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: RunLogEntry) -> None:
        """Append one entry to the log."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Run log entry written: %s/%s", entry.run_id, entry.step_id)
        except OSError as e:
            logger.error("Failed to write run log entry: %s", e)

    def write_report(self, report: RunReport) -> int:
        """Append every entry of a finished report.

        Returns:
            Number of entries written.
        """
        for result in report.entries:
            self.write(RunLogEntry(
                run_id=report.run_id,
                mode=report.mode,
                step_id=result.step_id,
                outcome=result.outcome.value,
                reason=result.reason,
                timestamp=result.timestamp.isoformat(),
                dry_run=report.dry_run,
            ))
        return len(report.entries)

    def read_all(self) -> list[RunLogEntry]:
        """Read all entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(RunLogEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt run log entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read run log: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[RunLogEntry]:
        """Read the most recent N entries."""
        if n <= 0:
            return []
        return self.read_all()[-n:]
