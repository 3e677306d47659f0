"""
Tests for the append-only run log.
"""

import json
from pathlib import Path

from provision.core.models.report import Outcome, RunReport, StepResult
from provision.core.persistence.run_log import RunLog, RunLogEntry


def _report(run_id: str = "install-1", dry_run: bool = False) -> RunReport:
    report = RunReport(run_id=run_id, mode="install", dry_run=dry_run)
    report.record(StepResult(step_id="a", outcome=Outcome.APPLIED))
    report.record(StepResult(step_id="b", outcome=Outcome.SKIPPED, reason="already satisfied"))
    return report.finalize()


class TestRunLog:
    def test_write_report_one_line_per_step(self, tmp_state_dir: Path):
        log = RunLog(tmp_state_dir / "runs.ndjson")
        assert log.write_report(_report()) == 2

        lines = log.path.read_text().splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert set(first) == {"run_id", "mode", "step_id", "outcome", "reason", "timestamp", "dry_run"}
        assert first["outcome"] == "applied"

    def test_append_only(self, tmp_state_dir: Path):
        log = RunLog(tmp_state_dir / "runs.ndjson")
        log.write_report(_report("install-1"))
        log.write_report(_report("install-2", dry_run=True))

        entries = log.read_all()
        assert [e.run_id for e in entries] == ["install-1"] * 2 + ["install-2"] * 2
        assert entries[-1].dry_run

    def test_read_recent(self, tmp_state_dir: Path):
        log = RunLog(tmp_state_dir / "runs.ndjson")
        for i in range(5):
            log.write(RunLogEntry(run_id=f"r{i}", mode="install", step_id="a", outcome="applied"))
        assert [e.run_id for e in log.read_recent(2)] == ["r3", "r4"]
        assert log.read_recent(0) == []

    def test_corrupt_lines_skipped(self, tmp_state_dir: Path):
        log = RunLog(tmp_state_dir / "runs.ndjson")
        log.write(RunLogEntry(run_id="r", mode="install", step_id="a", outcome="applied"))
        with log.path.open("a") as f:
            f.write("not json\n\n")
        assert len(log.read_all()) == 1

    def test_missing_file(self, tmp_state_dir: Path):
        assert RunLog(tmp_state_dir / "none.ndjson").read_all() == []
