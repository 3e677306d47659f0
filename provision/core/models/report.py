"""
RunReport — the ordered outcome record of one executor invocation.

Owned by the executor that builds it. Once ``finalize()`` is called the
entry list is frozen; callers get a read-only view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from provision.core.models.backup import BackupRecord


class Outcome(str, Enum):
    """What happened to a step during a run."""

    SKIPPED = "skipped"
    APPLIED = "applied"
    FAILED = "failed"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    WOULD_APPLY = "would_apply"


# Skip reasons
ALREADY_SATISFIED = "already satisfied"
ALREADY_REVERTED = "already reverted"
BLOCKED = "blocked"
HALTED = "halted"

# Failure reason for steps with no inverse action
NOT_REVERSIBLE = "NotReversible"


def _now() -> datetime:
    return datetime.now(UTC)


class StepResult(BaseModel):
    """Outcome of a single step."""

    step_id: str
    outcome: Outcome
    reason: str = ""
    output: str = ""
    timestamp: datetime = Field(default_factory=_now)
    duration_ms: int = 0
    backups: list[BackupRecord] = Field(default_factory=list)


class ReportFinalizedError(RuntimeError):
    """Raised when a finalized report is modified."""


@dataclass
class RunReport:
    """Result of executing an ordered list of steps."""

    run_id: str = ""
    mode: str = "install"
    dry_run: bool = False
    cancelled: bool = False
    halted: bool = False
    started_at: datetime = field(default_factory=_now)
    ended_at: datetime | None = None
    _entries: list[StepResult] = field(default_factory=list, repr=False)
    _final: bool = field(default=False, repr=False)

    # ── Building (executor only) ────────────────────────────────

    def record(self, result: StepResult) -> StepResult:
        if self._final:
            raise ReportFinalizedError(f"Run report {self.run_id} is finalized")
        self._entries.append(result)
        return result

    def finalize(self) -> RunReport:
        if not self._final:
            self.ended_at = _now()
            self._final = True
        return self

    # ── Reading ─────────────────────────────────────────────────

    @property
    def entries(self) -> tuple[StepResult, ...]:
        return tuple(self._entries)

    @property
    def finalized(self) -> bool:
        return self._final

    def get(self, step_id: str) -> StepResult | None:
        for entry in self._entries:
            if entry.step_id == step_id:
                return entry
        return None

    def outcome_of(self, step_id: str) -> Outcome | None:
        entry = self.get(step_id)
        return entry.outcome if entry else None

    def count(self, outcome: Outcome) -> int:
        return sum(1 for e in self._entries if e.outcome == outcome)

    @property
    def step_ids(self) -> list[str]:
        return [e.step_id for e in self._entries]

    @property
    def total(self) -> int:
        return len(self._entries)

    @property
    def applied(self) -> int:
        return self.count(Outcome.APPLIED)

    @property
    def skipped(self) -> int:
        return self.count(Outcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(Outcome.FAILED)

    @property
    def planned(self) -> int:
        return self.count(Outcome.WOULD_APPLY)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def status(self) -> str:
        if self.cancelled:
            return "cancelled"
        if self.failed == 0:
            return "ok"
        if self.applied > 0:
            return "partial"
        return "failed"

    @property
    def backups(self) -> list[BackupRecord]:
        return [b for e in self._entries for b in e.backups]

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "mode": self.mode,
            "dry_run": self.dry_run,
            "status": self.status,
            "cancelled": self.cancelled,
            "halted": self.halted,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "total": self.total,
            "applied": self.applied,
            "skipped": self.skipped,
            "failed": self.failed,
            "would_apply": self.planned,
            "steps": [e.model_dump(mode="json") for e in self._entries],
        }
