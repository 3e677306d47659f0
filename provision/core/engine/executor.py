"""
Engine executor — the central provisioning loop.

Runs a resolved step order one step at a time and records every
outcome in a RunReport. Per step:

    Pending → Checking → Satisfied → Skipped
                       → Unsatisfied → (AwaitingConfirmation) → Applying → Applied | Failed

Install walks the order calling ``apply``; cleanup walks a reversed
order calling ``revert`` and restores whatever destructive steps moved
aside. Failures are recovered into the report; with fail-fast on, the
run halts and the remaining steps are recorded as blocked or halted.
Nothing is ever rolled back implicitly.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import UTC, datetime
from pathlib import Path

from provision.adapters.base import ActionContext
from provision.core.engine.backup import BackupManager
from provision.core.engine.gate import AutoGate, ConfirmationGate, Decision
from provision.core.errors import ActionError, NotReversible, RestoreConflictError
from provision.core.models.backup import BackupRecord
from provision.core.models.report import (
    ALREADY_REVERTED,
    ALREADY_SATISFIED,
    BLOCKED,
    HALTED,
    NOT_REVERSIBLE,
    Outcome,
    RunReport,
    StepResult,
)
from provision.core.models.step import Direction, RunOptions, SatisfactionState, Step
from provision.core.observability.logging_config import SUCCESS

logger = logging.getLogger(__name__)


def generate_run_id(mode: str = "install") -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"{mode}-{now}-{short}"


class Executor:
    """Sequential step runner.

    Args:
        backups: Where destructive steps move pre-existing content.
        gate: Answers interactive steps (default: always proceed).
        root: Directory relative action paths are anchored at.
    """

    def __init__(
        self,
        backups: BackupManager,
        gate: ConfirmationGate | None = None,
        root: Path | str = ".",
    ):
        self._backups = backups
        self._gate = gate or AutoGate()
        self._root = Path(root)

    @property
    def gate(self) -> ConfirmationGate:
        return self._gate

    def run(self, order: list[Step], options: RunOptions | None = None) -> RunReport:
        """Apply steps in ``order`` (an install)."""
        return self._execute(order, options or RunOptions(), Direction.FORWARD)

    def revert(self, order: list[Step], options: RunOptions | None = None) -> RunReport:
        """Revert steps in ``order`` (a cleanup; pass a REVERSE order)."""
        return self._execute(order, options or RunOptions(), Direction.REVERSE)

    # ── Main loop ───────────────────────────────────────────────

    def _execute(self, order: list[Step], options: RunOptions, direction: Direction) -> RunReport:
        mode = "install" if direction == Direction.FORWARD else "cleanup"
        report = RunReport(run_id=generate_run_id(mode), mode=mode, dry_run=options.dry_run)
        # Steps whose failure must keep related steps from running
        bad: set[str] = set()

        logger.info("Starting %s run %s (%d steps)", mode, report.run_id, len(order))

        for index, step in enumerate(order):
            if report.get(step.id) is not None:
                logger.debug("Step '%s' already handled in this run", step.id)
                continue

            blocker = self._blocker(step, order, bad, direction)
            if blocker:
                bad.add(step.id)
                report.record(StepResult(
                    step_id=step.id,
                    outcome=Outcome.SKIPPED,
                    reason=BLOCKED,
                    output=f"'{blocker}' did not complete",
                ))
                logger.warning("Skipping '%s': blocked by '%s'", step.id, blocker)
                continue

            result = self._run_step(step, options, direction)
            if result is None:
                # Cancelled at the gate
                report.record(StepResult(
                    step_id=step.id,
                    outcome=Outcome.AWAITING_CONFIRMATION,
                    reason="cancelled by operator",
                ))
                report.cancelled = True
                logger.warning("Run cancelled at step '%s'", step.id)
                break

            report.record(result)
            if result.outcome != Outcome.FAILED:
                continue

            if result.reason == NOT_REVERSIBLE:
                # Nothing was undone, so nothing downstream depends on its undoing
                continue

            bad.add(step.id)
            if self._stops_run(step, options):
                report.halted = True
                logger.error("Halting %s after '%s' failed", mode, step.id)
                self._record_halted(report, order, index + 1, bad, direction)
                break

        report.finalize()
        logger.info(
            "Finished %s run %s: %d applied, %d skipped, %d failed",
            mode, report.run_id, report.applied, report.skipped, report.failed,
        )
        return report

    @staticmethod
    def _stops_run(step: Step, options: RunOptions) -> bool:
        if step.on_failure is not None:
            return step.on_failure == "stop"
        return options.stop_on_failure

    @staticmethod
    def _blocker(step: Step, order: list[Step], bad: set[str], direction: Direction) -> str | None:
        """Id of a failed/blocked step this one must wait for, if any.

        Forward, a step waits for its dependencies. Reverse, it waits for
        its dependents, which are torn down first.
        """
        if not bad:
            return None
        if direction == Direction.FORWARD:
            return next((d for d in step.depends_on if d in bad), None)
        return next((s.id for s in order if s.id in bad and step.id in s.depends_on), None)

    def _record_halted(
        self,
        report: RunReport,
        order: list[Step],
        start: int,
        bad: set[str],
        direction: Direction,
    ) -> None:
        for step in order[start:]:
            if report.get(step.id) is not None:
                continue
            blocker = self._blocker(step, order, bad, direction)
            if blocker:
                bad.add(step.id)
                report.record(StepResult(
                    step_id=step.id,
                    outcome=Outcome.SKIPPED,
                    reason=BLOCKED,
                    output=f"'{blocker}' did not complete",
                ))
            else:
                report.record(StepResult(step_id=step.id, outcome=Outcome.SKIPPED, reason=HALTED))

    # ── One step ────────────────────────────────────────────────

    def _context(self, step: Step, options: RunOptions) -> ActionContext:
        return ActionContext(
            step_id=step.id,
            root=str(self._root),
            dry_run=options.dry_run,
            env=options.env,
        )

    def _targets(self, step: Step, context: ActionContext) -> list[Path]:
        if step.targets:
            return [context.resolve(t) for t in step.targets]
        return step.action.targets(context)

    def _run_step(self, step: Step, options: RunOptions, direction: Direction) -> StepResult | None:
        """Run one step through the state machine.

        Returns None when the operator cancels at the gate.
        """
        forward = direction == Direction.FORWARD
        context = self._context(step, options)

        if not forward and not step.reversible:
            error = NotReversible(step.id)
            logger.error("Step '%s' has no inverse action", step.id)
            return StepResult(
                step_id=step.id,
                outcome=Outcome.FAILED,
                reason=str(error),
                output=f"{step.action.name} action cannot be reverted",
            )

        # Checking
        try:
            state = step.action.check(context)
        except Exception as e:  # noqa: BLE001
            error = ActionError(step.id, str(e) or type(e).__name__)
            logger.error("Check for '%s' failed: %s", step.id, error)
            return StepResult(step_id=step.id, outcome=Outcome.FAILED, reason=str(error))

        if forward and state == SatisfactionState.ALREADY_SATISFIED:
            logger.info("Step '%s' already satisfied", step.id)
            return StepResult(step_id=step.id, outcome=Outcome.SKIPPED, reason=ALREADY_SATISFIED)
        if not forward and state == SatisfactionState.NOT_SATISFIED:
            logger.info("Step '%s' already reverted", step.id)
            return StepResult(step_id=step.id, outcome=Outcome.SKIPPED, reason=ALREADY_REVERTED)

        if options.dry_run:
            return self._plan_only(step, context, forward)

        # AwaitingConfirmation
        if step.interactive and not options.confirm_all:
            prompt = "\n".join(
                p for p in (step.action.notice(context), step.confirmation_prompt()) if p
            )
            if self._gate.wait(prompt, step_id=step.id) == Decision.CANCEL:
                return None

        # Applying
        backups: list[BackupRecord] = []
        if forward and step.destructive:
            try:
                for target in self._targets(step, context):
                    record = self._backups.backup_if_exists(target, step_id=step.id)
                    if record is not None:
                        backups.append(record)
            except OSError as e:
                logger.error("Backup before '%s' failed: %s", step.id, e)
                return StepResult(
                    step_id=step.id,
                    outcome=Outcome.FAILED,
                    reason=f"Backup failed: {e}",
                    backups=backups,
                )

        start = time.monotonic()
        error: ActionError | None = None
        output = ""
        skipped_by_action = False
        try:
            receipt = step.action.apply(context) if forward else step.action.revert(context)
        except ActionError as e:
            error = e
        except Exception as e:  # noqa: BLE001
            error = ActionError(step.id, str(e) or type(e).__name__)
        else:
            output = receipt.output
            if receipt.failed:
                error = ActionError(step.id, receipt.error or "action failed")
            skipped_by_action = receipt.status == "skipped"

        if error is None and forward and backups:
            backups = self._mark_written(step, backups)

        if error is None and not forward and step.destructive:
            try:
                backups = self._restore_targets(step, context, options)
            except (RestoreConflictError, OSError) as e:
                error = ActionError(step.id, str(e))

        duration_ms = int((time.monotonic() - start) * 1000)

        if error is not None:
            logger.error("Step '%s' failed: %s", step.id, error)
            return StepResult(
                step_id=step.id,
                outcome=Outcome.FAILED,
                reason=str(error),
                output=output,
                duration_ms=duration_ms,
                backups=backups,
            )

        if skipped_by_action:
            return StepResult(
                step_id=step.id,
                outcome=Outcome.SKIPPED,
                reason=ALREADY_SATISFIED if forward else ALREADY_REVERTED,
                output=output,
                duration_ms=duration_ms,
                backups=backups,
            )

        logger.log(SUCCESS, "Step '%s' %s", step.id, "applied" if forward else "reverted")
        return StepResult(
            step_id=step.id,
            outcome=Outcome.APPLIED,
            output=output,
            duration_ms=duration_ms,
            backups=backups,
        )

    def _plan_only(self, step: Step, context: ActionContext, forward: bool) -> StepResult:
        """Dry run: describe what would happen without touching anything."""
        verb = "apply" if forward else "revert"
        notes = [f"would {verb}: {step.action.describe()}"]
        if step.interactive:
            notes.append("needs confirmation")
        if step.destructive:
            targets = self._targets(step, context)
            if forward:
                present = [str(t) for t in targets if t.exists() or t.is_symlink()]
                if present:
                    notes.append("would back up " + ", ".join(present))
            else:
                restorable = [str(t) for t in targets if self._backups.latest(t) is not None]
                if restorable:
                    notes.append("would restore " + ", ".join(restorable))
        logger.info("[dry-run] %s", notes[0])
        return StepResult(step_id=step.id, outcome=Outcome.WOULD_APPLY, output="; ".join(notes))

    def _mark_written(self, step: Step, backups: list[BackupRecord]) -> list[BackupRecord]:
        """Fingerprint each backed-up path now that the step has applied."""
        marked: list[BackupRecord] = []
        for record in backups:
            try:
                marked.append(self._backups.mark_written(record))
            except OSError as e:
                # Cleanup will then need overwriting allowed to restore this path
                logger.warning(
                    "Could not fingerprint %s after '%s': %s", record.original_path, step.id, e
                )
                marked.append(record)
        return marked

    def _restore_targets(
        self,
        step: Step,
        context: ActionContext,
        options: RunOptions,
    ) -> list[BackupRecord]:
        """Put back the latest backup of each destructive target."""
        restored: list[BackupRecord] = []
        for target in self._targets(step, context):
            record = self._backups.latest(target)
            if record is None:
                logger.info("No backup of %s to restore", target)
                continue
            self._backups.restore(record, overwrite=options.allow_overwrite)
            restored.append(record)
        return restored
