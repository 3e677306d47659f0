"""
Run use cases — install and cleanup.

This is the top-level orchestrator: it loads config, resolves the step
order, runs the executor, and persists the results to the run log. The
full vertical slice from user intent to a logged run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from provision.adapters.registry import ActionRegistry
from provision.core.engine.executor import Executor
from provision.core.engine.gate import AutoGate, ConfirmationGate, Decision
from provision.core.errors import ConfirmationCancelled, ProvisionError
from provision.core.models.report import RunReport
from provision.core.models.step import Direction, RunOptions
from provision.core.use_cases.workspace import Workspace, load_workspace

logger = logging.getLogger(__name__)

CLEANUP_PROMPT = (
    "This will revert every selected step and restore backed-up files.\n"
    "Installed tools and configuration created by install will be removed."
)


@dataclass
class RunResult:
    """Result of an install or cleanup."""

    report: RunReport | None = None
    workspace: Workspace | None = None
    notes: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.report is not None and self.report.ok

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        if self.workspace:
            result["name"] = self.workspace.config.name
            result["root"] = str(self.workspace.root)
        if self.report:
            result["report"] = self.report.to_dict()
        if self.notes:
            result["notes"] = self.notes
        return result


def _execute(
    direction: Direction,
    config_path: Path | None,
    only: Sequence[str] | None,
    with_deps: bool,
    options: RunOptions,
    gate: ConfirmationGate | None,
    actions: ActionRegistry | None,
    confirm: ConfirmationGate | None = None,
) -> RunResult:
    result = RunResult()

    # ── Load config and order ────────────────────────────────────
    try:
        workspace = load_workspace(config_path, actions)
        result.workspace = workspace
        order = workspace.registry.resolve_order(
            only or None, direction=direction, include_dependencies=with_deps,
        )
    except ProvisionError as e:
        result.error = str(e)
        return result

    if not order:
        result.error = "No steps to run."
        return result

    # ── Whole-run confirmation ───────────────────────────────────
    if confirm is not None and not options.dry_run:
        if confirm.wait(CLEANUP_PROMPT) == Decision.CANCEL:
            raise ConfirmationCancelled()

    if not workspace.config.settings.stop_on_failure:
        options.stop_on_failure = False

    # ── Execute ──────────────────────────────────────────────────
    executor = Executor(workspace.backups, gate=gate or AutoGate(), root=workspace.root)
    if direction == Direction.FORWARD:
        report = executor.run(order, options)
    else:
        report = executor.revert(order, options)
    result.report = report

    # ── Write run log ────────────────────────────────────────────
    written = workspace.run_log.write_report(report)
    logger.debug("Wrote %d run log entries to %s", written, workspace.run_log.path)

    return result


def run_install(
    config_path: Path | None = None,
    only: Sequence[str] | None = None,
    with_deps: bool = False,
    dry_run: bool = False,
    assume_yes: bool = False,
    continue_on_error: bool = False,
    gate: ConfirmationGate | None = None,
    actions: ActionRegistry | None = None,
) -> RunResult:
    """Apply steps in dependency order.

    Args:
        config_path: Optional explicit path to provision.yml.
        only: Step ids to run (default: all).
        with_deps: Also run the transitive dependencies of ``only``.
        dry_run: Report what would change without touching anything.
        assume_yes: Treat every interactive step as confirmed.
        continue_on_error: Keep going after a failure (dependents of the
            failed step are still skipped).
        gate: Answers interactive steps (default: always proceed).
        actions: Optional action registry override.

    Returns:
        RunResult with the run report and post-install notes.
    """
    options = RunOptions(
        dry_run=dry_run,
        stop_on_failure=not continue_on_error,
        confirm_all=assume_yes,
    )
    result = _execute(Direction.FORWARD, config_path, only, with_deps, options, gate, actions)

    if result.report and result.workspace and not dry_run and result.report.status == "ok":
        result.notes = list(result.workspace.config.settings.notes)
    return result


def run_cleanup(
    config_path: Path | None = None,
    only: Sequence[str] | None = None,
    dry_run: bool = False,
    assume_yes: bool = False,
    allow_overwrite: bool = False,
    continue_on_error: bool = False,
    gate: ConfirmationGate | None = None,
    confirm: ConfirmationGate | None = None,
    actions: ActionRegistry | None = None,
) -> RunResult:
    """Revert steps in reverse dependency order and restore backups.

    Args:
        config_path: Optional explicit path to provision.yml.
        only: Step ids to revert (default: all).
        dry_run: Report what would be reverted without touching anything.
        assume_yes: Skip the whole-run confirmation and per-step prompts.
        allow_overwrite: Restore backups over content modified since.
        continue_on_error: Keep going after a failure.
        gate: Answers interactive steps (default: always proceed).
        confirm: Asked once before anything is reverted. Ignored with
            ``assume_yes`` or ``dry_run``.
        actions: Optional action registry override.

    Raises:
        ConfirmationCancelled: The whole-run confirmation was declined.
    """
    options = RunOptions(
        dry_run=dry_run,
        stop_on_failure=not continue_on_error,
        confirm_all=assume_yes,
        allow_overwrite=allow_overwrite,
    )
    return _execute(
        Direction.REVERSE, config_path, only, False, options, gate, actions,
        confirm=None if assume_yes else confirm,
    )
