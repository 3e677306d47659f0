"""
Plan use case — show the resolved execution order without running it.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from provision.adapters.registry import ActionRegistry
from provision.core.errors import ProvisionError
from provision.core.models.step import Direction, Step
from provision.core.use_cases.workspace import Workspace, load_workspace


def step_summary(step: Step) -> dict:
    """JSON-friendly description of one step."""
    return {
        "id": step.id,
        "description": step.description,
        "action": step.action.name,
        "summary": step.action.describe(),
        "depends_on": list(step.depends_on),
        "destructive": step.destructive,
        "interactive": step.interactive,
        "reversible": step.reversible,
    }


@dataclass
class PlanResult:
    """A resolved order (or the registration order for ``steps``)."""

    steps: list[Step] = field(default_factory=list)
    direction: Direction = Direction.FORWARD
    workspace: Workspace | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "direction": self.direction.value,
            "steps": [step_summary(s) for s in self.steps],
        }


def plan_run(
    config_path: Path | None = None,
    only: Sequence[str] | None = None,
    with_deps: bool = False,
    reverse: bool = False,
    actions: ActionRegistry | None = None,
) -> PlanResult:
    """Resolve the order an install (or cleanup, with ``reverse``) would use."""
    result = PlanResult(direction=Direction.REVERSE if reverse else Direction.FORWARD)
    try:
        workspace = load_workspace(config_path, actions)
        result.workspace = workspace
        result.steps = workspace.registry.resolve_order(
            only or None, direction=result.direction, include_dependencies=with_deps,
        )
    except ProvisionError as e:
        result.error = str(e)
    return result


def list_steps(
    config_path: Path | None = None,
    actions: ActionRegistry | None = None,
) -> PlanResult:
    """Every registered step, in registration order."""
    result = PlanResult()
    try:
        workspace = load_workspace(config_path, actions)
        result.workspace = workspace
        result.steps = workspace.registry.steps()
    except ProvisionError as e:
        result.error = str(e)
    return result
