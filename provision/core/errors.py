"""
Engine errors.

Registry errors (duplicate ids, unknown references, cycles) are raised
while the step graph is being built or ordered, before anything runs.
Per-step errors (ActionError, NotReversible, RestoreConflictError) are
caught by the executor and folded into the run report.
"""

from __future__ import annotations

from pathlib import Path


class ProvisionError(Exception):
    """Base class for all engine errors."""


class DuplicateStepError(ProvisionError):
    """A step id was registered twice."""

    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Duplicate step id: {step_id}")


class UnknownStepError(ProvisionError):
    """A step id was referenced but never registered."""

    def __init__(self, step_id: str, referenced_by: str | None = None):
        self.step_id = step_id
        self.referenced_by = referenced_by
        if referenced_by:
            msg = f"Step '{referenced_by}' depends on unknown step '{step_id}'"
        else:
            msg = f"Unknown step id: {step_id}"
        super().__init__(msg)


class CycleDetectedError(ProvisionError):
    """The dependency graph is not a DAG."""

    def __init__(self, steps: list[str]):
        self.steps = list(steps)
        super().__init__(
            "Dependency cycle detected between steps: " + ", ".join(self.steps)
        )


class ActionError(ProvisionError):
    """An action's check, apply, or revert failed.

    ``str(err)`` is the underlying tool's message, unmodified.
    """

    def __init__(self, step_id: str, message: str):
        self.step_id = step_id
        self.message = message
        super().__init__(message)


class NotReversible(ActionError):
    """Revert was requested for a step whose action has no inverse."""

    def __init__(self, step_id: str):
        super().__init__(step_id, "NotReversible")


class RestoreConflictError(ProvisionError):
    """A backup could not be restored without clobbering newer content."""

    def __init__(self, path: Path | str, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Cannot restore {self.path}: {reason}")


class ConfirmationCancelled(ProvisionError):
    """The operator declined at a confirmation gate."""

    def __init__(self, step_id: str | None = None):
        self.step_id = step_id
        where = f" at step '{step_id}'" if step_id else ""
        super().__init__(f"Cancelled{where}")
