"""
Mock action — universal test double for the action contract.

Simulates a truthfully idempotent action without touching the machine:
once applied it reports itself satisfied, once reverted it reports
itself unsatisfied. Configurable to fail apply, revert, or check.
"""

from __future__ import annotations

from pathlib import Path

from provision.adapters.base import Action, ActionContext
from provision.core.models.action import Receipt
from provision.core.models.step import SatisfactionState


class MockAction(Action):
    """Stateful in-memory action.

    By default starts unsatisfied and succeeds at everything. Every
    call is appended to ``call_log`` as ``(operation, step_id)``.
    """

    def __init__(
        self,
        satisfied: bool = False,
        fail_apply: str | None = None,
        fail_revert: str | None = None,
        fail_check: str | None = None,
        reversible: bool = True,
        output: str = "[mock] executed",
        targets: list[str] | None = None,
    ):
        self._satisfied = satisfied
        self._fail_apply = fail_apply
        self._fail_revert = fail_revert
        self._fail_check = fail_check
        self._reversible = reversible
        self._output = output
        self._targets = list(targets or [])
        self._call_log: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def reversible(self) -> bool:
        return self._reversible

    @property
    def satisfied(self) -> bool:
        return self._satisfied

    @property
    def call_log(self) -> list[tuple[str, str]]:
        """All (operation, step_id) calls this mock has received."""
        return self._call_log

    def calls(self, operation: str) -> int:
        """Number of times ``operation`` was called."""
        return sum(1 for op, _ in self._call_log if op == operation)

    def set_failure(self, operation: str, error: str = "Mock failure") -> None:
        """Configure 'apply', 'revert', or 'check' to fail."""
        if operation == "apply":
            self._fail_apply = error
        elif operation == "revert":
            self._fail_revert = error
        elif operation == "check":
            self._fail_check = error
        else:
            raise ValueError(f"Unknown mock operation: {operation}")

    def check(self, context: ActionContext) -> SatisfactionState:
        self._call_log.append(("check", context.step_id))
        if self._fail_check:
            raise RuntimeError(self._fail_check)
        if self._satisfied:
            return SatisfactionState.ALREADY_SATISFIED
        return SatisfactionState.NOT_SATISFIED

    def apply(self, context: ActionContext) -> Receipt:
        self._call_log.append(("apply", context.step_id))
        if self._fail_apply:
            return Receipt.failure(action=self.name, step_id=context.step_id, error=self._fail_apply)
        self._satisfied = True
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output=self._output,
            metadata={"mock": True},
        )

    def revert(self, context: ActionContext) -> Receipt:
        self._call_log.append(("revert", context.step_id))
        if not self._reversible:
            return super().revert(context)
        if self._fail_revert:
            return Receipt.failure(action=self.name, step_id=context.step_id, error=self._fail_revert)
        self._satisfied = False
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output=self._output,
            metadata={"mock": True},
        )

    def targets(self, context: ActionContext) -> list[Path]:
        return [context.resolve(t) for t in self._targets]

    def reset(self) -> None:
        """Clear the call log."""
        self._call_log.clear()
