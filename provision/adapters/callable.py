"""
Callable action — steps backed by plain Python functions.

For embedding the engine in Python code (and for tests): check, apply,
and revert are ordinary callables taking the ActionContext. Apply and
revert may return a Receipt, a string (taken as output), or None; an
exception they raise is left for the executor to record.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from provision.adapters.base import Action, ActionContext
from provision.core.models.action import Receipt
from provision.core.models.step import SatisfactionState

CheckFunc = Callable[[ActionContext], Any]
RunFunc = Callable[[ActionContext], Any]


def _to_state(value: Any) -> SatisfactionState:
    if isinstance(value, SatisfactionState):
        return value
    if value is None:
        return SatisfactionState.UNKNOWN
    return SatisfactionState.ALREADY_SATISFIED if value else SatisfactionState.NOT_SATISFIED


class CallableAction(Action):
    """Wrap Python callables in the action contract.

    ``check`` may return a SatisfactionState, a bool, or None (unknown).
    """

    def __init__(
        self,
        apply: RunFunc,
        check: CheckFunc | None = None,
        revert: RunFunc | None = None,
        targets: list[str | Path] | None = None,
        label: str = "",
    ):
        self._apply = apply
        self._check = check
        self._revert = revert
        self._targets = list(targets or [])
        self._label = label

    @property
    def name(self) -> str:
        return "callable"

    @property
    def reversible(self) -> bool:
        return self._revert is not None

    def check(self, context: ActionContext) -> SatisfactionState:
        if self._check is None:
            return SatisfactionState.UNKNOWN
        return _to_state(self._check(context))

    def apply(self, context: ActionContext) -> Receipt:
        return self._wrap(self._apply(context), context)

    def revert(self, context: ActionContext) -> Receipt:
        if self._revert is None:
            return super().revert(context)
        return self._wrap(self._revert(context), context)

    def targets(self, context: ActionContext) -> list[Path]:
        return [context.resolve(t) for t in self._targets]

    def describe(self) -> str:
        return self._label or getattr(self._apply, "__name__", "callable")

    def _wrap(self, value: Any, context: ActionContext) -> Receipt:
        if isinstance(value, Receipt):
            return value
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output="" if value is None else str(value),
        )
