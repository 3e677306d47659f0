"""
Action base — the contract between the engine and external tools.

The engine only talks to the outside world through this protocol.
Installing a package, generating a key, or starting a database are
all opaque: the executor asks an action whether its state already
holds (check), to establish it (apply), or to undo it (revert).
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, Field

from provision.core.errors import NotReversible
from provision.core.models.action import Receipt
from provision.core.models.step import SatisfactionState


class ActionContext(BaseModel):
    """Everything an action needs to run for a step.

    ``root`` is the directory of the config file; relative paths in
    action parameters are resolved against it.
    """

    step_id: str
    root: str = "."
    dry_run: bool = False
    env: dict[str, str] = Field(default_factory=dict)

    def resolve(self, raw: str | Path) -> Path:
        """Expand ~ and $VARS, then anchor relative paths at ``root``."""
        expanded = Path(os.path.expandvars(os.path.expanduser(str(raw))))
        if not expanded.is_absolute():
            expanded = Path(self.root) / expanded
        return expanded

    def process_env(self) -> dict[str, str]:
        """Environment for subprocesses: inherited plus overrides."""
        merged = dict(os.environ)
        merged.update(self.env)
        return merged


class Action(ABC):
    """Abstract base class for all actions.

    To create a new action:
        1. Subclass Action
        2. Implement name, check, apply (and revert if reversible)
        3. Register a factory in the ActionRegistry

    check() must be free of side effects. apply() should be idempotent:
    running it when the state already holds is a no-op or safely
    repeatable. Expected failures are returned as failed Receipts.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The action type identifier (e.g., 'shell', 'symlink')."""

    @abstractmethod
    def check(self, context: ActionContext) -> SatisfactionState:
        """Report whether the step's state already holds."""

    @abstractmethod
    def apply(self, context: ActionContext) -> Receipt:
        """Establish the step's state."""

    @property
    def reversible(self) -> bool:
        """Whether revert() is implemented."""
        return False

    def revert(self, context: ActionContext) -> Receipt:
        """Undo what apply() established.

        Raises:
            NotReversible: The action has no inverse.
        """
        raise NotReversible(context.step_id)

    def targets(self, context: ActionContext) -> list[Path]:
        """Paths this action overwrites (backed up for destructive steps)."""
        return []

    def notice(self, context: ActionContext) -> str:
        """Text shown to the operator before an interactive step runs."""
        return ""

    def describe(self) -> str:
        """One-line human summary used in plans and dry runs."""
        return self.name

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
