"""
Step model — the atomic unit of provisioning.

A Step pairs an identity and its place in the dependency graph with an
Action that knows how to inspect (check), establish (apply), and undo
(revert) one piece of environment state. The engine never looks inside
the action; everything it needs to schedule the step lives here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from provision.adapters.base import Action


class SatisfactionState(str, Enum):
    """Answer of a side-effect-free check."""

    ALREADY_SATISFIED = "already_satisfied"
    NOT_SATISFIED = "not_satisfied"
    UNKNOWN = "unknown"


class Direction(str, Enum):
    """Execution direction: install runs forward, cleanup in reverse."""

    FORWARD = "forward"
    REVERSE = "reverse"


@dataclass(frozen=True)
class Step:
    """A registered provisioning step.

    ``targets`` only matters for destructive steps: those paths are
    moved aside before apply and restored after revert. When empty, the
    action's own targets are used.
    """

    id: str
    action: Action
    depends_on: tuple[str, ...] = ()
    description: str = ""
    destructive: bool = False
    interactive: bool = False
    prompt: str = ""
    targets: tuple[Path, ...] = ()
    on_failure: Literal["stop", "continue"] | None = None

    @property
    def reversible(self) -> bool:
        return self.action.reversible

    @property
    def label(self) -> str:
        return self.description or self.id

    def confirmation_prompt(self) -> str:
        """Text shown at the confirmation gate for this step."""
        if self.prompt:
            return self.prompt
        return f"Step '{self.id}' needs your attention: {self.label}. Continue?"


@dataclass
class RunOptions:
    """Policy knobs for one executor invocation."""

    dry_run: bool = False
    stop_on_failure: bool = True
    confirm_all: bool = False
    allow_overwrite: bool = False
    env: dict[str, str] = field(default_factory=dict)
