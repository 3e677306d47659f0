"""
Manual action — a step a human performs outside the machine.

Some provisioning needs a person: pasting a public key into a web UI,
approving a device login. The step is declared interactive; the gate
shows the instructions, and once the operator continues the action
records that the hand-off happened. An optional check command lets a
re-run notice the work is already done (e.g. ``ssh -T`` succeeding).
"""

from __future__ import annotations

import logging
import subprocess

from provision.adapters.base import Action, ActionContext
from provision.adapters.shell.command import run_command
from provision.core.models.action import Receipt
from provision.core.models.step import SatisfactionState

logger = logging.getLogger(__name__)


class ManualAction(Action):
    """Params:
        instructions (str): What the operator has to do.
        show_file (str): Optional file whose content is displayed with
            the instructions (e.g. ~/.ssh/id_ed25519.pub).
        check (str): Optional command; exit 0 = already done.
        timeout (int): Check timeout in seconds (default: 30).
    """

    def __init__(
        self,
        instructions: str = "",
        show_file: str | None = None,
        check: str | None = None,
        timeout: int = 30,
    ):
        self._instructions = instructions
        self._show_file = show_file
        self._check = check
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "manual"

    def check(self, context: ActionContext) -> SatisfactionState:
        if not self._check:
            return SatisfactionState.UNKNOWN
        try:
            result = run_command(self._check, context, timeout=self._timeout)
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug("Manual check for '%s' could not run: %s", context.step_id, e)
            return SatisfactionState.UNKNOWN
        if result.ok:
            return SatisfactionState.ALREADY_SATISFIED
        return SatisfactionState.NOT_SATISFIED

    def notice(self, context: ActionContext) -> str:
        lines = [self._instructions] if self._instructions else []
        if self._show_file:
            path = context.resolve(self._show_file)
            try:
                lines.append(path.read_text(encoding="utf-8").strip())
            except OSError as e:
                lines.append(f"(cannot read {path}: {e})")
        return "\n".join(lines)

    def apply(self, context: ActionContext) -> Receipt:
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output="Operator confirmed",
        )

    def describe(self) -> str:
        return self._instructions.splitlines()[0] if self._instructions else "manual step"
