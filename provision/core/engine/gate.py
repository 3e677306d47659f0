"""
Confirmation gate — the single suspension point for human input.

The executor never reads stdin. When a step needs a person it calls
``gate.wait(prompt)`` and blocks until the gate answers PROCEED or
CANCEL. The CLI plugs in a terminal gate; tests and unattended runs plug
in a scripted gate with pre-programmed answers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

import click

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    PROCEED = "proceed"
    CANCEL = "cancel"


@dataclass(frozen=True)
class GateRequest:
    """One question asked at the gate."""

    prompt: str
    step_id: str | None = None


class ConfirmationGate(ABC):
    """Answers PROCEED or CANCEL for an interactive step."""

    def __init__(self) -> None:
        self._history: list[GateRequest] = []

    @property
    def history(self) -> list[GateRequest]:
        """Every request this gate has answered, in order."""
        return self._history

    def wait(self, prompt: str, step_id: str | None = None) -> Decision:
        """Suspend until a decision is available."""
        request = GateRequest(prompt=prompt, step_id=step_id)
        self._history.append(request)
        decision = self._decide(request)
        logger.debug("Gate decision for %s: %s", step_id or "run", decision.value)
        return decision

    @abstractmethod
    def _decide(self, request: GateRequest) -> Decision:
        """Produce the decision for one request."""


class AutoGate(ConfirmationGate):
    """Always proceeds (``--yes``)."""

    def _decide(self, request: GateRequest) -> Decision:
        return Decision.PROCEED


class ScriptedGate(ConfirmationGate):
    """Pre-programmed answers for tests and automation.

    Responses can be keyed by step id, given as a sequence consumed in
    order, or both (step-keyed answers win). Anything left unanswered
    gets ``default``.
    """

    def __init__(
        self,
        responses: Mapping[str, Decision | bool] | Iterable[Decision | bool] | None = None,
        default: Decision = Decision.CANCEL,
    ) -> None:
        super().__init__()
        self._by_step: dict[str, Decision] = {}
        self._queue: list[Decision] = []
        if isinstance(responses, Mapping):
            self._by_step = {k: self._coerce(v) for k, v in responses.items()}
        elif responses is not None:
            self._queue = [self._coerce(v) for v in responses]
        self._default = default

    @staticmethod
    def _coerce(value: Decision | bool) -> Decision:
        if isinstance(value, Decision):
            return value
        return Decision.PROCEED if value else Decision.CANCEL

    def _decide(self, request: GateRequest) -> Decision:
        if request.step_id is not None and request.step_id in self._by_step:
            return self._by_step[request.step_id]
        if self._queue:
            return self._queue.pop(0)
        return self._default


class ConsoleGate(ConfirmationGate):
    """Asks on the terminal.

    With ``require_word`` set, the operator must type that exact word
    (the cleanup safety prompt); otherwise a y/N confirmation is used.
    End of input or Ctrl-C counts as CANCEL.
    """

    def __init__(self, require_word: str | None = None) -> None:
        super().__init__()
        self._require_word = require_word

    def _decide(self, request: GateRequest) -> Decision:
        click.echo()
        click.secho(request.prompt, fg="yellow")
        try:
            if self._require_word:
                answer = click.prompt(
                    f"Type '{self._require_word}' to proceed or anything else to cancel",
                    default="",
                    show_default=False,
                )
                ok = answer.strip() == self._require_word
            else:
                ok = click.confirm("Continue?", default=False)
        except click.Abort:
            ok = False
        return Decision.PROCEED if ok else Decision.CANCEL
