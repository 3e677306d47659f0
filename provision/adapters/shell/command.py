"""
Shell command actions — check, apply, and revert through the shell.

This is the most fundamental action: every tool the engine does not
model explicitly (package managers, language version managers, database
clients) is driven through it. A check command exiting 0 means the
state already holds.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import Any

from provision.adapters.base import Action, ActionContext
from provision.core.models.action import Receipt
from provision.core.models.step import SatisfactionState

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300


@dataclass
class CommandResult:
    """Captured result of one shell command."""

    command: str
    return_code: int
    stdout: str
    stderr: str
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.return_code == 0


def run_command(
    command: str,
    context: ActionContext,
    *,
    cwd: str | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> CommandResult:
    """Run a command through ``sh`` and capture its output.

    Raises:
        subprocess.TimeoutExpired: The command exceeded ``timeout``.
        OSError: The shell could not be launched.
    """
    workdir = str(context.resolve(cwd)) if cwd else context.root
    logger.debug("Executing: %s (cwd=%s)", command, workdir)
    start = time.monotonic()
    result = subprocess.run(
        command,
        shell=True,
        cwd=workdir,
        env=context.process_env(),
        capture_output=True,
        text=True,
        timeout=timeout,
    )
    return CommandResult(
        command=command,
        return_code=result.returncode,
        stdout=result.stdout.strip(),
        stderr=result.stderr.strip(),
        duration_ms=int((time.monotonic() - start) * 1000),
    )


def _as_command_list(value: Any, field: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return [v for v in value if v.strip()]
    raise ValueError(f"'{field}' must be a command string or a list of commands")


class ShellAction(Action):
    """Run shell commands for check, apply, and revert.

    Params:
        check (str): Check command; exit 0 = already satisfied. Without
            one the state is unknown and apply always runs.
        apply (str | list[str]): Command, or alternatives tried in order
            until one succeeds (e.g. a primary and a fallback method).
        revert (str | list[str]): Inverse command(s), same semantics.
        timeout (int): Per-command timeout in seconds (default: 300).
        cwd (str): Working directory (default: config directory).
    """

    def __init__(
        self,
        apply: str | list[str],
        check: str | None = None,
        revert: str | list[str] | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        cwd: str | None = None,
    ):
        self._apply = _as_command_list(apply, "apply")
        if not self._apply:
            raise ValueError("Missing required param: 'apply'")
        self._check = check
        self._revert = _as_command_list(revert, "revert")
        self._timeout = timeout
        self._cwd = cwd

    @property
    def name(self) -> str:
        return "shell"

    @property
    def reversible(self) -> bool:
        return bool(self._revert)

    def check(self, context: ActionContext) -> SatisfactionState:
        if not self._check:
            return SatisfactionState.UNKNOWN
        try:
            result = run_command(self._check, context, cwd=self._cwd, timeout=self._timeout)
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning("Check for '%s' could not run: %s", context.step_id, e)
            return SatisfactionState.UNKNOWN
        if result.ok:
            return SatisfactionState.ALREADY_SATISFIED
        return SatisfactionState.NOT_SATISFIED

    def apply(self, context: ActionContext) -> Receipt:
        return self._run_alternatives(self._apply, context)

    def revert(self, context: ActionContext) -> Receipt:
        return self._run_alternatives(self._revert, context)

    def describe(self) -> str:
        return " || ".join(self._apply)

    def _run_alternatives(self, commands: list[str], context: ActionContext) -> Receipt:
        """Try each command in turn; the first success wins.

        On total failure the receipt carries the last command's error,
        unmodified, so the operator sees what the tool itself said.
        """
        errors: list[str] = []
        for index, command in enumerate(commands):
            try:
                result = run_command(command, context, cwd=self._cwd, timeout=self._timeout)
            except subprocess.TimeoutExpired:
                errors.append(f"Command timed out after {self._timeout}s")
                continue
            except OSError as e:
                errors.append(f"Command execution error: {e}")
                continue

            if result.ok:
                if index > 0:
                    logger.info(
                        "Step '%s': fallback command #%d succeeded", context.step_id, index + 1
                    )
                return Receipt.success(
                    action=self.name,
                    step_id=context.step_id,
                    output=result.stdout,
                    metadata={
                        "command": command,
                        "return_code": result.return_code,
                        "stderr": result.stderr,
                        "attempt": index + 1,
                        "duration_ms": result.duration_ms,
                    },
                )

            errors.append(result.stderr or f"Command exited with code {result.return_code}")
            if index + 1 < len(commands):
                logger.warning(
                    "Step '%s': command failed, trying fallback: %s",
                    context.step_id,
                    errors[-1],
                )

        return Receipt.failure(
            action=self.name,
            step_id=context.step_id,
            error=errors[-1],
            metadata={"commands": commands, "errors": errors},
        )


class CommandExistsAction(Action):
    """Ensure an executable is on PATH.

    Params:
        command (str): Executable name to look for.
        install (str | list[str]): Command(s) that install it.
        uninstall (str | list[str]): Command(s) that remove it.
        timeout (int): Per-command timeout in seconds.
    """

    def __init__(
        self,
        command: str,
        install: str | list[str],
        uninstall: str | list[str] | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        if not command:
            raise ValueError("Missing required param: 'command'")
        self._command = command
        self._shell = ShellAction(apply=install, revert=uninstall, timeout=timeout)

    @property
    def name(self) -> str:
        return "command_exists"

    @property
    def reversible(self) -> bool:
        return self._shell.reversible

    def check(self, context: ActionContext) -> SatisfactionState:
        path = context.process_env().get("PATH")
        if shutil.which(self._command, path=path):
            return SatisfactionState.ALREADY_SATISFIED
        return SatisfactionState.NOT_SATISFIED

    def apply(self, context: ActionContext) -> Receipt:
        receipt = self._shell.apply(context)
        receipt.action = self.name
        return receipt

    def revert(self, context: ActionContext) -> Receipt:
        receipt = self._shell.revert(context)
        receipt.action = self.name
        return receipt

    def describe(self) -> str:
        return f"ensure '{self._command}' on PATH via: {self._shell.describe()}"
