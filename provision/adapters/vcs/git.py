"""
Git clone action — check out a repository into place.

Used for configuration repos and plugin managers that are installed by
cloning (vim config, tmux plugin manager, shell plugins). Uses the git
CLI, never raw API calls.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from pathlib import Path

from provision.adapters.base import Action, ActionContext
from provision.adapters.shell.command import run_command
from provision.core.models.action import Receipt
from provision.core.models.step import SatisfactionState

logger = logging.getLogger(__name__)


class GitCloneAction(Action):
    """Clone ``repo`` into ``dest`` unless it is already a checkout.

    Params:
        repo (str): Repository URL.
        dest (str): Destination directory.
        branch (str): Optional branch or tag.
        depth (int): Optional shallow-clone depth.
        timeout (int): Timeout in seconds (default: 600).
    """

    def __init__(
        self,
        repo: str,
        dest: str,
        branch: str = "",
        depth: int | None = None,
        timeout: int = 600,
    ):
        if not repo:
            raise ValueError("Missing required param: 'repo'")
        if not dest:
            raise ValueError("Missing required param: 'dest'")
        self._repo = repo
        self._dest = dest
        self._branch = branch
        self._depth = depth
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "git_clone"

    @property
    def reversible(self) -> bool:
        return True

    def check(self, context: ActionContext) -> SatisfactionState:
        dest = context.resolve(self._dest)
        if (dest / ".git").exists():
            return SatisfactionState.ALREADY_SATISFIED
        return SatisfactionState.NOT_SATISFIED

    def targets(self, context: ActionContext) -> list[Path]:
        return [context.resolve(self._dest)]

    def _clone_command(self, context: ActionContext) -> str:
        parts = ["git", "clone"]
        if self._branch:
            parts += ["--branch", self._branch]
        if self._depth:
            parts += ["--depth", str(self._depth)]
        parts += [self._repo, str(context.resolve(self._dest))]
        return shlex.join(parts)

    def apply(self, context: ActionContext) -> Receipt:
        if shutil.which("git", path=context.process_env().get("PATH")) is None:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error="git not found on PATH",
            )
        dest = context.resolve(self._dest)
        if dest.exists() and any(dest.iterdir()):
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"Destination exists and is not a git checkout: {dest}",
                metadata={"path": str(dest)},
            )
        dest.parent.mkdir(parents=True, exist_ok=True)
        command = self._clone_command(context)
        try:
            result = run_command(command, context, timeout=self._timeout)
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"Command timed out after {self._timeout}s",
                metadata={"command": command},
            )
        except OSError as e:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"Command execution error: {e}",
                metadata={"command": command},
            )

        if not result.ok:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=result.stderr or f"git clone exited with code {result.return_code}",
                metadata={"command": command, "return_code": result.return_code},
            )
        logger.info("Cloned %s into %s", self._repo, dest)
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output=result.stderr or result.stdout,
            metadata={"command": command, "path": str(dest)},
        )

    def revert(self, context: ActionContext) -> Receipt:
        dest = context.resolve(self._dest)
        if not dest.exists():
            return Receipt.skip(
                action=self.name,
                step_id=context.step_id,
                reason=f"Not found: {dest}",
            )
        if not (dest / ".git").exists():
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"{dest} is not a git checkout; leaving it alone",
                metadata={"path": str(dest)},
            )
        try:
            shutil.rmtree(dest)
        except OSError as e:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"Filesystem error: {e}",
                metadata={"path": str(dest)},
            )
        logger.info("Removed checkout: %s", dest)
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output=f"Removed {dest}",
            metadata={"path": str(dest)},
        )

    def describe(self) -> str:
        return f"git clone {self._repo} {self._dest}"
