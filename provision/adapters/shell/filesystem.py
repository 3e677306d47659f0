"""
Filesystem actions — symlinks, files, and directories.

These cover the dotfile side of provisioning: linking config files into
place, writing small generated files (an ssh config), and creating
directories with specific permissions. None of them ever deletes
content it did not create; overwriting pre-existing user files is the
job of destructive steps, whose targets the executor backs up first.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from pathlib import Path

from provision.adapters.base import Action, ActionContext
from provision.core.models.action import Receipt
from provision.core.models.step import SatisfactionState

logger = logging.getLogger(__name__)


def _parse_mode(mode: int | str | None) -> int | None:
    """Accept 0o700, 448, or "700"/"0700" and return the numeric mode."""
    if mode is None or mode == "":
        return None
    if isinstance(mode, int):
        return mode
    return int(str(mode), 8)


def _mode_matches(path: Path, mode: int | None) -> bool:
    if mode is None:
        return True
    return stat.S_IMODE(path.stat().st_mode) == mode


class SymlinkAction(Action):
    """Point ``target`` at ``source``.

    Params:
        source (str): What the link points to (relative to config dir).
        target (str): Where the link lives (e.g. ~/.zshrc).
    """

    def __init__(self, source: str, target: str):
        if not source:
            raise ValueError("Missing required param: 'source'")
        if not target:
            raise ValueError("Missing required param: 'target'")
        self._source = source
        self._target = target

    @property
    def name(self) -> str:
        return "symlink"

    @property
    def reversible(self) -> bool:
        return True

    def targets(self, context: ActionContext) -> list[Path]:
        return [context.resolve(self._target)]

    def _is_ours(self, context: ActionContext) -> bool:
        link = context.resolve(self._target)
        if not link.is_symlink():
            return False
        return Path(os.readlink(link)) == context.resolve(self._source)

    def check(self, context: ActionContext) -> SatisfactionState:
        if self._is_ours(context):
            return SatisfactionState.ALREADY_SATISFIED
        return SatisfactionState.NOT_SATISFIED

    def apply(self, context: ActionContext) -> Receipt:
        source = context.resolve(self._source)
        link = context.resolve(self._target)
        try:
            if self._is_ours(context):
                return Receipt.success(
                    action=self.name,
                    step_id=context.step_id,
                    output=f"Symlink already in place: {link} -> {source}",
                )
            if link.exists() or link.is_symlink():
                return Receipt.failure(
                    action=self.name,
                    step_id=context.step_id,
                    error=f"Refusing to replace existing {link}; mark the step destructive",
                    metadata={"path": str(link)},
                )
            link.parent.mkdir(parents=True, exist_ok=True)
            link.symlink_to(source)
        except OSError as e:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"Filesystem error: {e}",
                metadata={"path": str(link)},
            )
        logger.info("Created symlink: %s -> %s", link, source)
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output=f"Created symlink: {link} -> {source}",
            metadata={"path": str(link), "source": str(source)},
        )

    def revert(self, context: ActionContext) -> Receipt:
        link = context.resolve(self._target)
        if not (link.exists() or link.is_symlink()):
            return Receipt.skip(
                action=self.name,
                step_id=context.step_id,
                reason=f"Nothing at {link}",
            )
        if not self._is_ours(context):
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"{link} is not a symlink to {context.resolve(self._source)}; leaving it alone",
                metadata={"path": str(link)},
            )
        try:
            link.unlink()
        except OSError as e:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"Filesystem error: {e}",
                metadata={"path": str(link)},
            )
        logger.info("Removed symlink: %s", link)
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output=f"Removed symlink: {link}",
            metadata={"path": str(link)},
        )

    def describe(self) -> str:
        return f"link {self._target} -> {self._source}"


class FileAction(Action):
    """Write a file with fixed content.

    Params:
        path (str): File to write.
        content (str): Exact content.
        mode (str | int): Optional permission bits (e.g. "600").
    """

    def __init__(self, path: str, content: str, mode: int | str | None = None):
        if not path:
            raise ValueError("Missing required param: 'path'")
        if content is None:
            raise ValueError("Missing required param: 'content'")
        self._path = path
        self._content = content
        self._mode = _parse_mode(mode)

    @property
    def name(self) -> str:
        return "file"

    @property
    def reversible(self) -> bool:
        return True

    def targets(self, context: ActionContext) -> list[Path]:
        return [context.resolve(self._path)]

    def check(self, context: ActionContext) -> SatisfactionState:
        target = context.resolve(self._path)
        if target.is_symlink() or not target.is_file():
            return SatisfactionState.NOT_SATISFIED
        try:
            same = target.read_text(encoding="utf-8") == self._content
        except (OSError, UnicodeDecodeError):
            return SatisfactionState.UNKNOWN
        if same and _mode_matches(target, self._mode):
            return SatisfactionState.ALREADY_SATISFIED
        return SatisfactionState.NOT_SATISFIED

    def _holds_other_content(self, target: Path) -> bool:
        if target.is_symlink() or (target.exists() and not target.is_file()):
            return True
        if not target.exists():
            return False
        try:
            return target.read_text(encoding="utf-8") != self._content
        except UnicodeDecodeError:
            return True

    def apply(self, context: ActionContext) -> Receipt:
        target = context.resolve(self._path)
        try:
            if self._holds_other_content(target):
                return Receipt.failure(
                    action=self.name,
                    step_id=context.step_id,
                    error=f"Refusing to replace existing {target}; mark the step destructive",
                    metadata={"path": str(target)},
                )
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(self._content, encoding="utf-8")
            if self._mode is not None:
                target.chmod(self._mode)
        except OSError as e:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"Filesystem error: {e}",
                metadata={"path": str(target)},
            )
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output=f"Written {len(self._content)} bytes to {target}",
            metadata={"path": str(target), "size": len(self._content)},
        )

    def revert(self, context: ActionContext) -> Receipt:
        target = context.resolve(self._path)
        if not target.is_file():
            return Receipt.skip(
                action=self.name,
                step_id=context.step_id,
                reason=f"File not found: {target}",
            )
        if self._holds_other_content(target):
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"{target} no longer holds the written content; leaving it alone",
                metadata={"path": str(target)},
            )
        try:
            target.unlink()
        except OSError as e:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"Filesystem error: {e}",
                metadata={"path": str(target)},
            )
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output=f"Removed {target}",
            metadata={"path": str(target)},
        )

    def describe(self) -> str:
        return f"write {self._path}"


class DirectoryAction(Action):
    """Ensure a directory exists.

    Params:
        path (str): Directory to create.
        mode (str | int): Optional permission bits (e.g. "700").
        recursive (bool): On revert, remove the whole tree instead of
            only an empty directory (default: False).
    """

    def __init__(self, path: str, mode: int | str | None = None, recursive: bool = False):
        if not path:
            raise ValueError("Missing required param: 'path'")
        self._path = path
        self._mode = _parse_mode(mode)
        self._recursive = recursive

    @property
    def name(self) -> str:
        return "directory"

    @property
    def reversible(self) -> bool:
        return True

    def check(self, context: ActionContext) -> SatisfactionState:
        target = context.resolve(self._path)
        if target.is_dir() and _mode_matches(target, self._mode):
            return SatisfactionState.ALREADY_SATISFIED
        return SatisfactionState.NOT_SATISFIED

    def apply(self, context: ActionContext) -> Receipt:
        target = context.resolve(self._path)
        try:
            target.mkdir(parents=True, exist_ok=True)
            if self._mode is not None:
                target.chmod(self._mode)
        except OSError as e:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"Filesystem error: {e}",
                metadata={"path": str(target)},
            )
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output=f"Directory created: {target}",
            metadata={"path": str(target)},
        )

    def revert(self, context: ActionContext) -> Receipt:
        target = context.resolve(self._path)
        if not target.is_dir():
            return Receipt.skip(
                action=self.name,
                step_id=context.step_id,
                reason=f"Not a directory: {target}",
            )
        try:
            if self._recursive:
                shutil.rmtree(target)
            else:
                target.rmdir()
        except OSError as e:
            return Receipt.failure(
                action=self.name,
                step_id=context.step_id,
                error=f"Filesystem error: {e}",
                metadata={"path": str(target)},
            )
        return Receipt.success(
            action=self.name,
            step_id=context.step_id,
            output=f"Directory removed: {target}",
            metadata={"path": str(target)},
        )

    def describe(self) -> str:
        return f"mkdir {self._path}"
