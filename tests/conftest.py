"""
Shared test fixtures and configuration.
"""

import logging
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from provision.adapters.mock import MockAction
from provision.core.engine.backup import BackupManager
from provision.core.models.step import Step


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def backups(tmp_state_dir: Path) -> BackupManager:
    """Backup manager rooted in the temporary state directory."""
    return BackupManager(tmp_state_dir / "backups")


@pytest.fixture
def make_step() -> Callable[..., Step]:
    """Factory for steps backed by a fresh MockAction."""

    def _make(step_id: str, *deps: str, action=None, **kwargs) -> Step:
        return Step(
            id=step_id,
            action=action if action is not None else MockAction(),
            depends_on=tuple(deps),
            **kwargs,
        )

    return _make


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    """Write a provision.yml into tmp_path and return its path."""

    def _write(content: str) -> Path:
        config = tmp_path / "provision.yml"
        config.write_text(textwrap.dedent(content), encoding="utf-8")
        return config

    return _write


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """Undo setup_logging() calls made by CLI tests."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
