"""
Workspace — the loaded config plus everything derived from it.

Every use case starts the same way: find provision.yml, validate it,
build the step registry, and locate the state directory. This module
does that once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from provision.adapters.registry import ActionRegistry
from provision.core.config.loader import (
    ConfigError,
    backup_dir,
    build_registry,
    config_root,
    find_config_file,
    load_config,
    run_log_path,
)
from provision.core.engine.backup import BackupManager
from provision.core.engine.registry import StepRegistry
from provision.core.models.config import ProvisionConfig
from provision.core.persistence.run_log import RunLog

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """A loaded, validated configuration."""

    config: ProvisionConfig
    config_path: Path
    root: Path
    registry: StepRegistry

    @property
    def backups(self) -> BackupManager:
        return BackupManager(backup_dir(self.config, self.root))

    @property
    def run_log(self) -> RunLog:
        return RunLog(run_log_path(self.config, self.root))


def load_workspace(
    config_path: Path | None = None,
    actions: ActionRegistry | None = None,
) -> Workspace:
    """Find, load, and validate the configuration.

    Raises:
        ConfigError: No config file, or it is invalid.
        ProvisionError: The step graph is invalid (duplicates, unknown
            dependencies, cycles).
    """
    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        raise ConfigError("No provision.yml found.")

    config = load_config(config_path)
    root = config_root(config_path)
    registry = build_registry(config, actions, root)
    logger.debug("Workspace at %s: %d steps", root, len(registry))
    return Workspace(config=config, config_path=config_path, root=root, registry=registry)
