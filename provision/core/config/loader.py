"""
Configuration loader — reads provision.yml into domain models.

This is the primary entry point for loading provisioning configuration.
It reads YAML, validates against Pydantic schemas, and turns the step
declarations into a StepRegistry the executor can run.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from provision.adapters.base import ActionContext
from provision.adapters.registry import ActionRegistry, default_action_registry
from provision.core.engine.registry import StepRegistry
from provision.core.errors import ProvisionError
from provision.core.models.config import ProvisionConfig
from provision.core.models.step import Step

logger = logging.getLogger(__name__)

# Default config filename
PROVISION_CONFIG_FILE = "provision.yml"

RUN_LOG_FILE = "runs.ndjson"


class ConfigError(ProvisionError):
    """Raised when provisioning configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for provision.yml starting from the given directory, walking up.

    This allows running commands from subdirectories and still finding
    the config root.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to provision.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PROVISION_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None) -> ProvisionConfig:
    """Load and validate provisioning configuration.

    Args:
        path: Explicit path to provision.yml. If None, searches upward.

    Returns:
        Validated ProvisionConfig model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(
            f"No {PROVISION_CONFIG_FILE} found in this directory or any parent. "
            "Specify one with --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = ProvisionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded config '%s' with %d steps", config.name, len(config.steps))
    return config


def config_root(config_path: Path) -> Path:
    """Get the config root directory from a config file path."""
    return config_path.parent.resolve()


def _resolve_dir(raw: str, root: Path) -> Path:
    return ActionContext(step_id="", root=str(root)).resolve(raw)


def state_dir(config: ProvisionConfig, root: Path) -> Path:
    """Directory holding the run log and (by default) backups."""
    return _resolve_dir(config.settings.state_dir, root)


def backup_dir(config: ProvisionConfig, root: Path) -> Path:
    """Backup root: ``settings.backup_dir`` or ``<state_dir>/backups``."""
    if config.settings.backup_dir:
        return _resolve_dir(config.settings.backup_dir, root)
    return state_dir(config, root) / "backups"


def run_log_path(config: ProvisionConfig, root: Path) -> Path:
    return state_dir(config, root) / RUN_LOG_FILE


def build_registry(
    config: ProvisionConfig,
    actions: ActionRegistry | None = None,
    root: Path | None = None,
) -> StepRegistry:
    """Turn step declarations into a validated StepRegistry.

    Args:
        config: Loaded configuration.
        actions: Action factories (default: the built-in set).
        root: Directory that relative ``targets`` are anchored at.

    Raises:
        ConfigError: An action type is unknown or rejects its parameters.
        ProvisionError: Duplicate ids, unknown dependencies, or a cycle.
    """
    actions = actions or default_action_registry()
    root = root or Path.cwd()

    registry = StepRegistry()
    for spec in config.steps:
        try:
            action = actions.create(spec.action.type, spec.action.params)
        except ValueError as e:
            raise ConfigError(f"Step '{spec.id}': {e}") from e

        context = ActionContext(step_id=spec.id, root=str(root))
        registry.register(Step(
            id=spec.id,
            action=action,
            depends_on=tuple(spec.depends_on),
            description=spec.description,
            destructive=spec.destructive,
            interactive=spec.interactive,
            prompt=spec.prompt,
            targets=tuple(context.resolve(t) for t in spec.targets),
            on_failure=spec.on_failure,
        ))

    registry.validate()
    return registry
