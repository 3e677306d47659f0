"""
Config check use case — validate provision.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provision.adapters.base import ActionContext
from provision.adapters.registry import ActionRegistry, default_action_registry
from provision.core.config.loader import (
    ConfigError,
    build_registry,
    config_root,
    find_config_file,
    load_config,
)
from provision.core.errors import ProvisionError
from provision.core.models.config import ProvisionConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: ProvisionConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "name": self.config.name if self.config else None,
            "step_count": len(self.config.steps) if self.config else 0,
        }


def check_config(
    config_path: Path | None = None,
    actions: ActionRegistry | None = None,
) -> ConfigCheckResult:
    """Validate configuration and report issues.

    Args:
        config_path: Optional explicit path to provision.yml.
        actions: Optional action registry override.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    # Find config
    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        result.errors.append("No provision.yml found.")
        return result
    result.config_path = config_path

    # Load and validate
    try:
        config = load_config(config_path)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Build the step graph (action types, duplicates, references, cycles)
    root = config_root(config_path)
    try:
        registry = build_registry(config, actions or default_action_registry(), root)
    except ProvisionError as e:
        result.errors.append(str(e))
        return result

    # Semantic checks
    if not config.steps:
        result.warnings.append("No steps defined. There is nothing to provision.")

    for step in registry:
        if step.destructive and not step.targets and not step.action.targets(
            ActionContext(step_id=step.id, root=str(root))
        ):
            result.warnings.append(
                f"Step '{step.id}' is destructive but names no targets; nothing will be backed up."
            )
        if step.action.name == "manual" and not step.interactive:
            result.warnings.append(
                f"Step '{step.id}' is a manual step but not interactive; it will never pause."
            )
        if not step.reversible:
            result.warnings.append(f"Step '{step.id}' cannot be reverted by cleanup.")

    # Result
    result.valid = len(result.errors) == 0
    return result
