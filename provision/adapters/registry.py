"""
Action registry — maps action type names to factories.

Config files name an action by ``type``; the registry turns that name
plus the remaining parameters into an Action instance. The engine never
constructs actions itself.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from provision.adapters.base import Action

logger = logging.getLogger(__name__)

ActionFactory = Callable[..., Action]


class UnknownActionType(ValueError):
    """Raised when a config names an action type nobody registered."""


class ActionRegistry:
    """Central registry of action factories.

    Features:
        - Register/unregister factories by type name
        - Build an action from a type name and parameters
        - List known types
    """

    def __init__(self) -> None:
        self._factories: dict[str, ActionFactory] = {}

    def register(self, type_name: str, factory: ActionFactory) -> None:
        """Register a factory for ``type_name``."""
        if type_name in self._factories:
            logger.warning("Overwriting existing action type: %s", type_name)
        self._factories[type_name] = factory
        logger.debug("Registered action type: %s", type_name)

    def unregister(self, type_name: str) -> None:
        """Remove an action type from the registry."""
        self._factories.pop(type_name, None)

    def get(self, type_name: str) -> ActionFactory | None:
        """Look up a factory by type name."""
        return self._factories.get(type_name)

    def list_types(self) -> list[str]:
        """List all registered type names."""
        return sorted(self._factories.keys())

    def create(self, type_name: str, params: dict[str, Any] | None = None) -> Action:
        """Build an action.

        Raises:
            UnknownActionType: No factory registered for ``type_name``.
            ValueError: The factory rejected the parameters.
        """
        factory = self._factories.get(type_name)
        if factory is None:
            raise UnknownActionType(
                f"Unknown action type '{type_name}'. Valid: {', '.join(self.list_types())}"
            )
        try:
            return factory(**(params or {}))
        except TypeError as e:
            raise ValueError(f"Invalid parameters for action type '{type_name}': {e}") from e


def default_action_registry() -> ActionRegistry:
    """Registry with every built-in action type."""
    from provision.adapters.manual import ManualAction
    from provision.adapters.mock import MockAction
    from provision.adapters.shell.command import CommandExistsAction, ShellAction
    from provision.adapters.shell.filesystem import DirectoryAction, FileAction, SymlinkAction
    from provision.adapters.vcs.git import GitCloneAction

    registry = ActionRegistry()
    registry.register("shell", ShellAction)
    registry.register("command_exists", CommandExistsAction)
    registry.register("symlink", SymlinkAction)
    registry.register("file", FileAction)
    registry.register("directory", DirectoryAction)
    registry.register("git_clone", GitCloneAction)
    registry.register("manual", ManualAction)
    registry.register("mock", MockAction)
    return registry
