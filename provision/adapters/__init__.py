"""Actions — bindings from steps to external tools.

Public re-exports for convenient access.
"""

from provision.adapters.base import Action, ActionContext
from provision.adapters.callable import CallableAction
from provision.adapters.mock import MockAction
from provision.adapters.registry import ActionRegistry, UnknownActionType, default_action_registry

__all__ = [
    "Action",
    "ActionContext",
    "ActionRegistry",
    "CallableAction",
    "MockAction",
    "UnknownActionType",
    "default_action_registry",
]
