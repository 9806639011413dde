"""Infrastructure stack execution."""

from __future__ import annotations

from .engine import CommandResult, InfrastructureEngine, PulumiEngine, Stack
from .keys import NamespacedKey
from .manifest import read_project_namespace, remove_stack_state_file, stack_state_file
from .runner import StackRunner, normalize_config_value

__all__ = [
    "CommandResult",
    "InfrastructureEngine",
    "NamespacedKey",
    "PulumiEngine",
    "Stack",
    "StackRunner",
    "normalize_config_value",
    "read_project_namespace",
    "remove_stack_state_file",
    "stack_state_file",
]
