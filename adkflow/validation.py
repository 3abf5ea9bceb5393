"""Validation of agent names and agent tree relationships."""

from __future__ import annotations

import re
from typing import Any

__all__ = ["AgentValidationError", "validate_agent_name", "validate_agent_hierarchy"]

_RESERVED_AGENT_NAMES = frozenset({"user"})
_IDENTIFIER = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")


class AgentValidationError(ValueError):
    """Raised when an agent name or agent hierarchy is invalid."""


def validate_agent_name(name: str) -> str:
    """Check that *name* is a usable agent identifier and return it unchanged."""
    if not name:
        raise AgentValidationError("agent name cannot be empty")

    if not _IDENTIFIER.fullmatch(name):
        raise AgentValidationError(
            f"invalid agent name: '{name}'. Agent name must be a valid identifier. "
            "It should start with a letter (a-z, A-Z) or an underscore (_), "
            "and can only contain letters, digits (0-9), and underscores"
        )

    lowered = name.lower()
    if lowered in _RESERVED_AGENT_NAMES:
        raise AgentValidationError(
            f"agent name cannot be '{name}'. '{lowered}' is reserved for end-user's input"
        )

    return name


def validate_agent_hierarchy(sub_agent: Any, new_parent: Any) -> None:
    """Reject attaching *sub_agent* to *new_parent* if it already has another parent.

    Agents that expose no ``parent_agent`` attribute cannot be checked and pass.
    """
    parent = getattr(sub_agent, "parent_agent", None)
    if parent is not None and parent is not new_parent:
        raise AgentValidationError(
            f"agent '{sub_agent.name}' already has a parent agent: "
            f"'{parent.name}', cannot add to '{new_parent.name}'"
        )