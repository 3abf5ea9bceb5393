"""Discovery of state placeholders referenced by agent instructions."""

from __future__ import annotations

import re
from typing import Any, Iterator, Mapping, Optional

__all__ = ["find_state_params", "create_empty_state"]

_STATE_PARAM = re.compile(r"\{(\w+)\}", re.ASCII)


def find_state_params(text: str) -> list[str]:
    """Return the distinct ``{name}`` placeholders in *text*, in order of appearance."""
    return list(dict.fromkeys(match.group(1) for match in _STATE_PARAM.finditer(text)))


def _instructions(agent: Any) -> Iterator[str]:
    for attribute in ("instruction", "system_instructions"):
        text = getattr(agent, attribute, None)
        if isinstance(text, str) and text:
            yield text
    for sub_agent in getattr(agent, "sub_agents", None) or ():
        if sub_agent is not None:
            yield from _instructions(sub_agent)


def create_empty_state(
    agent: Any, initialized_states: Optional[Mapping[str, Any]] = None
) -> dict[str, str]:
    """Map every placeholder used by *agent* and its sub-agents to ``""``.

    Placeholders already present in *initialized_states* are left out.
    """
    state: dict[str, str] = {}
    for text in _instructions(agent):
        for key in find_state_params(text):
            state[key] = ""
    for key in initialized_states or {}:
        state.pop(key, None)
    return state