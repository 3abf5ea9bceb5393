"""LLM-backed agents, the model registry they draw on, and the export registry."""

from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import CancelledError
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

from adkflow.validation import (
    AgentValidationError,
    validate_agent_hierarchy,
    validate_agent_name,
)

__all__ = [
    "ChatMessage",
    "RunContext",
    "ModelRegistry",
    "default_model_registry",
    "Agent",
    "export",
    "get_exported_agent",
    "DEFAULT_MODEL",
    "MODEL_UNAVAILABLE_RESPONSE",
]

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-1.5-pro"
MODEL_UNAVAILABLE_RESPONSE = (
    "I'm sorry, but the requested model is not available. "
    "(This is a placeholder response.)"
)

BeforeAgentCallback = Callable[["RunContext", str], Optional[str]]
AfterAgentCallback = Callable[["RunContext", str], str]


@dataclass(frozen=True)
class ChatMessage:
    """One message of a conversation sent to a model."""

    role: str
    content: str


@dataclass
class RunContext:
    """Carries request-scoped values, an optional deadline and a cancellation flag.

    ``deadline`` is an absolute ``time.monotonic()`` value, or None for no deadline.
    """

    values: dict[str, Any] = field(default_factory=dict)
    deadline: Optional[float] = None
    _cancelled: threading.Event = field(
        default_factory=threading.Event, repr=False, compare=False
    )

    def cancel(self) -> None:
        """Mark the context as cancelled."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        """True once the context was cancelled or its deadline has passed."""
        return self._cancelled.is_set() or self._expired

    @property
    def _expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def raise_if_cancelled(self) -> None:
        """Raise CancelledError if cancelled, TimeoutError if the deadline passed."""
        if self._cancelled.is_set():
            raise CancelledError("context canceled")
        if self._expired:
            raise TimeoutError("context deadline exceeded")


class ModelRegistry:
    """Thread-safe lookup of models by their ``name`` attribute.

    A model is any object with a ``name`` and a ``generate(messages, context)``
    method returning the response text.
    """

    def __init__(self) -> None:
        self._models: dict[str, Any] = {}
        self._lock = threading.RLock()

    def register(self, model: Any) -> None:
        """Add or replace a model under its name."""
        with self._lock:
            self._models[model.name] = model

    def get(self, name: str) -> Any | None:
        """Return the model registered under *name*, or None."""
        with self._lock:
            return self._models.get(name)


_DEFAULT_MODEL_REGISTRY = ModelRegistry()


def default_model_registry() -> ModelRegistry:
    """Return the process-wide model registry."""
    return _DEFAULT_MODEL_REGISTRY


class Agent:
    """An agent that answers messages with a model and may call tools.

    A tool is any object with ``name``, ``description``, optional ``input_schema``
    and ``output_schema`` attributes, and ``execute(parameters, context)``.
    """

    def __init__(
        self,
        *,
        name: str = "",
        model: str = DEFAULT_MODEL,
        instruction: str = "",
        description: str = "",
        tools: Iterable[Any] = (),
        sub_agents: Iterable["Agent"] = (),
        before_agent_callback: Optional[BeforeAgentCallback] = None,
        after_agent_callback: Optional[AfterAgentCallback] = None,
        model_registry: Optional[ModelRegistry] = None,
    ) -> None:
        try:
            validate_agent_name(name)
        except AgentValidationError as exc:
            logger.warning("Warning: %s", exc)

        self.name = name
        self.model = model
        self.instruction = instruction
        self.description = description
        self.tools: list[Any] = list(tools)
        self.sub_agents: list[Agent] = list(sub_agents)
        self.before_agent_callback = before_agent_callback
        self.after_agent_callback = after_agent_callback
        self.model_registry = model_registry
        self.parent_agent: Optional[Agent] = None

        for sub_agent in self.sub_agents:
            try:
                validate_agent_hierarchy(sub_agent, self)
            except AgentValidationError as exc:
                logger.warning("Warning: %s", exc)
            sub_agent.parent_agent = self

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, model={self.model!r})"

    def process(self, message: str, context: Optional[RunContext] = None) -> str:
        """Answer *message*, running callbacks, the model and any tool calls."""
        context = context if context is not None else RunContext()

        if self.before_agent_callback is not None:
            result = self.before_agent_callback(context, message)
            if result is not None:
                return result

        registry = self.model_registry or default_model_registry()
        model = registry.get(self.model)
        if model is None:
            return MODEL_UNAVAILABLE_RESPONSE

        system_content = self.instruction
        if self.tools:
            tools_json = json.dumps(
                self.tool_definitions(),
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
            )
            system_content = (
                f"{self.instruction}\n\nYou have access to the following tools: {tools_json}"
            )
        messages = [
            ChatMessage(role="system", content=system_content),
            ChatMessage(role="user", content=message),
        ]

        try:
            context.raise_if_cancelled()
        except (CancelledError, TimeoutError) as exc:
            logger.info("model call cancelled by context, agent: %s, reason: %s", self.name, exc)
            raise

        logger.info("starting model call, agent: %s, model: %s", self.name, self.model)
        response = model.generate(messages, context)
        logger.info("model call finished, agent: %s", self.name)

        response = self._process_function_calls(response, context)

        if self.after_agent_callback is not None:
            response = self.after_agent_callback(context, response)
        return response

    def root_agent(self) -> "Agent":
        """Return the topmost ancestor of this agent."""
        root = self
        while root.parent_agent is not None:
            root = root.parent_agent
        return root

    def find_agent(self, name: str) -> Optional["Agent"]:
        """Return this agent or a descendant with the given name, or None."""
        if self.name == name:
            return self
        return self.find_sub_agent(name)

    def find_sub_agent(self, name: str) -> Optional["Agent"]:
        """Search the descendants of this agent for one with the given name."""
        for sub_agent in self.sub_agents:
            found = sub_agent.find_agent(name)
            if found is not None:
                return found
        return None

    def tool_definitions(self) -> list[dict[str, Any]]:
        """Return a JSON-serialisable description of the agent's tools."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input": getattr(tool, "input_schema", None),
                "output": getattr(tool, "output_schema", None),
            }
            for tool in self.tools
        ]

    def _find_tool(self, name: str) -> Any | None:
        return next((tool for tool in self.tools if tool.name == name), None)

    def _process_function_calls(self, response: str, context: RunContext) -> str:
        parts: list[str] = []
        found_calls = False

        for raw_line in response.strip().split("\n"):
            line = raw_line.strip()
            if not line:
                continue

            call = _parse_tool_call(line)
            if call is None:
                if parts:
                    parts.append("\n")
                parts.append(line)
                continue

            found_calls = True
            tool_name, parameters = call
            logger.info("tool call detected: %s", tool_name)

            tool = self._find_tool(tool_name)
            if tool is None:
                parts.append(f"错误：未找到工具 '{tool_name}'\n")
                continue

            try:
                result = tool.execute(parameters, context)
            except Exception as exc:  # tool failures are reported inline
                parts.append(f"工具 '{tool_name}' 执行失败: {exc}\n")
                continue

            result_json = json.dumps(result, indent=2, sort_keys=True, ensure_ascii=False)
            parts.append(f"工具 '{tool_name}' 执行成功:\n{result_json}\n\n")

        if found_calls:
            logger.info("tool calls processed, agent: %s", self.name)
            return "".join(parts)
        return response


def _parse_tool_call(line: str) -> tuple[str, Optional[dict[str, Any]]] | None:
    try:
        payload = json.loads(line)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    tool_name = payload.get("tool_name")
    parameters = payload.get("parameters")
    if not isinstance(tool_name, str) or not tool_name:
        return None
    if parameters is not None and not isinstance(parameters, dict):
        return None
    return tool_name, parameters


_exported: dict[str, Agent] = {}
_exported_lock = threading.RLock()


def export(agent: Agent) -> None:
    """Make *agent* available by name to command-line tools."""
    with _exported_lock:
        _exported[agent.name] = agent


def get_exported_agent(name: str) -> Optional[Agent]:
    """Return an agent previously passed to export(), or None."""
    with _exported_lock:
        return _exported.get(name)


def _sequence(items: Sequence[Any]) -> list[Any]:
    return list(items)