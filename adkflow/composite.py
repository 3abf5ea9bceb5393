"""Agents that combine sub-agents: in sequence, in a loop, or in parallel."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional

from adkflow.agent import Agent, RunContext

__all__ = ["MultiError", "SequentialAgent", "LoopAgent", "ParallelAgent"]

DEFAULT_MAX_ITERATIONS = 10


class MultiError(Exception):
    """Several errors raised by sub-agents that ran in parallel.

    ``errors`` holds the collected exceptions and ``output`` the combined
    responses of the sub-agents that did succeed.
    """

    def __init__(self, errors: Iterable[Optional[BaseException]], output: str = "") -> None:
        self.errors: list[BaseException] = [err for err in errors if err is not None]
        self.output = output
        super().__init__(self._message())

    def _message(self) -> str:
        if not self.errors:
            return ""
        joined = "; ".join(str(err) for err in self.errors)
        return f"encountered {len(self.errors)} error(s): {joined}"

    def __str__(self) -> str:
        return self._message()


class _CompositeAgent(Agent):
    """Base for agents that drive sub-agents instead of a model."""

    def __init__(
        self,
        *,
        name: str = "",
        description: str = "",
        sub_agents: Iterable[Agent] = (),
    ) -> None:
        super().__init__(name=name, model="", description=description)
        self.sub_agents = list(sub_agents)


class SequentialAgent(_CompositeAgent):
    """Passes a message through each sub-agent in turn, feeding output to input."""

    def process(self, message: str, context: Optional[RunContext] = None) -> str:
        """Return the last sub-agent's response, or "" when there are none."""
        context = context if context is not None else RunContext()
        current = message
        response = ""
        for sub_agent in self.sub_agents:
            context.raise_if_cancelled()
            response = sub_agent.process(current, context)
            current = response
        return response


class LoopAgent(_CompositeAgent):
    """Runs its sub-agents in sequence, repeated a fixed number of times."""

    def __init__(
        self,
        *,
        name: str = "",
        description: str = "",
        sub_agents: Iterable[Agent] = (),
        max_iterations: int = 0,
    ) -> None:
        super().__init__(name=name, description=description, sub_agents=sub_agents)
        self.max_iterations = max_iterations if max_iterations > 0 else DEFAULT_MAX_ITERATIONS

    def process(self, message: str, context: Optional[RunContext] = None) -> str:
        """Return the message after all iterations over the sub-agents."""
        context = context if context is not None else RunContext()
        current = message
        for _ in range(self.max_iterations):
            context.raise_if_cancelled()
            for sub_agent in self.sub_agents:
                current = sub_agent.process(current, context)
        return current


class ParallelAgent(_CompositeAgent):
    """Sends the same message to all sub-agents concurrently and joins the answers."""

    def __init__(
        self,
        *,
        name: str = "",
        description: str = "",
        sub_agents: Iterable[Agent] = (),
        workers: int = 0,
    ) -> None:
        super().__init__(name=name, description=description, sub_agents=sub_agents)
        self.workers = workers if workers > 0 else len(self.sub_agents)

    def process(self, message: str, context: Optional[RunContext] = None) -> str:
        """Return the responses joined by newlines; raise MultiError on failures."""
        if not self.sub_agents:
            return ""
        context = context if context is not None else RunContext()
        if self.workers <= 0:
            self.workers = len(self.sub_agents)

        executor = ThreadPoolExecutor(max_workers=self.workers)
        futures = []
        try:
            for sub_agent in self.sub_agents:
                context.raise_if_cancelled()
                futures.append(executor.submit(sub_agent.process, message, context))
        except BaseException:
            executor.shutdown(wait=False)
            raise
        executor.shutdown(wait=True)

        responses: list[str] = []
        errors: list[BaseException] = []
        for future in futures:
            try:
                responses.append(future.result())
            except Exception as exc:
                errors.append(exc)

        combined = "\n".join(responses)
        if errors:
            raise MultiError(errors, output=combined)
        return combined