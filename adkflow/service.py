"""Workflow execution service: lookup, synchronous and streaming runs."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from adkflow.agent import Agent, RunContext

__all__ = [
    "WorkflowNotFoundError",
    "InvalidRequestError",
    "InternalServiceError",
    "WorkflowRegistry",
    "WorkflowRequest",
    "WorkflowResponse",
    "WorkflowService",
    "DEFAULT_TIMEOUT_SECONDS",
    "DEFAULT_WORKERS",
]

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_WORKERS = 8

StreamCallback = Callable[[str, bool, Optional[BaseException]], None]


class _ServiceError(Exception):
    """Base of the service errors; may carry the error response that was built."""

    default_message = ""

    def __init__(
        self, message: Optional[str] = None, response: Optional["WorkflowResponse"] = None
    ) -> None:
        super().__init__(message or self.default_message)
        self.response = response


class WorkflowNotFoundError(_ServiceError, LookupError):
    """The requested workflow is not registered."""

    default_message = "工作流未找到"


class InvalidRequestError(_ServiceError, ValueError):
    """The request is malformed or has invalid fields."""

    default_message = "无效的请求"


class InternalServiceError(_ServiceError):
    """The workflow failed while running."""

    default_message = "内部服务错误"


class WorkflowRegistry:
    """Thread-safe mapping of workflow names to agents."""

    def __init__(self) -> None:
        self._agents: dict[str, Agent] = {}
        self._lock = threading.RLock()

    def register(self, name: str, agent: Agent) -> None:
        """Add or replace the agent for workflow *name*."""
        with self._lock:
            self._agents[name] = agent

    def get(self, name: str) -> Optional[Agent]:
        """Return the agent of workflow *name*, or None."""
        with self._lock:
            return self._agents.get(name)

    def list_names(self) -> list[str]:
        """Return the registered workflow names in sorted order."""
        with self._lock:
            return sorted(self._agents)


def _new_trace_id() -> str:
    return uuid.uuid4().hex


def _expect(data: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key, default)
    if value is None:
        return default
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidRequestError(f"field '{key}' must be an integer")
        if isinstance(value, float):
            if not value.is_integer():
                raise InvalidRequestError(f"field '{key}' must be an integer")
            value = int(value)
        return value
    if not isinstance(value, kind):
        raise InvalidRequestError(f"field '{key}' has the wrong type")
    return value


@dataclass
class WorkflowRequest:
    """A request to run a workflow."""

    workflow: str = ""
    input: str = ""
    user_id: str = ""
    archive_id: str = ""
    experiment_id: str = ""
    trace_id: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    timeout: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> "WorkflowRequest":
        """Build a request from decoded JSON; raise InvalidRequestError on bad input."""
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise InvalidRequestError("request body must be a JSON object")
        return cls(
            workflow=_expect(data, "workflow", str, ""),
            input=_expect(data, "input", str, ""),
            user_id=_expect(data, "user_id", str, ""),
            archive_id=_expect(data, "archive_id", str, ""),
            experiment_id=_expect(data, "experiment_id", str, ""),
            trace_id=_expect(data, "trace_id", str, ""),
            parameters=dict(_expect(data, "parameters", dict, {})),
            timeout=_expect(data, "timeout", int, 0),
        )


@dataclass
class WorkflowResponse:
    """The result of running a workflow."""

    workflow: str
    output: str = ""
    success: bool = False
    message: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    process_time_ms: int = 0
    trace_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; empty optional fields are left out."""
        result: dict[str, Any] = {
            "workflow": self.workflow,
            "output": self.output,
            "success": self.success,
        }
        if self.message:
            result["message"] = self.message
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        result["process_time_ms"] = self.process_time_ms
        if self.trace_id:
            result["trace_id"] = self.trace_id
        return result


def _error_response(workflow: str, message: str, trace_id: str) -> WorkflowResponse:
    return WorkflowResponse(workflow=workflow, success=False, message=message, trace_id=trace_id)


class WorkflowService:
    """Runs registered workflows on a pool of worker threads."""

    def __init__(self, registry: WorkflowRegistry, workers: int = DEFAULT_WORKERS) -> None:
        self._registry = registry
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max(1, workers), thread_name_prefix="workflow"
        )
        self._active_jobs: set[str] = set()
        self._jobs_lock = threading.Lock()

    def _run_task(self, workflow: str, message: str, context: RunContext) -> str:
        agent = self._registry.get(workflow)
        if agent is None:
            raise LookupError("workflow not found")
        return agent.process(message, context)

    def execute(self, request: WorkflowRequest) -> WorkflowResponse:
        """Run a workflow and wait for its output.

        Raises WorkflowNotFoundError, InternalServiceError, or TimeoutError when
        the request's timeout (default 30 seconds) passes first.
        """
        started = time.monotonic()
        trace_id = request.trace_id or _new_trace_id()
        timeout = request.timeout if request.timeout > 0 else DEFAULT_TIMEOUT_SECONDS
        workflow = request.workflow

        if self._registry.get(workflow) is None:
            logger.info("[API] 工作流 %s 未找到", workflow)
            raise WorkflowNotFoundError(
                response=_error_response(workflow, "工作流未找到", trace_id)
            )

        context = RunContext(
            values={"user_id": request.user_id, "archive_id": request.archive_id},
            deadline=started + timeout,
        )
        try:
            future = self._executor.submit(self._run_task, workflow, request.input, context)
        except RuntimeError as exc:
            raise InternalServiceError(
                "提交任务失败", response=_error_response(workflow, "提交任务失败", trace_id)
            ) from exc

        try:
            output = future.result(timeout=max(0.0, context.deadline - time.monotonic()))
        except concurrent.futures.TimeoutError:
            context.cancel()
            future.cancel()
            raise TimeoutError("工作流执行超时") from None
        except Exception as exc:
            logger.info("[API] 工作流 %s 执行失败: %s, TraceID: %s", workflow, exc, trace_id)
            raise InternalServiceError(
                str(exc), response=_error_response(workflow, str(exc), trace_id)
            ) from exc

        process_time = int((time.monotonic() - started) * 1000)
        logger.info(
            "[API] 工作流 %s 执行成功，处理时间: %dms，TraceID: %s",
            workflow,
            process_time,
            trace_id,
        )
        return WorkflowResponse(
            workflow=workflow,
            output=output,
            success=True,
            process_time_ms=process_time,
            trace_id=trace_id,
            metadata={
                "user_id": request.user_id,
                "workflow": workflow,
                "experiment_id": request.experiment_id,
            },
        )

    def execute_stream(
        self, request: WorkflowRequest, callback: StreamCallback
    ) -> threading.Thread:
        """Run a workflow in the background, reporting through *callback*.

        The callback receives ``(data, done, error)``. Returns the running thread.
        Raises WorkflowNotFoundError (after reporting it) if the workflow is unknown.
        """
        trace_id = request.trace_id or _new_trace_id()
        agent = self._registry.get(request.workflow)
        if agent is None:
            error = WorkflowNotFoundError()
            callback("", False, error)
            raise error

        logger.info("[API] 开始流式执行工作流 %s，TraceID: %s", request.workflow, trace_id)
        with self._jobs_lock:
            self._active_jobs.add(trace_id)

        def run() -> None:
            try:
                try:
                    result = agent.process(request.input, RunContext())
                except Exception as exc:
                    callback("", False, exc)
                    return
                callback(result, True, None)
            finally:
                with self._jobs_lock:
                    self._active_jobs.discard(trace_id)

        thread = threading.Thread(target=run, name=f"stream-{trace_id}", daemon=True)
        thread.start()
        return thread

    def list_workflows(self) -> list[str]:
        """Return the names of the available workflows."""
        return self._registry.list_names()

    def get_workflow_info(self, name: str) -> dict[str, Any]:
        """Return a summary of workflow *name*; raise WorkflowNotFoundError if absent."""
        agent = self._registry.get(name)
        if agent is None:
            raise WorkflowNotFoundError()
        return {
            "name": name,
            "description": agent.description,
            "model": agent.model,
            "type": "basic",
        }

    def close(self) -> None:
        """Stop accepting work and drop tasks that have not started."""
        self._executor.shutdown(wait=False, cancel_futures=True)