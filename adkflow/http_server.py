"""HTTP API over the workflow service.

Routes:

1. ``GET  /api/workflows``         list the available workflows
2. ``GET  /api/workflows/{name}``  describe one workflow
3. ``POST /api/execute``           run a workflow and return a JSON result
4. ``POST /api/stream``            run a workflow and answer with Server-Sent Events
5. ``GET  /health``                health check

Request and response bodies are JSON.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import urlsplit

from adkflow.service import (
    DEFAULT_WORKERS,
    InvalidRequestError,
    WorkflowNotFoundError,
    WorkflowRegistry,
    WorkflowRequest,
    WorkflowService,
)

__all__ = ["ApiServer", "format_sse_event", "format_error_event", "API_VERSION"]

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

_HTML_ESCAPES = (
    ("&", "\\u0026"),
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


def _to_json(obj: Any, sort_keys: bool = False) -> str:
    text = json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=sort_keys)
    for char, escaped in _HTML_ESCAPES:
        text = text.replace(char, escaped)
    return text


def format_sse_event(event: str, data: str) -> str:
    """Return one Server-Sent Event frame."""
    return f"event: {event}\ndata: {data}\n\n"


def format_error_event(message: str) -> str:
    """Return an ``error`` event whose data is ``{"error": message}``."""
    return format_sse_event("error", _to_json({"error": message}))


def _parse_addr(addr: str) -> tuple[str, int]:
    host, _, port = addr.rpartition(":")
    return host, int(port) if port else 0


class _Server(ThreadingHTTPServer):
    daemon_threads = True
    request_queue_size = 128


class ApiServer:
    """Serves the workflow API on *addr* (``host:port``; ``:8080`` for all hosts).

    The socket is bound on construction; ``start`` serves until ``stop``.
    """

    def __init__(
        self, registry: WorkflowRegistry, addr: str = ":8080", workers: int = DEFAULT_WORKERS
    ) -> None:
        self.addr = addr
        self.service = WorkflowService(registry, workers=workers)
        self._httpd = _Server(_parse_addr(addr), self._handler_class())
        self._started = threading.Event()

    @property
    def server_address(self) -> tuple[str, int]:
        """The bound host and port."""
        host, port = self._httpd.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        """Serve requests; blocks until stop() is called."""
        logger.info("[HTTP] API 服务启动于 %s", self.addr)
        self._started.set()
        self._httpd.serve_forever()

    def stop(self) -> None:
        """Stop serving, close the socket and shut down the worker pool."""
        logger.info("[HTTP] 关闭 API 服务")
        if self._started.is_set():
            self._httpd.shutdown()
        self._httpd.server_close()
        self.service.close()

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        api = self

        class Handler(BaseHTTPRequestHandler):
            def _handle(self) -> None:
                api._dispatch(self)

            do_GET = do_POST = do_PUT = do_DELETE = do_PATCH = do_OPTIONS = _handle
            do_HEAD = _handle

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("[HTTP] " + format, *args)

        return Handler

    def _dispatch(self, handler: BaseHTTPRequestHandler) -> None:
        path = urlsplit(handler.path).path
        method = handler.command
        if path == "/api/workflows":
            self._list_workflows(handler, method)
        elif path.startswith("/api/workflows/"):
            self._workflow_info(handler, method, path[len("/api/workflows/"):])
        elif path == "/api/execute":
            self._execute(handler, method)
        elif path == "/api/stream":
            self._execute_stream(handler, method)
        elif path == "/health":
            self._health(handler, method)
        else:
            _send_text(handler, 404, "404 page not found")

    def _health(self, handler: BaseHTTPRequestHandler, method: str) -> None:
        if method != "GET":
            _send_text(handler, 405, "仅支持 GET 请求")
            return
        workflows = self.service.list_workflows()
        now = datetime.now().astimezone().isoformat(timespec="seconds")
        if now.endswith("+00:00"):
            now = now[:-6] + "Z"
        _send_json(
            handler,
            {
                "status": "ok",
                "version": API_VERSION,
                "time": now,
                "workflows": len(workflows),
                "workflow_names": workflows,
            },
        )

    def _list_workflows(self, handler: BaseHTTPRequestHandler, method: str) -> None:
        if method != "GET":
            _send_text(handler, 405, "仅支持 GET 请求")
            return
        workflows = self.service.list_workflows()
        _send_json(handler, {"workflows": workflows, "count": len(workflows)})

    def _workflow_info(self, handler: BaseHTTPRequestHandler, method: str, name: str) -> None:
        if method != "GET":
            _send_text(handler, 405, "仅支持 GET 请求")
            return
        if not name:
            _send_text(handler, 400, "缺少工作流名称")
            return
        try:
            info = self.service.get_workflow_info(name)
        except WorkflowNotFoundError:
            _send_text(handler, 404, "工作流未找到")
            return
        except Exception:
            _send_text(handler, 500, "获取工作流信息失败")
            return
        _send_json(handler, info)

    def _execute(self, handler: BaseHTTPRequestHandler, method: str) -> None:
        if method != "POST":
            _send_text(handler, 405, "仅支持 POST 请求")
            return
        request = _read_request(handler)
        if request is None:
            _send_text(handler, 400, "请求格式错误")
            return
        try:
            response = self.service.execute(request)
        except WorkflowNotFoundError:
            _send_text(handler, 404, "工作流未找到")
            return
        except InvalidRequestError:
            _send_text(handler, 400, "无效的请求")
            return
        except Exception:
            _send_text(handler, 500, "执行工作流失败")
            return
        _send_json(handler, response.to_dict(), sort_keys=False)

    def _execute_stream(self, handler: BaseHTTPRequestHandler, method: str) -> None:
        if method != "POST":
            _send_text(handler, 405, "仅支持 POST 请求")
            return

        request = _read_request(handler)
        handler.send_response(200)
        handler.send_header("Content-Type", "text/event-stream")
        handler.send_header("Cache-Control", "no-cache")
        handler.send_header("Connection", "keep-alive")
        handler.end_headers()

        write_lock = threading.Lock()

        def write(frame: str) -> None:
            with write_lock:
                handler.wfile.write(frame.encode("utf-8"))
                handler.wfile.flush()

        if request is None:
            write(format_error_event("请求格式错误"))
            return

        def callback(data: str, done: bool, error: Optional[BaseException]) -> None:
            if error is not None:
                write(format_error_event(str(error)))
            elif done:
                write(format_sse_event("done", data))
            else:
                write(format_sse_event("data", data))

        try:
            thread = self.service.execute_stream(request, callback)
        except Exception as exc:
            write(format_error_event(str(exc)))
            return
        thread.join()


def _read_request(handler: BaseHTTPRequestHandler) -> Optional[WorkflowRequest]:
    try:
        length = int(handler.headers.get("Content-Length") or 0)
    except ValueError:
        return None
    body = handler.rfile.read(length) if length > 0 else b""
    try:
        return WorkflowRequest.from_dict(json.loads(body.decode("utf-8")))
    except (ValueError, InvalidRequestError):
        return None


def _send_body(handler: BaseHTTPRequestHandler, status: int, content_type: str, body: str) -> None:
    payload = body.encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", content_type)
    handler.send_header("Content-Length", str(len(payload)))
    if content_type.startswith("text/plain"):
        handler.send_header("X-Content-Type-Options", "nosniff")
    handler.end_headers()
    if handler.command != "HEAD":
        handler.wfile.write(payload)


def _send_text(handler: BaseHTTPRequestHandler, status: int, message: str) -> None:
    _send_body(handler, status, "text/plain; charset=utf-8", message + "\n")


def _send_json(handler: BaseHTTPRequestHandler, obj: Any, sort_keys: bool = True) -> None:
    _send_body(handler, 200, "application/json", _to_json(obj, sort_keys=sort_keys) + "\n")