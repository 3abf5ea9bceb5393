import http.client
import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from adkflow.agent import Agent
from adkflow.http_server import ApiServer, format_error_event, format_sse_event
from adkflow.service import WorkflowRegistry


@pytest.fixture
def registry():
    reg = WorkflowRegistry()
    reg.register(
        "bench_flow",
        Agent(
            name="bench_agent",
            instruction="并发测试 Echo Agent",
            description="仅用于并发测试，快速返回 OK",
            before_agent_callback=lambda ctx, msg: "OK",
        ),
    )
    return reg


@pytest.fixture
def server(registry):
    api = ApiServer(registry, "127.0.0.1:0")
    thread = threading.Thread(target=api.start, daemon=True)
    thread.start()
    yield api
    api.stop()
    thread.join(5)


def _request(server, method, path, body=None):
    host, port = server.server_address
    conn = http.client.HTTPConnection(host, port, timeout=10)
    try:
        data = None
        headers = {}
        if body is not None:
            data = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        conn.request(method, path, body=data, headers=headers)
        resp = conn.getresponse()
        return resp.status, dict(resp.getheaders()), resp.read().decode("utf-8")
    finally:
        conn.close()


def test_format_sse_event():
    assert format_sse_event("done", "result") == "event: done\ndata: result\n\n"


def test_format_error_event_escapes_html():
    assert format_error_event("bad <x>") == (
        'event: error\ndata: {"error":"bad \\u003cx\\u003e"}\n\n'
    )


def test_execute_endpoint_concurrency(server):
    body = {
        "workflow": "bench_flow",
        "input": "hello",
        "user_id": "test_user_123",
        "archive_id": "test_archive_456",
    }

    def call(_):
        status, _, text = _request(server, "POST", "/api/execute", body)
        if status != 200:
            return False
        payload = json.loads(text)
        return payload["success"] is True and payload["output"] == "OK"

    with ThreadPoolExecutor(max_workers=32) as pool:
        results = list(pool.map(call, range(500)))
    assert results.count(False) == 0


def test_archive_id_full_chain_access(registry, server):
    captured = {}

    def capture(ctx, msg):
        captured["user_id"] = ctx.values.get("user_id")
        captured["archive_id"] = ctx.values.get("archive_id")
        captured["input"] = msg
        return (
            f"捕获成功: user_id={captured['user_id']}, "
            f"archive_id={captured['archive_id']}, input={msg}"
        )

    registry.register(
        "archive_test_flow",
        Agent(
            name="archive_test_agent",
            instruction="测试archive_id传递的Agent",
            description="验证context中user_id和archive_id的传递",
            before_agent_callback=capture,
        ),
    )
    status, _, text = _request(
        server,
        "POST",
        "/api/execute",
        {
            "workflow": "archive_test_flow",
            "input": "测试archive_id传递链路",
            "user_id": "test_user_12345",
            "archive_id": "test_archive_67890",
        },
    )
    assert status == 200
    payload = json.loads(text)
    assert payload["success"] is True
    assert captured == {
        "user_id": "test_user_12345",
        "archive_id": "test_archive_67890",
        "input": "测试archive_id传递链路",
    }
    assert "user_id=test_user_12345" in payload["output"]
    assert "archive_id=test_archive_67890" in payload["output"]


def test_execute_errors(server):
    status, _, text = _request(server, "POST", "/api/execute", b"{not json")
    assert (status, text) == (400, "请求格式错误\n")
    status, _, text = _request(server, "POST", "/api/execute", {"workflow": "nope"})
    assert (status, text) == (404, "工作流未找到\n")
    status, _, text = _request(server, "GET", "/api/execute")
    assert (status, text) == (405, "仅支持 POST 请求\n")


def test_health(server):
    status, headers, text = _request(server, "GET", "/health")
    assert status == 200
    assert headers["Content-Type"] == "application/json"
    payload = json.loads(text)
    assert payload["status"] == "ok"
    assert payload["version"] == "1.0.0"
    assert payload["workflows"] == 1
    assert payload["workflow_names"] == ["bench_flow"]


def test_list_and_info(server):
    status, _, text = _request(server, "GET", "/api/workflows")
    assert status == 200
    assert json.loads(text) == {"workflows": ["bench_flow"], "count": 1}

    status, _, text = _request(server, "GET", "/api/workflows/bench_flow")
    assert status == 200
    info = json.loads(text)
    assert info["name"] == "bench_flow"
    assert info["type"] == "basic"
    assert info["description"] == "仅用于并发测试，快速返回 OK"

    status, _, text = _request(server, "GET", "/api/workflows/")
    assert (status, text) == (400, "缺少工作流名称\n")
    status, _, _ = _request(server, "GET", "/api/workflows/missing")
    assert status == 404
    status, _, text = _request(server, "POST", "/api/workflows")
    assert (status, text) == (405, "仅支持 GET 请求\n")


def test_unknown_path(server):
    status, _, text = _request(server, "GET", "/nowhere")
    assert (status, text) == (404, "404 page not found\n")


def test_stream_success(server):
    status, headers, text = _request(
        server, "POST", "/api/stream", {"workflow": "bench_flow", "input": "hi"}
    )
    assert status == 200
    assert headers["Content-Type"] == "text/event-stream"
    assert text == format_sse_event("done", "OK")


def test_stream_errors(server):
    _, _, text = _request(server, "POST", "/api/stream", b"oops")
    assert text == format_error_event("请求格式错误")
    _, _, text = _request(server, "POST", "/api/stream", {"workflow": "nope"})
    assert text == format_error_event("工作流未找到") * 2