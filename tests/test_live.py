import threading

import pytest

from adkflow.live import LiveRequest, LiveRequestQueue, QueueClosedError


def test_send_then_get_returns_same_request():
    queue = LiveRequestQueue()
    request = LiveRequest(blob=b"\x00\x01")
    queue.send(request)
    assert queue.get() is request


def test_fifo_order():
    queue = LiveRequestQueue()
    requests = [LiveRequest(content=f"c{i}") for i in range(5)]
    for request in requests:
        queue.send(request)
    assert [queue.get() for _ in requests] == requests


def test_send_content_wraps_content():
    queue = LiveRequestQueue()
    queue.send_content("hello")
    got = queue.get()
    assert got.content == "hello"
    assert got.blob == b""
    assert got.close is False


def test_send_after_close_raises():
    queue = LiveRequestQueue()
    queue.close()
    with pytest.raises(QueueClosedError, match="queue is closed"):
        queue.send(LiveRequest())


def test_get_after_close_raises_even_with_pending_items():
    queue = LiveRequestQueue()
    queue.send(LiveRequest(content="pending"))
    queue.close()
    with pytest.raises(QueueClosedError):
        queue.get()


def test_close_is_idempotent():
    queue = LiveRequestQueue()
    queue.close()
    queue.close()
    assert queue.closed is True


def test_close_wakes_blocked_reader():
    queue = LiveRequestQueue()
    outcome = {}

    def reader():
        try:
            outcome["request"] = queue.get()
        except QueueClosedError as exc:
            outcome["error"] = exc

    thread = threading.Thread(target=reader)
    thread.start()
    queue.close()
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert "request" not in outcome
    assert "queue is closed" in str(outcome["error"])
    assert queue.closed is True


def test_blocked_reader_receives_later_send():
    queue = LiveRequestQueue()
    outcome = {}

    def reader():
        outcome["request"] = queue.get()

    thread = threading.Thread(target=reader)
    thread.start()
    request = LiveRequest(content="late")
    queue.send(request)
    thread.join(timeout=5)
    assert outcome["request"] is request


def test_full_queue_blocks_sender_until_get():
    queue = LiveRequestQueue(maxsize=1)
    first = LiveRequest(content="first")
    second = LiveRequest(content="second")
    queue.send(first)
    sent = threading.Event()

    def sender():
        queue.send(second)
        sent.set()

    thread = threading.Thread(target=sender)
    thread.start()
    assert not sent.wait(0.05)
    assert queue.get() is first
    thread.join(timeout=5)
    assert sent.is_set()
    assert queue.get() is second