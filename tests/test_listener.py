from __future__ import annotations

import queue
import socket
import threading
import time
from typing import List, Tuple

import pytest

from gelfix_common.models import GelfInputConfig
from gelfix_input.chunks import chunk_payload, encode_message
from gelfix_input.events import Event
from gelfix_input.listener import GelfListener

Running = Tuple[GelfListener, "queue.Queue[Event]"]


def _send(listener: GelfListener, *datagrams: bytes) -> None:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        for d in datagrams:
            sock.sendto(d, listener.bound_address)
    finally:
        sock.close()


def _next(events: "queue.Queue[Event]") -> Event:
    return events.get(timeout=5.0)


def test_receives_chunked_messages(running_listener: Running) -> None:
    listener, events = running_listener
    messages = ["hello", "world", "y" * 2000, "we survived gelf!"]

    for m in messages:
        payload = encode_message({"version": "1.1", "host": "app", "short_message": m})
        _send(listener, *chunk_payload(payload, chunk_size=64))

    received = [_next(events) for _ in messages]
    assert [e.get("message") for e in received] == messages
    assert all(e.get("host") == "app" for e in received)
    assert all(e.get("source_host") == "127.0.0.1" for e in received)


def test_out_of_order_chunks_yield_one_event(running_listener: Running) -> None:
    listener, events = running_listener
    payload = encode_message({"short_message": "z" * 1500}, compress=False)
    chunks = chunk_payload(payload, chunk_size=200)

    _send(listener, *reversed(chunks))

    assert _next(events).get("message") == "z" * 1500
    with pytest.raises(queue.Empty):
        events.get(timeout=0.3)


@pytest.mark.parametrize("running_listener", [{"nested_objects": True}], indirect=True)
def test_nested_fields_end_to_end(running_listener: Running) -> None:
    listener, events = running_listener
    payload = encode_message(
        {
            "short_message": "test nested",
            "_toto.titi": "objectValue",
            "_foo.0": "first",
            "_foo.1": "second",
            "_ca.0.titi": "1",
            "_ca.1.titi": "2",
            "_empty.": "pouet",
            "_not_an_array.0": "bob",
            "_not_an_array.1": "alice",
            "_not_an_array.length": "carol",
        }
    )
    _send(listener, payload)

    e = _next(events)
    assert e.get("message") == "test nested"
    assert e.get("toto") == {"titi": "objectValue"}
    assert e.get("foo") == ["first", "second"]
    assert e.get("ca") == [{"titi": "1"}, {"titi": "2"}]
    assert e.get("empty") == {"": "pouet"}
    assert e.get("not_an_array") == {"0": "bob", "1": "alice", "length": "carol"}


def test_bad_datagrams_are_skipped(running_listener: Running) -> None:
    listener, events = running_listener
    _send(listener, b"\x00garbage", b'{"short_message":"after"}')
    assert _next(events).get("message") == "after"


def test_invalid_json_is_tagged_not_dropped(running_listener: Running) -> None:
    listener, events = running_listener
    _send(listener, b"[not json")
    e = _next(events)
    assert e.get("message") == "[not json"
    assert "_jsonparsefailure" in e.tags


@pytest.mark.parametrize(
    "running_listener",
    [{"type": "gelf", "tags": ["udp"], "add_field": {"origin": "%{source_host}"}}],
    indirect=True,
)
def test_decoration_runs_last(running_listener: Running) -> None:
    listener, events = running_listener
    _send(listener, b'{"short_message":"m"}')
    e = _next(events)
    assert e.get("type") == "gelf"
    assert e.tags == ["udp"]
    assert e.get("origin") == "127.0.0.1"


class TestHandleDatagram:
    def test_buffering_chunk_returns_none(self) -> None:
        listener = GelfListener(GelfInputConfig())
        chunks = chunk_payload(b'{"short_message":"' + b"a" * 50 + b'"}', 20)
        assert listener.handle_datagram(chunks[0], ("1.2.3.4", 1)) is None

    def test_transform_failure_drops_event(self) -> None:
        listener = GelfListener(GelfInputConfig(nested_objects=True))
        event = listener.handle_datagram(
            b'{"_host":"a","_host.name":"b","short_message":"m"}', ("1.2.3.4", 1)
        )
        assert event is not None
        assert event.get("_host") == "a"
        assert event.get("host") == {"name": "b"}

        event = listener.handle_datagram(
            b'{"app":"a","app.name":"b"}', ("1.2.3.4", 1)
        )
        assert event is None

    def test_passes_can_be_disabled(self) -> None:
        listener = GelfListener(
            GelfInputConfig(remap=False, strip_leading_underscore=False)
        )
        event = listener.handle_datagram(
            b'{"short_message":"m","_x":1}', ("1.2.3.4", 1)
        )
        assert event is not None
        assert event.data == {"short_message": "m", "_x": 1, "source_host": "1.2.3.4"}

    def test_empty_array_payload_is_dropped(self) -> None:
        listener = GelfListener(GelfInputConfig())
        assert listener.handle_datagram(b"[]", ("1.2.3.4", 1)) is None

    def test_millisecond_timestamp_keeps_the_event(self) -> None:
        listener = GelfListener(GelfInputConfig())
        event = listener.handle_datagram(
            b'{"short_message":"m","timestamp":1700000000123}', ("1.2.3.4", 1)
        )
        assert event is not None
        assert event.get("message") == "m"
        assert event.get("timestamp") == 1700000000123

    def test_user_tags_field_is_merged_with_configured_tags(self) -> None:
        listener = GelfListener(GelfInputConfig(tags=["udp"]))
        event = listener.handle_datagram(
            b'{"short_message":"m","_tags":"payment"}', ("1.2.3.4", 1)
        )
        assert event is not None
        assert event.as_json_dict()["tags"] == ["payment", "udp"]

    def test_large_array_index_becomes_an_object_key(self) -> None:
        listener = GelfListener(GelfInputConfig(nested_objects=True, max_array_index=8))
        event = listener.handle_datagram(
            b'{"short_message":"m","_a.9":1,"_b.8":2}', ("1.2.3.4", 1)
        )
        assert event is not None
        assert event.get("a") == {"9": 1}
        assert event.get("b") == [None] * 8 + [2]


class _BrokenSocket:
    def __init__(self, calls: List[float]) -> None:
        self._calls = calls

    def bind(self, address) -> None:
        self._calls.append(time.monotonic())
        raise OSError("bind failed")

    def close(self) -> None:
        pass


def test_fatal_errors_back_off_and_retry() -> None:
    calls: List[float] = []
    listener = GelfListener(
        GelfInputConfig(reconnect_backoff_seconds=0.1),
        socket_factory=lambda: _BrokenSocket(calls),
    )
    stop = threading.Event()
    thread = threading.Thread(target=listener.run, args=(queue.Queue(), stop), daemon=True)
    thread.start()

    deadline = time.monotonic() + 5.0
    while len(calls) < 3 and time.monotonic() < deadline:
        time.sleep(0.02)
    stop.set()
    thread.join(timeout=5.0)

    assert not thread.is_alive()
    assert len(calls) >= 3
    assert calls[1] - calls[0] >= 0.09


def test_stop_interrupts_backoff() -> None:
    calls: List[float] = []
    listener = GelfListener(
        GelfInputConfig(reconnect_backoff_seconds=60.0),
        socket_factory=lambda: _BrokenSocket(calls),
    )
    thread = threading.Thread(target=listener.run, args=(queue.Queue(),), daemon=True)
    thread.start()

    deadline = time.monotonic() + 5.0
    while not calls and time.monotonic() < deadline:
        time.sleep(0.02)
    started = time.monotonic()
    listener.stop()
    thread.join(timeout=5.0)

    assert not thread.is_alive()
    assert time.monotonic() - started < 5.0
    assert len(calls) == 1


def test_stop_during_receive_is_not_a_failure(caplog: pytest.LogCaptureFixture) -> None:
    listener = GelfListener(
        GelfInputConfig(host="127.0.0.1", port=0, receive_timeout_seconds=1.0)
    )
    thread = threading.Thread(target=listener.run, args=(queue.Queue(),), daemon=True)
    thread.start()
    assert listener.ready.wait(5.0)
    time.sleep(0.05)

    listener.stop()
    thread.join(timeout=5.0)

    assert not thread.is_alive()
    assert not any("listener died" in r.getMessage() for r in caplog.records)


def test_stop_before_run_with_external_token() -> None:
    listener = GelfListener(GelfInputConfig(host="127.0.0.1", port=0))
    listener.stop()

    stop = threading.Event()
    thread = threading.Thread(target=listener.run, args=(queue.Queue(), stop), daemon=True)
    thread.start()
    thread.join(timeout=5.0)

    assert not thread.is_alive()
    assert stop.is_set()
