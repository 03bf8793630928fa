from __future__ import annotations

import queue
import threading
import time
from typing import Any, Dict, List, Optional

from gelfix_common.logging import setup_logging
from gelfix_common.models import OutputConfig
from gelfix_input.destinations.base import Destination
from gelfix_input.destinations.file import FileDestination
from gelfix_input.destinations.http import HttpDestination
from gelfix_input.destinations.stdout import StdoutDestination
from gelfix_input.events import Event
from gelfix_input.retry import RetryPolicy

log = setup_logging("gelfix.forwarder")


def build_destination(cfg: OutputConfig) -> Destination:
    """Create a destination implementation from config."""
    opts: Dict[str, Any] = cfg.options or {}

    if cfg.type == "stdout":
        return StdoutDestination()

    if cfg.type == "file":
        return FileDestination(path=str(opts["path"]))

    if cfg.type == "http":
        return HttpDestination(
            url=str(opts["url"]),
            timeout_seconds=float(opts.get("timeout_seconds", 5.0)),
            headers=opts.get("headers"),
        )

    raise ValueError(f"unknown destination type: {cfg.type}")


class EventForwarder:
    """
    Drains the listener's output queue into a destination using a
    non-blocking tick loop.

    Events are batched by count and age. A batch that fails to send stays in
    flight and is retried with exponential backoff; nothing new is pulled
    from the queue meanwhile.
    """

    def __init__(
        self,
        events: "queue.Queue[Event]",
        destination: Destination,
        batch_max_events: int = 200,
        batch_max_seconds: float = 1.0,
        retry: Optional[RetryPolicy] = None,
    ) -> None:
        self._queue = events
        self._destination = destination
        self._batch_max_events = batch_max_events
        self._batch_max_seconds = batch_max_seconds
        self._retry = retry or RetryPolicy()

        self._buffer: List[Event] = []
        self._last_flush = time.monotonic()

        self._inflight: List[Event] = []
        self._send_attempt = 0
        self._next_send_at = 0.0

        self.metrics: Dict[str, int] = {
            "received": 0,
            "sent_batches": 0,
            "sent_events": 0,
            "send_failures": 0,
        }

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def tick(self) -> None:
        """Advance by one scheduling slice."""
        if self._inflight:
            if time.monotonic() >= self._next_send_at:
                self._try_send_inflight()
            return

        while len(self._buffer) < self._batch_max_events:
            try:
                self._buffer.append(self._queue.get_nowait())
            except queue.Empty:
                break
            self.metrics["received"] += 1

        self._flush_if_needed()

    def flush(self) -> None:
        """Send whatever is buffered now, ignoring batch limits."""
        if self._buffer and not self._inflight:
            self._start_batch()
        if self._inflight:
            self._try_send_inflight()

    def run(self, stop: threading.Event, idle_seconds: float = 0.05) -> None:
        while not stop.is_set():
            self.tick()
            stop.wait(idle_seconds)

        while True:
            try:
                self._buffer.append(self._queue.get_nowait())
            except queue.Empty:
                break
        self.flush()
        if self._inflight:
            log.warning("dropping unsent events on shutdown count=%s", len(self._inflight))
        self._destination.close()

    def _flush_if_needed(self) -> None:
        if not self._buffer:
            return

        age = time.monotonic() - self._last_flush
        if len(self._buffer) < self._batch_max_events and age < self._batch_max_seconds:
            return

        self._start_batch()
        self._try_send_inflight()

    def _start_batch(self) -> None:
        self._inflight = self._buffer
        self._buffer = []
        self._last_flush = time.monotonic()
        self._send_attempt = 0
        self._next_send_at = time.monotonic()

    def _try_send_inflight(self) -> None:
        try:
            self._destination.send(self._inflight)
        except Exception as e:
            self.metrics["send_failures"] += 1
            self._send_attempt += 1
            delay = self._retry.delay(self._send_attempt)
            self._next_send_at = time.monotonic() + delay
            log.warning(
                "send_failed attempt=%s retry_in=%.2fs error=%s: %s",
                self._send_attempt,
                delay,
                type(e).__name__,
                e,
            )
            return

        self.metrics["sent_batches"] += 1
        self.metrics["sent_events"] += len(self._inflight)
        self._inflight = []
        self._send_attempt = 0
        self._next_send_at = 0.0
