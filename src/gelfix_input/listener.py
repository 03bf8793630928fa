"""
GELF UDP listener.

Receives datagrams, reassembles chunked messages, builds events, applies the
configured field passes and pushes the result onto an output queue.
"""

from __future__ import annotations

import queue
import socket
import threading
from typing import Any, Callable, Optional, Protocol, Tuple

from gelfix_common.logging import setup_logging
from gelfix_common.models import GelfInputConfig
from gelfix_input.builder import new_event
from gelfix_input.chunks import ChunkDecoder
from gelfix_input.decorate import Decorator
from gelfix_input.events import Event
from gelfix_input.transforms import (
    nested_objects,
    remap_gelf,
    strip_leading_underscore,
)

log = setup_logging("gelfix.listener")

SocketFactory = Callable[[], socket.socket]


class Decoder(Protocol):
    def decode(self, data: bytes) -> Optional[bytes]: ...


def _udp_socket() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_DGRAM)


class GelfListener:
    """Runs one GELF UDP input until its stop token is set."""

    def __init__(
        self,
        config: Optional[GelfInputConfig] = None,
        decoder: Optional[Decoder] = None,
        decorator: Optional[Decorator] = None,
        socket_factory: SocketFactory = _udp_socket,
    ) -> None:
        self.config = config or GelfInputConfig()
        self._decoder = decoder or ChunkDecoder(
            timeout_seconds=self.config.chunk_timeout_seconds
        )
        self._decorator = decorator or Decorator(
            type=self.config.type,
            tags=self.config.tags,
            add_field=self.config.add_field,
        )
        self._socket_factory = socket_factory
        self._sock: Optional[socket.socket] = None
        self._stop = threading.Event()
        self._stop_requested = False

        self.ready = threading.Event()
        self.bound_address: Optional[Tuple[str, int]] = None

    def run(
        self,
        output_queue: "queue.Queue[Event]",
        stop: Optional[threading.Event] = None,
    ) -> None:
        """Listen until stopped, rebinding after a backoff whenever the socket dies."""
        if stop is not None:
            self._stop = stop
            # a stop() issued before the swap only reached the old token
            if self._stop_requested:
                stop.set()

        while not self._stop.is_set():
            try:
                self._udp_listener(output_queue)
            except Exception:
                if self._stop.is_set():
                    break
                log.warning(
                    "gelf listener died address=%s:%s",
                    self.config.host,
                    self.config.port,
                    exc_info=True,
                )
                self._stop.wait(self.config.reconnect_backoff_seconds)
            finally:
                self._close_socket()

    def stop(self) -> None:
        """Request shutdown and close the socket to unblock a pending receive."""
        self._stop_requested = True
        self._stop.set()
        self._close_socket()

    def _close_socket(self) -> None:
        sock, self._sock = self._sock, None
        self.ready.clear()
        if sock is None:
            return
        try:
            sock.close()
        except OSError:
            # closing during shutdown
            pass

    def _udp_listener(self, output_queue: "queue.Queue[Event]") -> None:
        log.info("Starting gelf listener address=%s:%s", self.config.host, self.config.port)

        sock = self._socket_factory()
        self._sock = sock
        sock.bind((self.config.host, self.config.port))
        sock.settimeout(self.config.receive_timeout_seconds)
        self.bound_address = sock.getsockname()[:2]
        self.ready.set()

        while not self._stop.is_set():
            try:
                data, client = sock.recvfrom(self.config.max_datagram_size)
            except TimeoutError:
                continue
            except OSError:
                if self._stop.is_set():
                    return
                raise

            event = self.handle_datagram(data, client)
            if event is None:
                continue
            try:
                output_queue.put_nowait(event)
            except queue.Full:
                log.warning("output queue full, dropping event data=%r", event.data)

    def handle_datagram(self, data: bytes, client: Tuple[Any, ...]) -> Optional[Event]:
        """Decode, build and transform one datagram. Returns None when it is dropped."""
        try:
            payload = self._decoder.decode(data)
        except Exception:
            log.exception("Failed to decode a GELF datagram, skipping line=%r", data)
            return None

        # non-final chunk cached by the decoder
        if payload is None:
            return None

        try:
            event = new_event(payload, str(client[0]))
        except Exception:
            log.exception("Could not create event, skipping data=%r", payload)
            return None
        if event is None:
            return None

        try:
            self.process(event)
        except Exception:
            log.exception("Could not process event, skipping event=%r", event.data)
            return None
        return event

    def process(self, event: Event) -> None:
        if self.config.remap:
            remap_gelf(event)
        if self.config.strip_leading_underscore:
            strip_leading_underscore(event, self.config.reserved_fields)
        if self.config.nested_objects:
            nested_objects(event, self.config.max_array_index)
        self._decorator.decorate(event)
