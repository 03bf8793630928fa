"""
GELF datagram framing: chunk reassembly, decompression and the reverse.

A chunked datagram starts with the magic bytes 0x1e 0x0f followed by an
8 byte message id, a 1 byte sequence number and a 1 byte sequence count.
"""

from __future__ import annotations

import gzip
import json
import os
import struct
import time
import zlib
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

CHUNK_MAGIC = b"\x1e\x0f"
GZIP_MAGIC = b"\x1f\x8b"
ZLIB_MAGIC = 0x78
CHUNK_HEADER = struct.Struct(">2s8sBB")
MAX_CHUNKS = 128


class GelfDecodeError(ValueError):
    """Raised for datagrams that are not valid GELF framing."""


@dataclass
class _PendingMessage:
    count: int
    first_seen: float
    chunks: Dict[int, bytes] = field(default_factory=dict)

    def complete(self) -> bool:
        return len(self.chunks) == self.count

    def assemble(self) -> bytes:
        return b"".join(self.chunks[i] for i in range(self.count))


def decompress(data: bytes) -> bytes:
    """Return the JSON bytes carried by one complete GELF payload."""
    if not data:
        raise GelfDecodeError("empty payload")
    try:
        if data.startswith(GZIP_MAGIC):
            return gzip.decompress(data)
        if data[0] == ZLIB_MAGIC:
            return zlib.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise GelfDecodeError(f"decompression failed: {e}") from e
    if data.lstrip()[:1] in (b"{", b"["):
        return data
    raise GelfDecodeError(f"unknown GELF payload header: {data[:2]!r}")


class ChunkDecoder:
    """
    Reassembles chunked GELF messages.

    decode() returns the complete payload, or None while a chunked message
    is still missing parts. Partial messages older than timeout_seconds are
    dropped.
    """

    def __init__(
        self,
        timeout_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._timeout = timeout_seconds
        self._clock = clock
        self._pending: Dict[bytes, _PendingMessage] = {}

    @property
    def pending(self) -> int:
        return len(self._pending)

    def decode(self, data: bytes) -> Optional[bytes]:
        self._expire()
        if data.startswith(CHUNK_MAGIC):
            payload = self._add_chunk(data)
            if payload is None:
                return None
            return decompress(payload)
        return decompress(data)

    def _add_chunk(self, data: bytes) -> Optional[bytes]:
        if len(data) < CHUNK_HEADER.size:
            raise GelfDecodeError(f"truncated chunk header: {len(data)} bytes")

        _, message_id, seq_num, seq_count = CHUNK_HEADER.unpack_from(data)
        if not 0 < seq_count <= MAX_CHUNKS:
            raise GelfDecodeError(f"invalid chunk count: {seq_count}")
        if seq_num >= seq_count:
            raise GelfDecodeError(f"chunk {seq_num} out of range for count {seq_count}")

        pending = self._pending.get(message_id)
        if pending is None or pending.count != seq_count:
            pending = _PendingMessage(count=seq_count, first_seen=self._clock())
            self._pending[message_id] = pending
        pending.chunks[seq_num] = data[CHUNK_HEADER.size :]

        if not pending.complete():
            return None
        del self._pending[message_id]
        return pending.assemble()

    def _expire(self) -> None:
        if not self._pending:
            return
        cutoff = self._clock() - self._timeout
        for message_id in [
            k for k, p in self._pending.items() if p.first_seen < cutoff
        ]:
            del self._pending[message_id]


def encode_message(fields: Mapping[str, Any], compress: bool = True) -> bytes:
    payload = json.dumps(dict(fields), ensure_ascii=False, separators=(",", ":"))
    data = payload.encode("utf-8")
    return zlib.compress(data) if compress else data


def chunk_payload(
    payload: bytes, chunk_size: int = 1420, message_id: Optional[bytes] = None
) -> List[bytes]:
    """Split payload into GELF chunks of at most chunk_size bytes of body."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if len(payload) <= chunk_size:
        return [payload]

    parts = [payload[i : i + chunk_size] for i in range(0, len(payload), chunk_size)]
    if len(parts) > MAX_CHUNKS:
        raise ValueError(
            f"payload needs {len(parts)} chunks, GELF allows at most {MAX_CHUNKS}"
        )

    mid = message_id if message_id is not None else os.urandom(8)
    if len(mid) != 8:
        raise ValueError("message_id must be 8 bytes")
    return [
        CHUNK_HEADER.pack(CHUNK_MAGIC, mid, i, len(parts)) + part
        for i, part in enumerate(parts)
    ]
