"""Length-prefixed framing of the chat TCP protocol.

Each frame is a 2-byte message id and a 2-byte body length, both signed
big-endian, followed by the body.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from imserver.constants import HEAD_TOTAL_LEN, MAX_LENGTH

_HEADER = struct.Struct("!hh")
_SHORT_MIN = -(1 << 15)
_SHORT_MAX = (1 << 15) - 1


class FrameError(ValueError):
    """A frame header or body is malformed or out of range."""


@dataclass(frozen=True)
class RecvNode:
    """A complete message received from a peer."""

    msg_id: int
    data: bytes

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


def encode_message(msg_id: int, payload: bytes | str) -> bytes:
    """Build a frame with header and body for sending."""
    body = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
    if not _SHORT_MIN <= msg_id <= _SHORT_MAX:
        raise FrameError(f"message id {msg_id} does not fit in the header")
    if len(body) > _SHORT_MAX:
        raise FrameError(f"message body of {len(body)} bytes is too long")
    return _HEADER.pack(msg_id, len(body)) + body


def decode_header(header: bytes) -> tuple[int, int]:
    """Return (msg_id, body_length) from a frame header, validating both."""
    if len(header) != HEAD_TOTAL_LEN:
        raise FrameError(
            f"header must be {HEAD_TOTAL_LEN} bytes, got {len(header)}"
        )
    msg_id, length = _HEADER.unpack(header)
    if msg_id > MAX_LENGTH:
        raise FrameError(f"invalid msg_id {msg_id}")
    if length > MAX_LENGTH or length < 0:
        raise FrameError(f"invalid data length {length}")
    return msg_id, length