"""
telemdash - Telemetry Frame Codec
==================================

Each telemetry sample travels as one fixed 13-byte block: a 12-byte payload
run through Consistent Overhead Byte Stuffing (COBS) so the sentinel byte
``0x00`` never appears inside it.

Payload layout (little-endian):

    offset  size  field
    ------  ----  ------------
    0       4     idle_counter  (uint32)
    4       4     x             (float32)
    8       4     y             (float32)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

SENTINEL = 0x00
PAYLOAD_SIZE = 12
FRAME_SIZE = PAYLOAD_SIZE + 1

_PAYLOAD = struct.Struct("<Iff")


class FrameDecodeError(ValueError):
    """Raised when a block does not hold a well-formed telemetry frame."""


@dataclass(frozen=True)
class TelemetryPacket:
    idle_counter: int
    x: float
    y: float


# ---------------------------------------------------------------------------
# COBS
# ---------------------------------------------------------------------------
def cobs_encode(data: bytes) -> bytes:
    """Stuff *data* so the result holds no sentinel byte (no delimiter added)."""
    out = bytearray()
    block = bytearray()
    for byte in data:
        if byte == SENTINEL:
            out.append(len(block) + 1)
            out += block
            block.clear()
            continue
        block.append(byte)
        if len(block) == 0xFE:
            out.append(0xFF)
            out += block
            block.clear()
    out.append(len(block) + 1)
    out += block
    return bytes(out)


def cobs_decode(data: bytes) -> bytes:
    out = bytearray()
    i = 0
    n = len(data)
    while i < n:
        code = data[i]
        if code == SENTINEL:
            raise FrameDecodeError(f"sentinel at offset {i}")
        i += 1
        for _ in range(code - 1):
            if i >= n:
                raise FrameDecodeError("code byte overruns block")
            if data[i] == SENTINEL:
                raise FrameDecodeError(f"sentinel at offset {i}")
            out.append(data[i])
            i += 1
        if code < 0xFF and i < n:
            out.append(SENTINEL)
    return bytes(out)


# ---------------------------------------------------------------------------
# Telemetry frames
# ---------------------------------------------------------------------------
def decode_frame(block: bytes) -> TelemetryPacket:
    """
    Decode one raw block read from the link.

    Raises FrameDecodeError if the block has the wrong size, if its stuffing
    is inconsistent, or if it does not unstuff to exactly PAYLOAD_SIZE bytes.
    """
    if len(block) != FRAME_SIZE:
        raise FrameDecodeError(f"expected {FRAME_SIZE} bytes, got {len(block)}")
    payload = cobs_decode(bytes(block))
    if len(payload) != PAYLOAD_SIZE:
        raise FrameDecodeError(
            f"payload is {len(payload)} bytes, expected {PAYLOAD_SIZE}"
        )
    idle_counter, x, y = _PAYLOAD.unpack(payload)
    return TelemetryPacket(idle_counter=idle_counter, x=x, y=y)


def encode_frame(packet: TelemetryPacket) -> bytes:
    """Inverse of decode_frame; used by the demo device."""
    payload = _PAYLOAD.pack(packet.idle_counter, packet.x, packet.y)
    return cobs_encode(payload)
