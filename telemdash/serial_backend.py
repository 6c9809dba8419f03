"""
telemdash - PySerial Backend Module
====================================

Provides the serial channel to the device and a demo channel that fakes a
device so the dashboard can run without hardware.

USAGE WITH REAL HARDWARE
------------------------
    from telemdash.serial_backend import SerialChannel

    with SerialChannel(port="/dev/ttyUSB0", baudrate=9600) as channel:
        try:
            block = channel.read_exact(13)   # waits at most `timeout`
        except ReadTimeout:
            block = None                     # nothing new this tick
        channel.write_best_effort(b"led on")

USAGE WITH DEMO DATA
--------------------
    from telemdash.serial_backend import DemoSerialChannel

    with DemoSerialChannel(interval=0.25) as channel:
        block = channel.read_exact(13)

Both channels raise ReadTimeout from read_exact() when fewer than the
requested bytes are available before the read timeout expires.

Frames carry no delimiter on the wire, so alignment is taken from the first
byte read after open(). The input buffer is flushed on open to make that a
frame start; a device that is mid-frame at that moment shifts every later
block, and such blocks may still decode as valid telemetry.
"""

from __future__ import annotations

import logging
import math
import random
import time
from typing import Iterable, Optional

import serial  # pyserial
from serial.tools import list_ports

from telemdash.frame import SENTINEL, TelemetryPacket, encode_frame
from telemdash.metrics import IDLE_CEILING

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 9600
DEFAULT_TIMEOUT = 0.001
WRITE_BACKOFF = 0.01
# Must exceed the time a typed command takes to drain at the line rate.
WRITE_TIMEOUT = 0.5


class ReadTimeout(serial.SerialException):
    """Fewer bytes than requested arrived before the read timeout."""


# ---------------------------------------------------------------------------
# Real serial channel
# ---------------------------------------------------------------------------
class SerialChannel:
    """Thin wrapper around pyserial with a fixed 8N1 line discipline."""

    def __init__(
        self,
        port: str = "/dev/ttyUSB0",
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float = DEFAULT_TIMEOUT,
        write_backoff: float = WRITE_BACKOFF,
        write_timeout: float = WRITE_TIMEOUT,
    ):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.write_backoff = write_backoff
        self.write_timeout = write_timeout
        self._ser: Optional[serial.Serial] = None
        self._pending = bytearray()

    # -- lifecycle -----------------------------------------------------------
    def open(self) -> None:
        """Open the port. Raises serial.SerialException if it cannot be opened."""
        if self._ser is not None:
            return
        self._ser = serial.serial_for_url(
            self.port,
            baudrate=self.baudrate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
            timeout=self.timeout,
            write_timeout=self.write_timeout,
        )
        # Drop bytes queued before the port was opened.
        self._ser.reset_input_buffer()
        self._pending.clear()
        logger.info(f"Opened {self.label}")

    def close(self) -> None:
        if self._ser is None:
            return
        try:
            if self._ser.is_open:
                self._ser.close()
        finally:
            self._ser = None
            self._pending.clear()
            logger.info(f"Closed {self.label}")

    def __enter__(self) -> "SerialChannel":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._ser is not None and self._ser.is_open

    @property
    def label(self) -> str:
        return f"{self.port} @ {self.baudrate}"

    # -- I/O -----------------------------------------------------------------
    def read_exact(self, n: int) -> bytes:
        """
        Return exactly *n* bytes or raise ReadTimeout.

        Bytes that arrived before a timeout are held back and used by the
        next call, so a frame split across two reads keeps its alignment.
        """
        ser = self._require_open()
        missing = n - len(self._pending)
        if missing > 0:
            self._pending += ser.read(missing)
        if len(self._pending) < n:
            raise ReadTimeout(f"read {len(self._pending)} of {n} bytes")
        data = bytes(self._pending[:n])
        del self._pending[:n]
        return data

    def write_best_effort(self, data: bytes) -> None:
        """
        Write *data*, retrying after `write_backoff` seconds until it succeeds.

        There is no retry limit: a stuck link blocks the caller until the
        link recovers.
        """
        ser = self._require_open()
        attempt = 0
        while True:
            try:
                ser.write(data)
                ser.flush()
                return
            except serial.SerialException as exc:
                attempt += 1
                logger.warning(f"Write to {self.port} failed (attempt {attempt}): {exc}")
                time.sleep(self.write_backoff)

    def _require_open(self) -> serial.Serial:
        if self._ser is None:
            raise serial.SerialException(f"{self.port} is not open")
        return self._ser


# ---------------------------------------------------------------------------
# Demo channel  (no hardware required)
# ---------------------------------------------------------------------------
class DemoSerialChannel:
    """
    Drop-in replacement for SerialChannel that behaves like a device streaming
    one telemetry frame every `interval` seconds. Every `corrupt_every`-th
    frame is damaged on purpose so the decode-failure path gets exercised.
    """

    label = "demo"

    def __init__(self, interval: float = 0.25, corrupt_every: int = 40):
        self.interval = interval
        self.corrupt_every = corrupt_every
        self.sent: list[bytes] = []
        self._open = False
        self._sample = 0
        self._next_due = 0.0
        self._stream = bytearray()

    def open(self) -> None:
        if self._open:
            return
        self._open = True
        self._next_due = time.monotonic()
        logger.info("Demo channel opened")

    def close(self) -> None:
        if self._open:
            self._open = False
            logger.info("Demo channel closed")

    def __enter__(self) -> "DemoSerialChannel":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._open

    def read_exact(self, n: int) -> bytes:
        if not self._open:
            raise serial.SerialException("demo channel is not open")
        now = time.monotonic()
        if now >= self._next_due:
            self._next_due = now + self.interval
            self._stream += self._next_block()
        if len(self._stream) < n:
            raise ReadTimeout(f"read {len(self._stream)} of {n} bytes")
        data = bytes(self._stream[:n])
        del self._stream[:n]
        return data

    def write_best_effort(self, data: bytes) -> None:
        if not self._open:
            raise serial.SerialException("demo channel is not open")
        self.sent.append(bytes(data))
        logger.info(f"Demo device received {data!r}")

    def _next_block(self) -> bytes:
        self._sample += 1
        t = self._sample * 0.1
        load = 0.5 + 0.4 * math.sin(t / 3.0) + random.uniform(-0.05, 0.05)
        load = min(1.0, max(0.0, load))
        packet = TelemetryPacket(
            idle_counter=int(IDLE_CEILING * (1.0 - load)),
            x=50.0 + 40.0 * math.cos(t),
            y=50.0 + 40.0 * math.sin(t),
        )
        block = bytearray(encode_frame(packet))
        if self.corrupt_every and self._sample % self.corrupt_every == 0:
            block[0] = SENTINEL
        return bytes(block)


# ---------------------------------------------------------------------------
# Port discovery
# ---------------------------------------------------------------------------
def _matches_vid_pid(port_info, vid: Optional[int], pid: Optional[int]) -> bool:
    if vid is None and pid is None:
        return True
    if port_info.vid is None or port_info.pid is None:
        return False
    if vid is not None and port_info.vid != vid:
        return False
    if pid is not None and port_info.pid != pid:
        return False
    return True


def _iter_matching_ports(vid: Optional[int], pid: Optional[int]) -> Iterable:
    for port in list_ports.comports():
        if _matches_vid_pid(port, vid, pid):
            yield port


def detect_ports(vid: Optional[int] = None, pid: Optional[int] = None) -> list[str]:
    """Return the device names of serial ports, optionally filtered by USB VID/PID."""
    return [p.device for p in _iter_matching_ports(vid, pid)]
