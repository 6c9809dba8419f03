#!/usr/bin/env python3
from types import SimpleNamespace

import pytest
import serial

from telemdash import serial_backend
from telemdash.frame import FRAME_SIZE, FrameDecodeError, decode_frame
from telemdash.serial_backend import DemoSerialChannel, ReadTimeout, SerialChannel, detect_ports


def _loop_channel() -> SerialChannel:
    # loop:// refuses writes that would take longer than write_timeout at the baud rate
    return SerialChannel(port="loop://", baudrate=115200, timeout=0.05)


class FlakyPort:
    """Fails the first `failures` writes, then accepts everything."""

    def __init__(self, failures: int):
        self.failures = failures
        self.written: list[bytes] = []
        self.attempts = 0
        self.is_open = True
        self.input_resets = 0

    def write(self, data):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise serial.SerialTimeoutException("Write timeout")
        self.written.append(bytes(data))
        return len(data)

    def flush(self):
        pass

    def reset_input_buffer(self):
        self.input_resets += 1

    def close(self):
        self.is_open = False


# ---------------------------------------------------------------------------
# SerialChannel
# ---------------------------------------------------------------------------
def test_read_exact_returns_requested_bytes():
    with _loop_channel() as channel:
        channel.write_best_effort(b"0123456789abc")
        assert channel.read_exact(FRAME_SIZE) == b"0123456789abc"


def test_read_timeout_when_nothing_arrives():
    with _loop_channel() as channel:
        with pytest.raises(ReadTimeout):
            channel.read_exact(FRAME_SIZE)


def test_partial_read_is_kept_for_next_call():
    with _loop_channel() as channel:
        channel.write_best_effort(b"01234")
        with pytest.raises(ReadTimeout):
            channel.read_exact(FRAME_SIZE)
        channel.write_best_effort(b"56789abc")
        assert channel.read_exact(FRAME_SIZE) == b"0123456789abc"


def test_read_timeout_is_a_serial_exception():
    assert issubclass(ReadTimeout, serial.SerialException)


def test_read_on_closed_channel_raises():
    channel = _loop_channel()
    with pytest.raises(serial.SerialException):
        channel.read_exact(1)


def test_close_is_idempotent():
    channel = _loop_channel()
    channel.open()
    assert channel.is_open
    channel.close()
    channel.close()
    assert not channel.is_open


def test_open_uses_8n1_without_flow_control(monkeypatch):
    seen = {}

    def fake_serial_for_url(url, **kwargs):
        seen.update(kwargs, url=url)
        return FlakyPort(0)

    monkeypatch.setattr(serial_backend.serial, "serial_for_url", fake_serial_for_url)
    channel = SerialChannel(port="/dev/ttyUSB0")
    channel.open()
    assert seen["url"] == "/dev/ttyUSB0"
    assert seen["baudrate"] == 9600
    assert seen["bytesize"] == serial.EIGHTBITS
    assert seen["parity"] == serial.PARITY_NONE
    assert seen["stopbits"] == serial.STOPBITS_ONE
    assert not seen["xonxoff"] and not seen["rtscts"] and not seen["dsrdtr"]
    assert seen["timeout"] == 0.001
    assert seen["write_timeout"] == 0.5
    assert channel.label == "/dev/ttyUSB0 @ 9600"


def test_open_flushes_input_and_with_block_reuses_handle(monkeypatch):
    opened = []

    def fake_serial_for_url(url, **kwargs):
        opened.append(FlakyPort(0))
        return opened[-1]

    monkeypatch.setattr(serial_backend.serial, "serial_for_url", fake_serial_for_url)
    channel = SerialChannel(port="/dev/ttyUSB0")
    channel.open()
    with channel:
        assert len(opened) == 1
        assert opened[0].input_resets == 1
    assert not opened[0].is_open


def test_write_retries_until_success(monkeypatch):
    port = FlakyPort(failures=3)
    monkeypatch.setattr(serial_backend.serial, "serial_for_url", lambda url, **kw: port)

    channel = SerialChannel(port="/dev/ttyUSB0", write_backoff=0.001)
    channel.open()
    channel.write_best_effort(b"led on")

    assert port.written == [b"led on"]
    assert port.attempts == 4


def test_write_on_closed_channel_raises_instead_of_retrying():
    channel = _loop_channel()
    with pytest.raises(serial.SerialException):
        channel.write_best_effort(b"x")


# ---------------------------------------------------------------------------
# DemoSerialChannel
# ---------------------------------------------------------------------------
def test_demo_channel_yields_a_frame_then_waits():
    with DemoSerialChannel(interval=60.0) as channel:
        packet = decode_frame(channel.read_exact(FRAME_SIZE))
        assert 0 <= packet.idle_counter <= 64_000_000
        with pytest.raises(ReadTimeout):
            channel.read_exact(FRAME_SIZE)


def test_demo_channel_corrupts_frames_on_schedule():
    with DemoSerialChannel(interval=60.0, corrupt_every=1) as channel:
        with pytest.raises(FrameDecodeError):
            decode_frame(channel.read_exact(FRAME_SIZE))


def test_demo_channel_records_writes():
    with DemoSerialChannel() as channel:
        channel.write_best_effort(b"hello")
    assert channel.sent == [b"hello"]
    assert not channel.is_open


def test_demo_channel_reopen_inside_with_block_keeps_schedule():
    channel = DemoSerialChannel(interval=60.0)
    channel.open()
    channel.read_exact(FRAME_SIZE)
    with channel:
        with pytest.raises(ReadTimeout):
            channel.read_exact(FRAME_SIZE)
    assert not channel.is_open


def test_demo_channel_requires_open():
    with pytest.raises(serial.SerialException):
        DemoSerialChannel().read_exact(FRAME_SIZE)


# ---------------------------------------------------------------------------
# Port discovery
# ---------------------------------------------------------------------------
def test_detect_ports_filters_by_vid_pid(monkeypatch):
    ports = [
        SimpleNamespace(device="/dev/ttyUSB0", vid=0x2341, pid=0x0043),
        SimpleNamespace(device="/dev/ttyUSB1", vid=0x1A86, pid=0x7523),
        SimpleNamespace(device="/dev/ttyS0", vid=None, pid=None),
    ]
    monkeypatch.setattr(serial_backend.list_ports, "comports", lambda: ports)

    assert detect_ports() == ["/dev/ttyUSB0", "/dev/ttyUSB1", "/dev/ttyS0"]
    assert detect_ports(vid=0x2341) == ["/dev/ttyUSB0"]
    assert detect_ports(vid=0x1A86, pid=0x7523) == ["/dev/ttyUSB1"]
    assert detect_ports(pid=0xFFFF) == []
