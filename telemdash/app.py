"""
telemdash - Dashboard
======================

Application state and the render loop that drives it. Each iteration:

  1. reads one telemetry frame from the channel (bounded by its read timeout),
  2. draws the current state,
  3. blocks for the next keyboard or tick event and applies it.

Only the thread calling Dashboard.run() touches the state or the channel.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import serial  # pyserial

from telemdash.config import Config
from telemdash.events import Event, InputEvent
from telemdash.frame import FRAME_SIZE, FrameDecodeError, TelemetryPacket, decode_frame
from telemdash.keys import ENTER, KEY_BACKSPACE, is_character
from telemdash.metrics import cpu_percent
from telemdash.serial_backend import ReadTimeout

logger = logging.getLogger(__name__)


class Mode(enum.Enum):
    RUNNING = "running"
    EXITING = "exiting"


class Channel(Protocol):
    label: str

    def read_exact(self, n: int) -> bytes: ...

    def write_best_effort(self, data: bytes) -> None: ...


class EventSource(Protocol):
    def next(self) -> Event: ...


class Surface(Protocol):
    def draw(self, view: "DashboardView") -> None: ...


@dataclass(frozen=True)
class DashboardView:
    """Everything the display surface needs for one frame."""
    cpu: float
    x: float
    y: float
    has_telemetry: bool
    input_text: str
    messages: tuple[str, ...]
    port_label: str
    frames_ok: int
    frames_bad: int


@dataclass
class AppState:
    input: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    packet: Optional[TelemetryPacket] = None
    cpu: float = 0.0
    frames_ok: int = 0
    frames_bad: int = 0
    mode: Mode = Mode.RUNNING

    # -- input buffer --------------------------------------------------------
    def insert(self, ch: str) -> None:
        self.input.append(ch)

    def backspace(self) -> None:
        if self.input:
            self.input.pop()

    def drain_input(self) -> str:
        line = "".join(self.input)
        self.input.clear()
        return line

    # -- telemetry -----------------------------------------------------------
    def update_telemetry(self, packet: TelemetryPacket) -> None:
        self.packet = packet
        self.cpu = cpu_percent(packet.idle_counter)
        self.frames_ok += 1

    def view(self, port_label: str = "") -> DashboardView:
        packet = self.packet
        return DashboardView(
            cpu=self.cpu,
            x=packet.x if packet else 0.0,
            y=packet.y if packet else 0.0,
            has_telemetry=packet is not None,
            input_text="".join(self.input),
            messages=tuple(self.messages),
            port_label=port_label,
            frames_ok=self.frames_ok,
            frames_bad=self.frames_bad,
        )


class Dashboard:
    """Render loop tying the channel, the event source and the display together."""

    def __init__(self, channel: Channel, events: EventSource, surface: Surface, config: Config):
        self.channel = channel
        self.events = events
        self.surface = surface
        self.config = config
        self.state = AppState()

    @property
    def running(self) -> bool:
        return self.state.mode is Mode.RUNNING

    def poll_telemetry(self) -> bool:
        """Try to read one frame. Returns True if the displayed values changed."""
        try:
            block = self.channel.read_exact(FRAME_SIZE)
        except ReadTimeout:
            return False
        except serial.SerialException as exc:
            logger.warning(f"Read from {self.channel.label} failed: {exc}")
            return False
        try:
            packet = decode_frame(block)
        except FrameDecodeError as exc:
            self.state.frames_bad += 1
            logger.debug(f"Dropping frame {block.hex()}: {exc}")
            return False
        self.state.update_telemetry(packet)
        return True

    def submit(self) -> str:
        line = self.state.drain_input()
        self.channel.write_best_effort(line.encode("utf-8"))
        self.state.messages.append(line)
        logger.info(f"Sent {line!r}")
        return line

    def handle_event(self, event: Event) -> None:
        if not isinstance(event, InputEvent):
            # Ticks only force a redraw.
            return
        key = event.key
        if key == self.config.exit_key:
            logger.info("Exit key pressed")
            self.state.mode = Mode.EXITING
        elif key == ENTER:
            self.submit()
        elif key == KEY_BACKSPACE:
            self.state.backspace()
        elif is_character(key):
            self.state.insert(key)

    def run(self) -> None:
        """Loop until the exit key. EventSourceClosed propagates to the caller."""
        logger.info(f"Dashboard running on {self.channel.label}")
        while self.running:
            self.poll_telemetry()
            self.surface.draw(self.state.view(self.channel.label))
            self.handle_event(self.events.next())
        logger.info("Dashboard stopped")
