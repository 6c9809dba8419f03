"""
telemdash - Event Source
=========================

Merges keyboard input and a periodic tick into one queue read by the render
loop:

    events = Events.with_config(Config(), TerminalKeyReader())
    while True:
        event = events.next()        # blocks; raises EventSourceClosed
        if isinstance(event, InputEvent) and event.key == "q":
            break

Each producer runs on its own daemon thread and is never joined. Events from
one producer arrive in the order that producer emitted them; there is no
ordering between the two producers beyond arrival at the queue.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Protocol, Union

from telemdash.config import Config

logger = logging.getLogger(__name__)


class KeySource(Protocol):
    def poll_key(self) -> str: ...


@dataclass(frozen=True)
class InputEvent:
    key: str


@dataclass(frozen=True)
class TickEvent:
    pass


Event = Union[InputEvent, TickEvent]


class EventSourceClosed(RuntimeError):
    """Every producer has stopped and no events are left."""


# Enqueued by a producer as its last item.
_CLOSED = object()


class Events:
    """Single-consumer event queue fed by background producer threads."""

    def __init__(self, config: Config):
        self.config = config
        self._queue: "queue.Queue[object]" = queue.Queue()
        # Only touched by the consumer thread (start_* and next()).
        self._live_producers = 0

    @classmethod
    def with_config(cls, config: Config, key_source: KeySource) -> "Events":
        events = cls(config)
        events.start_input(key_source)
        events.start_ticker()
        return events

    # -- producers -----------------------------------------------------------
    def start_input(self, key_source: KeySource) -> None:
        self._spawn("input", self._input_loop, key_source)

    def start_ticker(self) -> None:
        self._spawn("ticker", self._tick_loop)

    def _spawn(self, name: str, target, *args) -> None:
        self._live_producers += 1
        thread = threading.Thread(
            target=self._run_producer,
            args=(target, *args),
            name=f"telemdash-{name}",
            daemon=True,
        )
        thread.start()

    def _run_producer(self, target, *args) -> None:
        try:
            target(*args)
        finally:
            self._queue.put(_CLOSED)

    def _input_loop(self, key_source: KeySource) -> None:
        exit_key = self.config.exit_key
        while True:
            try:
                key = key_source.poll_key()
            except (EOFError, OSError) as exc:
                logger.warning(f"Input producer stopped: {exc}")
                return
            self._queue.put(InputEvent(key))
            if key == exit_key:
                logger.debug("Exit key seen, input producer done")
                return

    def _tick_loop(self) -> None:
        interval = self.config.tick_interval
        while True:
            time.sleep(interval)
            self._queue.put(TickEvent())

    # -- consumer ------------------------------------------------------------
    def next(self) -> Event:
        """Block until the next event; raise EventSourceClosed once all producers are gone."""
        while True:
            if self._live_producers == 0 and self._queue.empty():
                raise EventSourceClosed("all event producers have stopped")
            item = self._queue.get()
            if item is _CLOSED:
                self._live_producers -= 1
                continue
            return item
