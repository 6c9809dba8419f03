"""
Raw keyboard input.

Keys are plain strings: printable characters stand for themselves, Enter is
"\\n", and everything else gets a curses-style name such as "KEY_BACKSPACE"
or "KEY_UP". Control characters are reported as "^A" .. "^Z".
"""

from __future__ import annotations

import logging
import os
import select
import sys
from typing import Optional

logger = logging.getLogger(__name__)

ENTER = "\n"
KEY_BACKSPACE = "KEY_BACKSPACE"
KEY_ESCAPE = "KEY_ESCAPE"
KEY_UNKNOWN = "KEY_UNKNOWN"

# Seconds to wait after ESC before treating it as a lone Escape key.
ESC_DELAY = 0.025

_CSI_KEYS = {
    "A": "KEY_UP",
    "B": "KEY_DOWN",
    "C": "KEY_RIGHT",
    "D": "KEY_LEFT",
    "H": "KEY_HOME",
    "F": "KEY_END",
    "1~": "KEY_HOME",
    "2~": "KEY_INSERT",
    "3~": "KEY_DELETE",
    "4~": "KEY_END",
    "5~": "KEY_PPAGE",
    "6~": "KEY_NPAGE",
    "P": "KEY_F1",
    "Q": "KEY_F2",
    "R": "KEY_F3",
    "S": "KEY_F4",
}


def is_character(key: str) -> bool:
    """True for keys that insert text (one printable character)."""
    return len(key) == 1 and key.isprintable()


class TerminalKeyReader:
    """
    Blocking key source over a terminal file descriptor.

    The terminal must already be in cbreak (or raw) mode; the curses surface
    takes care of that. poll_key() raises EOFError once the descriptor is
    closed.
    """

    def __init__(self, fd: Optional[int] = None):
        self.fd = sys.stdin.fileno() if fd is None else fd

    def poll_key(self) -> str:
        first = self._read_byte()
        if first == 0x1B:
            return self._read_escape()
        if first in (0x0A, 0x0D):
            return ENTER
        if first in (0x7F, 0x08):
            return KEY_BACKSPACE
        if first == 0x09:
            return "\t"
        if first < 0x20:
            return f"^{chr(first + 0x40)}"
        if first < 0x80:
            return chr(first)
        return self._read_utf8(first)

    # -- internals -----------------------------------------------------------
    def _read_byte(self) -> int:
        data = os.read(self.fd, 1)
        if not data:
            raise EOFError("terminal input closed")
        return data[0]

    def _ready(self) -> bool:
        ready, _, _ = select.select([self.fd], [], [], ESC_DELAY)
        return bool(ready)

    def _read_escape(self) -> str:
        if not self._ready():
            return KEY_ESCAPE
        second = self._read_byte()
        if second not in (ord("["), ord("O")):
            return f"M-{chr(second)}"
        body = ""
        while self._ready():
            ch = chr(self._read_byte())
            body += ch
            # CSI sequences end with a byte in the 0x40..0x7E range
            if "@" <= ch <= "~":
                break
        return _CSI_KEYS.get(body, KEY_UNKNOWN)

    def _read_utf8(self, lead: int) -> str:
        if 0xC0 <= lead < 0xE0:
            extra = 1
        elif 0xE0 <= lead < 0xF0:
            extra = 2
        elif 0xF0 <= lead < 0xF8:
            extra = 3
        else:
            return KEY_UNKNOWN
        data = bytes([lead]) + bytes(self._read_byte() for _ in range(extra))
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug(f"Dropping undecodable input {data!r}")
            return KEY_UNKNOWN
