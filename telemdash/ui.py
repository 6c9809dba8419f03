"""curses display surface for the dashboard."""

from __future__ import annotations

import curses
import logging
import sys
from collections import deque
from typing import Optional

from telemdash import colors
from telemdash.app import DashboardView
from telemdash.keys import TerminalKeyReader

logger = logging.getLogger(__name__)

MAX_TRAIL_POINTS = 64
# Output panel spans 0..100 on both axes.
PLOT_BOUNDS = (0.0, 100.0)


def _safe_addstr(win, y: int, x: int, s: str, attr: int = 0) -> None:
    try:
        max_y, max_x = win.getmaxyx()
        if y < 0 or y >= max_y or x >= max_x:
            return
        if x < 0:
            s = s[-x:]
            x = 0
        s = s[: max(0, max_x - x)]
        if not s:
            return
        win.addstr(y, x, s, attr)
    except curses.error:
        return


def _draw_box(win, y: int, x: int, h: int, w: int, title: str = "", attr: int = 0) -> None:
    if h < 2 or w < 2:
        return
    _safe_addstr(win, y, x, "+" + ("-" * (w - 2)) + "+")
    for row in range(y + 1, y + h - 1):
        _safe_addstr(win, row, x, "|")
        _safe_addstr(win, row, x + w - 1, "|")
    _safe_addstr(win, y + h - 1, x, "+" + ("-" * (w - 2)) + "+")
    if title and w >= 6:
        t = f" {title} "[: max(0, w - 4)]
        _safe_addstr(win, y, x + 2, t, attr)


def _scale(value: float, span: int) -> Optional[int]:
    lo, hi = PLOT_BOUNDS
    if not lo <= value <= hi or span <= 0:
        return None
    return min(span - 1, int((value - lo) / (hi - lo) * span))


class CursesSurface:
    """
    Owns the terminal for the lifetime of a `with` block.

    The terminal is restored on exit, and also when entering fails half-way.
    """

    def __init__(self):
        self._stdscr = None
        self._colors: dict[str, int] = {}
        self._trail: deque[tuple[float, float]] = deque(maxlen=MAX_TRAIL_POINTS)

    def __enter__(self) -> "CursesSurface":
        self._stdscr = curses.initscr()
        try:
            curses.noecho()
            curses.cbreak()
            self._colors = colors.init_colors()
            try:
                curses.curs_set(1)
            except curses.error:
                pass  # terminal has no cursor visibility control
            self._stdscr.clear()
        except curses.error:
            self._restore()
            raise
        logger.info("Terminal display initialised")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._restore()

    def _restore(self) -> None:
        if self._stdscr is None:
            return
        try:
            curses.nocbreak()
            curses.echo()
        finally:
            curses.endwin()
            self._stdscr = None
            logger.info("Terminal display restored")

    def key_source(self) -> TerminalKeyReader:
        return TerminalKeyReader(sys.stdin.fileno())

    def _attr(self, role: str) -> int:
        return self._colors.get(role, 0)

    # -- drawing -------------------------------------------------------------
    def draw(self, view: DashboardView) -> None:
        win = self._stdscr
        if win is None:
            raise RuntimeError("draw() called outside the surface context")
        if view.has_telemetry:
            self._trail.append((view.x, view.y))

        win.erase()
        max_y, max_x = win.getmaxyx()
        inner_h, inner_w = max_y - 2, max_x - 2
        status_w = inner_w * 80 // 100
        side_w = inner_w - status_w

        gauge_h = max(3, inner_h // 10)
        input_h = max(3, inner_h // 10)
        plot_h = max(0, inner_h - gauge_h - input_h)

        y0, x0 = 1, 1
        self._draw_gauge(win, y0, x0, gauge_h, status_w, view)
        self._draw_plot(win, y0 + gauge_h, x0, plot_h, status_w)
        input_y = y0 + gauge_h + plot_h
        self._draw_input(win, input_y, x0, input_h, status_w, view)
        self._draw_messages(win, y0, x0 + status_w, inner_h, side_w, view)

        # Put the cursor back inside the input box.
        cursor_x = min(x0 + 1 + len(view.input_text), x0 + status_w - 2)
        try:
            win.move(input_y + 1, max(0, cursor_x))
        except curses.error:
            pass
        win.refresh()

    def _draw_gauge(self, win, y: int, x: int, h: int, w: int, view: DashboardView) -> None:
        _draw_box(win, y, x, h, w, "CPU", self._attr("TITLE"))
        bar_w = w - 2
        if bar_w <= 0:
            return
        filled = int(bar_w * view.cpu / 100.0)
        role = "GAUGE_HIGH" if view.cpu >= colors.HIGH_LOAD_PERCENT else "GAUGE_FILL"
        label = f"{view.cpu:5.1f}%" if view.has_telemetry else "  --  "
        bar = label.center(bar_w)
        _safe_addstr(win, y + 1, x + 1, bar[:filled], self._attr(role))
        _safe_addstr(win, y + 1, x + 1 + filled, bar[filled:], self._attr("GAUGE"))

    def _draw_plot(self, win, y: int, x: int, h: int, w: int) -> None:
        _draw_box(win, y, x, h, w, "Output", self._attr("TITLE"))
        rows, cols = h - 2, w - 2
        for px, py in self._trail:
            col = _scale(px, cols)
            row = _scale(py, rows)
            if col is None or row is None:
                continue
            # y grows upwards on the plot, downwards on screen
            _safe_addstr(win, y + h - 2 - row, x + 1 + col, "*", self._attr("POINT"))

    def _draw_input(self, win, y: int, x: int, h: int, w: int, view: DashboardView) -> None:
        _draw_box(win, y, x, h, w, "Input", self._attr("TITLE"))
        visible = view.input_text[-max(0, w - 3):]
        _safe_addstr(win, y + 1, x + 1, visible, self._attr("INPUT"))

    def _draw_messages(self, win, y: int, x: int, h: int, w: int, view: DashboardView) -> None:
        _draw_box(win, y, x, h, w, "Serial", self._attr("TITLE"))
        _safe_addstr(win, y + 1, x + 1, view.port_label[: w - 2])
        stats = f"ok {view.frames_ok} bad {view.frames_bad}"
        stats_attr = self._attr("MESSAGE") if view.has_telemetry else self._attr("STALE")
        _safe_addstr(win, y + 2, x + 1, stats[: w - 2], stats_attr)
        rows = h - 5
        if rows <= 0:
            return
        for i, line in enumerate(view.messages[-rows:]):
            _safe_addstr(win, y + 4 + i, x + 1, line[: w - 2], self._attr("MESSAGE"))
