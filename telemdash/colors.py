"""
telemdash Color Palette
=======================

Centralized curses colour definitions for the dashboard panels.
Each role maps to a (foreground, background) pair; -1 is the terminal default.
"""

import curses

# ---------------------------------------------------------------------------
# Panel roles (foreground, background)
# ---------------------------------------------------------------------------
ROLE_COLORS = {
    "TITLE": (curses.COLOR_CYAN, -1),
    "GAUGE": (curses.COLOR_WHITE, curses.COLOR_BLACK),
    "GAUGE_FILL": (curses.COLOR_BLACK, curses.COLOR_GREEN),
    "GAUGE_HIGH": (curses.COLOR_BLACK, curses.COLOR_RED),
    "POINT": (curses.COLOR_YELLOW, -1),
    "INPUT": (curses.COLOR_WHITE, curses.COLOR_BLACK),
    "MESSAGE": (curses.COLOR_WHITE, -1),
    "STALE": (curses.COLOR_MAGENTA, -1),
}

# Gauge switches to GAUGE_HIGH at or above this load.
HIGH_LOAD_PERCENT = 80.0


def init_colors() -> dict[str, int]:
    """Register one colour pair per role and return role -> curses attribute."""
    attrs: dict[str, int] = {}
    if not curses.has_colors():
        return attrs
    curses.start_color()
    curses.use_default_colors()
    for pair_id, (role, (fg, bg)) in enumerate(ROLE_COLORS.items(), start=1):
        curses.init_pair(pair_id, fg, bg)
        attrs[role] = curses.color_pair(pair_id)
    return attrs
