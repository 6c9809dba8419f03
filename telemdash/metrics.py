"""CPU load derived from the firmware idle-loop counter."""

from __future__ import annotations

# Idle-loop iterations per sample on an unloaded device.
IDLE_CEILING = 64_000_000


def cpu_percent(idle_counter: int, ceiling: int = IDLE_CEILING) -> float:
    """
    Return how far *idle_counter* fell below *ceiling*, as a percentage.

    A counter above the ceiling saturates to 100.0.
    """
    if ceiling <= 0:
        raise ValueError(f"ceiling must be positive, got {ceiling}")
    if idle_counter > ceiling:
        return 100.0
    percent = (float(ceiling) - float(idle_counter)) / float(ceiling) * 100.0
    return min(100.0, max(0.0, percent))
