import time
from typing import Callable

# Monotonic seconds; injected into timing components so tests can drive it
Clock = Callable[[], float]


def monotonic() -> float:
    """Return monotonic seconds, unaffected by wall-clock adjustments."""
    return time.monotonic()


def format_clock(seconds: int) -> str:
    """Render a countdown as m:ss."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"
