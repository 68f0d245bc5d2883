# =========  timing.py  =========
"""
Wall-clock display helpers and the host timing signal.

The timecode and the sync blink are *display clocks*: both are pure
functions of wall-clock time, so every renderer shows the same values
regardless of its own frame cadence.
"""

from __future__ import annotations

import datetime
import math
import time

import pygame

import config


def format_timecode(now: float, frame_rate: float) -> str:
    """
    HH:MM:SS:FF for local wall-clock *now* (epoch seconds).
    FF = floor(ms_within_second / 1000 * frame_rate).
    """
    dt = datetime.datetime.fromtimestamp(now)
    ms = dt.microsecond // 1000
    ff = math.floor((ms / 1000) * frame_rate)
    return f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}:{ff:02d}"


def blink_state(now: float, period: float = config.BLINK_PERIOD) -> bool:
    """
    False for the first period after each even boundary, True for the next.
    Flips exactly once per wall-clock period boundary.
    """
    if period <= 0:
        return False
    return int(math.floor(now / period)) % 2 == 1


# ── host timing signal ─────────────────────────────────────────────────────
class ClockTickSource:
    """
    Tick source paced by pygame.time.Clock.

    next_tick() blocks for at most 1/TICK_HZ and returns a monotonic
    timestamp in milliseconds.  The interval between ticks is whatever the
    OS gives us; the scheduler does not rely on it being regular.
    """

    def __init__(self, max_hz: int = config.TICK_HZ):
        self.max_hz    = max_hz
        self._clock    = pygame.time.Clock()
        self.cancelled = False

    def next_tick(self) -> float:
        if self.cancelled:
            raise RuntimeError("tick source cancelled")
        self._clock.tick(self.max_hz)
        return time.perf_counter() * 1000.0

    def cancel(self) -> None:
        self.cancelled = True
