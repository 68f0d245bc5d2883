"""
scheduler.py – drift-compensated fixed-rate frame pump

Turns an irregular timing signal into a steady stream of draw calls at the
configured frame rate.  Overshoot past each frame boundary is carried into
the next interval (`last = t - elapsed % frame_duration`), so the long-run
rate converges on the target even when ticks arrive late or early.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Protocol

log = logging.getLogger(__name__)


class SchedulerFault(RuntimeError):
    """The timing source failed; fatal to the owning session only."""


class TickSource(Protocol):
    def next_tick(self) -> float: ...
    def cancel(self) -> None: ...


class FrameScheduler:
    def __init__(self,
                 tick_source: Optional[TickSource],
                 on_frame: Callable[[int], None],
                 frame_rate: float):
        self.tick_source = tick_source
        self.on_frame    = on_frame
        self.frame_count = 0
        self._last: Optional[float] = None
        self._stopped = False
        self._lock = threading.RLock()
        self.frame_rate = frame_rate

    # ── rate ──────────────────────────────────────────────────────────────
    @property
    def frame_rate(self) -> float:
        return self._frame_rate

    @frame_rate.setter
    def frame_rate(self, fps: float) -> None:
        if fps <= 0:
            raise ValueError(f"frame rate must be positive, got {fps!r}")
        self._frame_rate = float(fps)
        self.frame_duration = 1000.0 / self._frame_rate

    @property
    def stopped(self) -> bool:
        return self._stopped

    # ── pump ──────────────────────────────────────────────────────────────
    def feed(self, t: float) -> bool:
        """Offer one tick (ms).  Returns True when a frame was drawn."""
        with self._lock:
            if self._stopped:
                return False
            if self._last is None:
                self._last = t          # baseline only
                return False

            elapsed  = t - self._last
            duration = self.frame_duration
            if elapsed < duration:
                return False

            self.frame_count += 1
            self.on_frame(self.frame_count)
            self._last = t - (elapsed % duration)
            return True

    def step(self) -> bool:
        """Pull one tick from the source and feed it."""
        if self._stopped:
            return False
        if self.tick_source is None:
            raise SchedulerFault("no timing source attached")
        try:
            t = self.tick_source.next_tick()
        except Exception as exc:
            if self._stopped:
                return False
            raise SchedulerFault(f"timing source failed: {exc}") from exc
        return self.feed(t)

    def run(self) -> None:
        while not self._stopped:
            self.step()

    def stop(self) -> None:
        """No draw starts after this returns; an in-flight draw finishes first."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        if self.tick_source is not None:
            self.tick_source.cancel()
        log.debug("Scheduler stopped after %d frame(s)", self.frame_count)
