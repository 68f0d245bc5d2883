"""
settings_channel.py – push distribution of the settings document

Holds the authoritative in-memory copy and broadcasts every accepted
document to all connected renderers.

• connect() delivers the full current document straight away, so a
  (re)connecting renderer is always resynchronised from the canonical copy.
• publish() replaces the copy wholesale and fans it out in commit order.
• Delivery is fire-and-forget: a subscriber that raises misses that value
  and nothing is retried or buffered.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Dict

from settings import Settings

log = logging.getLogger(__name__)

Deliver = Callable[[Settings], None]


class TransientChannelFailure(Exception):
    """A push could not reach one subscriber; the value is dropped."""


class Subscription:
    """Handle returned by `SettingsChannel.connect()`."""

    def __init__(self, channel: "SettingsChannel", sid: int):
        self._channel = channel
        self.id = sid

    @property
    def active(self) -> bool:
        return self._channel._is_connected(self.id)

    def close(self) -> None:
        self._channel._disconnect(self.id)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class SettingsChannel:
    def __init__(self, initial: Settings):
        self._current = initial
        self._subscribers: Dict[int, Deliver] = {}
        self._ids  = itertools.count(1)
        # one lock orders publishes *and* connect-time snapshots
        self._lock = threading.Lock()

    # ── state ─────────────────────────────────────────────────────────────
    @property
    def current(self) -> Settings:
        return self._current

    def __len__(self) -> int:
        return len(self._subscribers)

    # ── subscribe ─────────────────────────────────────────────────────────
    def connect(self, deliver: Deliver) -> Subscription:
        with self._lock:
            sid = next(self._ids)
            self._subscribers[sid] = deliver
            self._send(sid, deliver, self._current)
        log.info("Renderer connected (id=%d, %d live)", sid, len(self._subscribers))
        return Subscription(self, sid)

    def _disconnect(self, sid: int) -> None:
        with self._lock:
            if self._subscribers.pop(sid, None) is None:
                return
        log.info("Renderer disconnected (id=%d, %d live)", sid, len(self._subscribers))

    def _is_connected(self, sid: int) -> bool:
        return sid in self._subscribers

    # ── broadcast ─────────────────────────────────────────────────────────
    def publish(self, settings: Settings) -> None:
        with self._lock:
            self._current = settings
            targets = list(self._subscribers.items())
            for sid, deliver in targets:
                self._send(sid, deliver, settings)
        log.debug("Published settings to %d renderer(s)", len(targets))

    @staticmethod
    def _send(sid: int, deliver: Deliver, settings: Settings) -> None:
        try:
            deliver(settings)
        except Exception as exc:
            # TransientChannelFailure: the next connect() resyncs this one
            log.debug("Dropped push to renderer %d: %s", sid, exc)
