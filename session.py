"""
session.py – one live renderer

RendererSession = FrameScheduler + layer compositor + a subscription to the
settings channel.  Pushes replace the session's snapshot by a single
reference swap; each draw reads that reference once and uses it
throughout, so an update can never land half-way through a frame.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Optional, Union

import pygame

from logo import LogoLoader
from overlays import FrameContext, draw_test_card
from scheduler import FrameScheduler, TickSource
from settings import InvalidSettingsValue, Settings
from settings_channel import SettingsChannel
from timing import ClockTickSource, blink_state

log = logging.getLogger(__name__)

Presenter = Callable[[pygame.Surface], None]


class RendererSession:
    def __init__(self,
                 channel: SettingsChannel,
                 presenter: Presenter,
                 tick_source: Optional[TickSource] = None,
                 logo_loader: Optional[LogoLoader] = None,
                 clock: Callable[[], float] = time.time):
        self.presenter = presenter
        self.clock     = clock
        self.logo      = logo_loader or LogoLoader()
        self._closed   = False

        # bootstrap snapshot, fetched once before the first draw
        self._settings: Settings = channel.current
        self._surface = pygame.Surface(self._settings.size, 0, 32)

        self.scheduler = FrameScheduler(
            tick_source if tick_source is not None else ClockTickSource(),
            self.draw,
            self._settings.frame_rate,
        )
        self.logo.request(self._settings.logo)
        self._subscription = channel.connect(self.receive)

    # ── state ─────────────────────────────────────────────────────────────
    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def frames_drawn(self) -> int:
        return self.scheduler.frame_count

    @property
    def closed(self) -> bool:
        return self._closed

    # ── push handler ──────────────────────────────────────────────────────
    def receive(self, doc: Union[Settings, Mapping[str, Any]]) -> None:
        if not isinstance(doc, Settings):
            try:
                doc = Settings.from_dict(doc)
            except InvalidSettingsValue as exc:
                log.warning("Ignoring invalid settings push, keeping last good: %s", exc)
                return
        self.logo.request(doc.logo)
        self.scheduler.frame_rate = doc.frame_rate
        self._settings = doc

    # ── drawing ───────────────────────────────────────────────────────────
    def compose(self, frame_count: int) -> pygame.Surface:
        settings = self._settings
        if self._surface.get_size() != settings.size:
            self._surface = pygame.Surface(settings.size, 0, 32)
            log.info("Output resized to %s", settings.resolution)

        now = self.clock()
        draw_test_card(self._surface, FrameContext(
            settings=settings,
            now=now,
            frame_count=frame_count,
            blink=blink_state(now),
            logo=self.logo.image(settings.logo) if settings.logo else None,
        ))
        return self._surface

    def draw(self, frame_count: int) -> None:
        self.presenter(self.compose(frame_count))

    def step(self) -> bool:
        return self.scheduler.step()

    def run(self) -> None:
        self.scheduler.run()

    # ── teardown ──────────────────────────────────────────────────────────
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.scheduler.stop()
        self._subscription.close()
        self.logo.close()
        log.info("Renderer session closed after %d frame(s)", self.frames_drawn)
