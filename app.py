#!/usr/bin/env python3
"""
app.py – windowed test-card host

Runs one RendererSession into a pygame window.  Keyboard toggles go
through the settings service, so they reach every connected renderer, not
just this one.  Input is dispatched by events.py.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import pygame

import config
from events           import EventManager
from renderer         import FrameSlot, WindowPresenter
from scheduler        import SchedulerFault
from session          import RendererSession
from settings         import InvalidSettingsValue
from settings_store   import SettingsService

log = logging.getLogger(__name__)


# ── main application ───────────────────────────────────────────────────────
class TestCardApp:
    def __init__(self, service: SettingsService,
                 session_factory: Optional[Callable[..., RendererSession]] = None):
        self.service  = service
        self.channel  = service.channel
        self._factory = session_factory or RendererSession
        self.restarts = 0

        # window ----------------------------------------------------------
        pygame.init()
        pygame.display.set_caption(self.channel.current.title)
        self.screen = self._set_mode()
        pygame.mouse.set_visible(False)

        self.session = self._new_session()

    def _set_mode(self) -> pygame.Surface:
        return pygame.display.set_mode(
            (0, 0) if config.FULLSCREEN else config.WINDOWED_SIZE,
            pygame.FULLSCREEN if config.FULLSCREEN else 0,
        )

    def _new_session(self) -> RendererSession:
        return self._factory(self.channel, WindowPresenter(self.screen))

    # ── actions -----------------------------------------------------------
    def _dispatch(self, act: dict) -> bool:
        """Apply one action; False means quit."""
        t = act["type"]
        if t == "quit":
            return False
        if t == "toggle_fullscreen":
            config.FULLSCREEN ^= True
            self.screen = self._set_mode()
            self.session.presenter.screen = self.screen
            pygame.mouse.set_visible(False)
        elif t == "toggle_setting":
            try:
                self.service.toggle(act["key"])
            except (InvalidSettingsValue, OSError) as exc:
                log.error("Toggle %s failed: %s", act.get("key"), exc)
        return True

    def _restart_session(self, exc: SchedulerFault) -> bool:
        self.session.close()
        if self.restarts >= config.SESSION_RESTART_LIMIT:
            log.error("Renderer faulted %d times, giving up: %s", self.restarts, exc)
            return False
        self.restarts += 1
        log.warning("Renderer faulted (%s), restarting session %d/%d",
                    exc, self.restarts, config.SESSION_RESTART_LIMIT)
        self.session = self._new_session()
        return True

    # ── main loop ---------------------------------------------------------
    def run(self) -> None:
        running = True
        while running:
            for e in pygame.event.get():
                EventManager.handle(e)

            # drain external queue (non-blocking)
            while running and (act := EventManager.poll()):
                running = self._dispatch(act)
            if not running:
                break

            try:
                self.session.step()
            except SchedulerFault as exc:
                running = self._restart_session(exc)

        self.session.close()
        EventManager.clear()     # stale actions must not leak into a new host
        pygame.quit()


# ── headless host ──────────────────────────────────────────────────────────
def run_headless(service: SettingsService, slot: FrameSlot,
                 stop: Optional[threading.Event] = None) -> None:
    """Render into *slot* until *stop* is set (or forever)."""
    stop = stop or threading.Event()
    restarts = 0
    while not stop.is_set():
        session = RendererSession(service.channel, slot)
        try:
            while not stop.is_set():
                session.step()
            return
        except SchedulerFault as exc:
            restarts += 1
            if restarts > config.SESSION_RESTART_LIMIT:
                log.error("Headless renderer gave up after %d faults: %s", restarts - 1, exc)
                raise
            log.warning("Headless renderer faulted (%s), restarting", exc)
        finally:
            session.close()
