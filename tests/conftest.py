"""Shared fixtures; pygame runs against the SDL dummy drivers."""
from __future__ import annotations

import os
import sys
from pathlib import Path

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pygame
import pytest

from settings import Settings
from settings_channel import SettingsChannel


class FakeTicks:
    """Tick source fed from a list of timestamps (ms)."""

    def __init__(self, ticks=()):
        self.ticks = list(ticks)
        self.cancelled = False

    def next_tick(self) -> float:
        if not self.ticks:
            raise RuntimeError("out of ticks")
        return self.ticks.pop(0)

    def cancel(self) -> None:
        self.cancelled = True


@pytest.fixture(scope="session", autouse=True)
def _pygame():
    pygame.init()
    yield
    pygame.quit()


@pytest.fixture
def hd_settings():
    return Settings.from_dict({
        "resolution": "1280x720",
        "frameRate": 30,
        "showBars": True,
        "alternateMode": False,
        "showCenterCircle": True,
        "showSync": False,
        "showTimecode": False,
        "showFrameCounter": False,
        "showInfoBox": False,
        "logo": "",
    })


@pytest.fixture
def channel(hd_settings):
    return SettingsChannel(hd_settings)


@pytest.fixture
def fake_ticks():
    return FakeTicks()
