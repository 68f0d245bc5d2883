"""
renderer.py – presentation of composed frames

A presenter is any callable taking the finished card surface.  The card is
fully drawn before it is handed over.
"""

from __future__ import annotations

import io
import threading
from typing import Optional

import numpy as np
import pygame


def render_frame(screen: pygame.Surface, card: pygame.Surface) -> None:
    """
    Scale and letter-/pillar-box the card onto `screen`.
    """
    sw, sh = screen.get_size()
    cw, ch = card.get_size()
    scale = min(sw / cw, sh / ch)
    if scale != 1.0:
        card = pygame.transform.smoothscale(
            card, (max(1, int(cw * scale)), max(1, int(ch * scale))))
    screen.fill((0, 0, 0))
    x = (sw - card.get_width()) // 2
    y = (sh - card.get_height()) // 2
    screen.blit(card, (x, y))


class WindowPresenter:
    """Draws to the pygame display and flips."""

    def __init__(self, screen: pygame.Surface):
        self.screen = screen

    def __call__(self, card: pygame.Surface) -> None:
        render_frame(self.screen, card)
        pygame.display.flip()


def surface_to_frame(surface: pygame.Surface) -> np.ndarray:
    """HxWx3 uint8 copy of *surface*."""
    return np.ascontiguousarray(pygame.surfarray.array3d(surface).swapaxes(0, 1))


class FrameSlot:
    """
    Headless presenter: keeps only the most recent frame (older ones are
    overwritten, never queued) for the web remote's /frame.png.
    """

    def __init__(self):
        self._frame: Optional[np.ndarray] = None
        self._lock = threading.Lock()
        self.frames = 0

    def __call__(self, card: pygame.Surface) -> None:
        frame = surface_to_frame(card)
        with self._lock:
            self._frame = frame
            self.frames += 1

    def latest(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame

    def png(self) -> Optional[bytes]:
        frame = self.latest()
        if frame is None:
            return None
        surf = pygame.image.frombuffer(frame.tobytes(), frame.shape[1::-1], "RGB")
        buf = io.BytesIO()
        pygame.image.save(surf, buf, "frame.png")
        return buf.getvalue()
