"""
overlays.py

Pygame layer compositor for the test card.

Each layer is an independent (name, guard, draw) step; `draw_test_card`
runs them in fixed z-order over one surface.  Nothing is carried from one
call to the next: the output is a function of the FrameContext alone.
"""

from __future__ import annotations

import functools
import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import pygame

import config
from settings import Settings
from timing import format_timecode

# ── colours ────────────────────────────────────────────────────────────────
WHITE   = (255, 255, 255)
YELLOW  = (255, 255, 0)
CYAN    = (0, 255, 255)
GREEN   = (0, 255, 0)
MAGENTA = (255, 0, 255)
RED     = (255, 0, 0)
BLUE    = (0, 0, 255)
BLACK   = (0, 0, 0)
PANEL   = (0, 0, 0, config.INFO_BOX_ALPHA)

UPPER_BARS = (WHITE, YELLOW, CYAN, GREEN, MAGENTA, RED, BLUE)
LOWER_BARS = (BLUE, BLACK, MAGENTA, BLUE, CYAN, BLACK, BLUE)

PAD = config.EDGE_PADDING

pygame.font.init()


@dataclass(frozen=True)
class FrameContext:
    """Everything one draw needs, captured once at its start."""
    settings: Settings
    now: float
    frame_count: int = 0
    blink: bool = False
    logo: Optional[pygame.Surface] = None


# ── helpers ────────────────────────────────────────────────────────────────
@functools.lru_cache(maxsize=32)
def _font(face: str, px: int, bold: bool = False) -> pygame.font.Font:
    return pygame.font.SysFont(face, max(8, px), bold=bold)


def _short_side(surface: pygame.Surface) -> int:
    return min(surface.get_size())


def format_frame_count(n: int) -> str:
    return f"{n:08d}"


def bar_edges(width: int, count: int = 7) -> list[int]:
    """Integer x edges so the bars tile the full width with no gaps."""
    return [round(i * width / count) for i in range(count + 1)]


def bars_split(height: int) -> int:
    """First row of the lower bar pattern (upper bars cover 67%)."""
    return math.ceil(height * config.BARS_UPPER_FRACTION - 1e-9)


def fit_logo(natural: tuple[int, int], frame: tuple[int, int]) -> tuple[int, int]:
    """
    Scale *natural* into the logo box, preserving aspect.  Wide logos are
    width-constrained, tall ones height-constrained; never upscaled.
    """
    lw, lh = natural
    w, h   = frame
    box_w, box_h = w * config.LOGO_BOX[0], h * config.LOGO_BOX[1]
    ratio = lw / lh
    if ratio >= 1:
        out_w = min(box_w, lw)
        out_h = out_w / ratio
    else:
        out_h = min(box_h, lh)
        out_w = out_h * ratio
    return max(1, round(out_w)), max(1, round(out_h))


# ── layers ─────────────────────────────────────────────────────────────────
def draw_color_bars(surface: pygame.Surface) -> None:
    w, h  = surface.get_size()
    split = bars_split(h)
    xs    = bar_edges(w)
    for i, (top, bottom) in enumerate(zip(UPPER_BARS, LOWER_BARS)):
        x, bw = xs[i], xs[i + 1] - xs[i]
        surface.fill(top, (x, 0, bw, split))
        surface.fill(bottom, (x, split, bw, h - split))


def draw_background(surface: pygame.Surface, frame: FrameContext) -> None:
    s = frame.settings
    if s.alternate_mode:
        w, _ = surface.get_size()
        side = round(_short_side(surface) * 0.1)
        surface.fill(BLACK)
        surface.fill(YELLOW, (w - side - PAD, PAD, side, side))
    elif s.show_bars:
        draw_color_bars(surface)
    else:
        surface.fill(BLACK)


def draw_center_circle(surface: pygame.Surface, frame: FrameContext) -> None:
    w, h   = surface.get_size()
    cx, cy = w // 2, h // 2
    r      = round(_short_side(surface) * 0.05)
    pygame.draw.circle(surface, WHITE, (cx, cy), r, 2)
    pygame.draw.line(surface, WHITE, (cx - r, cy), (cx + r, cy), 2)
    pygame.draw.line(surface, WHITE, (cx, cy - r), (cx, cy + r), 2)


def draw_sync(surface: pygame.Surface, frame: FrameContext) -> None:
    size = max(2, round(_short_side(surface) * 0.03))
    box  = pygame.Rect(PAD, PAD, size, size)
    surface.fill(RED if frame.blink else WHITE, box)
    pygame.draw.rect(surface, WHITE, box, 1)


def draw_frame_counter(surface: pygame.Surface, frame: FrameContext) -> None:
    _, h = surface.get_size()
    px   = round(_short_side(surface) * 0.025)
    txt  = _font("monospace", px, True).render(
        f"Frame: {format_frame_count(frame.frame_count)}", True, WHITE)
    pad  = config.COUNTER_PADDING
    surface.blit(txt, (pad, h - pad - px * 2))


def draw_timecode(surface: pygame.Surface, frame: FrameContext) -> None:
    _, h = surface.get_size()
    px   = round(_short_side(surface) * 0.035)
    tc   = format_timecode(frame.now, frame.settings.frame_rate)
    surface.blit(_font("monospace", px, True).render(tc, True, WHITE),
                 (PAD, h - PAD - px))


def info_lines(s: Settings) -> list[tuple[int, str]]:
    """(line slot, text) pairs; slot 0 is the bold title."""
    lines = [
        (0, s.title),
        (1, s.channel),
        (3, f"Resolution: {s.resolution}"),
        (4, f"Frame Rate: {s.frame_rate:g} fps"),
        (5, f"Scan Mode: {s.scan_mode}"),
        (6, f"Color Space: {s.color_space}"),
    ]
    if s.notes:
        lines.append((8, f"Notes: {s.notes}"))
    return lines


def draw_info_box(surface: pygame.Surface, frame: FrameContext) -> None:
    w, h  = surface.get_size()
    box_w = round(w * config.INFO_BOX[0])
    box_h = round(h * config.INFO_BOX[1])
    px    = round(_short_side(surface) * 0.015)
    pitch = px * 1.4
    x, y  = w - box_w - PAD, PAD

    panel = pygame.Surface((box_w, box_h), pygame.SRCALPHA)
    pygame.draw.rect(panel, PANEL, panel.get_rect(), border_radius=10)
    pygame.draw.rect(panel, WHITE, panel.get_rect(), 2, border_radius=10)
    surface.blit(panel, (x, y))

    # text goes straight onto the card; lines past the panel edge still show
    title_font = _font("sans", round(px * 1.2), True)
    body_font  = _font("sans", px)
    for slot, text in info_lines(frame.settings):
        font = title_font if slot == 0 else body_font
        surface.blit(font.render(text, True, WHITE),
                     (x + 10, round(y + 10 + pitch * slot)))


def draw_logo(surface: pygame.Surface, frame: FrameContext) -> None:
    w, h = surface.get_size()
    lw, lh = fit_logo(frame.logo.get_size(), (w, h))
    scaled = pygame.transform.scale(frame.logo, (lw, lh))
    surface.blit(scaled, (w - lw - PAD, h - lh - PAD))


Guard = Callable[[FrameContext], bool]
Draw  = Callable[[pygame.Surface, FrameContext], None]

LAYERS: Sequence[tuple[str, Guard, Draw]] = (
    ("background",    lambda f: True,                               draw_background),
    ("center_circle", lambda f: f.settings.show_center_circle,      draw_center_circle),
    ("sync",          lambda f: f.settings.show_sync,               draw_sync),
    ("frame_counter", lambda f: f.settings.show_frame_counter,      draw_frame_counter),
    ("timecode",      lambda f: f.settings.show_timecode,           draw_timecode),
    ("info_box",      lambda f: f.settings.show_info_box,           draw_info_box),
    ("logo",          lambda f: bool(f.settings.logo) and f.logo is not None, draw_logo),
)


# ── main entry point ───────────────────────────────────────────────────────
def draw_test_card(surface: pygame.Surface,
                   frame: FrameContext,
                   layers: Sequence[tuple[str, Guard, Draw]] = LAYERS) -> list[str]:
    """Compose one full frame; returns the names of the layers drawn."""
    drawn: list[str] = []
    for name, guard, draw in layers:
        if guard(frame):
            draw(surface, frame)
            drawn.append(name)
    return drawn
