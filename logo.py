"""
logo.py – out-of-band logo decode

The compositor never waits on the logo: `image()` returns a surface only
once the worker thread has finished decoding the current reference.  A
failed load is remembered until the reference changes.
"""

from __future__ import annotations

import io
import logging
import os
import threading
import urllib.request
from typing import Optional, Tuple

import pygame

import config

log = logging.getLogger(__name__)


class AssetLoadFailure(Exception):
    """The logo could not be fetched or decoded."""


def resolve(ref: str, root: str = config.PUBLIC_PATH) -> str:
    """
    Map a logo reference onto something loadable: http(s) URLs are kept,
    site paths ('/uploads/x.png') are resolved under *root*.
    """
    if ref.startswith(("http://", "https://")):
        return ref
    if ref.startswith("/") and not os.path.isfile(ref):
        return os.path.join(root, ref.lstrip("/"))
    return ref


def load_image(ref: str, root: str = config.PUBLIC_PATH,
               timeout: float = 5.0) -> pygame.Surface:
    target = resolve(ref, root)
    try:
        if target.startswith(("http://", "https://")):
            with urllib.request.urlopen(target, timeout=timeout) as resp:
                data = resp.read()
            return pygame.image.load(io.BytesIO(data), os.path.basename(target))
        return pygame.image.load(target)
    except (OSError, pygame.error, ValueError) as exc:
        raise AssetLoadFailure(f"{ref}: {exc}") from exc


class LogoLoader:
    """Tracks the logo for one renderer session."""

    def __init__(self, root: str = config.PUBLIC_PATH):
        self.root   = root
        self.ref    = ""
        self.failed = False
        # (ref, surface) swapped as one reference
        self._loaded: Optional[Tuple[str, pygame.Surface]] = None
        self._gen   = 0
        self._lock  = threading.Lock()
        self._worker: Optional[threading.Thread] = None

    def request(self, ref: str) -> None:
        """Start loading *ref* unless it is already current."""
        with self._lock:
            if ref == self.ref:
                return
            self._gen  += 1
            gen         = self._gen
            self.ref    = ref
            self.failed = False
            self._loaded = None
        if not ref:
            return
        self._worker = threading.Thread(
            target=self._load, args=(ref, gen), name="logo-loader", daemon=True)
        self._worker.start()

    def _load(self, ref: str, gen: int) -> None:
        try:
            img = load_image(ref, self.root)
        except AssetLoadFailure as exc:
            log.warning("Logo skipped: %s", exc)
            with self._lock:
                if gen == self._gen:
                    self.failed = True
            return
        with self._lock:
            if gen == self._gen:       # ignore stale loads
                self._loaded = (ref, img)
        log.info("Logo loaded: %s (%dx%d)", ref, *img.get_size())

    def image(self, ref: Optional[str] = None) -> Optional[pygame.Surface]:
        """The decoded logo, only if it belongs to *ref* (default: current)."""
        loaded = self._loaded
        if loaded is None:
            return None
        want = self.ref if ref is None else ref
        return loaded[1] if loaded[0] == want else None

    @property
    def ready(self) -> bool:
        return self.image() is not None

    def wait(self, timeout: Optional[float] = None) -> None:
        if self._worker is not None:
            self._worker.join(timeout)

    def close(self) -> None:
        with self._lock:
            self._gen += 1
            self._loaded = None
            self.ref = ""
