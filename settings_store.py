"""
settings_store.py

Durable home of the settings document (a JSON file) and the write
boundary that publishes every successful write to the channel.
"""

from __future__ import annotations

import datetime
import json
import logging
import os
import threading
from typing import Any, Mapping, Optional, Union

import config
from settings import TOGGLES, InvalidSettingsValue, Settings
from settings_channel import SettingsChannel

log = logging.getLogger(__name__)


def _stamp() -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SettingsStore:
    """Reads and writes the single settings document."""

    def __init__(self, path: str = config.SETTINGS_FILE):
        self.path  = os.path.abspath(path)
        self._lock = threading.RLock()

    # ---------------------------------------------------------------- read
    def read(self) -> Settings:
        with self._lock:
            if not os.path.isfile(self.path):
                log.info("No settings at %s, writing defaults", self.path)
                return self._save(Settings.from_dict(config.DEFAULT_SETTINGS))
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    return Settings.from_dict(json.load(f))
            except (OSError, ValueError) as exc:
                # InvalidSettingsValue is a ValueError too
                log.error("Error reading settings file %s: %s", self.path, exc)
                return Settings.from_dict(config.DEFAULT_SETTINGS)

    # --------------------------------------------------------------- write
    def write(self, doc: Union[Settings, Mapping[str, Any]]) -> Settings:
        """
        Merge a patch (or take a whole document) and persist it.  Returns
        the authoritative post-write document.
        """
        with self._lock:
            if isinstance(doc, Settings):
                new = doc
            else:
                new = Settings.from_dict(doc, base=self.read().to_dict())
            if new.resolution not in config.RESOLUTIONS:
                raise InvalidSettingsValue(
                    f"resolution must be one of {', '.join(config.RESOLUTIONS)}")
            return self._save(new)

    def reset(self) -> Settings:
        return self.write(Settings.from_dict(config.DEFAULT_SETTINGS))

    def _save(self, settings: Settings) -> Settings:
        settings = settings.replace(last_update=_stamp())
        os.makedirs(os.path.dirname(self.path), exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(settings.to_dict(), f, indent=2)
        os.replace(tmp, self.path)
        return settings


class SettingsService:
    """Write boundary: store first, then broadcast the stored result."""

    def __init__(self, store: SettingsStore, channel: Optional[SettingsChannel] = None):
        self.store   = store
        self.channel = channel or SettingsChannel(store.read())

    def _commit(self, settings: Settings) -> Settings:
        self.channel.publish(settings)
        log.info("Settings updated (%s @ %g fps)", settings.resolution, settings.frame_rate)
        return settings

    def update(self, patch: Mapping[str, Any]) -> Settings:
        return self._commit(self.store.write(patch))

    def reset(self) -> Settings:
        return self._commit(self.store.reset())

    def toggle(self, key: str) -> Settings:
        if key not in TOGGLES:
            raise InvalidSettingsValue(f"{key} is not a toggle")
        current = self.channel.current.to_dict()
        return self.update({key: not current[key]})

    def set_logo(self, ref: str) -> Settings:
        return self.update({"logo": ref})
