"""
settings.py

The single settings document that drives every renderer.

A `Settings` value is immutable: the distribution channel hands sessions a
fresh document on every change and nobody edits one in place.  Wire names
(JSON, camelCase) are mapped onto snake_case attributes here and nowhere
else.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace as _dc_replace
from typing import Any, Mapping

import config


class InvalidSettingsValue(ValueError):
    """A received or submitted document carries a malformed field."""


# ── wire mapping ────────────────────────────────────────────────────────────
_WIRE = {
    "title":              "title",
    "channel":            "channel",
    "notes":              "notes",
    "resolution":         "resolution",
    "frame_rate":         "frameRate",
    "scan_mode":          "scanMode",
    "color_space":        "colorSpace",
    "show_bars":          "showBars",
    "show_timecode":      "showTimecode",
    "show_frame_counter": "showFrameCounter",
    "show_sync":          "showSync",
    "show_center_circle": "showCenterCircle",
    "show_info_box":      "showInfoBox",
    "alternate_mode":     "alternateMode",
    "logo":               "logo",
    "last_update":        "lastUpdate",
}

TOGGLES = (
    "showBars", "showTimecode", "showFrameCounter", "showSync",
    "showCenterCircle", "showInfoBox", "alternateMode",
)


# ── field parsers ───────────────────────────────────────────────────────────
def parse_resolution(text: Any) -> tuple[int, int]:
    """'1280x720' → (1280, 720).  Raises InvalidSettingsValue."""
    try:
        w, h = (int(p) for p in str(text).lower().split("x"))
    except ValueError:
        raise InvalidSettingsValue(f"bad resolution {text!r} (use WxH)") from None
    max_w, max_h = config.MAX_RESOLUTION
    if not (0 < w <= max_w and 0 < h <= max_h):
        raise InvalidSettingsValue(f"resolution {text!r} out of range")
    return w, h


def _frame_rate(value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidSettingsValue(f"bad frameRate {value!r}")
    try:
        fps = float(value)
    except (TypeError, ValueError):
        raise InvalidSettingsValue(f"bad frameRate {value!r}") from None
    if not math.isfinite(fps) or fps <= 0 or fps > config.MAX_FRAME_RATE:
        raise InvalidSettingsValue(
            f"frameRate {value!r} outside (0, {config.MAX_FRAME_RATE:g}]"
        )
    return fps


def _flag(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise InvalidSettingsValue(f"{key} must be a boolean, got {value!r}")


def _choice(key: str, value: Any, allowed: tuple[str, ...]) -> str:
    if value not in allowed:
        raise InvalidSettingsValue(f"{key} must be one of {', '.join(allowed)}")
    return value


def _text(key: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise InvalidSettingsValue(f"{key} must be text, got {value!r}")
    return str(value)


# ── document ────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Settings:
    title: str = config.DEFAULT_SETTINGS["title"]
    channel: str = config.DEFAULT_SETTINGS["channel"]
    notes: str = ""
    resolution: str = config.DEFAULT_SETTINGS["resolution"]
    frame_rate: float = float(config.DEFAULT_SETTINGS["frameRate"])
    scan_mode: str = "Progressive"
    color_space: str = "Rec.709"
    show_bars: bool = True
    show_timecode: bool = True
    show_frame_counter: bool = True
    show_sync: bool = True
    show_center_circle: bool = True
    show_info_box: bool = True
    alternate_mode: bool = False
    logo: str = ""
    last_update: str = ""

    def __post_init__(self) -> None:
        parse_resolution(self.resolution)
        object.__setattr__(self, "frame_rate", _frame_rate(self.frame_rate))
        _choice("scanMode", self.scan_mode, config.SCAN_MODES)
        _choice("colorSpace", self.color_space, config.COLOR_SPACES)

    # ---------------------------------------------------------------- wire
    @classmethod
    def from_dict(cls, data: Mapping[str, Any],
                  base: Mapping[str, Any] | None = None) -> "Settings":
        """
        Build a validated document from a wire mapping.  Keys missing from
        *data* come from *base* (defaults when omitted); unknown keys are
        ignored.
        """
        if not isinstance(data, Mapping):
            raise InvalidSettingsValue(f"settings must be an object, got {type(data).__name__}")
        merged = dict(config.DEFAULT_SETTINGS if base is None else base)
        merged.update(data)

        kw: dict[str, Any] = {}
        for f in fields(cls):
            key = _WIRE[f.name]
            if key not in merged:
                continue
            value = merged[key]
            if f.type == "bool":
                value = _flag(key, value)
            elif f.name == "frame_rate":
                value = _frame_rate(value)
            elif f.name == "resolution":
                w, h = parse_resolution(value)
                value = f"{w}x{h}"
            else:
                value = _text(key, value)
            kw[f.name] = value
        return cls(**kw)

    def to_dict(self) -> dict[str, Any]:
        out = {_WIRE[f.name]: getattr(self, f.name) for f in fields(self)}
        # integral rates go out as ints ("25", not "25.0")
        if self.frame_rate.is_integer():
            out["frameRate"] = int(self.frame_rate)
        return out

    def replace(self, **changes: Any) -> "Settings":
        return _dc_replace(self, **changes)

    # ------------------------------------------------------------ geometry
    @property
    def size(self) -> tuple[int, int]:
        return parse_resolution(self.resolution)

    @property
    def width(self) -> int:
        return self.size[0]

    @property
    def height(self) -> int:
        return self.size[1]

    @property
    def frame_duration_ms(self) -> float:
        return 1000.0 / self.frame_rate


DEFAULTS = Settings.from_dict(config.DEFAULT_SETTINGS)
