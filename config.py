# config.py
"""
Configuration settings for the test-card renderer.
"""
import os

# ── Basic Application Settings ──────────────────────────────────────────────

# Where the canonical settings document and uploaded logos live
DATA_PATH     = "data"
SETTINGS_FILE = os.path.join(DATA_PATH, "settings.json")
PUBLIC_PATH   = "public"
UPLOADS_DIR   = os.path.join(PUBLIC_PATH, "uploads")

LOG_FILE = "runtime.log"

# Display settings
FULLSCREEN    = True
WINDOWED_SIZE = (960, 540)

# Web remote / push channel
WEB_PORT              = 3000
DIAG_REFRESH_INTERVAL = 1.0
STREAM_KEEPALIVE_SEC  = 15.0

# ── Timing ──────────────────────────────────────────────────────────────────

# Upper bound of the host timing signal (ticks per second).  The scheduler
# derives the real cadence from frameRate; this only caps the pump.
TICK_HZ = 240

# Sync indicator blink period, wall-clock seconds (not tied to frameRate)
BLINK_PERIOD = 1.0

# How many times the host recreates a faulted renderer session
SESSION_RESTART_LIMIT = 3

# ── Settings document limits ───────────────────────────────────────────────

MAX_FRAME_RATE = 120.0
MAX_RESOLUTION = (7680, 4320)

RESOLUTIONS  = ("1920x1080", "1280x720", "3840x2160", "720x576", "720x480")
FRAME_RATES  = (25, 30, 50, 60, 59.94)
SCAN_MODES   = ("Progressive", "Interlaced")
COLOR_SPACES = ("Rec.709", "Rec.2020", "sRGB")

DEFAULT_SETTINGS = {
    "title":            "OB 1 STUDIO",
    "channel":          "NVP S.p.A.",
    "resolution":       "1920x1080",
    "frameRate":        25,
    "scanMode":         "Progressive",
    "colorSpace":       "Rec.709",
    "notes":            "",
    "logo":             "",
    "showBars":         True,
    "showTimecode":     True,
    "showFrameCounter": True,
    "showSync":         True,
    "showCenterCircle": True,
    "showInfoBox":      True,
    "alternateMode":    False,
}

# ── Layer geometry (fractions of the frame unless noted) ───────────────────

BARS_UPPER_FRACTION = 0.67
EDGE_PADDING        = 20      # px
COUNTER_PADDING     = 50      # px
LOGO_BOX            = (0.15, 0.10)
INFO_BOX            = (0.25, 0.18)
INFO_BOX_ALPHA      = 178     # 0.7 opacity
