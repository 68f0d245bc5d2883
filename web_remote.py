#!/usr/bin/env python3
"""
web_remote.py  –  settings API + live push + diagnostics

Endpoints
---------
GET  /                    → small HTML control page
GET  /api/settings        → current settings document (JSON)
POST /api/settings        → merge a JSON patch, store it, push it to every renderer
POST /api/reset-settings  → restore defaults and push them
POST /api/upload-logo     → raw image body (?filename=x.png); sets `logo`
GET  /api/stream          → Server-Sent Events; `settings-update` on connect and on every change
GET  /uploads/<name>      → uploaded logo files
GET  /frame.png           → latest headless frame (when one is attached)
GET  /diag                → JSON object of diagnostic metrics
GET  /log                 → contents of runtime.log (if present)
GET  /action?cmd=…        → inject host commands (quit, fullscreen, toggle&key=…)
"""

from __future__ import annotations
import http.server
import json
import logging
import mimetypes
import os
import platform
import random
import socketserver
import threading
import time
import traceback
import urllib.parse
from typing import TYPE_CHECKING, Any, Callable, Optional

import psutil

import config
from events import EventManager
from settings import TOGGLES, InvalidSettingsValue, Settings
from settings_channel import TransientChannelFailure

if TYPE_CHECKING:                       # avoid circular import at runtime
    from renderer import FrameSlot
    from settings_store import SettingsService

log = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
LOGO_EXTS        = (".png", ".jpg", ".jpeg", ".gif", ".bmp", ".webp")

# ── diagnostics refresh cadence ───────────────────────────────────────────
_last_diag_time = 0.0
_diag_interval  = config.DIAG_REFRESH_INTERVAL

# ── global diagnostic store ───────────────────────────────────────────────
monitor_data: dict[str, Any] = {
    "cpu_percent":       0.0,
    "mem_used":          "0 MB",
    "mem_total":         "0 MB",
    "script_uptime":     "0d 00:00:00",
    "machine_uptime":    "0d 00:00:00",
    "load_avg":          "",
    "renderers":         0,
    "frames_rendered":   0,
    "last_update":       "",
    "last_http_crash":   "",
    "python_version":    platform.python_version(),
}

_script_start = time.monotonic()
_boot_time    = psutil.boot_time()


# ── helpers ────────────────────────────────────────────────────────────────
def _fmt_duration(secs: float) -> str:
    d, rem = divmod(int(secs), 86400)
    h, rem = divmod(rem, 3600)
    m, s   = divmod(rem, 60)
    return f"{d}d {h:02}:{m:02}:{s:02}"


def _maybe_update_diagnostics() -> None:
    global _last_diag_time
    now = time.monotonic()
    if now - _last_diag_time >= _diag_interval:
        _last_diag_time = now
        _update_diagnostics()


def _update_diagnostics() -> None:
    """Refresh CPU, memory, uptime and load in `monitor_data`."""
    monitor_data["cpu_percent"] = psutil.cpu_percent()
    vm = psutil.virtual_memory()
    monitor_data["mem_used"]  = f"{vm.used // 1024**2} MB"
    monitor_data["mem_total"] = f"{vm.total // 1024**2} MB"
    now = time.monotonic()
    monitor_data["script_uptime"]  = _fmt_duration(now - _script_start)
    monitor_data["machine_uptime"] = _fmt_duration(time.time() - _boot_time)
    try:
        la = os.getloadavg()
        monitor_data["load_avg"] = ", ".join(f"{x:.2f}" for x in la)
    except (AttributeError, OSError):
        monitor_data["load_avg"] = "N/A"


def _logo_name(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    if ext not in LOGO_EXTS:
        raise ValueError(f"unsupported logo type {ext or '(none)'}")
    return f"logo-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"


# ── push stream subscriber ─────────────────────────────────────────────────
class StreamSubscriber:
    """
    Channel subscriber behind one /api/stream connection.  Holds only the
    latest undelivered document; an older pending value is replaced, never
    queued.
    """

    def __init__(self):
        self._cond    = threading.Condition()
        self._pending: Optional[Settings] = None
        self.closed   = False

    def __call__(self, settings: Settings) -> None:
        with self._cond:
            if self.closed:
                raise TransientChannelFailure("stream closed")
            self._pending = settings
            self._cond.notify()

    def take(self, timeout: float) -> Optional[Settings]:
        with self._cond:
            if self._pending is None and not self.closed:
                self._cond.wait(timeout)
            doc, self._pending = self._pending, None
            return doc

    def close(self) -> None:
        with self._cond:
            self.closed = True
            self._cond.notify()


# ── reusable threaded HTTP server ──────────────────────────────────────────
class ReusableTCPServer(socketserver.ThreadingMixIn, http.server.HTTPServer):
    daemon_threads      = True
    allow_reuse_address = True

    service: "SettingsService"
    frame_slot: Optional["FrameSlot"] = None
    frames_drawn: Optional[Callable[[], int]] = None
    public_path: str = config.PUBLIC_PATH


# ── request handler ────────────────────────────────────────────────────────
class RemoteHandler(http.server.BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, fmt, *args):
        log.debug("%s - %s", self.address_string(), fmt % args)

    @property
    def service(self) -> "SettingsService":
        return self.server.service      # type: ignore[attr-defined]

    def do_GET(self):
        parsed = urllib.parse.urlparse(self.path)
        path, qs = parsed.path, parsed.query

        if path == "/":
            return self._serve_html()
        if path == "/api/settings":
            return self._serve_json(self.service.channel.current.to_dict())
        if path == "/api/stream":
            return self._serve_stream()
        if path.startswith("/uploads/"):
            return self._serve_upload(path)
        if path == "/frame.png":
            return self._serve_frame()
        if path in ("/diag", "/data"):
            _maybe_update_diagnostics()
            monitor_data["renderers"]   = len(self.service.channel)
            monitor_data["last_update"] = self.service.channel.current.last_update
            frames = self.server.frames_drawn   # type: ignore[attr-defined]
            monitor_data["frames_rendered"] = frames() if frames else 0
            return self._serve_json(monitor_data)
        if path == "/log":
            return self._serve_log()
        if path == "/action":
            return self._serve_action(qs)

        self.send_error(404, "Not found")

    def do_POST(self):
        parsed = urllib.parse.urlparse(self.path)
        path, qs = parsed.path, parsed.query

        if path == "/api/settings":
            return self._post_settings()
        if path == "/api/reset-settings":
            try:
                self._read_body()   # drain; the request carries no fields
            except ValueError as exc:
                return self._serve_json({"success": False, "message": str(exc)}, 400)
            return self._commit(self.service.reset)
        if path == "/api/upload-logo":
            return self._post_logo(qs)

        self.send_error(404, "Not found")

    # ── helpers for each route ───────────────────────────────────────────
    def _serve_bytes(self, data: bytes, ctype: str, status: int = 200):
        self.send_response(status)
        self.send_header("Content-Type", ctype)
        self.send_header("Content-Length", str(len(data)))
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.write(data)

    def _serve_json(self, obj: Any, status: int = 200):
        self._serve_bytes(json.dumps(obj).encode("utf-8"), "application/json", status)

    def _serve_html(self):
        self._serve_bytes(HTML_PAGE.encode("utf-8"), "text/html; charset=utf-8")

    def _read_body(self) -> bytes:
        length = int(self.headers.get("Content-Length") or 0)
        if length > MAX_UPLOAD_BYTES:
            raise ValueError("request body too large")
        return self.rfile.read(length) if length else b""

    def _commit(self, write, *args):
        try:
            settings = write(*args)
        except InvalidSettingsValue as exc:
            return self._serve_json({"success": False, "message": str(exc)}, 400)
        except OSError as exc:
            log.error("Failed to save settings: %s", exc)
            return self._serve_json(
                {"success": False, "message": "Failed to save settings"}, 500)
        return self._serve_json({"success": True, "settings": settings.to_dict()})

    def _post_settings(self):
        try:
            patch = json.loads(self._read_body() or b"{}")
        except ValueError as exc:
            return self._serve_json({"success": False, "message": str(exc)}, 400)
        if not isinstance(patch, dict):
            return self._serve_json(
                {"success": False, "message": "expected a JSON object"}, 400)
        return self._commit(self.service.update, patch)

    def _post_logo(self, query: str):
        qs = urllib.parse.parse_qs(query)
        try:
            name = _logo_name(qs.get("filename", [""])[0])
            data = self._read_body()
        except ValueError as exc:
            return self._serve_json({"success": False, "message": str(exc)}, 400)
        if not data:
            return self._serve_json({"success": False, "message": "No file uploaded"}, 400)

        upload_dir = os.path.join(self.server.public_path, "uploads")   # type: ignore[attr-defined]
        try:
            os.makedirs(upload_dir, exist_ok=True)
            with open(os.path.join(upload_dir, name), "wb") as f:
                f.write(data)
        except OSError as exc:
            log.error("Failed to store logo %s: %s", name, exc)
            return self._serve_json({"success": False, "message": "Failed to store logo"}, 500)

        logo_path = f"/uploads/{name}"
        try:
            self.service.set_logo(logo_path)
        except (InvalidSettingsValue, OSError) as exc:
            log.error("Failed to save settings: %s", exc)
            return self._serve_json({"success": False, "message": "Failed to save settings"}, 500)
        return self._serve_json({"success": True, "logoPath": logo_path})

    def _serve_upload(self, path: str):
        name = os.path.basename(urllib.parse.unquote(path))
        fp = os.path.join(self.server.public_path, "uploads", name)   # type: ignore[attr-defined]
        try:
            with open(fp, "rb") as f:
                data = f.read()
        except OSError:
            return self.send_error(404, "Not found")
        ctype = mimetypes.guess_type(name)[0] or "application/octet-stream"
        self._serve_bytes(data, ctype)

    def _serve_frame(self):
        slot = self.server.frame_slot   # type: ignore[attr-defined]
        png = slot.png() if slot else None
        if png is None:
            return self.send_error(404, "No frame rendered")
        self._serve_bytes(png, "image/png")

    def _serve_stream(self):
        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "close")
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.close_connection = True

        sub = StreamSubscriber()
        handle = self.service.channel.connect(sub)
        try:
            while True:
                doc = sub.take(config.STREAM_KEEPALIVE_SEC)
                if doc is None:
                    chunk = b": keepalive\n\n"
                else:
                    body  = json.dumps(doc.to_dict())
                    chunk = f"event: settings-update\ndata: {body}\n\n".encode("utf-8")
                self.wfile.write(chunk)
                self.wfile.flush()
        except OSError:
            pass      # client went away; it resyncs on reconnect
        finally:
            sub.close()
            handle.close()

    def _serve_log(self):
        try:
            with open(config.LOG_FILE, "rb") as f:
                data = f.read()
        except OSError:
            return self.send_error(404, "Log file not found")
        self._serve_bytes(data, "text/plain; charset=utf-8")

    def _serve_action(self, query: str):
        qs = urllib.parse.parse_qs(query)
        cmd = qs.get("cmd", [""])[0]

        if cmd == "quit":
            EventManager.post({"type": "quit"})

        elif cmd == "fullscreen":
            EventManager.post({"type": "toggle_fullscreen"})

        elif cmd == "toggle":
            key = qs.get("key", [""])[0]
            if key not in TOGGLES:
                return self.send_error(400, "Unknown toggle")
            EventManager.post({"type": "toggle_setting", "key": key})

        else:
            return self.send_error(400, "Unknown cmd")

        self.send_response(204)
        self.send_header("Content-Length", "0")
        self.end_headers()


# ── simple HTML UI ─────────────────────────────────────────────────────────
HTML_PAGE = """
<!doctype html><html><head><meta charset="utf-8">
<title>Test Card Remote</title>
<style>
 body{background:#000;color:#0f0;font-family:monospace;padding:1em;}
 button{margin:4px;padding:6px 12px;border:1px solid #0f0;background:#000;color:#0f0;}
 pre{margin:0.5em 0;font-family:monospace;}
</style></head><body>
<h2>Test Card Remote</h2>
<div id="toggles"></div>
<button onclick="post('/api/reset-settings')">Reset settings</button>
<a href="/frame.png">Frame</a> · <a href="/log">Log</a>

<div><h3>Settings</h3><pre id="settings"></pre></div>
<div><h3>Diagnostics</h3><pre id="diag"></pre></div>

<script>
 const TOGGLES = ["showBars","showTimecode","showFrameCounter","showSync",
                  "showCenterCircle","showInfoBox","alternateMode"];
 let current = {};
 async function post(url, body){
   await fetch(url, {method:'POST', headers:{'Content-Type':'application/json'},
                     body: JSON.stringify(body || {})});
 }
 const box = document.getElementById('toggles');
 for (const k of TOGGLES){
   const b = document.createElement('button');
   b.textContent = k;
   b.onclick = () => post('/api/settings', {[k]: !current[k]});
   box.appendChild(b);
 }
 const es = new EventSource('/api/stream');
 es.addEventListener('settings-update', e => {
   current = JSON.parse(e.data);
   document.getElementById('settings').textContent = JSON.stringify(current, null, 2);
 });
 async function refreshDiag(){
   try {
     let d = await fetch('/diag'); let dg = await d.json();
     let txt = '';
     for (let [k,v] of Object.entries(dg)){ txt += k.padEnd(20,' ') + v + '\\n'; }
     document.getElementById('diag').textContent = txt;
   } catch(e){ console.error(e); }
 }
 setInterval(refreshDiag, 1000);
 refreshDiag();
</script>
</body></html>
"""


# ── server bootstrap with auto-restart ────────────────────────────────────
def make_server(service: "SettingsService",
                host: str = "",
                port: int = config.WEB_PORT,
                frame_slot: Optional["FrameSlot"] = None,
                public_path: str = config.PUBLIC_PATH,
                frames_drawn: Optional[Callable[[], int]] = None) -> ReusableTCPServer:
    httpd = ReusableTCPServer((host, port), RemoteHandler)
    httpd.service     = service
    httpd.frame_slot  = frame_slot
    httpd.public_path = public_path
    # windowed hosts pass their session counter; headless falls back to the slot
    if frames_drawn is None and frame_slot is not None:
        frames_drawn = lambda: frame_slot.frames
    httpd.frames_drawn = frames_drawn
    return httpd


def start(service: "SettingsService",
          port: int = config.WEB_PORT,
          frame_slot: Optional["FrameSlot"] = None,
          frames_drawn: Optional[Callable[[], int]] = None) -> threading.Thread:
    def _serve_loop():
        while True:
            try:
                with make_server(service, "", port, frame_slot,
                                 frames_drawn=frames_drawn) as httpd:
                    httpd.serve_forever()
            except Exception:
                monitor_data["last_http_crash"] = traceback.format_exc()
                log.exception("Web remote crashed, restarting")
                time.sleep(1)

    t = threading.Thread(target=_serve_loop, name="web-remote", daemon=True)
    t.start()
    log.info("🌐 Web remote listening on port %d", port)
    return t
