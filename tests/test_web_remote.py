import http.client
import json
import threading

import pygame
import pytest

import web_remote
from events import EventManager
from renderer import FrameSlot
from settings_store import SettingsService, SettingsStore


@pytest.fixture
def server(tmp_path):
    service = SettingsService(SettingsStore(str(tmp_path / "settings.json")))
    slot = FrameSlot()
    httpd = web_remote.make_server(service, "127.0.0.1", 0, slot, str(tmp_path / "public"))
    t = threading.Thread(target=httpd.serve_forever, daemon=True)
    t.start()
    yield httpd
    httpd.shutdown()
    httpd.server_close()
    EventManager.clear()


def _request(httpd, method, path, body=None, headers=None):
    conn = http.client.HTTPConnection("127.0.0.1", httpd.server_address[1], timeout=5)
    conn.request(method, path, body=body, headers=headers or {})
    resp = conn.getresponse()
    data = resp.read()
    conn.close()
    return resp.status, data


def test_get_settings(server):
    status, data = _request(server, "GET", "/api/settings")
    assert status == 200
    assert json.loads(data)["title"] == "OB 1 STUDIO"


def test_post_settings_merges_and_publishes(server):
    pushed = []
    server.service.channel.connect(pushed.append)
    status, data = _request(server, "POST", "/api/settings",
                            json.dumps({"frameRate": 60, "showBars": False}),
                            {"Content-Type": "application/json"})
    body = json.loads(data)
    assert status == 200 and body["success"]
    assert body["settings"]["frameRate"] == 60
    assert body["settings"]["title"] == "OB 1 STUDIO"
    assert pushed[-1].frame_rate == 60 and pushed[-1].show_bars is False


@pytest.mark.parametrize("payload", ['{"frameRate": 0}', "[1, 2]", "{oops"])
def test_post_settings_rejects_bad_input(server, payload):
    status, data = _request(server, "POST", "/api/settings", payload)
    assert status == 400
    assert json.loads(data)["success"] is False


def test_reset_settings(server):
    _request(server, "POST", "/api/settings", json.dumps({"title": "X"}))
    status, data = _request(server, "POST", "/api/reset-settings", b"")
    assert status == 200
    assert json.loads(data)["settings"]["title"] == "OB 1 STUDIO"


def test_upload_logo_sets_reference_and_serves_file(server):
    status, data = _request(server, "POST", "/api/upload-logo?filename=brand.png",
                            b"\x89PNGfake")
    body = json.loads(data)
    assert status == 200 and body["success"]
    path = body["logoPath"]
    assert path.startswith("/uploads/logo-") and path.endswith(".png")
    assert server.service.channel.current.logo == path

    status, data = _request(server, "GET", path)
    assert status == 200 and data == b"\x89PNGfake"


def test_upload_logo_rejects_bad_type(server):
    status, _ = _request(server, "POST", "/api/upload-logo?filename=evil.sh", b"x")
    assert status == 400
    status, _ = _request(server, "POST", "/api/upload-logo?filename=a.png", b"")
    assert status == 400


def test_stream_pushes_current_then_updates(server):
    conn = http.client.HTTPConnection("127.0.0.1", server.server_address[1], timeout=5)
    conn.request("GET", "/api/stream")
    resp = conn.getresponse()
    assert resp.status == 200
    assert resp.getheader("Content-Type") == "text/event-stream"

    def read_event():
        lines = []
        while True:
            line = resp.fp.readline().decode("utf-8").rstrip("\n")
            if not line:
                return lines
            lines.append(line)

    first = read_event()
    assert first[0] == "event: settings-update"
    assert json.loads(first[1][len("data: "):])["title"] == "OB 1 STUDIO"

    server.service.update({"title": "LIVE"})
    second = read_event()
    assert json.loads(second[1][len("data: "):])["title"] == "LIVE"
    conn.close()


def test_frame_png(server):
    status, _ = _request(server, "GET", "/frame.png")
    assert status == 404
    card = pygame.Surface((16, 9), 0, 32)
    server.frame_slot(card)
    status, data = _request(server, "GET", "/frame.png")
    assert status == 200 and data.startswith(b"\x89PNG")


def test_diag_reports_renderers(server):
    server.service.channel.connect(lambda s: None)
    status, data = _request(server, "GET", "/diag")
    diag = json.loads(data)
    assert status == 200
    assert diag["renderers"] == 1
    assert "cpu_percent" in diag


def test_action_posts_events(server):
    EventManager.clear()
    status, _ = _request(server, "GET", "/action?cmd=toggle&key=showSync")
    assert status == 204
    assert EventManager.poll() == {"type": "toggle_setting", "key": "showSync"}
    status, _ = _request(server, "GET", "/action?cmd=toggle&key=title")
    assert status == 400
    status, _ = _request(server, "GET", "/action?cmd=nope")
    assert status == 400


def test_unknown_route(server):
    status, _ = _request(server, "GET", "/nope")
    assert status == 404


@pytest.mark.parametrize("length", ["abc", str(web_remote.MAX_UPLOAD_BYTES + 1)])
def test_reset_rejects_bad_content_length(server, length):
    _request(server, "POST", "/api/settings", json.dumps({"title": "X"}))
    status, data = _request(server, "POST", "/api/reset-settings", b"",
                            {"Content-Length": length})
    assert status == 400
    assert json.loads(data)["success"] is False
    assert server.service.channel.current.title == "X"


def test_diag_reports_host_frames(tmp_path):
    class Host:
        frames_drawn = 7

    service = SettingsService(SettingsStore(str(tmp_path / "settings.json")))
    httpd = web_remote.make_server(service, "127.0.0.1", 0,
                                   frames_drawn=lambda: Host.frames_drawn)
    threading.Thread(target=httpd.serve_forever, daemon=True).start()
    try:
        status, data = _request(httpd, "GET", "/diag")
    finally:
        httpd.shutdown()
        httpd.server_close()
    assert status == 200
    assert json.loads(data)["frames_rendered"] == 7


def test_diag_falls_back_to_slot_frames(server):
    server.frame_slot(pygame.Surface((16, 9)))
    status, data = _request(server, "GET", "/diag")
    assert json.loads(data)["frames_rendered"] == 1
