import pygame
import pytest

from session import RendererSession
from settings import Settings


class Capture:
    def __init__(self):
        self.sizes = []

    def __call__(self, card):
        self.sizes.append(card.get_size())


class StubLogo:
    def __init__(self):
        self.requests = []
        self.closed = False
        self.img = None

    def request(self, ref):
        self.requests.append(ref)

    def image(self, ref=None):
        return self.img

    def close(self):
        self.closed = True


@pytest.fixture
def session(channel, fake_ticks):
    s = RendererSession(channel, Capture(), tick_source=fake_ticks,
                        logo_loader=StubLogo(), clock=lambda: 0.0)
    yield s
    s.close()


def test_bootstraps_from_channel_and_subscribes(session, channel, hd_settings):
    assert session.settings is hd_settings
    assert len(channel) == 1
    assert session.scheduler.frame_rate == 30


def test_push_swaps_snapshot_and_rate(session, channel, hd_settings):
    new = hd_settings.replace(frame_rate=60.0, logo="/uploads/a.png")
    channel.publish(new)
    assert session.settings is new
    assert session.scheduler.frame_rate == 60
    assert session.logo.requests[-1] == "/uploads/a.png"


def test_invalid_push_keeps_last_good(session, hd_settings):
    session.receive({"resolution": "banana", "frameRate": 30})
    session.receive({"resolution": "1280x720", "frameRate": 0})
    assert session.settings is hd_settings
    session.receive({"resolution": "720x576"})
    assert session.settings.size == (720, 576)


def test_draw_resizes_on_resolution_change(session, channel, hd_settings):
    session.draw(1)
    channel.publish(hd_settings.replace(resolution="720x480"))
    session.draw(2)
    assert session.presenter.sizes == [(1280, 720), (720, 480)]


def test_frame_counter_survives_settings_change(session, channel, fake_ticks, hd_settings):
    fake_ticks.ticks = [0.0, 40.0, 80.0]
    for _ in range(3):
        session.step()
    assert session.frames_drawn == 2
    channel.publish(hd_settings.replace(title="NEW"))
    fake_ticks.ticks = [120.0]
    session.step()
    assert session.frames_drawn == 3


def test_rate_push_mid_run_uses_new_cadence(session, channel, fake_ticks, hd_settings):
    # 25 fps for one second of 5 ms ticks
    channel.publish(hd_settings.replace(frame_rate=25.0))
    t = 0.0
    fake_ticks.ticks = [t]
    session.step()
    for _ in range(200):
        t += 5.0
        fake_ticks.ticks = [t]
        session.step()
    before = session.frames_drawn
    assert before == 25

    channel.publish(hd_settings.replace(frame_rate=60.0))
    per_tick = []
    for _ in range(200):
        t += 5.0
        fake_ticks.ticks = [t]
        n = session.frames_drawn
        session.step()
        per_tick.append(session.frames_drawn - n)
    assert max(per_tick) == 1
    assert abs(session.frames_drawn - before - 60) <= 1


def test_draw_uses_snapshot_captured_at_start(channel, fake_ticks, hd_settings):
    seen = []

    def presenter(card):
        # a push landing during presentation does not touch this frame
        channel.publish(hd_settings.replace(resolution="720x576"))
        seen.append(card.get_size())

    s = RendererSession(channel, presenter, tick_source=fake_ticks,
                        logo_loader=StubLogo(), clock=lambda: 0.0)
    s.draw(1)
    assert seen == [(1280, 720)]
    assert s.settings.size == (720, 576)
    s.close()


def test_close_stops_and_unsubscribes(session, channel, fake_ticks, hd_settings):
    session.close()
    assert fake_ticks.cancelled
    assert len(channel) == 0
    assert session.logo.closed
    channel.publish(hd_settings.replace(title="after close"))
    assert session.settings is hd_settings
    assert session.step() is False
    session.close()         # idempotent


def test_logo_image_passed_only_with_logo_set(session, channel, hd_settings):
    img = pygame.Surface((100, 50), 0, 32)
    img.fill((255, 0, 0))
    session.logo.img = img
    card = session.compose(1)
    assert tuple(card.get_at((1259, 699)))[:3] != (255, 0, 0)

    channel.publish(hd_settings.replace(logo="/uploads/a.png"))
    card = session.compose(2)
    assert tuple(card.get_at((1259, 699)))[:3] == (255, 0, 0)


def test_logo_never_drawn_for_a_different_reference(channel, fake_ticks, hd_settings, tmp_path):
    from logo import LogoLoader

    uploads = tmp_path / "uploads"
    uploads.mkdir()
    img = pygame.Surface((100, 50), 0, 32)
    img.fill((255, 0, 0))
    pygame.image.save(img, str(uploads / "a.png"))

    loader = LogoLoader(str(tmp_path))
    channel.publish(hd_settings.replace(logo="/uploads/a.png"))
    s = RendererSession(channel, Capture(), tick_source=fake_ticks,
                        logo_loader=loader, clock=lambda: 0.0)
    loader.wait(5)
    assert tuple(s.compose(1).get_at((1259, 699)))[:3] == (255, 0, 0)

    # snapshot already points at B while the loader still holds A's image
    s._settings = hd_settings.replace(logo="/uploads/b.png")
    assert tuple(s.compose(2).get_at((1259, 699)))[:3] != (255, 0, 0)
    s.close()
