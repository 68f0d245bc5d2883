import datetime
import math

import pytest

from timing import blink_state, format_timecode


def _epoch(h, m, s, ms):
    return datetime.datetime(2024, 3, 1, h, m, s, ms * 1000).timestamp()


@pytest.mark.parametrize("ms", [0, 39, 40, 500, 999])
def test_timecode_frame_field_at_25fps(ms):
    tc = format_timecode(_epoch(10, 4, 59, ms), 25)
    assert tc[:8] == "10:04:59"
    assert tc[9:] == f"{math.floor(ms / 1000 * 25):02d}"


def test_timecode_fields_zero_padded():
    assert format_timecode(_epoch(1, 2, 3, 40), 25) == "01:02:03:01"


def test_timecode_uses_frame_rate_not_a_counter():
    t = _epoch(12, 0, 0, 500)
    assert format_timecode(t, 25).endswith(":12")
    assert format_timecode(t, 60).endswith(":30")
    assert format_timecode(t, 59.94).endswith(":29")


def test_blink_toggles_once_per_second_boundary():
    samples = [1000 + i * 0.01 for i in range(500)]      # 5 s at 100 Hz
    states = [blink_state(t) for t in samples]
    flips = sum(1 for a, b in zip(states, states[1:]) if a != b)
    assert flips == 4


def test_blink_flips_exactly_on_boundary():
    assert blink_state(1000.999) != blink_state(1001.0)
    assert blink_state(1001.0) == blink_state(1001.999)


def test_blink_period_independent_of_frame_cadence():
    # sampling at 25 fps or 60 fps sees the same flip instants
    for fps in (25, 60):
        ts = [2000 + i / fps for i in range(fps * 3)]
        flips = [b for a, b in zip(ts, ts[1:]) if blink_state(a) != blink_state(b)]
        assert [math.floor(t) for t in flips] == [2001, 2002]
