import pytest

from stretch_video.capture.clock import CancelToken, FrameClock, SessionClock, WallClock


def test_frame_clock_advances_one_frame_per_tick():
    clock = FrameClock(30)
    clock.start()
    assert clock.elapsed_ms() == 0
    for _ in range(30):
        clock.tick()
    assert clock.elapsed_ms() == pytest.approx(1000)


def test_frame_clock_restart_resets_origin():
    clock = FrameClock(30)
    clock.start()
    clock.tick()
    clock.start()
    assert clock.elapsed_ms() == 0


class FakeTime:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_wall_clock_measures_from_origin():
    fake = FakeTime()
    clock = WallClock(30, monotonic=fake.monotonic, sleep=fake.sleep)
    clock.start()
    fake.now += 0.5
    assert clock.elapsed_ms() == pytest.approx(500)


def test_wall_clock_sleeps_to_next_frame_boundary():
    fake = FakeTime()
    clock = WallClock(30, monotonic=fake.monotonic, sleep=fake.sleep)
    clock.start()
    fake.now += 0.010
    clock.tick()
    assert fake.sleeps[-1] == pytest.approx((1000 / 30 - 10) / 1000)
    assert clock.elapsed_ms() == pytest.approx(1000 / 30)


def test_cancel_token():
    token = CancelToken()
    assert not token.cancelled
    token.cancel()
    assert token.cancelled


def test_session_clock_is_abstract():
    with pytest.raises(TypeError):
        SessionClock(30)


def test_partial_clock_cannot_be_built():
    class OnlyStart(SessionClock):
        def start(self):
            self.started = True

    with pytest.raises(TypeError):
        OnlyStart(30)
