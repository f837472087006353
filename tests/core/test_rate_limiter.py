import pytest

from pozhi.core.rate_limiter import RateLimiter

pytestmark = pytest.mark.core


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_allows_up_to_limit_within_window():
    limiter = RateLimiter(limit=3, window_seconds=60, clock=FakeClock())
    assert [limiter.hit("user-1") for _ in range(4)] == [True, True, True, False]

def test_keys_are_independent():
    limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())
    assert limiter.hit("user-1") is True
    assert limiter.hit("user-2") is True
    assert limiter.hit("user-1") is False

def test_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(limit=2, window_seconds=60, clock=clock)
    limiter.hit("user-1")
    clock.now += 30
    limiter.hit("user-1")
    assert limiter.hit("user-1") is False

    clock.now += 31  # first hit has left the window
    assert limiter.hit("user-1") is True
    assert limiter.hit("user-1") is False

def test_rejected_attempts_do_not_extend_the_window():
    clock = FakeClock()
    limiter = RateLimiter(limit=1, window_seconds=60, clock=clock)
    limiter.hit("user-1")
    clock.now += 59
    assert limiter.hit("user-1") is False
    clock.now += 1
    assert limiter.hit("user-1") is True

def test_reset():
    limiter = RateLimiter(limit=1, window_seconds=60, clock=FakeClock())
    limiter.hit("user-1")
    limiter.reset()
    assert limiter.hit("user-1") is True
