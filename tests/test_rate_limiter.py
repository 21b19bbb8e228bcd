from __future__ import annotations

from deepsexa.services.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_admits_up_to_limit_then_rejects():
    limiter = RateLimiter(window_seconds=60, max_requests=20, clock=FakeClock())

    decisions = [limiter.admit("10.0.0.1") for _ in range(21)]

    assert decisions[:20] == [True] * 20
    assert decisions[20] is False


def test_new_window_after_expiry():
    clock = FakeClock()
    limiter = RateLimiter(window_seconds=60, max_requests=2, clock=clock)
    assert limiter.admit("a")
    assert limiter.admit("a")
    assert not limiter.admit("a")

    clock.advance(60)

    assert limiter.admit("a")


def test_identities_are_counted_separately():
    limiter = RateLimiter(window_seconds=60, max_requests=1, clock=FakeClock())

    assert limiter.admit("a")
    assert not limiter.admit("a")
    assert limiter.admit("b")


def test_stale_entries_are_swept_on_admission():
    clock = FakeClock()
    limiter = RateLimiter(window_seconds=60, max_requests=5, clock=clock)
    limiter.admit("a")
    limiter.admit("b")
    assert limiter.tracked_identities() == 2

    clock.advance(61)
    limiter.admit("c")

    assert limiter.tracked_identities() == 1


def test_retry_after_counts_down_whole_seconds():
    clock = FakeClock()
    limiter = RateLimiter(window_seconds=60, max_requests=1, clock=clock)
    limiter.admit("a")

    clock.advance(14.5)

    assert limiter.retry_after("a") == 46
    assert limiter.retry_after("unknown") == 0


def test_reset_forgets_all_windows():
    limiter = RateLimiter(window_seconds=60, max_requests=1, clock=FakeClock())
    limiter.admit("a")
    assert not limiter.admit("a")

    limiter.reset()

    assert limiter.admit("a")
