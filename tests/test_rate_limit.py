"""Tests for RateLimiter."""

from __future__ import annotations

import pytest

from hostvault.errors import TooManyAttempts
from hostvault.util.rate_limit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.slept = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.slept.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestRateLimiter:
    def test_allows_first_attempt(self, clock):
        rl = RateLimiter(max_attempts=5, delay_base=2, clock=clock, sleep=clock.sleep)
        rl.check()
        assert rl.attempts == 1
        assert rl.remaining == 4
        assert clock.slept == []

    def test_exceeds_max_attempts(self):
        rl = RateLimiter(max_attempts=2, delay_base=0)
        rl.check()
        rl.check()
        with pytest.raises(TooManyAttempts, match="Exceeded"):
            rl.check()

    def test_reset(self):
        rl = RateLimiter(max_attempts=2, delay_base=0)
        rl.check()
        rl.check()
        rl.reset()
        assert rl.attempts == 0
        assert rl.delay() == 0.0
        rl.check()

    def test_backoff_grows_exponentially(self, clock):
        rl = RateLimiter(max_attempts=5, delay_base=2, clock=clock, sleep=clock.sleep)
        rl.check()
        rl.check()
        rl.check()
        assert clock.slept == [2, 4]

    def test_elapsed_time_counts_towards_delay(self, clock):
        rl = RateLimiter(max_attempts=5, delay_base=2, clock=clock, sleep=clock.sleep)
        rl.check()
        clock.now += 1.5
        assert rl.delay() == pytest.approx(0.5)
        clock.now += 1
        rl.check()
        assert clock.slept == []

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RateLimiter(max_attempts=0)
