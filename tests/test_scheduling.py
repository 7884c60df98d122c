"""Tests for the shared scheduling primitives: wake signal, ticker, throttle, fan-out."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone

from inframon.config import DEFAULT_INTERVAL_SEC
from inframon.scheduling import Ticker, WakeSignal, effective_interval, fan_out, is_due


class TestWakeSignal:
    def test_wait_times_out_without_post(self):
        signal = WakeSignal()
        assert signal.wait(0.01) is False

    def test_post_then_wait_consumes(self):
        signal = WakeSignal()
        signal.post()
        assert signal.pending is True
        assert signal.wait(0) is True
        assert signal.pending is False

    def test_bursts_collapse_into_one_wake(self):
        signal = WakeSignal()
        for _ in range(10):
            signal.post()
        assert signal.wait(0) is True
        assert signal.wait(0.01) is False

    def test_post_wakes_blocked_waiter(self):
        signal = WakeSignal()
        woke: list[bool] = []

        def waiter():
            woke.append(signal.wait(5))

        thread = threading.Thread(target=waiter)
        thread.start()
        time.sleep(0.05)
        signal.post()
        thread.join(2)
        assert woke == [True]


class TestTicker:
    def test_remaining_counts_down(self):
        ticker = Ticker(10)
        assert 9 < ticker.remaining() <= 10

    def test_reset_changes_interval(self):
        ticker = Ticker(10)
        ticker.reset(60)
        assert ticker.interval_sec == 60
        assert 59 < ticker.remaining() <= 60

    def test_advance_skips_missed_ticks(self):
        ticker = Ticker(0.05)
        time.sleep(0.2)
        ticker.advance()
        assert 0 < ticker.remaining() <= 0.05


class TestThrottle:
    def test_effective_interval_prefers_override(self):
        assert effective_interval(10, 60) == 10

    def test_effective_interval_falls_back_to_global(self):
        assert effective_interval(0, 60) == 60

    def test_effective_interval_falls_back_to_default(self):
        assert effective_interval(0, 0) == DEFAULT_INTERVAL_SEC

    def test_is_due(self):
        now = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        assert is_due(now - timedelta(seconds=30), 30, now) is True
        assert is_due(now - timedelta(seconds=29), 30, now) is False


class TestFanOut:
    def test_collects_results_by_key(self):
        jobs = [(i, (lambda i=i: i * 2)) for i in range(5)]
        assert fan_out(jobs, 2) == {0: 0, 1: 2, 2: 4, 3: 6, 4: 8}

    def test_empty(self):
        assert fan_out([], 8) == {}

    def test_respects_limit(self):
        active = 0
        peak = 0
        lock = threading.Lock()

        def slow():
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.05)
            with lock:
                active -= 1

        fan_out([(i, slow) for i in range(12)], 3)
        assert 1 < peak <= 3
