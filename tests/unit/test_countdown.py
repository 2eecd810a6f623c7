"""Tests for the hold countdown and timer handles."""
import threading

from registration.countdown import Countdown, ThreadScheduler, TimerHandle, cancel_timer, format_remaining


class TestFormatRemaining:

    def test_formats_minutes_and_seconds(self):
        assert format_remaining(20 * 60) == "20:00"
        assert format_remaining(65) == "01:05"

    def test_floors_partial_seconds(self):
        assert format_remaining(59.999) == "00:59"

    def test_negative_is_zero(self):
        assert format_remaining(-3) == "00:00"


class TestCountdown:

    def test_counts_down_on_injected_clock(self, clock):
        countdown = Countdown(1200, clock=clock)
        assert countdown.display() == "20:00"
        clock.advance(61)
        assert countdown.display() == "18:59"
        assert not countdown.expired()

    def test_expires_at_deadline(self, clock):
        countdown = Countdown(1200, clock=clock)
        clock.advance(1200)
        assert countdown.expired()
        assert countdown.remaining() == 0.0


class TestTimers:

    def test_cancel_timer_accepts_none(self):
        cancel_timer(None)

    def test_cancel_deactivates_handle(self):
        handle = TimerHandle()
        cancel_timer(handle)
        assert not handle.active

    def test_thread_scheduler_runs_until_cancelled(self):
        ticked = threading.Event()
        handle = ThreadScheduler().schedule_repeating(0.01, ticked.set)
        try:
            assert ticked.wait(2)
        finally:
            handle.cancel()
        assert not handle.active

    def test_failing_callback_stops_timer(self):
        done = threading.Event()

        def boom():
            done.set()
            raise RuntimeError("tick failed")

        handle = ThreadScheduler().schedule_repeating(0.01, boom)
        assert done.wait(2)
        for _ in range(200):
            if not handle.active:
                break
            threading.Event().wait(0.01)
        assert not handle.active
